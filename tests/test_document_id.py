import pytest
from bson import ObjectId

from base_service import DocumentId, NodeDetails
from base_service.document import new_document, validate_payload, UpdateMethod
from base_service import ValidationError


def test_generated_ids_are_random_and_url_safe():
    first = DocumentId()
    second = DocumentId()
    assert len(first) == 24
    assert first.isalnum()
    assert first != second

def test_existing_ids_are_wrapped_as_is():
    assert DocumentId("abc") == "abc"
    assert isinstance(DocumentId("abc"), str)

def test_with_prefix():
    document_id = DocumentId.with_prefix("usr")
    assert document_id.startswith("usr")
    assert len(document_id) == 27
    with pytest.raises(ValueError):
        DocumentId.with_prefix("ab")

def test_object_ids_round_trip():
    object_id = ObjectId()
    document_id = DocumentId.coerce(object_id)
    assert document_id == f"$oid:{object_id}"
    assert document_id.is_object_id()
    assert document_id.to_bson() == object_id

def test_coerce_accepts_integers_and_strings():
    assert DocumentId.coerce(42) == "42"
    assert DocumentId.coerce(42).to_bson() == 42
    assert isinstance(DocumentId.coerce(42).to_bson(), int)
    assert DocumentId("42").to_bson() == "42"
    assert DocumentId.coerce("xyz").to_bson() == "xyz"
    assert not DocumentId.coerce("$oid:not-hex").is_object_id()

@pytest.mark.parametrize("value, error", [
    (True, TypeError),
    (1.5, TypeError),
    (None, TypeError),
    ("", ValueError),
])
def test_coerce_rejects_invalid_ids(value, error):
    with pytest.raises(error):
        DocumentId.coerce(value)


def test_node_details_round_trip(t0):
    details = NodeDetails.new(DocumentId("doc"), t0, DocumentId("usr"))
    assert details.date_created == details.date_modified == t0

    bson = details.to_bson()
    assert bson == {
        "id": "doc",
        "date_created": t0,
        "date_modified": t0,
        "created_by_id": "usr",
        "updated_by_id": "usr",
    }
    assert NodeDetails.from_bson(bson) == details

def test_new_document_does_not_mutate_the_payload(t0):
    payload = { "name": "alpha", "tags": ["x"] }
    document = new_document(payload, DocumentId("doc"), t0)
    document["tags"].append("y")

    assert payload == { "name": "alpha", "tags": ["x"] }
    assert document["node"]["id"] == "doc"

@pytest.mark.parametrize("payload", [
    { "node": {} },
    { "node.id": "x" },
    { "_id": 1 },
    { "$set": { "a": 1 } },
    { "": 1 },
    { 1: "a" },
    { "a.b": 1 },
    ["not", "a", "mapping"],
])
def test_insert_payloads_cannot_touch_system_fields(payload):
    with pytest.raises(ValidationError):
        validate_payload(payload, UpdateMethod.INSERT)

def test_update_payloads_may_use_dotted_keys():
    validate_payload({ "settings.theme": "dark" }, UpdateMethod.UPDATE)
    with pytest.raises(ValidationError):
        validate_payload({ "node.date_created": None }, UpdateMethod.UPDATE)
