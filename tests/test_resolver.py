from datetime import datetime, timezone

import pytest

from base_service import EmbeddedPath, DocumentId, MemoryDocumentStore
from base_service import AlreadyExistsError, NotFoundError, TypeMismatchError, ValidationError
from base_service.fields import resolve_find, resolve_insert, resolve_update, resolve_remove, element_id, get_dotted


CREATED = datetime(2021, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2021, 6, 1, tzinfo=timezone.utc)

def node(document_id):
    return {
        "id": document_id,
        "date_created": CREATED,
        "date_modified": CREATED,
        "created_by_id": None,
        "updated_by_id": None,
    }

def make_parent():
    return {
        "name": "parent",
        "node": node("p1"),
        "items": [
            { "label": "one", "node": node("i1"), "tags": [{ "value": 1, "node": node("t1") }] },
            { "label": "two", "node": node("i2") },
        ],
        "profile": { "bio": "hello", "node": node("pr") },
        "count": 3,
        "empty": None,
    }

def new_element(document_id):
    return { "label": "new", "node": node(document_id) }


def test_find_list_element():
    parent = make_parent()
    found = resolve_find(parent, EmbeddedPath("items[i2]"))
    assert found["label"] == "two"

    # The result is a copy
    found["label"] = "changed"
    assert parent["items"][1]["label"] == "two"

def test_find_nested():
    assert resolve_find(make_parent(), EmbeddedPath("items[i1].tags[t1]"))["value"] == 1
    assert resolve_find(make_parent(), EmbeddedPath("profile"))["bio"] == "hello"

def test_first_match_wins():
    parent = make_parent()
    parent["items"].append({ "label": "duplicate", "node": node("i1") })
    assert resolve_find(parent, EmbeddedPath("items[i1]"))["label"] == "one"

@pytest.mark.parametrize("path", ["items[zzz]", "missing", "profile.missing", "items[i2].tags[t1]", "empty"])
def test_find_missing(path):
    with pytest.raises(NotFoundError):
        resolve_find(make_parent(), EmbeddedPath(path))

@pytest.mark.parametrize("path", ["items", "items.label", "profile[x]", "count.x", "count[x]"])
def test_find_type_mismatch(path):
    with pytest.raises(TypeMismatchError):
        resolve_find(make_parent(), EmbeddedPath(path))

@pytest.mark.parametrize("path", ["node", "node.id", "_id", "items[i1].node"])
def test_system_fields_are_not_addressable(path):
    with pytest.raises(ValidationError):
        resolve_find(make_parent(), EmbeddedPath(path))


def test_insert_appends_to_a_list():
    element = new_element("i3")
    mutation = resolve_insert(make_parent(), EmbeddedPath("items"), element, NOW)
    assert mutation.push == { "items": element }
    assert mutation.set == { "node.updated_by_id": None }
    assert mutation.max == { "node.date_modified": NOW }
    assert mutation.array_filters == []
    assert mutation.conditions == {}

def test_insert_into_a_nested_list_uses_array_filters():
    element = new_element("t2")
    mutation = resolve_insert(make_parent(), EmbeddedPath("items[i1].tags"), element, NOW, DocumentId("usr"))
    assert mutation.push == { "items.$[e0].tags": element }
    assert mutation.array_filters == [{ "e0.node.id": "i1" }]
    assert mutation.conditions == { "items": { "$elemMatch": { "node.id": "i1" } } }
    assert mutation.set["node.updated_by_id"] == "usr"

def test_insert_into_an_absent_field_creates_a_list():
    mutation = resolve_insert(make_parent(), EmbeddedPath("items[i2].tags"), new_element("t9"), NOW)
    assert mutation.push == { "items.$[e0].tags": new_element("t9") }

def test_insert_singleton():
    element = new_element("s1")
    mutation = resolve_insert(make_parent(), EmbeddedPath("settings"), element, NOW, singleton=True)
    assert mutation.set["settings"] == element
    assert mutation.push == {}
    assert mutation.conditions == { "settings": None }

def test_insert_into_a_null_field():
    element = new_element("e1")
    mutation = resolve_insert(make_parent(), EmbeddedPath("empty"), element, NOW)
    assert mutation.set["empty"] == [element]
    assert mutation.conditions == { "empty": None }

def test_insert_into_an_occupied_object():
    with pytest.raises(AlreadyExistsError):
        resolve_insert(make_parent(), EmbeddedPath("profile"), new_element("x"), NOW, singleton=True)

@pytest.mark.parametrize("path, singleton", [("count", False), ("name", True), ("items", True)])
def test_insert_type_mismatch(path, singleton):
    with pytest.raises(TypeMismatchError):
        resolve_insert(make_parent(), EmbeddedPath(path), new_element("x"), NOW, singleton=singleton)

def test_insert_path_must_end_in_a_field():
    with pytest.raises(ValidationError):
        resolve_insert(make_parent(), EmbeddedPath("items[i1]"), new_element("x"), NOW)

def test_insert_below_a_missing_element():
    with pytest.raises(NotFoundError):
        resolve_insert(make_parent(), EmbeddedPath("items[zzz].tags"), new_element("x"), NOW)


def test_update_nested_element():
    mutation = resolve_update(make_parent(), EmbeddedPath("items[i1].tags[t1]"), { "value": 2 }, NOW)
    assert mutation.set == {
        "items.$[e0].tags.$[e1].value": 2,
        "items.$[e0].tags.$[e1].node.updated_by_id": None,
        "node.updated_by_id": None,
    }
    assert mutation.max == {
        "items.$[e0].tags.$[e1].node.date_modified": NOW,
        "node.date_modified": NOW,
    }
    assert mutation.array_filters == [{ "e0.node.id": "i1" }, { "e1.node.id": "t1" }]
    assert mutation.conditions == { "items": { "$elemMatch": { "node.id": "i1", "tags": { "$elemMatch": { "node.id": "t1" } } } } }

def test_update_singleton():
    mutation = resolve_update(make_parent(), EmbeddedPath("profile"), { "bio": "bye" }, NOW)
    assert mutation.set["profile.bio"] == "bye"
    assert mutation.max["profile.node.date_modified"] == NOW
    assert mutation.array_filters == []

def test_update_missing_element():
    with pytest.raises(NotFoundError):
        resolve_update(make_parent(), EmbeddedPath("items[zzz]"), { "label": "x" }, NOW)


def test_remove_list_element():
    mutation = resolve_remove(make_parent(), EmbeddedPath("items[i2]"), NOW)
    assert mutation.pull == { "items": { "node.id": "i2" } }
    assert mutation.array_filters == []
    assert mutation.conditions == { "items": { "$elemMatch": { "node.id": "i2" } } }
    assert mutation.to_update_document() == {
        "$set": { "node.updated_by_id": None },
        "$max": { "node.date_modified": NOW },
        "$pull": { "items": { "node.id": "i2" } },
    }

def test_remove_nested_list_element():
    mutation = resolve_remove(make_parent(), EmbeddedPath("items[i1].tags[t1]"), NOW)
    assert mutation.pull == { "items.$[e0].tags": { "node.id": "t1" } }
    assert mutation.array_filters == [{ "e0.node.id": "i1" }]

def test_remove_singleton():
    mutation = resolve_remove(make_parent(), EmbeddedPath("profile"), NOW)
    assert mutation.unset == ["profile"]
    assert mutation.conditions == { "profile": { "$exists": True } }
    assert mutation.to_update_document()["$unset"] == { "profile": "" }

def test_remove_missing_element():
    with pytest.raises(NotFoundError):
        resolve_remove(make_parent(), EmbeddedPath("items[zzz]"), NOW)

def test_stale_mutation_does_not_apply_after_a_concurrent_removal():
    store = MemoryDocumentStore()
    store.insert("parents", make_parent())
    stale_parent = store.find_one("parents", { "node.id": "p1" })

    removal = resolve_remove(stale_parent, EmbeddedPath("items[i1]"), NOW)
    store.update("parents", { "node.id": "p1" } | removal.conditions, removal.to_update_document(), removal.array_filters)

    update = resolve_update(stale_parent, EmbeddedPath("items[i1]"), { "label": "late" }, NOW)
    with pytest.raises(NotFoundError):
        store.update("parents", { "node.id": "p1" } | update.conditions, update.to_update_document(), update.array_filters)

    stored = store.find_one("parents", { "node.id": "p1" })
    assert [item["node"]["id"] for item in stored["items"]] == ["i2"]


def test_element_id_and_get_dotted():
    element = { "node": { "id": "abc" }, "meta": { "owner": { "name": "x" } } }
    assert element_id(element) == "abc"
    assert element_id({ "label": "no id" }) is None
    assert get_dotted(element, "meta.owner.name") == "x"
    assert get_dotted(element, "meta.missing.name") is None

def test_nested_singleton_guard_is_bound_to_the_selected_element():
    element = new_element("s1")
    mutation = resolve_insert(make_parent(), EmbeddedPath("items[i1].profile"), element, NOW, singleton=True)
    assert mutation.set["items.$[e0].profile"] == element
    assert mutation.array_filters == [{ "e0.node.id": "i1" }]
    assert mutation.conditions == { "items": { "$elemMatch": { "node.id": "i1", "profile": None } } }

def test_nested_singleton_removal_guard_is_bound_to_the_selected_element():
    parent = make_parent()
    parent["items"][0]["profile"] = { "node": node("s1") }
    mutation = resolve_remove(parent, EmbeddedPath("items[i1].profile"), NOW)
    assert mutation.unset == ["items.$[e0].profile"]
    assert mutation.conditions == { "items": { "$elemMatch": { "node.id": "i1", "profile": { "$exists": True } } } }

def test_stale_singleton_insert_does_not_overwrite():
    store = MemoryDocumentStore()
    store.insert("parents", make_parent())
    stale_parent = store.find_one("parents", { "node.id": "p1" })

    first = resolve_insert(stale_parent, EmbeddedPath("items[i1].profile"), new_element("s1"), NOW, singleton=True)
    store.update("parents", { "node.id": "p1" } | first.conditions, first.to_update_document(), first.array_filters)

    second = resolve_insert(stale_parent, EmbeddedPath("items[i1].profile"), new_element("s2"), NOW, singleton=True)
    with pytest.raises(NotFoundError):
        store.update("parents", { "node.id": "p1" } | second.conditions, second.to_update_document(), second.array_filters)

    assert store.find_one("parents", { "node.id": "p1" })["items"][0]["profile"]["node"]["id"] == "s1"

def test_integer_element_ids_are_filtered_as_stored():
    parent = make_parent()
    parent["items"].append({ "label": "numbered", "node": node(7) })

    assert resolve_find(parent, EmbeddedPath("items[7]"))["label"] == "numbered"
    mutation = resolve_update(parent, EmbeddedPath("items[7]"), { "label": "x" }, NOW)
    assert mutation.array_filters == [{ "e0.node.id": 7 }]
    assert mutation.conditions == { "items": { "$elemMatch": { "node.id": 7 } } }
    assert resolve_remove(parent, EmbeddedPath("items[7]"), NOW).pull == { "items": { "node.id": 7 } }

def test_date_modified_is_only_raised():
    store = MemoryDocumentStore()
    store.insert("parents", make_parent())
    earlier = datetime(2020, 1, 1, tzinfo=timezone.utc)

    mutation = resolve_update(make_parent(), EmbeddedPath("items[i1]"), { "label": "x" }, earlier)
    store.update("parents", { "node.id": "p1" } | mutation.conditions, mutation.to_update_document(), mutation.array_filters)

    stored = store.find_one("parents", { "node.id": "p1" })
    assert stored["items"][0]["label"] == "x"
    assert stored["items"][0]["node"]["date_modified"] == CREATED
    assert stored["node"]["date_modified"] == CREATED
