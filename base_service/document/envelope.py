import copy
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .document_id import DocumentId
from .node_details import ENVELOPE_KEY, NodeDetails
from .update_method import UpdateMethod
from ..utilities.validation_error import ValidationError


def validate_payload(payload: Any, update_method: UpdateMethod) -> None:
	""" Rejects writes that would touch system fields or smuggle in update operators.
	The envelope (id, date_created, ...) is derived by the service and is never caller-writable. """
	if not isinstance(payload, Mapping):
		raise ValidationError(f"Expected a mapping to {update_method}, got {type(payload).__name__}.")
	
	for key in payload.keys():
		if not isinstance(key, str):
			raise ValidationError(f"Field names must be strings, got {key!r}.")
		if not key:
			raise ValidationError("Field names cannot be empty.")
		if key == ENVELOPE_KEY or key.startswith(ENVELOPE_KEY + "."):
			raise ValidationError(f"'{key}' is a system field and cannot be written directly.")
		if key == "_id":
			raise ValidationError("'_id' is assigned by the store and cannot be written directly.")
		if key.startswith("$"):
			raise ValidationError(f"Field '{key}' looks like an update operator. Use update_one_with_document() for raw updates.")
		if update_method is UpdateMethod.INSERT and "." in key:
			# Inserts store keys verbatim, so a dotted key would never be reachable again
			raise ValidationError(f"Field '{key}' contains a period, which is not allowed when inserting.")

def new_document(payload: Mapping[str, Any], document_id: DocumentId, now: datetime, actor_id: DocumentId | None = None) -> dict[str, Any]:
	""" Copy the payload and attach a fresh envelope. The caller's payload is never mutated. """
	document = copy.deepcopy(dict(payload))
	document[ENVELOPE_KEY] = NodeDetails.new(document_id, now, actor_id).to_bson()
	return document
