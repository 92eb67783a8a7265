from dataclasses import dataclass
from datetime import datetime
from typing import Any, Self

from .document_id import DocumentId


ENVELOPE_KEY = "node"
""" Every stored document, top-level or embedded, keeps its system fields under this key. """

@dataclass(frozen=True)
class NodeDetails:
	""" System fields of a document. None of these can be written through a payload. """
	id: DocumentId
	date_created: datetime
	date_modified: datetime
	created_by_id: DocumentId | None = None
	updated_by_id: DocumentId | None = None

	@classmethod
	def new(cls, document_id: DocumentId, now: datetime, actor_id: DocumentId | None = None) -> Self:
		""" date_created and date_modified start out equal. """
		return cls(
			id=document_id,
			date_created=now,
			date_modified=now,
			created_by_id=actor_id,
			updated_by_id=actor_id
		)

	def to_bson(self) -> dict[str, Any]:
		return {
			"id": self.id.to_bson(),
			"date_created": self.date_created,
			"date_modified": self.date_modified,
			"created_by_id": self.created_by_id.to_bson() if self.created_by_id is not None else None,
			"updated_by_id": self.updated_by_id.to_bson() if self.updated_by_id is not None else None,
		}

	@classmethod
	def from_bson(cls, bson: Any) -> Self:
		if not isinstance(bson, dict):
			raise ValueError(f"Expected the {ENVELOPE_KEY} field to hold a mapping, got {type(bson).__name__}.")
		created_by_id = bson.get("created_by_id")
		updated_by_id = bson.get("updated_by_id")
		return cls(
			id=DocumentId.coerce(bson["id"]),
			date_created=bson["date_created"],
			date_modified=bson["date_modified"],
			created_by_id=DocumentId.coerce(created_by_id) if created_by_id is not None else None,
			updated_by_id=DocumentId.coerce(updated_by_id) if updated_by_id is not None else None
		)
