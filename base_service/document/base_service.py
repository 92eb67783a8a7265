import re
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, ClassVar

from .delete_response import DeleteResponse
from .document_id import DocumentId
from .envelope import new_document, validate_payload
from .node_details import ENVELOPE_KEY
from .update_method import UpdateMethod
from ..clock import Clock, default_clock
from ..fields import EmbeddedPath, Mutation, resolve_find, resolve_insert, resolve_remove, resolve_update, element_id, DEFAULT_ID_FIELD
from ..store.document_store import DocumentStore
from ..utilities.service_error import NotFoundError, PartialWriteError
from ..utilities.snake_case import snake_case
from ..utilities.validation_error import ValidationError
from ..utilities.logger import get_logger


DEFAULT_LIMIT = 25

class BaseService:
	""" Create, update and delete semantics for the documents of one collection, and for documents embedded inside them.

	Every mutation is stamped with the injected clock and sent to the store as exactly one call.
	Insert operations return identifiers only. Callers that need the stored document fetch it with find_by_id().

	Subclasses can override the class-level settings below, the same way they override default_sort() and default_filter().
	"""
	id_parameter: ClassVar[str] = DEFAULT_ID_FIELD
	""" Where a top-level document keeps its id. """
	embedded_id_parameter: ClassVar[str] = DEFAULT_ID_FIELD
	""" Where an embedded document keeps its id, relative to the element. """
	default_limit: ClassVar[int] = DEFAULT_LIMIT

	def __init__(
			self,
			store: DocumentStore,
			collection_name: str,
			*,
			clock: Clock | None = None,
			id_factory: Callable[[], DocumentId] = DocumentId,
			default_sort: dict[str, int] | None = None,
			default_filter: dict[str, Any] | None = None
		) -> None:
		if not collection_name:
			raise ValueError("A BaseService needs a collection name.")
		self.store = store
		self.collection_name = collection_name
		self.clock = clock or default_clock()
		self.id_factory = id_factory
		self._default_sort = default_sort
		self._default_filter = default_filter

	def default_sort(self) -> dict[str, int]:
		return self._default_sort or { "_id": 1 }

	def default_filter(self) -> dict[str, Any]:
		return dict(self._default_filter or {})

	def ensure_indexes(self) -> None:
		""" Asks the store to keep top-level ids unique. """
		self.store.ensure_indexes(self.collection_name, self.id_parameter)

	def _id_filter(self, document_id: DocumentId | str) -> dict[str, Any]:
		return { self.id_parameter: DocumentId.coerce(document_id).to_bson() }

	def _now(self) -> datetime:
		return self.clock.now()

	@staticmethod
	def _actor(actor_id: DocumentId | str | None) -> DocumentId | None:
		return DocumentId.coerce(actor_id) if actor_id is not None else None

	# Top-level documents
	def insert_one(self, payload: Mapping[str, Any], *, actor_id: DocumentId | str | None = None) -> DocumentId:
		""" Stores a new document and returns its id. The full object is intentionally not returned. """
		validate_payload(payload, UpdateMethod.INSERT)
		document_id = self.id_factory()
		document = new_document(payload, document_id, self._now(), self._actor(actor_id))
		self.store.insert(self.collection_name, document)
		get_logger().debug(f"Inserted document '{document_id}' into '{self.collection_name}'")
		return document_id

	def insert_many(self, payloads: Iterable[Mapping[str, Any]], *, actor_id: DocumentId | str | None = None) -> list[DocumentId]:
		""" Stores every payload with a single batched store call and returns the new ids in order.
		If the store applies only part of the batch its PartialWriteError is raised as is. """
		payloads = list(payloads)
		if not payloads:
			return []

		# Validate everything up front so a bad payload never produces a partial batch
		for payload in payloads:
			validate_payload(payload, UpdateMethod.INSERT)

		now = self._now()
		actor = self._actor(actor_id)
		document_ids: list[DocumentId] = []
		documents = []
		for payload in payloads:
			document_id = self.id_factory()
			document_ids.append(document_id)
			documents.append(new_document(payload, document_id, now, actor))

		try:
			self.store.insert_many(self.collection_name, documents)
		except PartialWriteError as e:
			get_logger().warning(f"Batch insert into '{self.collection_name}' stopped after {e.inserted_count} of {len(documents)} documents")
			raise
		return document_ids

	def find_by_id(self, document_id: DocumentId | str) -> dict[str, Any]:
		""" Return one by id. Raises NotFoundError if not found. """
		document = self.store.find_one(self.collection_name, self._id_filter(document_id))
		if document is None:
			raise NotFoundError(f"No document in '{self.collection_name}' with id '{document_id}'.")
		return document

	def find_one_by_value(self, field: str, value: Any) -> dict[str, Any] | None:
		""" Returns the first document whose field equals value, or None. """
		return self.store.find_one(self.collection_name, { field: value })

	def update_one(self, document_id: DocumentId | str, changes: Mapping[str, Any], *, actor_id: DocumentId | str | None = None) -> None:
		""" Overlays the supplied fields and refreshes date_modified. Fields that are not mentioned keep their values. """
		validate_payload(changes, UpdateMethod.UPDATE)
		update_set = dict(changes)
		update_set[f"{ENVELOPE_KEY}.updated_by_id"] = self._update_actor(actor_id)
		update = { "$set": update_set, "$max": { f"{ENVELOPE_KEY}.date_modified": self._now() } }
		self.store.update(self.collection_name, self._id_filter(document_id), update)
		get_logger().debug(f"Updated document '{document_id}' in '{self.collection_name}'")

	def update_one_with_document(self, document_id: DocumentId | str, update: Mapping[str, Any], *, array_filters: list[dict[str, Any]] | None = None, actor_id: DocumentId | str | None = None) -> None:
		""" Applies a raw update document, for operators this service does not model.
		System fields stay off limits and date_modified is still refreshed. """
		if not update or not all(isinstance(operator, str) and operator.startswith("$") for operator in update):
			raise ValidationError("A raw update must only contain update operators such as $set or $inc.")
		for operator, changes in update.items():
			if not isinstance(changes, Mapping):
				raise ValidationError(f"The {operator} operator expects a mapping of fields.")
			for field_path in changes:
				if field_path == ENVELOPE_KEY or field_path.startswith(ENVELOPE_KEY + "."):
					raise ValidationError(f"'{field_path}' is a system field and cannot be written directly.")

		raw_update = { operator: dict(changes) for operator, changes in update.items() }
		raw_update.setdefault("$set", {})[f"{ENVELOPE_KEY}.updated_by_id"] = self._update_actor(actor_id)
		# date_modified never moves back, so it can never fall before date_created
		raw_update.setdefault("$max", {})[f"{ENVELOPE_KEY}.date_modified"] = self._now()
		self.store.update(self.collection_name, self._id_filter(document_id), raw_update, array_filters)

	def delete_one(self, document_id: DocumentId | str) -> DeleteResponse:
		""" Deletes the document and, with it, everything embedded inside it. """
		self.store.delete(self.collection_name, self._id_filter(document_id))
		get_logger().debug(f"Deleted document '{document_id}' from '{self.collection_name}'")
		return DeleteResponse(id=DocumentId.coerce(document_id), success=True)

	def delete_one_by_query(self, filter: dict[str, Any]) -> bool:
		""" Deletes the first document matching filter. Returns False when nothing matched. """
		try:
			self.store.delete(self.collection_name, filter)
		except NotFoundError:
			return False
		get_logger().debug(f"Deleted a document from '{self.collection_name}' for query: {filter}")
		return True

	def find(self, filter: dict[str, Any] | None = None, sort: dict[str, int] | None = None, limit: int | None = None, skip: int | None = None) -> list[dict[str, Any]]:
		""" Query the collection. Falls back to default_filter(), default_sort() and default_limit. """
		start_time = time.time()
		documents = self.store.find(
			self.collection_name,
			filter if filter is not None else self.default_filter(),
			sort=sort or self.default_sort(),
			limit=limit if limit is not None else self.default_limit,
			skip=skip or 0
		)
		get_logger().debug(f"Database Usage Logging: Retrieved {len(documents)} documents from '{self.collection_name}' for query: {filter} in {(time.time() - start_time):.3f} seconds")
		return documents

	def search(self, search_term: str, fields: Iterable[str], sort: dict[str, int] | None = None, limit: int | None = None, skip: int | None = None) -> list[dict[str, Any]]:
		""" Case-insensitive search for search_term in any of fields. Field names are converted to snake_case. The term is matched literally. """
		field_names = [snake_case(field) for field in fields]
		if not field_names:
			raise ValueError("search() needs at least one field to look in.")
		pattern = re.escape(search_term)
		query = { "$or": [{ field_name: { "$regex": pattern, "$options": "i" } } for field_name in field_names] }
		return self.find(query, sort=sort, limit=limit, skip=skip)

	# Embedded documents
	def _apply(self, parent_id: DocumentId | str, mutation: Mutation) -> None:
		""" Sends the resolved change as one atomic update against the parent. """
		start_time = time.time()
		query = self._id_filter(parent_id) | mutation.conditions
		self.store.update(self.collection_name, query, mutation.to_update_document(), mutation.array_filters)
		get_logger().debug(f"Database Usage Logging: Updated embedded content of '{parent_id}' in '{self.collection_name}' in {(time.time() - start_time):.3f} seconds")

	def insert_embedded(
			self,
			parent_id: DocumentId | str,
			path: EmbeddedPath | str,
			payload: Mapping[str, Any],
			*,
			singleton: bool = False,
			actor_id: DocumentId | str | None = None
		) -> DocumentId:
		""" Adds an embedded document at path and returns its id.
		Lists get the new element appended. Empty fields become a list, or a nested object when singleton is True. """
		validate_payload(payload, UpdateMethod.INSERT)
		path = EmbeddedPath.coerce(path)
		parent = self.find_by_id(parent_id)

		now = self._now()
		actor = self._actor(actor_id)
		embedded_id = self.id_factory()
		element = new_document(payload, embedded_id, now, actor)
		mutation = resolve_insert(parent, path, element, now, actor, singleton=singleton, id_field=self.embedded_id_parameter)
		self._apply(parent_id, mutation)
		return embedded_id

	def update_embedded(self, parent_id: DocumentId | str, path: EmbeddedPath | str, changes: Mapping[str, Any], *, actor_id: DocumentId | str | None = None) -> None:
		""" Overlays changes onto the embedded document at path. Both its date_modified and the parent's are refreshed. """
		validate_payload(changes, UpdateMethod.UPDATE)
		path = EmbeddedPath.coerce(path)
		parent = self.find_by_id(parent_id)
		mutation = resolve_update(parent, path, changes, self._now(), self._actor(actor_id), id_field=self.embedded_id_parameter)
		self._apply(parent_id, mutation)

	def delete_embedded(self, parent_id: DocumentId | str, path: EmbeddedPath | str, *, actor_id: DocumentId | str | None = None) -> DeleteResponse:
		""" Removes the embedded document at path and refreshes the parent's date_modified.
		Removing something that is already gone raises NotFoundError. """
		path = EmbeddedPath.coerce(path)
		parent = self.find_by_id(parent_id)
		removed = resolve_find(parent, path, self.embedded_id_parameter)
		mutation = resolve_remove(parent, path, self._now(), self._actor(actor_id), id_field=self.embedded_id_parameter)
		self._apply(parent_id, mutation)

		removed_id = element_id(removed, self.embedded_id_parameter) or path.last().selector
		return DeleteResponse(id=removed_id, success=True)

	def find_embedded(self, parent_id: DocumentId | str, path: EmbeddedPath | str) -> Any:
		""" Returns the embedded document at path. Raises NotFoundError if the parent or the path does not resolve. """
		path = EmbeddedPath.coerce(path)
		parent = self.find_by_id(parent_id)
		return resolve_find(parent, path, self.embedded_id_parameter)

	def _update_actor(self, actor_id: DocumentId | str | None) -> Any:
		actor = self._actor(actor_id)
		return actor.to_bson() if actor is not None else None
