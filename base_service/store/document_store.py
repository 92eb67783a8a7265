from abc import ABC, abstractmethod
from typing import Any


class DocumentStore(ABC):
	""" The narrow slice of a document database that BaseService depends on.
	
	Implementations must apply a single update() call atomically with respect to the fields it touches.
	Errors are raised, never returned:
		- NotFoundError when update() or delete() match nothing
		- PartialWriteError when insert_many() applies only part of a batch
		- StoreError for anything else the backend reports
	"""

	@abstractmethod
	def insert(self, collection: str, document: dict[str, Any]) -> None:
		...

	@abstractmethod
	def insert_many(self, collection: str, documents: list[dict[str, Any]]) -> None:
		""" Inserts the batch in order with a single call to the backend. """
		...

	@abstractmethod
	def update(self, collection: str, filter: dict[str, Any], update: dict[str, Any], array_filters: list[dict[str, Any]] | None = None) -> None:
		""" Applies one update document to the first document matching filter. """
		...

	@abstractmethod
	def delete(self, collection: str, filter: dict[str, Any]) -> None:
		...

	@abstractmethod
	def find_one(self, collection: str, filter: dict[str, Any]) -> dict[str, Any] | None:
		...

	@abstractmethod
	def find(self, collection: str, filter: dict[str, Any], sort: dict[str, int] | None = None, limit: int | None = None, skip: int | None = None) -> list[dict[str, Any]]:
		...

	def ensure_indexes(self, collection: str, id_field: str) -> None:
		""" Makes id_field unique within the collection. Stores without indexes can ignore this. """
		return
