import time
from typing import Any

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import BulkWriteError, PyMongoError

from .document_store import DocumentStore
from ..utilities.service_error import NotFoundError, PartialWriteError, StoreError
from ..utilities.logger import get_logger


class MongoDocumentStore(DocumentStore):
	""" DocumentStore backed by a pymongo Database.
	Driver errors are re-raised as StoreError with the original exception chained. Nothing is retried. """

	def __init__(self, database: Database) -> None:
		self.database = database

	@classmethod
	def from_environment(cls) -> 'MongoDocumentStore':
		""" Connects using MONGO_URL and MONGO_DB_NAME. """
		from .mongo_db import create_mongo_db
		return cls(create_mongo_db())

	def get_collection(self, collection: str) -> Collection:
		""" Returns the corresponding Pymongo Collection. """
		return self.database[collection]

	def insert(self, collection: str, document: dict[str, Any]) -> None:
		start_time = time.time()
		try:
			self.get_collection(collection).insert_one(document)
		except PyMongoError as e:
			raise StoreError(f"Insert into '{collection}' failed: {e}") from e
		get_logger().debug(f"Database Usage Logging: Inserted a document into '{collection}' in {(time.time() - start_time):.3f} seconds")

	def insert_many(self, collection: str, documents: list[dict[str, Any]]) -> None:
		if not documents:
			return
		start_time = time.time()
		try:
			self.get_collection(collection).insert_many(documents, ordered=True)
		except BulkWriteError as e:
			inserted_count = e.details.get("nInserted", 0)
			raise PartialWriteError(
				f"Only {inserted_count} of {len(documents)} documents were inserted into '{collection}'.",
				inserted_count=inserted_count,
				details=e.details
			) from e
		except PyMongoError as e:
			raise StoreError(f"Batch insert into '{collection}' failed: {e}") from e
		get_logger().debug(f"Database Usage Logging: Inserted {len(documents)} documents into '{collection}' in {(time.time() - start_time):.3f} seconds")

	def update(self, collection: str, filter: dict[str, Any], update: dict[str, Any], array_filters: list[dict[str, Any]] | None = None) -> None:
		start_time = time.time()
		try:
			result = self.get_collection(collection).update_one(filter, update, array_filters=array_filters or None)
		except PyMongoError as e:
			raise StoreError(f"Update in '{collection}' failed: {e}") from e
		if result.matched_count != 1:
			raise NotFoundError(f"No document in '{collection}' matches {filter}.")
		get_logger().debug(f"Database Usage Logging: Updated a document in '{collection}' for filter: {filter} in {(time.time() - start_time):.3f} seconds")

	def delete(self, collection: str, filter: dict[str, Any]) -> None:
		try:
			result = self.get_collection(collection).delete_one(filter)
		except PyMongoError as e:
			raise StoreError(f"Delete in '{collection}' failed: {e}") from e
		if result.deleted_count != 1:
			raise NotFoundError(f"No document in '{collection}' matches {filter}.")

	def find_one(self, collection: str, filter: dict[str, Any]) -> dict[str, Any] | None:
		start_time = time.time()
		try:
			document = self.get_collection(collection).find_one(filter)
		except PyMongoError as e:
			raise StoreError(f"Lookup in '{collection}' failed: {e}") from e
		get_logger().debug(f"Database Usage Logging: Retrieved document from '{collection}' for query: {filter} in {(time.time() - start_time):.3f} seconds")
		return document

	def find(self, collection: str, filter: dict[str, Any], sort: dict[str, int] | None = None, limit: int | None = None, skip: int | None = None) -> list[dict[str, Any]]:
		start_time = time.time()
		try:
			cursor = self.get_collection(collection).find(filter)
			if sort:
				cursor = cursor.sort(list(sort.items()))
			if skip:
				cursor = cursor.skip(skip)
			if limit:
				cursor = cursor.limit(limit)
			documents = list(cursor)
		except PyMongoError as e:
			raise StoreError(f"Query on '{collection}' failed: {e}") from e
		get_logger().debug(f"Database Usage Logging: Retrieved {len(documents)} documents from '{collection}' for query: {filter} in {(time.time() - start_time):.3f} seconds")
		return documents

	def ensure_indexes(self, collection: str, id_field: str) -> None:
		try:
			self.get_collection(collection).create_index([(id_field, ASCENDING)], unique=True)
		except PyMongoError as e:
			raise StoreError(f"Creating the unique index on '{collection}.{id_field}' failed: {e}") from e
