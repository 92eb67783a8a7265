from typing import Any

from bson import ObjectId

from .random_id import random_id


OBJECT_ID_PREFIX = "$oid:"

class DocumentId(str):
	""" Used for a document's own id and for embedded document ids.
	DocumentId() generates a fresh random id. DocumentId("abc") wraps an existing one.
	Ids read from the store keep their stored type: coerce() remembers ints and ObjectIds so to_bson() gives them back unchanged. """
	_integer: int | None = None

	def __new__(cls, _id: str | None = None):
		if not _id:
			_id = random_id(24)
		instance = super().__new__(cls, _id)
		return instance
	
	@classmethod
	def with_prefix(cls, prefix: str):
		if len(prefix) != 3:
			raise ValueError("DocumentId prefix should be 3 characters.")
		return DocumentId(prefix + random_id(24))

	@classmethod
	def coerce(cls, value: Any) -> 'DocumentId':
		""" Accepts the id shapes a store can hand back: str, int or ObjectId.
		ObjectIds are kept recoverable as "$oid:<hex>", ints compare as their decimal string. """
		if isinstance(value, DocumentId):
			return value
		if isinstance(value, ObjectId):
			return cls(OBJECT_ID_PREFIX + str(value))
		if isinstance(value, bool):
			raise TypeError("A bool is not a valid document id.")
		if isinstance(value, int):
			instance = cls(str(value))
			instance._integer = value
			return instance
		if isinstance(value, str):
			if not value:
				raise ValueError("A document id cannot be empty.")
			return cls(value)
		raise TypeError(f"Invalid id type used: {type(value).__name__}")

	def is_object_id(self) -> bool:
		return self.startswith(OBJECT_ID_PREFIX) and ObjectId.is_valid(self[len(OBJECT_ID_PREFIX):])

	def to_bson(self) -> str | int | ObjectId:
		""" Returns the value to store. "$oid:" ids go back to an ObjectId, coerced ints back to an int, everything else stays a string. """
		if self._integer is not None:
			return self._integer
		if self.is_object_id():
			return ObjectId(self[len(OBJECT_ID_PREFIX):])
		return str(self)
