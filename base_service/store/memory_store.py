"""
In-memory DocumentStore.

Speaks the same update dialect BaseService sends to MongoDB ($set, $unset, $inc, $max, $push, $pull and
filtered positional operators bound through array_filters), so services can run without a
database in tests and local tooling.

Usage::

    store = MemoryDocumentStore()
    service = BaseService(store, "projects")
"""

import copy
import re
import threading
from collections.abc import Callable, Mapping
from typing import Any

from bson import ObjectId

from .document_store import DocumentStore
from ..utilities.service_error import NotFoundError, PartialWriteError, StoreError


Action = Callable[[Any, str], None]

def values_at(value: Any, parts: list[str]) -> list[Any]:
	""" Every value reachable through a dot notation path. Lists are searched element by element, as MongoDB queries do. """
	if not parts:
		return [value]
	head, rest = parts[0], parts[1:]
	if isinstance(value, Mapping):
		if head not in value:
			return []
		return values_at(value[head], rest)
	if isinstance(value, list):
		if head.isdigit() and int(head) < len(value):
			return values_at(value[int(head)], rest)
		found = []
		for element in value:
			if isinstance(element, (Mapping, list)):
				found.extend(values_at(element, parts))
		return found
	return []

def _equals(candidate: Any, expected: Any) -> bool:
	if candidate == expected:
		return True
	return isinstance(candidate, list) and expected in candidate

def _match_operators(candidates: list[Any], condition: dict[str, Any]) -> bool:
	for operator, argument in condition.items():
		if operator == "$eq":
			if not any(_equals(candidate, argument) for candidate in candidates):
				return False
		elif operator == "$ne":
			if any(_equals(candidate, argument) for candidate in candidates):
				return False
		elif operator == "$in":
			if not any(_equals(candidate, option) for candidate in candidates for option in argument):
				return False
		elif operator == "$exists":
			if bool(candidates) != bool(argument):
				return False
		elif operator == "$regex":
			flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
			pattern = argument if isinstance(argument, re.Pattern) else re.compile(argument, flags)
			if not any(isinstance(candidate, str) and pattern.search(candidate) for candidate in candidates):
				return False
		elif operator == "$elemMatch":
			if not any(isinstance(candidate, list) and any(isinstance(element, Mapping) and matches(element, argument) for element in candidate) for candidate in candidates):
				return False
		elif operator == "$options":
			continue
		else:
			raise StoreError(f"Unsupported query operator: {operator}")
	return True

def matches(document: Any, query: Mapping[str, Any]) -> bool:
	""" Evaluates the subset of the MongoDB query language BaseService produces. """
	for key, condition in query.items():
		if key == "$or":
			if not any(matches(document, clause) for clause in condition):
				return False
			continue
		if key == "$and":
			if not all(matches(document, clause) for clause in condition):
				return False
			continue

		candidates = values_at(document, key.split("."))
		if condition is None:
			# Null matches both a missing field and an explicit null
			if candidates and not any(candidate is None for candidate in candidates):
				return False
		elif isinstance(condition, re.Pattern):
			if not any(isinstance(candidate, str) and condition.search(candidate) for candidate in candidates):
				return False
		elif isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
			if not _match_operators(candidates, condition):
				return False
		elif not any(_equals(candidate, condition) for candidate in candidates):
			return False
	return True

def _parse_array_filters(array_filters: list[dict[str, Any]] | None) -> dict[str, dict[str, Any]]:
	""" Groups {"e0.node.id": x} style conditions by identifier, relative to the array element. """
	parsed: dict[str, dict[str, Any]] = {}
	for array_filter in array_filters or []:
		for key, condition in array_filter.items():
			identifier, _, rest = key.partition(".")
			if rest:
				parsed.setdefault(identifier, {})[rest] = condition
			else:
				parsed.setdefault(identifier, {})["$self"] = condition
	return parsed

def _element_matches(element: Any, condition: dict[str, Any]) -> bool:
	if "$self" in condition:
		return element == condition["$self"]
	return isinstance(element, Mapping) and matches(element, condition)

def _walk(node: Any, parts: list[str], filters: dict[str, dict[str, Any]], action: Action, create: bool) -> None:
	""" Applies action to every (container, key) the path resolves to. """
	head, rest = parts[0], parts[1:]

	if head.startswith("$[") and head.endswith("]"):
		identifier = head[2:-1]
		if not isinstance(node, list):
			raise StoreError(f"Cannot apply the positional operator '{head}' to a {type(node).__name__}.")
		if identifier not in filters:
			raise StoreError(f"No array filter found for identifier '{identifier}'.")
		if not rest:
			raise StoreError(f"Replacing whole elements through '{head}' is not supported.")
		for element in node:
			if _element_matches(element, filters[identifier]):
				_walk(element, rest, filters, action, create)
		return

	if not rest:
		action(node, head)
		return

	if isinstance(node, dict):
		if node.get(head) is None:
			if not create:
				return
			node[head] = {}
		_walk(node[head], rest, filters, action, create)
	elif isinstance(node, list) and head.isdigit() and int(head) < len(node):
		_walk(node[int(head)], rest, filters, action, create)
	else:
		raise StoreError(f"Cannot traverse into '{head}' of a {type(node).__name__}.")

def apply_update(document: dict[str, Any], update: Mapping[str, Any], array_filters: list[dict[str, Any]] | None = None) -> dict[str, Any]:
	""" Returns a copy of document with the update applied. The input document is left untouched. """
	new_document = copy.deepcopy(document)
	filters = _parse_array_filters(array_filters)

	for operator, changes in update.items():
		for field_path, value in changes.items():
			parts = field_path.split(".")
			if operator == "$set":
				_walk(new_document, parts, filters, _set_action(value), create=True)
			elif operator == "$unset":
				_walk(new_document, parts, filters, _unset_action, create=False)
			elif operator == "$push":
				_walk(new_document, parts, filters, _push_action(value), create=True)
			elif operator == "$inc":
				_walk(new_document, parts, filters, _inc_action(value), create=True)
			elif operator == "$max":
				_walk(new_document, parts, filters, _max_action(value), create=True)
			elif operator == "$pull":
				_walk(new_document, parts, filters, _pull_action(value), create=False)
			else:
				raise StoreError(f"Unsupported update operator: {operator}")
	return new_document

def _set_action(value: Any) -> Action:
	def action(container: Any, key: str) -> None:
		if isinstance(container, dict):
			container[key] = copy.deepcopy(value)
		elif isinstance(container, list) and key.isdigit() and int(key) < len(container):
			container[int(key)] = copy.deepcopy(value)
		else:
			raise StoreError(f"Cannot set '{key}' on a {type(container).__name__}.")
	return action

def _inc_action(amount: Any) -> Action:
	def action(container: Any, key: str) -> None:
		if not isinstance(container, dict):
			raise StoreError(f"Cannot increment '{key}' on a {type(container).__name__}.")
		current = container.get(key, 0)
		if isinstance(current, bool) or not isinstance(current, (int, float)):
			raise StoreError(f"Cannot apply $inc to a value of non-numeric type in '{key}'.")
		container[key] = current + amount
	return action

def _max_action(value: Any) -> Action:
	def action(container: Any, key: str) -> None:
		if not isinstance(container, dict):
			raise StoreError(f"Cannot apply $max to '{key}' on a {type(container).__name__}.")
		current = container.get(key)
		try:
			if current is None or value > current:
				container[key] = copy.deepcopy(value)
		except TypeError as e:
			raise StoreError(f"Cannot compare the values of '{key}' for $max.") from e
	return action

def _unset_action(container: Any, key: str) -> None:
	if isinstance(container, dict):
		container.pop(key, None)

def _push_action(value: Any) -> Action:
	def action(container: Any, key: str) -> None:
		if not isinstance(container, dict):
			raise StoreError(f"Cannot push to '{key}' on a {type(container).__name__}.")
		if key not in container:
			container[key] = []
		if not isinstance(container[key], list):
			raise StoreError(f"The field '{key}' must be an array but is of type {type(container[key]).__name__}.")
		if isinstance(value, Mapping) and "$each" in value:
			container[key].extend(copy.deepcopy(list(value["$each"])))
		else:
			container[key].append(copy.deepcopy(value))
	return action

def _pull_action(condition: Any) -> Action:
	def action(container: Any, key: str) -> None:
		if not isinstance(container, dict) or key not in container:
			return
		if not isinstance(container[key], list):
			raise StoreError(f"Cannot apply $pull to a non-array value in '{key}'.")
		if isinstance(condition, Mapping):
			container[key] = [element for element in container[key] if not (isinstance(element, Mapping) and matches(element, condition))]
		else:
			container[key] = [element for element in container[key] if element != condition]
	return action

def _sort_key(document: dict[str, Any], field_path: str) -> tuple:
	values = values_at(document, field_path.split("."))
	if not values or values[0] is None:
		return (0,)
	return (1, values[0])


class MemoryDocumentStore(DocumentStore):
	""" Keeps collections as lists of dicts in insertion order.
	Documents are copied on the way in and on the way out, so callers can never mutate stored state.
	A single lock serializes every write, which makes each update() atomic. """

	def __init__(self) -> None:
		self._collections: dict[str, list[dict[str, Any]]] = {}
		self._unique_fields: dict[str, set[str]] = {}
		self._lock = threading.RLock()

	def _documents(self, collection: str) -> list[dict[str, Any]]:
		return self._collections.setdefault(collection, [])

	def _check_unique(self, collection: str, document: dict[str, Any]) -> None:
		for field_path in {"_id"} | self._unique_fields.get(collection, set()):
			values = values_at(document, field_path.split("."))
			if not values:
				continue
			for existing in self._documents(collection):
				if existing is document:
					continue
				if values_at(existing, field_path.split("."))[:1] == values[:1]:
					raise StoreError(f"Duplicate key error in '{collection}': {field_path} = {values[0]!r}")

	def _insert(self, collection: str, document: dict[str, Any]) -> None:
		stored = copy.deepcopy(document)
		stored.setdefault("_id", ObjectId())
		self._check_unique(collection, stored)
		self._documents(collection).append(stored)

	def insert(self, collection: str, document: dict[str, Any]) -> None:
		with self._lock:
			self._insert(collection, document)

	def insert_many(self, collection: str, documents: list[dict[str, Any]]) -> None:
		with self._lock:
			for index, document in enumerate(documents):
				try:
					self._insert(collection, document)
				except StoreError as e:
					raise PartialWriteError(
						f"Only {index} of {len(documents)} documents were inserted into '{collection}'.",
						inserted_count=index,
						details={ "index": index, "error": e.message }
					) from e

	def update(self, collection: str, filter: dict[str, Any], update: dict[str, Any], array_filters: list[dict[str, Any]] | None = None) -> None:
		with self._lock:
			documents = self._documents(collection)
			for index, document in enumerate(documents):
				if matches(document, filter):
					updated = apply_update(document, update, array_filters)
					documents[index] = updated
					try:
						self._check_unique(collection, updated)
					except StoreError:
						documents[index] = document
						raise
					return
			raise NotFoundError(f"No document in '{collection}' matches {filter}.")

	def delete(self, collection: str, filter: dict[str, Any]) -> None:
		with self._lock:
			documents = self._documents(collection)
			for index, document in enumerate(documents):
				if matches(document, filter):
					del documents[index]
					return
			raise NotFoundError(f"No document in '{collection}' matches {filter}.")

	def find_one(self, collection: str, filter: dict[str, Any]) -> dict[str, Any] | None:
		with self._lock:
			for document in self._documents(collection):
				if matches(document, filter):
					return copy.deepcopy(document)
		return None

	def find(self, collection: str, filter: dict[str, Any], sort: dict[str, int] | None = None, limit: int | None = None, skip: int | None = None) -> list[dict[str, Any]]:
		with self._lock:
			found = [copy.deepcopy(document) for document in self._documents(collection) if matches(document, filter)]

		# Stable sorts applied from the least to the most significant key
		for field_path, direction in reversed(list((sort or {}).items())):
			found.sort(key=lambda document: _sort_key(document, field_path), reverse=direction < 0)
		if skip:
			found = found[skip:]
		if limit:
			found = found[:limit]
		return found

	def ensure_indexes(self, collection: str, id_field: str) -> None:
		with self._lock:
			self._unique_fields.setdefault(collection, set()).add(id_field)

	def count(self, collection: str) -> int:
		with self._lock:
			return len(self._documents(collection))
