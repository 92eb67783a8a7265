"""
Locates embedded documents inside a parent document and describes how to change them.

Every function here is pure: it reads an in-memory copy of the parent and either raises
(NotFoundError, TypeMismatchError, AlreadyExistsError, ValidationError) or returns a value or a
Mutation. Nothing is written, so a failed resolution never leaves a partial change behind.

Elements of nested lists are addressed with filtered positional operators:

	items[abc].name  ->  $set {"items.$[e0].name": ...}  with array filter {"e0.node.id": "abc"}

This keeps each operation a single atomic update and never depends on element positions.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from .embedded_path import EmbeddedPath, PathSegment
from .mutation import Mutation
from .node_kind import NodeKind, node_kind
from ..document.document_id import DocumentId
from ..document.node_details import ENVELOPE_KEY
from ..utilities.service_error import AlreadyExistsError, NotFoundError, TypeMismatchError
from ..utilities.validation_error import ValidationError


DEFAULT_ID_FIELD = f"{ENVELOPE_KEY}.id"

@dataclass
class Location:
	""" Where a path landed inside the parent document. """
	value: Any
	""" The located value, taken from the in-memory copy of the parent. """
	field_path: str
	""" Dot notation path to the value, with $[identifier] placeholders for list elements. """
	array_filters: list[dict[str, Any]] = field(default_factory=list)
	selections: list[tuple[str, Any]] = field(default_factory=list)
	""" (list field, element id) for every selector on the way here. Each list field is relative to the previously selected element. """
	relative_path: str = ""
	""" Path from the innermost selected element, or from the document root, to the value. """
	id_field: str = DEFAULT_ID_FIELD

	def subpath(self, field_name: str) -> str:
		if not self.field_path:
			return field_name
		return f"{self.field_path}.{field_name}"

	def relative_subpath(self, field_name: str) -> str:
		if not self.relative_path:
			return field_name
		return f"{self.relative_path}.{field_name}"

	def guard(self, clause: dict[str, Any]) -> dict[str, Any]:
		""" Binds clause, written relative to the innermost selected element, to exactly the elements this path selected.
		Example: items[a].tags[b] with {"label": None} ->
			{"items": {"$elemMatch": {"node.id": "a", "tags": {"$elemMatch": {"node.id": "b", "label": None}}}}} """
		for list_field, selected_id in reversed(self.selections):
			clause = { list_field: { "$elemMatch": { self.id_field: selected_id, **clause } } }
		return clause

	@property
	def conditions(self) -> dict[str, Any]:
		""" Filter conditions that only hold while every selected element still exists. """
		return self.guard({})

	def to_mutation(self) -> Mutation:
		""" An empty mutation carrying the filters needed to reach this location. """
		return Mutation(array_filters=list(self.array_filters), conditions=self.conditions)


def get_dotted(value: Any, dotted_path: str) -> Any:
	""" Reads a dot notation path out of nested mappings. Returns None if any step is missing. """
	current = value
	for part in dotted_path.split("."):
		if not isinstance(current, Mapping) or part not in current:
			return None
		current = current[part]
	return current

def element_id(element: Any, id_field: str = DEFAULT_ID_FIELD) -> DocumentId | None:
	""" The id of a list element, or None if the element carries no id. """
	value = get_dotted(element, id_field)
	if value is None:
		return None
	try:
		return DocumentId.coerce(value)
	except (TypeError, ValueError):
		return None

def _check_path(path: EmbeddedPath) -> tuple[PathSegment, ...]:
	segments = path.segments()
	for segment in segments:
		if segment.field == ENVELOPE_KEY or segment.field == "_id":
			raise ValidationError(f"Path '{path}' walks into the system field '{segment.field}'.")
	return segments

def _describe(segments: tuple[PathSegment, ...], count: int) -> str:
	return ".".join(str(segment) for segment in segments[:count]) or "<root>"

def _descend(document: Mapping[str, Any], segments: tuple[PathSegment, ...], id_field: str) -> Location:
	""" Walks every segment and returns the final location.
	Intermediate and final steps follow the same rules: no selector means a mapping, a selector means a list element. """
	location = Location(value=document, field_path="", id_field=id_field)
	for depth, segment in enumerate(segments):
		current = location.value
		child = current.get(segment.field) if isinstance(current, Mapping) else None
		kind = node_kind(child)
		where = _describe(segments, depth + 1)

		if kind is NodeKind.ABSENT:
			raise NotFoundError(f"Nothing is stored at '{where}'.")

		if segment.selector is None:
			if kind is not NodeKind.MAPPING:
				raise TypeMismatchError(f"Expected '{where}' to hold an object, found a {kind}.")
			location = Location(
				value=child,
				field_path=location.subpath(segment.field),
				array_filters=location.array_filters,
				selections=location.selections,
				relative_path=location.relative_subpath(segment.field),
				id_field=id_field
			)
			continue

		if kind is not NodeKind.SEQUENCE:
			raise TypeMismatchError(f"Expected '{segment.field}' in '{where}' to hold a list, found a {kind}.")

		# First match wins, scanning in stored order
		match = next((element for element in child if node_kind(element) is NodeKind.MAPPING and element_id(element, id_field) == segment.selector), None)
		if match is None:
			raise NotFoundError(f"No element with id '{segment.selector}' in '{where}'.")

		# Filter on the id as stored, which may be an int or an ObjectId rather than a string
		stored_id = element_id(match, id_field).to_bson()
		identifier = f"e{len(location.array_filters)}"
		location = Location(
			value=match,
			field_path=f"{location.subpath(segment.field)}.$[{identifier}]",
			array_filters=location.array_filters + [{ f"{identifier}.{id_field}": stored_id }],
			selections=location.selections + [(location.relative_subpath(segment.field), stored_id)],
			relative_path="",
			id_field=id_field
		)
	return location

def _stamp(mutation: Mutation, location: Location | None, now: datetime, actor_id: DocumentId | None) -> Mutation:
	""" Marks the document at location, or the parent when location is None, as modified.
	$max keeps date_modified from ever moving before date_created, even when the clock is set back. """
	prefix = location.subpath(ENVELOPE_KEY) if location is not None else ENVELOPE_KEY
	mutation.max[f"{prefix}.date_modified"] = now
	mutation.set[f"{prefix}.updated_by_id"] = actor_id.to_bson() if actor_id is not None else None
	return mutation


def resolve_find(document: Mapping[str, Any], path: EmbeddedPath, id_field: str = DEFAULT_ID_FIELD) -> Any:
	""" Returns a copy of the value stored at path. """
	location = _descend(document, _check_path(path), id_field)
	return copy.deepcopy(location.value)

def resolve_insert(
		document: Mapping[str, Any],
		path: EmbeddedPath,
		new_element: dict[str, Any],
		now: datetime,
		actor_id: DocumentId | None = None,
		*,
		singleton: bool = False,
		id_field: str = DEFAULT_ID_FIELD
	) -> Mutation:
	""" Describes adding new_element at path.
	The last segment names the target field:
		- a list gets the element appended at the end
		- an occupied object field raises AlreadyExistsError
		- an empty field becomes a list holding the element, or the element itself when singleton is True
	"""
	segments = _check_path(path)
	target = segments[-1]
	if target.selector is not None:
		raise ValidationError(f"Insert paths must end in a field name, '{path}' ends in a selector.")

	container = _descend(document, segments[:-1], id_field)
	existing = container.value.get(target.field)
	kind = node_kind(existing)
	field_path = container.subpath(target.field)
	mutation = container.to_mutation()

	if kind is NodeKind.SEQUENCE:
		if singleton:
			raise TypeMismatchError(f"Expected '{path}' to be empty or hold an object, found a list.")
		mutation.push[field_path] = new_element
	elif kind is NodeKind.MAPPING:
		raise AlreadyExistsError(f"An embedded document already exists at '{path}'.")
	elif kind is NodeKind.SCALAR:
		raise TypeMismatchError(f"Expected '{path}' to hold a list or an object, found a {kind}.")
	elif singleton:
		mutation.set[field_path] = new_element
		# Only applies while the field of the selected element is still empty
		mutation.conditions = container.guard({ container.relative_subpath(target.field): None })
	elif target.field in container.value:
		# Present but null, $push would refuse to touch it
		mutation.set[field_path] = [new_element]
		mutation.conditions = container.guard({ container.relative_subpath(target.field): None })
	else:
		mutation.push[field_path] = new_element

	return _stamp(mutation, None, now, actor_id)

def resolve_update(
		document: Mapping[str, Any],
		path: EmbeddedPath,
		changes: Mapping[str, Any],
		now: datetime,
		actor_id: DocumentId | None = None,
		*,
		id_field: str = DEFAULT_ID_FIELD
	) -> Mutation:
	""" Describes overlaying changes onto the embedded document at path.
	Fields not mentioned in changes are left untouched. """
	location = _descend(document, _check_path(path), id_field)
	mutation = location.to_mutation()
	for key, value in changes.items():
		mutation.set[location.subpath(key)] = value
	_stamp(mutation, location, now, actor_id)
	return _stamp(mutation, None, now, actor_id)

def resolve_remove(
		document: Mapping[str, Any],
		path: EmbeddedPath,
		now: datetime,
		actor_id: DocumentId | None = None,
		*,
		id_field: str = DEFAULT_ID_FIELD
	) -> Mutation:
	""" Describes removing the embedded document at path.
	List elements are pulled out by id, nested objects are unset. """
	segments = _check_path(path)
	target = segments[-1]

	# Resolve the whole path first so a missing element is reported before anything is sent
	element = _descend(document, segments, id_field)
	container = _descend(document, segments[:-1], id_field)

	if target.selector is None:
		mutation = container.to_mutation()
		mutation.unset.append(element.field_path)
		mutation.conditions = container.guard({ container.relative_subpath(target.field): { "$exists": True } })
		return _stamp(mutation, None, now, actor_id)

	# $pull needs the container's array filters, and the element's existence as a condition
	mutation = Mutation(array_filters=list(container.array_filters), conditions=element.conditions)
	mutation.pull[container.subpath(target.field)] = { id_field: element.selections[-1][1] }
	return _stamp(mutation, None, now, actor_id)
