from dataclasses import dataclass
from typing import Any

from ..document.document_id import DocumentId


_RESERVED_CHARACTERS = (".", "[", "]")

@dataclass(frozen=True)
class PathSegment:
	""" One step of an EmbeddedPath.
	Without a selector the step descends into a nested object.
	With a selector it descends into a nested list and picks the element whose id equals the selector. """
	field: str
	selector: DocumentId | None = None

	def __post_init__(self) -> None:
		if not isinstance(self.field, str) or not self.field:
			raise ValueError("Path segments need a non-empty field name.")
		if self.field.startswith("$"):
			raise ValueError(f"Field name '{self.field}' cannot start with '$'.")
		if any(character in self.field for character in _RESERVED_CHARACTERS):
			raise ValueError(f"Field name '{self.field}' cannot contain '.', '[' or ']'.")
		if self.selector is not None:
			if not isinstance(self.selector, DocumentId):
				object.__setattr__(self, "selector", DocumentId.coerce(self.selector))
			if any(character in self.selector for character in _RESERVED_CHARACTERS):
				raise ValueError(f"Selector '{self.selector}' cannot contain '.', '[' or ']'.")

	def __str__(self) -> str:
		if self.selector is None:
			return self.field
		return f"{self.field}[{self.selector}]"


class EmbeddedPath(str):
	""" String representation of a path to an embedded document, relative to its parent document.

	Example:
		EmbeddedPath("items[abc].details") -> the "details" object of the element of "items" whose id is "abc"

	Selectors always match by id. Positions shift when siblings are inserted or removed, so they are never used. """

	def __new__(cls, path: str) -> 'EmbeddedPath':
		instance = super().__new__(cls, path)
		# Parse eagerly so invalid paths fail where they are built
		instance.segments()
		return instance

	def segments(self) -> tuple[PathSegment, ...]:
		parts: list[PathSegment] = []
		current_part = ""
		i = 0
		while i < len(self):
			if self[i] == ".":
				if not current_part:
					raise ValueError(f"Empty field name in path '{self}'.")
				parts.append(PathSegment(current_part))
				current_part = ""
				# A dot must be followed by a field name
				if i == len(self) - 1:
					raise ValueError(f"Path '{self}' ends with a period.")
			elif self[i] == "[":
				if not current_part:
					raise ValueError(f"Selector without a field name in path '{self}'.")
				# Find matching closing bracket
				j = i + 1
				selector = ""
				while j < len(self) and self[j] != "]":
					selector += self[j]
					j += 1
				if j == len(self):
					raise ValueError(f"Unclosed selector in path '{self}'.")
				if not selector:
					raise ValueError(f"Empty selector in path '{self}'.")
				parts.append(PathSegment(current_part, DocumentId(selector)))
				current_part = ""
				i = j
				# After a selector only a period or the end of the path may follow
				if i + 1 < len(self) and self[i + 1] != ".":
					raise ValueError(f"Expected '.' after selector in path '{self}'.")
				if i + 1 < len(self):
					i += 1
					if i == len(self) - 1:
						raise ValueError(f"Path '{self}' ends with a period.")
			elif self[i] == "]":
				raise ValueError(f"Unexpected ']' in path '{self}'.")
			else:
				current_part += self[i]
			i += 1
		if current_part:
			parts.append(PathSegment(current_part))
		if not parts:
			raise ValueError("An embedded path needs at least one segment.")
		return tuple(parts)

	def subfield(self, field_name: str) -> 'EmbeddedPath':
		""" Returns a new path which points to the nested object stored in field_name. """
		PathSegment(field_name)
		return EmbeddedPath(str(self) + "." + field_name)

	def subid(self, selector: str) -> 'EmbeddedPath':
		""" Returns a new path which selects the element with this id out of the list the current path ends in. """
		last = self.last()
		if last.selector is not None:
			raise ValueError(f"Path '{self}' already ends in a selector.")
		return EmbeddedPath(str(self) + f"[{DocumentId.coerce(selector)}]")

	def parent(self) -> 'EmbeddedPath | None':
		""" The path without its last segment, or None for a single segment path. """
		segments = self.segments()
		if len(segments) == 1:
			return None
		return EmbeddedPath.for_(*segments[:-1])

	def last(self) -> PathSegment:
		return self.segments()[-1]

	@staticmethod
	def for_(*args: Any) -> 'EmbeddedPath':
		""" Builds a path from segments. Each arg is a field name, a (field name, selector) tuple or a PathSegment. """
		if not args:
			raise ValueError("An embedded path needs at least one segment.")
		parts = []
		for arg in args:
			if isinstance(arg, PathSegment):
				segment = arg
			elif isinstance(arg, tuple) and len(arg) == 2:
				segment = PathSegment(arg[0], DocumentId.coerce(arg[1]) if arg[1] is not None else None)
			elif isinstance(arg, str):
				segment = PathSegment(arg)
			else:
				raise ValueError(f"Cannot build a path segment from {arg!r}.")
			parts.append(str(segment))
		return EmbeddedPath(".".join(parts))

	@staticmethod
	def coerce(path: 'EmbeddedPath | str | tuple | list') -> 'EmbeddedPath':
		if isinstance(path, EmbeddedPath):
			return path
		if isinstance(path, str):
			return EmbeddedPath(path)
		if isinstance(path, (tuple, list)):
			return EmbeddedPath.for_(*path)
		raise TypeError(f"Cannot build an EmbeddedPath from {type(path).__name__}.")
