from dataclasses import dataclass, field
from typing import Any


@dataclass
class Mutation:
	""" A single atomic update against one document.
	Everything a logical operation changes goes in here, so the store only ever receives one update call. """
	set: dict[str, Any] = field(default_factory=dict)
	unset: list[str] = field(default_factory=list)
	push: dict[str, Any] = field(default_factory=dict)
	pull: dict[str, Any] = field(default_factory=dict)
	max: dict[str, Any] = field(default_factory=dict)
	""" Fields only written when the new value is greater, used for date_modified. """
	array_filters: list[dict[str, Any]] = field(default_factory=list)
	""" Conditions bound to the $[identifier] placeholders used in the field paths above. """
	conditions: dict[str, Any] = field(default_factory=dict)
	""" Extra filter conditions. The update only applies while every selected element still exists. """

	def to_update_document(self) -> dict[str, Any]:
		""" Renders the update in MongoDB operator syntax. """
		update: dict[str, Any] = {}
		if self.set:
			update["$set"] = dict(self.set)
		if self.unset:
			update["$unset"] = { field_path: "" for field_path in self.unset }
		if self.push:
			update["$push"] = dict(self.push)
		if self.pull:
			update["$pull"] = dict(self.pull)
		if self.max:
			update["$max"] = dict(self.max)
		return update
