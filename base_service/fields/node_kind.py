from collections.abc import Mapping, Sequence
from enum import StrEnum, auto
from typing import Any


class NodeKind(StrEnum):
    """ The shape of a value inside a document tree. """
    MAPPING = auto()
    SEQUENCE = auto()
    SCALAR = auto()
    ABSENT = auto()

def node_kind(value: Any) -> NodeKind:
    """ None counts as absent. Strings and bytes are scalars even though they are sequences. """
    if value is None:
        return NodeKind.ABSENT
    if isinstance(value, Mapping):
        return NodeKind.MAPPING
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return NodeKind.SEQUENCE
    return NodeKind.SCALAR
