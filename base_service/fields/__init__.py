"""
Embedded document paths and the resolver that turns them into single atomic updates.
"""

from .embedded_path import EmbeddedPath, PathSegment
from .mutation import Mutation
from .node_kind import NodeKind, node_kind
from .resolver import Location, resolve_find, resolve_insert, resolve_update, resolve_remove, element_id, get_dotted, DEFAULT_ID_FIELD
