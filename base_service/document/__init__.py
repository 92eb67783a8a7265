"""
Document module for managing document operations and database interactions.

This module provides functionality for:
- Document ids and the system field envelope
- CRUD operations on top-level and embedded documents
- Registering services by name
"""

from .document_id import DocumentId
from .node_details import NodeDetails, ENVELOPE_KEY
from .envelope import new_document, validate_payload
from .update_method import UpdateMethod
from .delete_response import DeleteResponse
from .base_service import BaseService
from .data_sources import DataSources
