"""
base_service

A data-access layer over a document store. It stamps every mutation with a mockable clock,
and it inserts, updates and removes documents embedded at arbitrary paths with one atomic update each.
"""

from .document import BaseService, DataSources, DeleteResponse, DocumentId, NodeDetails, UpdateMethod, ENVELOPE_KEY
from .fields import EmbeddedPath, PathSegment, Mutation
from .clock import Clock, SystemClock, MockClock, set_mock_time, increase_mock_time, clear_mock_time
from .store import DocumentStore, MemoryDocumentStore, MongoDocumentStore
from .utilities.service_error import ServiceError, NotFoundError, AlreadyExistsError, TypeMismatchError, StoreError, PartialWriteError, ServiceConnectionError
from .utilities.validation_error import ValidationError
from .utilities.setup_error import SetupError, MockTimeDisabledError
from .utilities.logger import get_logger, set_logger, set_log_level
