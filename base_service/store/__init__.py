"""
Document store collaborators.

BaseService only talks to the DocumentStore interface. MongoDocumentStore is the production
backend, MemoryDocumentStore keeps everything in process.
"""

from .document_store import DocumentStore
from .memory_store import MemoryDocumentStore
from .mongo_store import MongoDocumentStore
from .mongo_db import create_mongo_db, reset_mongo_db
