from dataclasses import dataclass

from .document_id import DocumentId


@dataclass(frozen=True)
class DeleteResponse:
    """ Returned by delete operations. id is the id of the document that was removed. """
    id: DocumentId | None
    success: bool
