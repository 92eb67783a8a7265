from typing import Any


class ServiceError(Exception):
    """ Base class for every error raised by a BaseService operation. """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class NotFoundError(ServiceError):
    """ The document id or the embedded path does not resolve. """


class AlreadyExistsError(ServiceError):
    """ An embedded singleton insert targeted a field that is already occupied. """


class TypeMismatchError(ServiceError):
    """ A path segment expected a mapping or a sequence and found something else. """


class StoreError(ServiceError):
    """ Opaque failure reported by the document store. The driver's own exception is kept as __cause__. """


class PartialWriteError(StoreError):
    """ The store applied only part of a batch. """

    def __init__(self, message: str, inserted_count: int = 0, details: Any = None) -> None:
        super().__init__(message)
        self.inserted_count = inserted_count
        """ How many documents, from the start of the batch, the store reports as written. """
        self.details = details


class ServiceConnectionError(ServiceError):
    """ No service is registered under the requested data source name. """
