from enum import StrEnum, auto


class UpdateMethod(StrEnum):
    """ The kind of write a payload is validated for. """
    INSERT = auto()
    """ A new document. Keys are stored verbatim, so dotted keys are rejected. """
    UPDATE = auto()
    """ An overlay onto an existing document. Dotted keys address nested fields. """
