class ValidationError(Exception):
    """Exception raised when a payload cannot be written.
    NOTE: Messages in these errors should be shareable to the caller.
    Raised before the store is contacted, so nothing has been written when you see one. """
    
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)
