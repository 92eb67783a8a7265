class SetupError(Exception):
    """Exception raised for configuration errors."""
    
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class MockTimeDisabledError(SetupError):
    """Raised when the process-wide mock time controls are used without enabling them."""
