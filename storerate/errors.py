"""Domain errors raised by the data layer and mapped to HTTP responses in main."""


class ValidationFailed(ValueError):
    def __init__(self, errors: dict[str, str]):
        super().__init__("Validation failed")
        self.errors = errors


class InvalidCredentials(ValueError):
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class NotFound(LookupError):
    pass


class Conflict(ValueError):
    pass
