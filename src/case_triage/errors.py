class TriageError(Exception):
    pass


class InputValidationError(TriageError, ValueError):
    """Missing/empty description or language, malformed ids, bad status."""


class NotFoundError(TriageError, LookupError):
    pass


class AuthorizationError(TriageError, PermissionError):
    pass


class ClassifierFailure(TriageError, RuntimeError):
    def __init__(self, message: str, *, raw: str | None = None):
        super().__init__(message)
        self.raw = raw
