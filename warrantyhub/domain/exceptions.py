"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFound(DomainException):
    """Record or parent record is missing (or hidden from the actor)"""

    pass


class Forbidden(DomainException):
    """Actor is not allowed to perform the operation"""

    pass


class Locked(DomainException):
    """Non-status edit attempted on a record that left its initial state"""

    pass


class InvalidTransition(DomainException):
    """Requested status change is not the next step of the lifecycle"""

    pass


class ValidationError(DomainException):
    """Input is malformed or a required field is missing"""

    pass


class AlreadyExists(DomainException):
    """Uniqueness violation"""

    pass


class BackendUnavailable(DomainException):
    """Remote backend is not configured or cannot be reached"""

    pass


class BackendError(DomainException):
    """Remote backend rejected the call; message is the backend's own"""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
