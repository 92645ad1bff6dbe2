"""
Exceptions raised by the guards, the stores and the services.

Policy denials carry the user-facing notice that explains them, so the HTTP
layer can pass it through unchanged.
"""
from vehiscan.core.notices import Notice


class StorageUnavailable(Exception):
    """Raised when the key-value or document backend cannot be read or written."""

    def __init__(self, message: str, key: str | None = None):
        self.message = message
        self.key = key
        super().__init__(message)

    def __str__(self):
        if self.key:
            return f"{self.message} (key: {self.key})"
        return self.message


class PolicyDenied(Exception):
    """Base exception for rate-limit and lockout denials."""

    def __init__(self, notice: Notice):
        self.notice = notice
        super().__init__(notice.message)


class RateLimitExceeded(PolicyDenied):
    def __init__(self, notice: Notice, retry_after_ms: int):
        self.retry_after_ms = retry_after_ms
        super().__init__(notice)


class AccountLocked(PolicyDenied):
    def __init__(self, notice: Notice, remaining_ms: int):
        self.remaining_ms = remaining_ms
        super().__init__(notice)


class ValidationFailed(Exception):
    """Raised when one or more form fields fail their format checks."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class InvalidQRCode(Exception):
    pass


class AuthenticationFailed(Exception):
    def __init__(self, message: str = "Invalid email or password", notice: Notice | None = None):
        self.notice = notice
        super().__init__(message)


class EmailAlreadyRegistered(Exception):
    pass


class DocumentNotFound(Exception):
    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"No document {doc_id!r} in {collection!r}")
