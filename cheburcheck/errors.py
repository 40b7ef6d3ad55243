"""
Cheburcheck - Error Taxonomy

Intake errors carry the HTTP status the transport layer answers with.
Unauthorized / InvalidEnvelope / DuplicateEvidence are caller defects and
must not be retried; StorageError and IntakeTimeout are safe to retry
because a failed submission leaves nothing behind.
"""


class IntakeError(Exception):
    """Raised when a report submission is rejected."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"code": self.status_code, "info": self.message}


class Unauthorized(IntakeError):
    status_code = 401


class InvalidEnvelope(IntakeError):
    status_code = 400


class DuplicateEvidence(IntakeError):
    status_code = 400


class StorageError(IntakeError):
    status_code = 503


class IntakeTimeout(IntakeError):
    status_code = 504


class UnknownQuery(Exception):
    """Raised when feedback references a query that was never logged."""
    pass
