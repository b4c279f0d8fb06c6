"""
Error taxonomy shared by the grading service, the HTTP layer and the client.

Services raise these; routers translate them into HTTP responses and the
client translates HTTP responses back into them.
"""


class ExamEngineError(Exception):
    """Base class for every error raised by the exam engine."""

    def __init__(self, message: str = "", *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(ExamEngineError):
    """Exam or result does not exist. Terminal, no retry offered."""


class ValidationError(ExamEngineError):
    """Malformed request. The user may correct it and resubmit."""


class AttemptLimitError(ValidationError):
    """The student already used every graded attempt allowed for the exam."""


class NetworkError(ExamEngineError):
    """Transient connectivity or server failure. Retry is an explicit user action."""


class AuthorizationError(ExamEngineError):
    """Caller is not allowed to see or do this."""


class AttemptStateError(ExamEngineError):
    """Operation not allowed in the attempt's current state."""
