"""
Domain errors raised by the review, workflow and compliance services.
The API layer maps them onto HTTP status codes.
"""


class EngineError(Exception):
    """Base error carrying a stable error code."""

    error_code = "ERR_ENGINE"

    def __init__(self, message: str, error_code: str = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        super().__init__(f"{self.error_code}: {message}")


class RecordNotFoundError(EngineError):
    error_code = "ERR_NOT_FOUND"


class InvalidTransitionError(EngineError):
    error_code = "ERR_INVALID_TRANSITION"


class WorkflowAuthorizationError(EngineError):
    error_code = "ERR_UNAUTHORIZED_TRANSITION"


class DuplicateRecordError(EngineError):
    error_code = "ERR_DUPLICATE"


class PipelineError(EngineError):
    """Fatal processing error for one document."""
    error_code = "ERR_PIPELINE"
