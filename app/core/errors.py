"""
Pipeline error taxonomy.

Every failure the screening pipeline can produce is one of these.
Per-CV failures are isolated by the batch orchestrator; only
LLMRateLimited is systemic and aborts a whole run.
"""


class PipelineError(Exception):
    """Base class. `status_code` is used when the error reaches HTTP."""
    status_code = 500

    def __init__(self, message: str = "", status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ExtractionFailed(PipelineError):
    """Source file yielded no readable text."""
    status_code = 422


class LLMTransportFailed(PipelineError):
    """Network, timeout or provider-side failure."""
    status_code = 502


class LLMRateLimited(PipelineError):
    """Provider throttling (HTTP 429 or 'rate limit' message)."""
    status_code = 429


class LLMMalformedOutput(PipelineError):
    """Model output could not be coerced into JSON."""
    status_code = 502

    def __init__(self, message: str = "Invalid JSON returned by AI", raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class DuplicateApplicant(PipelineError):
    status_code = 409


class ValidationFailed(PipelineError):
    """Bad request input, rejected before any external call."""
    status_code = 400


class NotFound(PipelineError):
    status_code = 404


class ResultLocked(PipelineError):
    """Attempt to mutate a scored (locked) batch entry."""
    status_code = 409


def is_rate_limit_error(exc: Exception) -> bool:
    """Match the provider's rate-limit signature on any exception."""
    if isinstance(exc, LLMRateLimited) or getattr(exc, "status_code", None) == 429:
        return True
    return "rate limit" in str(exc).lower()
