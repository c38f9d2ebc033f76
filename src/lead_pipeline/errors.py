"""Pipeline-level exceptions.

Every pipeline function raises these to reject a request. Each carries the
HTTP status the API layer responds with, so services stay free of FastAPI.
"""


class PipelineError(Exception):
    """Base exception for pipeline request failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(PipelineError):
    """Raised when the request body is missing or malformed."""

    status_code = 400


class Unauthorized(PipelineError):
    """Raised when the caller could not be authenticated."""

    status_code = 401


class Forbidden(PipelineError):
    """Raised when the caller lacks permission for the resource."""

    status_code = 403


class NotFound(PipelineError):
    """Raised when a requested record does not exist."""

    status_code = 404


class ProviderNotConfigured(PipelineError):
    """Raised when a function needs a provider whose key is missing."""

    status_code = 500


class UpstreamCreditsExhausted(PipelineError):
    """Raised when the LLM gateway reports exhausted credits."""

    status_code = 402


class UpstreamRateLimited(PipelineError):
    """Raised when an upstream provider rate limits the request."""

    status_code = 429
