"""Exception taxonomy for the extraction engine.

Public engine functions convert these into failed summaries; only the
batch entry point's argument checks and programmer errors escape.
"""

# HTTP statuses worth retrying: timeouts, rate limiting, server-side faults
TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})


class SkillExtractionError(Exception):
    """Base class for expected extraction failures."""


class ValidationError(SkillExtractionError):
    """Input rejected before any extractor ran (e.g. text too short)."""


class NotFoundError(SkillExtractionError):
    """The subject does not exist."""


class ConfigurationError(SkillExtractionError):
    """Backend credentials or settings are missing."""


class BackendError(SkillExtractionError):
    """A remote LLM backend rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientBackendError(BackendError):
    """Failure that may succeed on retry (rate limit, timeout, 5xx)."""


class PermanentBackendError(BackendError):
    """Failure that will not change on retry (bad request, bad credentials)."""


class ParseError(SkillExtractionError):
    """Backend answered, but not with usable structured data."""

    def __init__(self, message: str, raw_response: str | None = None) -> None:
        super().__init__(message)
        self.raw_response = raw_response


def error_for_status(status_code: int | None, message: str) -> BackendError:
    """Classify a backend HTTP status into the transient/permanent split."""
    if status_code in TRANSIENT_STATUS_CODES:
        return TransientBackendError(message, status_code=status_code)
    return PermanentBackendError(message, status_code=status_code)


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransientBackendError)
