"""Error taxonomy for repolens.

Only FatalAnalysisError (and its subclasses) and SerializationError are allowed
to reach a caller as a terminal failure. Everything else is absorbed by the
pipeline and recorded as an AnalysisWarning on the report.
"""


class RepolensError(Exception):
    """Base class for all repolens errors."""


# =============================================================================
# Fatal errors (abort the run before any stage executes)
# =============================================================================


class FatalAnalysisError(RepolensError):
    """Raised when a run cannot proceed at all."""


class InvalidRepositoryError(FatalAnalysisError):
    """Raised when a repository identifier cannot be parsed."""

    def __init__(self, identifier: str, message: str | None = None) -> None:
        self.identifier = identifier
        self.message = message or f"Invalid repository identifier: {identifier!r}"
        super().__init__(self.message)


class RepositoryError(FatalAnalysisError):
    """Raised when the repository provider fails.

    Attributes:
        status: HTTP status returned by the provider (if any)
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class RepositoryNotFoundError(RepositoryError):
    """Repository does not exist or is not visible with the current credentials."""


class RateLimitedError(RepositoryError):
    """Provider rate limit exhausted.

    Attributes:
        reset_at: Epoch seconds when the limit resets (if reported)
    """

    def __init__(
        self, message: str, status: int | None = None, reset_at: int | None = None
    ) -> None:
        self.reset_at = reset_at
        super().__init__(message, status)


class UnauthorizedError(RepositoryError):
    """Credentials missing, invalid, or lacking scope."""


# =============================================================================
# Absorbed errors
# =============================================================================


class StageTimeoutError(RepolensError):
    """A best-effort stage missed its deadline; triggers the fallback path."""

    def __init__(self, stage: str, timeout: float) -> None:
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"Stage '{stage}' did not finish within {timeout:g}s")


class HeuristicError(RepolensError):
    """A heuristic analyzer failed."""

    def __init__(self, step: str, cause: BaseException) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"Heuristic '{step}' failed: {cause}")


class CacheUnavailableError(RepolensError):
    """The cache backing store could not be reached."""


class SerializationError(RepolensError):
    """The assembled report could not be serialized."""
