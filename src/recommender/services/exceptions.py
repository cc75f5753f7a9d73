"""Exception types raised by the photo playlist services."""


class InvalidVibeError(ValueError):
    """Raised when vibe metadata is structurally unusable (e.g. no genres)."""


class CatalogError(Exception):
    """Base class for music catalog failures."""

    def __init__(self, message: str, *, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class CatalogCallError(CatalogError):
    """A single catalog call failed; callers treat it as zero results."""


class CatalogAuthError(CatalogError):
    """The catalog rejected the access token. Never retried."""


class AnalysisUnavailable(RuntimeError):
    """The vision model is not configured or could not be reached."""


class ImageTooLargeError(ValueError):
    """The uploaded image exceeds the accepted payload size."""
