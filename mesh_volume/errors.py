"""
Custom exception classes for the mesh volume service.

Every failure the core can report is one of the classes below. Callers can
catch the three top-level categories (invalid input, resource limit, internal)
and show ``str(error)`` directly to the user: messages are short and never
contain buffer contents.
"""


class MeshVolumeError(Exception):
    """Base exception for all mesh volume errors."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        """String representation with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


# Invalid input
class InvalidInputError(MeshVolumeError):
    """Base exception for input the core refuses to process."""
    pass


class UnsupportedFormatError(InvalidInputError):
    """Raised when no known mesh format matches the buffer or hints."""
    pass


class TruncatedMeshError(InvalidInputError):
    """Raised when a buffer is shorter than its declared structure."""
    pass


class OversizedMeshError(InvalidInputError):
    """Raised when a buffer carries more trailing data than allowed."""
    pass


class MalformedMeshError(InvalidInputError):
    """Raised when mesh records cannot be parsed."""
    pass


class DegeneratePolygonError(InvalidInputError):
    """Raised when a polygon has fewer than three vertices."""
    pass


class NonSimplePolygonError(InvalidInputError):
    """Raised when ear clipping cannot make progress on a polygon."""
    pass


class InvalidUnitError(InvalidInputError):
    """Raised when an unknown volume unit is requested."""
    pass


# Resource limits
class ResourceLimitError(MeshVolumeError):
    """Base exception for inputs exceeding a hard limit."""
    pass


class TriangleLimitError(ResourceLimitError):
    """Raised when the declared or actual triangle count is too large."""
    pass


class BufferLimitError(ResourceLimitError):
    """Raised when the input buffer exceeds the maximum model size."""
    pass


# Internal
class InternalError(MeshVolumeError):
    """Raised for unexpected failures not attributable to the input."""
    pass


# Configuration
class ConfigurationError(MeshVolumeError):
    """Base exception for configuration errors."""
    pass


class InvalidParameterError(ConfigurationError):
    """Raised when a parameter value is invalid."""
    pass


def handle_error(error: Exception, logger=None, reraise: bool = True) -> None:
    """
    Centralized error handling function.

    Must be called from inside an ``except`` block when ``reraise`` is True.

    Args:
        error: The exception to handle
        logger: Optional logger instance for logging the error
        reraise: Whether to re-raise the exception after handling
    """
    if logger is not None:
        if isinstance(error, MeshVolumeError):
            logger.error(
                f"{type(error).__name__}: {error.message}",
                **error.details
            )
        else:
            logger.error(f"Unexpected error: {str(error)}", exc_info=True)

    if reraise:
        raise error
