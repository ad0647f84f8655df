"""Exception hierarchy for polygap."""

from typing import Any, Optional


class PolygapError(Exception):
    """Base class for all polygap errors."""
    pass


class EngineError(PolygapError):
    """Raised when a geometry engine operation fails.

    Attributes:
        stage: Name of the failing operation ('combine', 'envelope', ...)
        message: Message reported by the engine
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"{stage} failed: {message}")


class ResolutionError(PolygapError):
    """Base class for refused gap fixes."""
    pass


class NoMergeFoundError(ResolutionError):
    """No neighbor shares a boundary of positive length with the gap."""

    def __init__(self, message: str = "No neighbor shares an edge with the gap"):
        super().__init__(message)


class DegenerateMergeError(ResolutionError):
    """Union of gap and neighbor is empty, multi-part or failed.

    Attributes:
        layer_id: Layer of the rejected merge target
        feature_id: Id of the rejected merge target
    """

    def __init__(
        self,
        message: str,
        layer_id: Optional[str] = None,
        feature_id: Optional[Any] = None,
    ):
        self.layer_id = layer_id
        self.feature_id = feature_id
        super().__init__(message)


class UnsupportedMethodError(PolygapError):
    """Raised when an unknown fix method is requested."""

    def __init__(self, method: Any, kind: str = 'FixMethod'):
        self.method = method
        super().__init__(f"Unsupported {kind}: {method!r}")


class ConfigurationError(PolygapError, ValueError):
    """Raised for invalid check configuration values."""
    pass


__all__ = [
    'PolygapError',
    'EngineError',
    'ResolutionError',
    'NoMergeFoundError',
    'DegenerateMergeError',
    'UnsupportedMethodError',
    'ConfigurationError',
]
