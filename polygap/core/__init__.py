"""Core types and utilities for polygap.

This module provides type definitions, enums, exceptions, and core utilities
used throughout the library.
"""

from .types import (
    FixMethod,
    ErrorStatus,
    ChangeWhat,
    ChangeType,
    coerce_enum,
)

from .errors import (
    PolygapError,
    EngineError,
    ResolutionError,
    NoMergeFoundError,
    DegenerateMergeError,
    UnsupportedMethodError,
    ConfigurationError,
)

__all__ = [
    # Enums
    'FixMethod',
    'ErrorStatus',
    'ChangeWhat',
    'ChangeType',
    'coerce_enum',

    # Exceptions
    'PolygapError',
    'EngineError',
    'ResolutionError',
    'NoMergeFoundError',
    'DegenerateMergeError',
    'UnsupportedMethodError',
    'ConfigurationError',
]
