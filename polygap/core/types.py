"""Type definitions for polygap operations.

This module defines the enums used for fix methods, error lifecycle
and change tracking throughout the library.
"""

from enum import Enum
from typing import Type, TypeVar, Union

from .errors import UnsupportedMethodError

E = TypeVar('E', bound=Enum)


class FixMethod(Enum):
    """Resolution method for a detected gap.

    The integer values match the index into
    :meth:`polygap.check.GapCheck.resolution_methods`.

    Attributes:
        MERGE_LONGEST_EDGE: Add the gap area to the neighboring polygon
            sharing the longest edge with it
        NO_CHANGE: Acknowledge the gap without touching any geometry

    Examples:
        >>> from polygap import GapCheck, FixMethod
        >>> check.fix_error(gap, FixMethod.MERGE_LONGEST_EDGE)
    """
    MERGE_LONGEST_EDGE = 0
    NO_CHANGE = 1


class ErrorStatus(Enum):
    """Lifecycle of a detected gap record.

    Attributes:
        UNFIXED: Detected, no fix attempted yet
        FIXED: A fix method was applied successfully
        FIX_FAILED: A fix was attempted and refused
        OBSOLETE: The gap no longer exists after other changes
    """
    UNFIXED = 'unfixed'
    FIXED = 'fixed'
    FIX_FAILED = 'fix_failed'
    OBSOLETE = 'obsolete'


class ChangeWhat(Enum):
    """Which element of a feature a change applies to."""
    FEATURE = 'feature'
    PART = 'part'
    RING = 'ring'
    NODE = 'node'


class ChangeType(Enum):
    """Kind of change applied to a feature element."""
    ADDED = 'added'
    REMOVED = 'removed'
    CHANGED = 'changed'


def coerce_enum(value: Union[E, str, int], enum_type: Type[E]) -> E:
    """Convert ``value`` to a member of ``enum_type``.

    Accepts enum members, member names (case-insensitive) and raw values.

    Raises:
        UnsupportedMethodError: If ``value`` does not name a member
    """
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        member = enum_type.__members__.get(value.upper())
        if member is not None:
            return member
    try:
        return enum_type(value)
    except ValueError:
        raise UnsupportedMethodError(value, enum_type.__name__) from None


__all__ = [
    'FixMethod',
    'ErrorStatus',
    'ChangeWhat',
    'ChangeType',
    'coerce_enum',
]
