"""Polygap - Gap detection and repair for polygon coverages.

This library finds voids enclosed by a set of polygons that are expected to
tile a region, and closes them by merging each gap into the neighbor that
shares the longest edge with it. Geometry operations use Shapely.
"""

# Detection and resolution
from .detect import detect_gaps
from .resolve import (
    merge_with_neighbor,
    apply_merge,
    replace_feature_geometry_part,
    resolve_gap,
)
from .check import GapCheck

# Geometry engine and measurements
from .engine import GeometryEngine
from .metrics import shared_edge_length

# Collaborators
from .context import (
    CheckContext,
    GapCheckConfig,
    LayerFeature,
    ProgressCounter,
)
from .pool import Feature, FeaturePool, MemoryFeaturePool
from .transform import IdentityTransform, OffsetTransform, ProjTransform

# Records
from .records import GapRecord, MergeInstruction, Change

# Core types (enums)
from .core import (
    FixMethod,
    ErrorStatus,
    ChangeWhat,
    ChangeType,
)

# Core exceptions
from .core import (
    PolygapError,
    EngineError,
    ResolutionError,
    NoMergeFoundError,
    DegenerateMergeError,
    UnsupportedMethodError,
    ConfigurationError,
)

__all__ = [

    # Detection and resolution
    'detect_gaps',
    'merge_with_neighbor',
    'apply_merge',
    'replace_feature_geometry_part',
    'resolve_gap',
    'GapCheck',

    # Geometry
    'GeometryEngine',
    'shared_edge_length',

    # Collaborators
    'CheckContext',
    'GapCheckConfig',
    'LayerFeature',
    'ProgressCounter',
    'Feature',
    'FeaturePool',
    'MemoryFeaturePool',
    'IdentityTransform',
    'OffsetTransform',
    'ProjTransform',

    # Records
    'GapRecord',
    'MergeInstruction',
    'Change',

    # Core types (enums)
    'FixMethod',
    'ErrorStatus',
    'ChangeWhat',
    'ChangeType',

    # Core exceptions
    'PolygapError',
    'EngineError',
    'ResolutionError',
    'NoMergeFoundError',
    'DegenerateMergeError',
    'UnsupportedMethodError',
    'ConfigurationError',
]
