"""Records produced by the gap check: gaps, merge instructions, changes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional, Set

from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry

from .core.geometry_utils import Bounds
from .core.types import ChangeType, ChangeWhat, ErrorStatus, FixMethod

Neighbors = Dict[str, Set[Hashable]]


@dataclass(frozen=True)
class Change:
    """A single modification applied to a feature by a fix.

    Attributes:
        what: Element that changed (whole feature, part, ...)
        type: Kind of change
        part_index: Index of the affected part, -1 for the whole feature
    """

    what: ChangeWhat
    type: ChangeType
    part_index: int = -1


Changes = Dict[str, Dict[Hashable, List[Change]]]


def record_change(
    changes: Changes,
    layer_id: str,
    feature_id: Hashable,
    change: Change
) -> None:
    """Append ``change`` to the change log of one feature."""
    changes.setdefault(layer_id, {}).setdefault(feature_id, []).append(change)


@dataclass(frozen=True)
class MergeInstruction:
    """Replace one part of one feature with ``geometry``.

    ``geometry`` is expressed in the CRS of ``layer_id``.
    """

    layer_id: str
    feature_id: Hashable
    part_index: int
    geometry: BaseGeometry


@dataclass
class GapRecord:
    """A gap found between features, with its fix status.

    Attributes:
        geometry: The gap polygon in the analysis CRS
        area: Planar area of ``geometry``
        bbox: Bounds of the gap grown to include every neighbor
        neighbors: Layer id -> ids of features sharing an edge with the gap
        status: Fix lifecycle state
        resolution_message: Reason of the last failed fix, if any
        fix_method: Method that fixed the gap, if fixed
    """

    geometry: BaseGeometry
    area: float
    bbox: Bounds
    neighbors: Neighbors
    status: ErrorStatus = ErrorStatus.UNFIXED
    resolution_message: str = ""
    fix_method: Optional[FixMethod] = None

    @property
    def location(self) -> Point:
        return self.geometry.centroid

    @property
    def neighbor_count(self) -> int:
        return sum(len(ids) for ids in self.neighbors.values())

    @property
    def is_fixed(self) -> bool:
        return self.status == ErrorStatus.FIXED

    def set_fixed(self, method: FixMethod) -> None:
        self.status = ErrorStatus.FIXED
        self.fix_method = method
        self.resolution_message = ""

    def set_fix_failed(self, message: str) -> None:
        self.status = ErrorStatus.FIX_FAILED
        self.resolution_message = message

    def set_obsolete(self) -> None:
        self.status = ErrorStatus.OBSOLETE

    def is_equal(self, other: "GapRecord", tolerance: float = 1e-8) -> bool:
        """Same gap: same neighbors and centroids within ``tolerance``."""
        if not isinstance(other, GapRecord) or other.neighbors != self.neighbors:
            return False
        return self.location.distance(other.location) <= tolerance

    def close_match(self, other: "GapRecord") -> bool:
        """Likely the same gap after a geometry change: same neighbors."""
        return isinstance(other, GapRecord) and other.neighbors == self.neighbors

    def update(self, other: "GapRecord") -> None:
        """Take over geometry, area, bbox and neighbors of a re-detected gap."""
        self.geometry = other.geometry
        self.area = other.area
        self.bbox = other.bbox
        self.neighbors = {layer_id: set(ids) for layer_id, ids in other.neighbors.items()}

    def is_affected_by(self, changes: Changes) -> bool:
        """True if any neighbor of this gap was modified in ``changes``."""
        for layer_id, ids in self.neighbors.items():
            changed = changes.get(layer_id, {})
            if any(fid in changed for fid in ids):
                return True
        return False


__all__ = [
    'Neighbors',
    'Change',
    'Changes',
    'record_change',
    'MergeInstruction',
    'GapRecord',
]
