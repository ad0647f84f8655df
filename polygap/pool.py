"""Feature storage consumed by the gap check.

The check never owns features. It reads them from a :class:`FeaturePool`
(one per layer) and writes repaired geometries back through
:meth:`FeaturePool.update_feature`. :class:`MemoryFeaturePool` is the
in-memory reference implementation, indexed with an STRtree.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Hashable, Iterable, List, Optional, Protocol

from shapely.geometry import box
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from .core.geometry_utils import Bounds


@dataclass(frozen=True)
class Feature:
    """A feature of a layer: an id, a geometry in layer CRS and attributes."""

    feature_id: Hashable
    geometry: BaseGeometry
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False)

    def with_geometry(self, geometry: BaseGeometry) -> "Feature":
        return replace(self, geometry=geometry)


class FeaturePool(Protocol):
    """Access to the features of a single layer.

    Reads must reflect the latest committed state: the resolver re-reads a
    feature right before building a merge, and may therefore observe a
    geometry different from the one seen during detection.
    """

    layer_id: str

    def get_feature(self, feature_id: Hashable) -> Optional[Feature]:
        ...

    def get_intersecting(self, bounds: Bounds) -> List[Hashable]:
        ...

    def all_feature_ids(self) -> List[Hashable]:
        ...

    def update_feature(self, feature: Feature) -> None:
        ...


class MemoryFeaturePool:
    """In-memory feature pool with a lazily rebuilt STRtree.

    Args:
        layer_id: Identifier of the layer this pool serves
        features: Initial features

    Examples:
        >>> pool = MemoryFeaturePool.from_geometries("parcels", [poly1, poly2])
        >>> pool.get_intersecting((0, 0, 10, 10))
        [0, 1]
    """

    def __init__(self, layer_id: str, features: Optional[Iterable[Feature]] = None):
        self.layer_id = layer_id
        self._features: Dict[Hashable, Feature] = {}
        self._tree: Optional[STRtree] = None
        self._tree_ids: List[Hashable] = []
        for feature in features or []:
            self.add_feature(feature)

    @classmethod
    def from_geometries(
        cls,
        layer_id: str,
        geometries: Iterable[BaseGeometry],
        start_id: int = 0,
    ) -> "MemoryFeaturePool":
        """Build a pool assigning sequential integer ids."""
        return cls(
            layer_id,
            (Feature(fid, geom) for fid, geom in enumerate(geometries, start=start_id)),
        )

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, feature_id: Hashable) -> bool:
        return feature_id in self._features

    def get_feature(self, feature_id: Hashable) -> Optional[Feature]:
        return self._features.get(feature_id)

    def all_feature_ids(self) -> List[Hashable]:
        return list(self._features)

    def get_intersecting(self, bounds: Bounds) -> List[Hashable]:
        """Ids of features whose bounding box intersects ``bounds``."""
        if not self._features:
            return []
        tree = self._index()
        hits = tree.query(box(*bounds))
        return [self._tree_ids[i] for i in sorted(hits)]

    def add_feature(self, feature: Feature) -> None:
        self._features[feature.feature_id] = feature
        self._tree = None

    def update_feature(self, feature: Feature) -> None:
        if feature.feature_id not in self._features:
            raise KeyError(f"Feature {feature.feature_id!r} not in layer {self.layer_id!r}")
        self._features[feature.feature_id] = feature
        self._tree = None

    def _index(self) -> STRtree:
        if self._tree is None:
            self._tree_ids = list(self._features)
            self._tree = STRtree([self._features[fid].geometry for fid in self._tree_ids])
        return self._tree


__all__ = [
    'Feature',
    'FeaturePool',
    'MemoryFeaturePool',
]
