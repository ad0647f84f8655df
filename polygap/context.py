"""Runtime context and configuration shared by detection and resolution."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Hashable, Iterable, Iterator, List, Mapping, Optional

from shapely.geometry.base import BaseGeometry

from .core.errors import ConfigurationError
from .core.geometry_utils import Bounds
from .core.types import FixMethod, coerce_enum
from .pool import Feature, FeaturePool
from .transform import IdentityTransform, LayerTransform

POLYGON_TYPES: FrozenSet[str] = frozenset({'Polygon', 'MultiPolygon'})

_IDENTITY = IdentityTransform()


@dataclass
class GapCheckConfig:
    """User-facing settings of the gap check.

    Attributes:
        threshold_map_units: Largest gap area (map units squared) still
            reported. Larger voids are assumed to be intentional holes.
        compatible_geometry_types: Shapely ``geom_type`` names of features
            that take part in the check
        fix_method: Default resolution used by :meth:`GapCheck.fix_error`
    """

    threshold_map_units: float = float('inf')
    compatible_geometry_types: FrozenSet[str] = POLYGON_TYPES
    fix_method: FixMethod = FixMethod.MERGE_LONGEST_EDGE

    def __post_init__(self):
        if self.threshold_map_units < 0:
            raise ConfigurationError(
                f"threshold_map_units must be >= 0, got {self.threshold_map_units}"
            )
        if not self.compatible_geometry_types:
            raise ConfigurationError("compatible_geometry_types must not be empty")
        self.compatible_geometry_types = frozenset(self.compatible_geometry_types)
        self.fix_method = coerce_enum(self.fix_method, FixMethod)


@dataclass
class CheckContext:
    """Feature pools, transforms and tolerances of one analysis session.

    Attributes:
        feature_pools: Pool per layer id
        tolerance: Precision of union/difference computations
        reduced_tolerance: Coarser precision used for minimum gap area and
            shared edge decisions
        layer_transforms: Forward transform per layer id; layers without an
            entry are assumed to be in the analysis CRS
    """

    feature_pools: Dict[str, FeaturePool]
    tolerance: float = 1e-8
    reduced_tolerance: float = 1e-4
    layer_transforms: Dict[str, LayerTransform] = field(default_factory=dict)

    def __post_init__(self):
        if self.tolerance < 0 or self.reduced_tolerance < 0:
            raise ConfigurationError("tolerances must be >= 0")
        unknown = set(self.layer_transforms) - set(self.feature_pools)
        if unknown:
            raise ConfigurationError(f"Transforms given for unknown layers: {sorted(unknown)}")

    @classmethod
    def from_precision(
        cls,
        feature_pools: Dict[str, FeaturePool],
        precision: int = 8,
        layer_transforms: Optional[Dict[str, LayerTransform]] = None,
    ) -> "CheckContext":
        """Derive both tolerances from a number of significant decimals.

        ``tolerance = 10**-precision`` and
        ``reduced_tolerance = 10**(-precision / 2)``.
        """
        if precision < 0:
            raise ConfigurationError(f"precision must be >= 0, got {precision}")
        return cls(
            feature_pools=feature_pools,
            tolerance=10.0 ** -precision,
            reduced_tolerance=10.0 ** (-precision / 2),
            layer_transforms=dict(layer_transforms or {}),
        )

    def pool(self, layer_id: str) -> FeaturePool:
        try:
            return self.feature_pools[layer_id]
        except KeyError:
            raise ConfigurationError(f"No feature pool for layer {layer_id!r}") from None

    def layer_transform(self, layer_id: str) -> LayerTransform:
        return self.layer_transforms.get(layer_id, _IDENTITY)

    def all_layer_feature_ids(self) -> Dict[str, List[Hashable]]:
        return {layer_id: pool.all_feature_ids() for layer_id, pool in self.feature_pools.items()}


@dataclass(frozen=True)
class LayerFeature:
    """A feature together with its geometry in the analysis CRS."""

    layer_id: str
    feature: Feature
    geometry: BaseGeometry

    @property
    def feature_id(self) -> Hashable:
        return self.feature.feature_id


class ProgressCounter:
    """Thread-safe counter incremented once per check invocation."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value


def iter_layer_features(
    context: CheckContext,
    feature_ids: Mapping[str, Iterable[Hashable]],
    geometry_types: FrozenSet[str] = POLYGON_TYPES,
) -> Iterator[LayerFeature]:
    """Yield the requested features transformed into the analysis CRS.

    Features missing from their pool, with empty geometry, or whose geometry
    type is not in ``geometry_types`` are skipped.
    """
    for layer_id, ids in feature_ids.items():
        pool = context.pool(layer_id)
        transform = context.layer_transform(layer_id)
        for feature_id in ids:
            feature = pool.get_feature(feature_id)
            if not _is_compatible(feature, geometry_types):
                continue
            yield LayerFeature(layer_id, feature, transform.forward(feature.geometry))


def iter_layer_features_in_bounds(
    context: CheckContext,
    layer_ids: Iterable[str],
    bounds: Bounds,
    geometry_types: FrozenSet[str] = POLYGON_TYPES,
) -> Iterator[LayerFeature]:
    """Yield features of ``layer_ids`` whose bounding box meets ``bounds``.

    ``bounds`` is given in the analysis CRS and mapped into each layer's CRS
    for the index query.
    """
    for layer_id in layer_ids:
        pool = context.pool(layer_id)
        transform = context.layer_transform(layer_id)
        layer_bounds = transform.transform_bounds(bounds, inverse=True)
        for feature_id in pool.get_intersecting(layer_bounds):
            feature = pool.get_feature(feature_id)
            if not _is_compatible(feature, geometry_types):
                continue
            yield LayerFeature(layer_id, feature, transform.forward(feature.geometry))


def _is_compatible(feature: Optional[Feature], geometry_types: FrozenSet[str]) -> bool:
    if feature is None or feature.geometry is None or feature.geometry.is_empty:
        return False
    return feature.geometry.geom_type in geometry_types


__all__ = [
    'POLYGON_TYPES',
    'GapCheckConfig',
    'CheckContext',
    'LayerFeature',
    'ProgressCounter',
    'iter_layer_features',
    'iter_layer_features_in_bounds',
]
