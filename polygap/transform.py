"""Coordinate transforms between layer and analysis coordinate systems.

Each layer stores geometries in its own CRS. Gap detection runs in a common
analysis CRS, so every layer has a *forward* transform (layer -> analysis)
and the resolver uses its *inverse* (analysis -> layer) to bring a gap back
into the space of the feature it is merged into.
"""

from __future__ import annotations

from typing import Protocol

from pyproj import CRS, Transformer
from pyproj.enums import TransformDirection
from pyproj.exceptions import ProjError
from shapely import affinity
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as transform_geometry

from .core.errors import EngineError
from .core.geometry_utils import Bounds


class LayerTransform(Protocol):
    """Forward (layer -> analysis) and inverse coordinate mapping."""

    def forward(self, geometry: BaseGeometry) -> BaseGeometry:
        ...

    def inverse(self, geometry: BaseGeometry) -> BaseGeometry:
        ...

    def transform_bounds(self, bounds: Bounds, inverse: bool = False) -> Bounds:
        ...


class IdentityTransform:
    """Layer already in the analysis CRS."""

    def forward(self, geometry: BaseGeometry) -> BaseGeometry:
        return geometry

    def inverse(self, geometry: BaseGeometry) -> BaseGeometry:
        return geometry

    def transform_bounds(self, bounds: Bounds, inverse: bool = False) -> Bounds:
        return tuple(bounds)


class OffsetTransform:
    """Pure translation between layer and analysis coordinates.

    Useful for layers stored in a local engineering grid whose origin is
    shifted from the analysis CRS.
    """

    def __init__(self, dx: float = 0.0, dy: float = 0.0):
        self.dx = dx
        self.dy = dy

    def forward(self, geometry: BaseGeometry) -> BaseGeometry:
        return affinity.translate(geometry, xoff=self.dx, yoff=self.dy)

    def inverse(self, geometry: BaseGeometry) -> BaseGeometry:
        return affinity.translate(geometry, xoff=-self.dx, yoff=-self.dy)

    def transform_bounds(self, bounds: Bounds, inverse: bool = False) -> Bounds:
        sign = -1.0 if inverse else 1.0
        dx, dy = sign * self.dx, sign * self.dy
        return (bounds[0] + dx, bounds[1] + dy, bounds[2] + dx, bounds[3] + dy)


class ProjTransform:
    """CRS to CRS transform backed by :class:`pyproj.Transformer`.

    Args:
        layer_crs: CRS of the layer (anything ``pyproj.CRS`` accepts)
        analysis_crs: CRS of the gap analysis

    Examples:
        >>> t = ProjTransform("EPSG:4326", "EPSG:3857")
        >>> projected = t.forward(polygon_in_degrees)
    """

    def __init__(self, layer_crs, analysis_crs):
        self.layer_crs = CRS.from_user_input(layer_crs)
        self.analysis_crs = CRS.from_user_input(analysis_crs)
        self._transformer = Transformer.from_crs(
            self.layer_crs,
            self.analysis_crs,
            always_xy=True,
        )

    def forward(self, geometry: BaseGeometry) -> BaseGeometry:
        return self._apply(geometry, TransformDirection.FORWARD)

    def inverse(self, geometry: BaseGeometry) -> BaseGeometry:
        return self._apply(geometry, TransformDirection.INVERSE)

    def _apply(self, geometry: BaseGeometry, direction: TransformDirection) -> BaseGeometry:
        def _transform(x, y, z=None):
            return self._transformer.transform(x, y, direction=direction, errcheck=True)

        try:
            return transform_geometry(_transform, geometry)
        except ProjError as exc:
            raise EngineError('transform', str(exc)) from exc

    def transform_bounds(self, bounds: Bounds, inverse: bool = False) -> Bounds:
        direction = TransformDirection.INVERSE if inverse else TransformDirection.FORWARD
        return tuple(self._transformer.transform_bounds(*bounds, direction=direction))


__all__ = [
    'LayerTransform',
    'IdentityTransform',
    'OffsetTransform',
    'ProjTransform',
]
