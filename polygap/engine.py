"""Precision-aware geometry engine.

Thin wrapper around the Shapely 2 vectorized API. Every operation runs on a
fixed precision grid derived from the engine tolerance, and every failure is
reported as :class:`~polygap.core.errors.EngineError` naming the failing stage
instead of leaking a ``GEOSException`` to callers.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import shapely
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from .core.errors import EngineError

logger = logging.getLogger(__name__)

# Buffer styles accepted by shapely.buffer
CAP_SQUARE = 'square'
JOIN_MITRE = 'mitre'


class GeometryEngine:
    """Geometry operations evaluated at a given precision.

    Args:
        tolerance: Precision grid size. Values <= 0 disable snapping and use
            full floating point precision.

    Examples:
        >>> engine = GeometryEngine(1e-8)
        >>> union = engine.combine([poly1, poly2])
        >>> gaps = engine.difference(engine.envelope(union), union)
    """

    def __init__(self, tolerance: float = 0.0):
        self.tolerance = tolerance

    @property
    def grid_size(self) -> Optional[float]:
        return self.tolerance if self.tolerance > 0 else None

    def combine(self, geometries: Iterable[BaseGeometry]) -> BaseGeometry:
        """Union of all ``geometries`` (possibly multi-part)."""
        geometries = [g for g in geometries if g is not None]
        return self._run(
            'combine',
            lambda: shapely.union_all(geometries, grid_size=self.grid_size),
        )

    def union(self, a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
        """Union of two geometries."""
        return self._run(
            'union',
            lambda: shapely.union(a, b, grid_size=self.grid_size),
        )

    def envelope(self, geometry: BaseGeometry) -> BaseGeometry:
        """Axis-aligned bounding rectangle of ``geometry`` as a polygon."""
        return self._run('envelope', lambda: shapely.envelope(geometry))

    def buffer(
        self,
        geometry: BaseGeometry,
        distance: float,
        cap_style: str = CAP_SQUARE,
        join_style: str = JOIN_MITRE,
        mitre_limit: float = 4.0,
        quad_segs: int = 8,
    ) -> BaseGeometry:
        """Buffer ``geometry`` by ``distance``."""
        return self._run(
            'buffer',
            lambda: shapely.buffer(
                geometry,
                distance,
                quad_segs=quad_segs,
                cap_style=cap_style,
                join_style=join_style,
                mitre_limit=mitre_limit,
            ),
        )

    def difference(self, a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
        """Part of ``a`` not covered by ``b``."""
        return self._run(
            'difference',
            lambda: shapely.difference(a, b, grid_size=self.grid_size),
        )

    def _run(self, stage: str, operation) -> BaseGeometry:
        try:
            result = operation()
        except (GEOSException, ValueError, TypeError) as exc:
            logger.warning("Geometry engine %s failed: %s", stage, exc)
            raise EngineError(stage, str(exc)) from exc
        if result is None:
            raise EngineError(stage, "engine returned no geometry")
        return result


__all__ = [
    'GeometryEngine',
    'CAP_SQUARE',
    'JOIN_MITRE',
]
