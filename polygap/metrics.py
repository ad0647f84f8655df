"""Shared measurement helpers for polygap geometries.

Adjacency between a gap and a feature, and the ranking of merge candidates,
both rest on a single scalar: the length of boundary the two geometries have
in common. Centralizing it here keeps detection and resolution consistent.
"""

from __future__ import annotations

from typing import Iterator, List

import numpy as np
from shapely.geometry import LineString, LinearRing, Polygon
from shapely.geometry.base import BaseGeometry, BaseMultipartGeometry

# Segment pairs compared per vectorized block
_PAIR_BUDGET = 250_000


def _ring_coords(geometry: BaseGeometry) -> Iterator[np.ndarray]:
    if geometry is None or geometry.is_empty:
        return
    if isinstance(geometry, Polygon):
        yield np.asarray(geometry.exterior.coords, dtype=float)[:, :2]
        for interior in geometry.interiors:
            yield np.asarray(interior.coords, dtype=float)[:, :2]
    elif isinstance(geometry, (LineString, LinearRing)):
        yield np.asarray(geometry.coords, dtype=float)[:, :2]
    elif isinstance(geometry, BaseMultipartGeometry):
        for part in geometry.geoms:
            yield from _ring_coords(part)


def boundary_segments(geometry: BaseGeometry) -> np.ndarray:
    """Return all ring segments of ``geometry`` as an ``(N, 2, 2)`` array.

    Each row holds ``[[x1, y1], [x2, y2]]``. Points contribute no segments.

    Examples:
        >>> square = Polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
        >>> boundary_segments(square).shape
        (4, 2, 2)
    """
    chunks: List[np.ndarray] = []
    for coords in _ring_coords(geometry):
        if len(coords) < 2:
            continue
        chunks.append(np.stack([coords[:-1], coords[1:]], axis=1))
    if not chunks:
        return np.empty((0, 2, 2), dtype=float)
    return np.concatenate(chunks)


def shared_edge_length(
    geom1: BaseGeometry,
    geom2: BaseGeometry,
    tolerance: float
) -> float:
    """Total length of boundary shared by two geometries.

    For every segment ``p1 -> p2`` of ``geom1`` and every segment
    ``q1 -> q2`` of ``geom2``: if both ``q1`` and ``q2`` lie within
    ``tolerance`` of the infinite line through ``p1`` and ``p2``, the
    overlap of the projection of ``q1 -> q2`` with ``p1 -> p2`` is added to
    the total. Zero-length segments of ``geom1`` are ignored.

    Args:
        geom1: First geometry (typically the gap)
        geom2: Second geometry (typically a candidate neighbor or one part)
        tolerance: Maximum distance of ``q1``/``q2`` from the line

    Returns:
        Shared boundary length in map units (0.0 if the geometries only
        touch at points or not at all)

    Examples:
        >>> a = Polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
        >>> b = Polygon([(1, 0), (2, 0), (2, 1), (1, 1)])
        >>> shared_edge_length(a, b, 1e-8)
        1.0
    """
    segs1 = boundary_segments(geom1)
    segs2 = boundary_segments(geom2)
    if len(segs1) == 0 or len(segs2) == 0:
        return 0.0

    p1 = segs1[:, 0]
    delta = segs1[:, 1] - p1
    lengths = np.hypot(delta[:, 0], delta[:, 1])
    keep = lengths > 0
    p1, delta, lengths = p1[keep], delta[keep], lengths[keep]
    if len(p1) == 0:
        return 0.0
    unit = delta / lengths[:, None]

    q1 = segs2[:, 0]
    q2 = segs2[:, 1]

    # Blocks are bounded in both directions so memory stays flat for
    # detailed neighbors
    rows = max(1, _PAIR_BUDGET // len(q1))
    cols = _PAIR_BUDGET // rows
    total = 0.0
    for start in range(0, len(p1), rows):
        stop = start + rows
        for col in range(0, len(q1), cols):
            total += _block_shared_length(
                p1[start:stop],
                unit[start:stop],
                lengths[start:stop],
                q1[col:col + cols],
                q2[col:col + cols],
                tolerance,
            )
    return float(total)


def _block_shared_length(
    p1: np.ndarray,
    unit: np.ndarray,
    lengths: np.ndarray,
    q1: np.ndarray,
    q2: np.ndarray,
    tolerance: float,
) -> float:
    rel1 = q1[None, :, :] - p1[:, None, :]
    rel2 = q2[None, :, :] - p1[:, None, :]
    ux = unit[:, None, 0]
    uy = unit[:, None, 1]

    # Perpendicular distance of q1/q2 to the line through p1 along unit
    dist1 = np.abs(ux * rel1[..., 1] - uy * rel1[..., 0])
    dist2 = np.abs(ux * rel2[..., 1] - uy * rel2[..., 0])
    collinear = (dist1 <= tolerance) & (dist2 <= tolerance)
    if not collinear.any():
        return 0.0

    lambda1 = ux * rel1[..., 0] + uy * rel1[..., 1]
    lambda2 = ux * rel2[..., 0] + uy * rel2[..., 1]
    low = np.maximum(np.minimum(lambda1, lambda2), 0.0)
    high = np.minimum(np.maximum(lambda1, lambda2), lengths[:, None])
    overlap = np.clip(high - low, 0.0, None)
    return float(overlap[collinear].sum())


__all__ = [
    "boundary_segments",
    "shared_edge_length",
]
