"""Detection of gaps between polygon features.

A gap is a void fully enclosed by the union of the input polygons. Voids are
found as the parts of ``buffered_envelope - union``: the band between the
envelope and its buffer always forms one part together with every void that
touches the envelope, and is recognized by having the buffered envelope's
bounds. Every other part is an enclosed candidate gap.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from shapely.geometry.base import BaseGeometry

from .context import LayerFeature, ProgressCounter
from .core.errors import EngineError
from .core.geometry_utils import Bounds, bounds_equal, combine_bounds, iter_parts, part_count
from .engine import CAP_SQUARE, JOIN_MITRE, GeometryEngine
from .metrics import shared_edge_length
from .records import GapRecord, Neighbors

logger = logging.getLogger(__name__)

# Outward margin of the analysis envelope, in map units
ENVELOPE_BUFFER = 2.0
ENVELOPE_MITRE_LIMIT = 4.0

NeighborLookup = Callable[[Bounds], Iterable[LayerFeature]]


def detect_gaps(
    features: Sequence[Tuple[str, BaseGeometry]],
    neighbor_lookup: NeighborLookup,
    threshold_area: float,
    tolerance: float,
    reduced_tolerance: float,
    progress: Optional[ProgressCounter] = None,
) -> Tuple[List[GapRecord], List[str]]:
    """Find the gaps enclosed by a set of polygons.

    The algorithm:
    1. Union all geometries at ``tolerance``
    2. Take the envelope of the union and buffer it outward by
       ``ENVELOPE_BUFFER`` (square caps, mitre joins)
    3. Subtract the union from the buffered envelope
    4. Keep each part of the difference that is not the outer band, whose
       area lies in ``[reduced_tolerance, threshold_area]`` and that shares
       an edge with at least one feature returned by ``neighbor_lookup``

    A failure of any engine step aborts the pass: no gaps are returned and
    the failure is reported in the message list.

    Args:
        features: ``(layer_id, geometry)`` pairs in the analysis CRS
        neighbor_lookup: Returns the features whose bounding box meets the
            given bounds, geometries in the analysis CRS
        threshold_area: Largest reported gap area
        tolerance: Precision of union and difference
        reduced_tolerance: Smallest reported gap area, and the tolerance of
            the shared edge test
        progress: Counter incremented once per call

    Returns:
        Tuple of (gaps, messages)

    Examples:
        >>> squares = [unit_square(x, y) for x in range(3) for y in range(3) if (x, y) != (1, 1)]
        >>> gaps, messages = detect_gaps(
        ...     [("parcels", sq) for sq in squares], lookup,
        ...     threshold_area=10.0, tolerance=1e-8, reduced_tolerance=1e-4)
        >>> gaps[0].area
        1.0
    """
    if progress is not None:
        progress.increment()

    geometries = [geometry for _, geometry in features]
    if not geometries:
        return [], []

    messages: List[str] = []
    engine = GeometryEngine(tolerance)
    try:
        union = engine.combine(geometries)
        envelope = engine.envelope(union)
        envelope = engine.buffer(
            envelope,
            ENVELOPE_BUFFER,
            cap_style=CAP_SQUARE,
            join_style=JOIN_MITRE,
            mitre_limit=ENVELOPE_MITRE_LIMIT,
        )
        difference = engine.difference(envelope, union)
    except EngineError as exc:
        messages.append(f"Gap check: {exc}")
        return [], messages

    envelope_bounds = envelope.bounds
    gaps: List[GapRecord] = []
    for part in iter_parts(difference):
        if bounds_equal(part.bounds, envelope_bounds, tolerance):
            continue

        area = part.area
        if area > threshold_area or area < reduced_tolerance:
            continue

        gap = _build_gap(part, area, neighbor_lookup, reduced_tolerance)
        if gap is not None:
            gaps.append(gap)

    logger.debug(
        "Gap check over %d geometries: %d difference parts, %d gaps",
        len(geometries), part_count(difference), len(gaps),
    )
    return gaps, messages


def _build_gap(
    gap: BaseGeometry,
    area: float,
    neighbor_lookup: NeighborLookup,
    reduced_tolerance: float,
) -> Optional[GapRecord]:
    """Collect the neighbors of ``gap``; None if nothing borders it."""
    bbox = gap.bounds
    neighbors: Neighbors = {}
    for layer_feature in neighbor_lookup(gap.bounds):
        if shared_edge_length(gap, layer_feature.geometry, reduced_tolerance) > 0:
            neighbors.setdefault(layer_feature.layer_id, set()).add(layer_feature.feature_id)
            bbox = combine_bounds(bbox, layer_feature.geometry.bounds)

    if not neighbors:
        return None
    return GapRecord(geometry=gap, area=area, bbox=bbox, neighbors=neighbors)


__all__ = [
    'ENVELOPE_BUFFER',
    'ENVELOPE_MITRE_LIMIT',
    'NeighborLookup',
    'detect_gaps',
]
