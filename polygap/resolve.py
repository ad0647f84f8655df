"""Resolution of detected gaps.

The only repair is "merge with longest shared edge": the gap is added to
the single neighboring polygon part sharing the most boundary with it.
Building the merge (:func:`merge_with_neighbor`) is pure; applying it
(:func:`apply_merge`) is the one step that writes to a feature pool.
"""

from __future__ import annotations

import logging
from typing import Hashable, Iterable, List, Optional, Tuple, Union

from shapely.geometry.base import BaseGeometry

from .context import CheckContext
from .core.errors import (
    DegenerateMergeError,
    EngineError,
    NoMergeFoundError,
    PolygapError,
    ResolutionError,
    UnsupportedMethodError,
)
from .core.geometry_utils import get_part, is_single_part, iter_parts, replace_part
from .core.types import ChangeType, ChangeWhat, FixMethod, coerce_enum
from .engine import GeometryEngine
from .metrics import shared_edge_length
from .pool import Feature
from .records import Change, Changes, GapRecord, MergeInstruction, record_change

logger = logging.getLogger(__name__)


def merge_with_neighbor(gap: GapRecord, context: CheckContext) -> MergeInstruction:
    """Build the instruction merging ``gap`` into its best neighbor.

    Only part 0 of the gap geometry is considered. For every neighbor layer
    the gap is mapped into the layer CRS, every neighbor feature is re-read
    from its pool, and the shared edge length against each of its parts is
    measured. The part with the strictly longest shared edge wins; on ties
    the first one visited wins (layers and feature ids in sorted order,
    parts in index order).

    Args:
        gap: Gap to merge
        context: Pools, transforms and tolerances

    Returns:
        Instruction replacing the winning part by its union with the gap

    Raises:
        NoMergeFoundError: No neighbor part shares a positive-length edge
        ResolutionError: The gap cannot be mapped into a neighbor layer
        DegenerateMergeError: The union failed, is empty or is multi-part
    """
    gap_shape = get_part(gap.geometry, 0)

    best_length = 0.0
    best: Optional[Tuple[str, Feature, int]] = None
    for layer_id in sorted(gap.neighbors):
        pool = context.feature_pools.get(layer_id)
        if pool is None:
            logger.debug("Neighbor layer %s has no feature pool", layer_id)
            continue
        layer_gap = _to_layer(gap_shape, layer_id, context)
        for feature_id in _ordered(gap.neighbors[layer_id]):
            feature = pool.get_feature(feature_id)
            if feature is None:
                logger.debug("Neighbor %s:%r no longer exists", layer_id, feature_id)
                continue
            for part_index, part in enumerate(iter_parts(feature.geometry)):
                length = shared_edge_length(layer_gap, part, context.reduced_tolerance)
                if length > best_length:
                    best_length = length
                    best = (layer_id, feature, part_index)

    if best is None:
        raise NoMergeFoundError()

    layer_id, feature, part_index = best
    layer_gap = _to_layer(gap_shape, layer_id, context)
    target = get_part(feature.geometry, part_index)

    engine = GeometryEngine(context.reduced_tolerance)
    try:
        combined = engine.union(layer_gap, target)
    except EngineError as exc:
        raise DegenerateMergeError(exc.message, layer_id, feature.feature_id) from exc

    if combined.is_empty or not is_single_part(combined):
        raise DegenerateMergeError(
            f"Merging with feature {feature.feature_id!r} gives a {combined.geom_type}",
            layer_id,
            feature.feature_id,
        )

    return MergeInstruction(
        layer_id=layer_id,
        feature_id=feature.feature_id,
        part_index=part_index,
        geometry=combined,
    )


def apply_merge(
    instruction: MergeInstruction,
    context: CheckContext,
    changes: Optional[Changes] = None,
) -> Feature:
    """Write a merge instruction to its feature pool.

    Returns:
        The updated feature
    """
    return replace_feature_geometry_part(
        context,
        instruction.layer_id,
        instruction.feature_id,
        instruction.part_index,
        instruction.geometry,
        changes,
    )


def replace_feature_geometry_part(
    context: CheckContext,
    layer_id: str,
    feature_id: Hashable,
    part_index: int,
    new_part: BaseGeometry,
    changes: Optional[Changes] = None,
) -> Feature:
    """Replace one part of a feature's geometry and record the change.

    Multi-part geometries keep their other parts; single-part geometries
    are replaced whole.

    Raises:
        KeyError: If the feature is not in its pool
    """
    pool = context.pool(layer_id)
    feature = pool.get_feature(feature_id)
    if feature is None:
        raise KeyError(f"Feature {feature_id!r} not in layer {layer_id!r}")

    if is_single_part(feature.geometry):
        change = Change(ChangeWhat.FEATURE, ChangeType.CHANGED)
    else:
        change = Change(ChangeWhat.PART, ChangeType.CHANGED, part_index)

    updated = feature.with_geometry(replace_part(feature.geometry, part_index, new_part))
    pool.update_feature(updated)
    if changes is not None:
        record_change(changes, layer_id, feature_id, change)
    return updated


def resolve_gap(
    gap: GapRecord,
    method: Union[FixMethod, str, int],
    context: CheckContext,
    changes: Optional[Changes] = None,
) -> Optional[MergeInstruction]:
    """Apply a fix method to ``gap`` and update its status.

    ``FixMethod.NO_CHANGE`` only marks the gap as fixed. With
    ``FixMethod.MERGE_LONGEST_EDGE`` the merge is built and written to the
    pool; if no valid merge exists the gap is marked as failed and no
    feature is touched. Unknown methods mark the gap as failed.

    Returns:
        The applied instruction, or None if nothing was written
    """
    try:
        method = coerce_enum(method, FixMethod)
    except UnsupportedMethodError:
        gap.set_fix_failed("Unknown method")
        return None

    if method == FixMethod.NO_CHANGE:
        gap.set_fixed(method)
        return None

    try:
        instruction = merge_with_neighbor(gap, context)
    except PolygapError as exc:
        logger.info(
            "Gap at %s with %d neighbors not merged: %s",
            gap.location.wkt, gap.neighbor_count, exc,
        )
        gap.set_fix_failed(f"Failed to merge with neighbor: {exc}")
        return None

    apply_merge(instruction, context, changes)
    gap.set_fixed(method)
    return instruction


def _to_layer(geometry: BaseGeometry, layer_id: str, context: CheckContext) -> BaseGeometry:
    try:
        return context.layer_transform(layer_id).inverse(geometry)
    except EngineError as exc:
        raise ResolutionError(f"Cannot map gap into layer {layer_id!r}: {exc.message}") from exc


def _ordered(feature_ids: Iterable[Hashable]) -> List[Hashable]:
    ids = list(feature_ids)
    try:
        return sorted(ids)
    except TypeError:
        return sorted(ids, key=repr)


__all__ = [
    'merge_with_neighbor',
    'apply_merge',
    'replace_feature_geometry_part',
    'resolve_gap',
]
