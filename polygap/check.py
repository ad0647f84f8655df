"""Gap check over the layers of a :class:`~polygap.context.CheckContext`."""

from __future__ import annotations

import logging
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Tuple, Union

from .context import (
    CheckContext,
    GapCheckConfig,
    ProgressCounter,
    iter_layer_features,
    iter_layer_features_in_bounds,
)
from .core.geometry_utils import Bounds, combine_bounds
from .core.types import ErrorStatus, FixMethod
from .detect import detect_gaps
from .records import Changes, GapRecord, MergeInstruction
from .resolve import resolve_gap

logger = logging.getLogger(__name__)

_RESOLUTION_METHODS = {
    FixMethod.MERGE_LONGEST_EDGE: "Add gap area to neighboring polygon with longest shared edge",
    FixMethod.NO_CHANGE: "No action",
}


class GapCheck:
    """Detect and fix gaps between the polygons of one or more layers.

    Example:
        ```python
        pools = {"parcels": MemoryFeaturePool.from_geometries("parcels", polygons)}
        check = GapCheck(CheckContext.from_precision(pools), GapCheckConfig(threshold_map_units=50))

        gaps, messages = check.collect_errors()
        changes = check.fix_errors(gaps)
        ```

    Attributes:
        context: Pools, transforms and tolerances
        config: Threshold, geometry type filter and default fix method
    """

    description = "Gap"

    def __init__(self, context: CheckContext, config: Optional[GapCheckConfig] = None):
        self.context = context
        self.config = config or GapCheckConfig()

    def collect_errors(
        self,
        feature_ids: Optional[Mapping[str, Iterable[Hashable]]] = None,
        progress: Optional[ProgressCounter] = None,
    ) -> Tuple[List[GapRecord], List[str]]:
        """Detect gaps among ``feature_ids`` (all features by default).

        Neighbors are searched in the same layers as the checked features.
        """
        if feature_ids is None:
            feature_ids = self.context.all_layer_feature_ids()
        layer_ids = list(feature_ids)
        geometry_types = self.config.compatible_geometry_types

        features = [
            (layer_feature.layer_id, layer_feature.geometry)
            for layer_feature in iter_layer_features(self.context, feature_ids, geometry_types)
        ]

        def neighbor_lookup(bounds: Bounds):
            return iter_layer_features_in_bounds(self.context, layer_ids, bounds, geometry_types)

        return detect_gaps(
            features,
            neighbor_lookup,
            threshold_area=self.config.threshold_map_units,
            tolerance=self.context.tolerance,
            reduced_tolerance=self.context.reduced_tolerance,
            progress=progress,
        )

    def fix_error(
        self,
        gap: GapRecord,
        method: Union[FixMethod, str, int, None] = None,
        changes: Optional[Changes] = None,
    ) -> Optional[MergeInstruction]:
        """Fix one gap with ``method`` (the configured method by default)."""
        if method is None:
            method = self.config.fix_method
        return resolve_gap(gap, method, self.context, changes)

    def fix_errors(
        self,
        gaps: Iterable[GapRecord],
        method: Union[FixMethod, str, int, None] = None,
    ) -> Changes:
        """Fix gaps one after another and return every change made.

        Gaps that are already fixed or obsolete are skipped. Each merge
        re-reads its neighbors, so a gap whose neighbors were changed by an
        earlier merge is resolved against the updated geometries.
        """
        changes: Changes = {}
        for gap in gaps:
            if gap.is_fixed or gap.status == ErrorStatus.OBSOLETE:
                continue
            self.fix_error(gap, method, changes)
        return changes

    def recheck(
        self,
        gaps: Iterable[GapRecord],
        changes: Changes,
        progress: Optional[ProgressCounter] = None,
    ) -> Tuple[List[GapRecord], List[str]]:
        """Re-detect gaps around changed features and reconcile ``gaps``.

        Open gaps with a changed neighbor are matched against the gaps
        re-detected in the area of the changed features: an exact match
        (``is_equal``) is preferred over one with the same neighbors
        (``close_match``). Matched gaps take over the re-detected geometry,
        unmatched ones become obsolete. Re-detected gaps equal to an open gap
        that was not affected are dropped.

        Returns:
            Tuple of (re-detected gaps that matched no existing gap, messages)
        """
        affected: List[GapRecord] = []
        unaffected: List[GapRecord] = []
        for gap in gaps:
            if gap.is_fixed or gap.status == ErrorStatus.OBSOLETE:
                continue
            (affected if gap.is_affected_by(changes) else unaffected).append(gap)
        area = self._changed_area(changes, affected)
        if area is None:
            return [], []

        # Include every feature touching the changed area
        for layer_feature in self._features_in(area):
            area = combine_bounds(area, layer_feature.geometry.bounds)
        feature_ids: Dict[str, List[Hashable]] = {}
        for layer_feature in self._features_in(area):
            feature_ids.setdefault(layer_feature.layer_id, []).append(layer_feature.feature_id)
        fresh, messages = self.collect_errors(feature_ids, progress)

        for gap in affected:
            match = _find_match(gap, fresh, self.context.tolerance)
            if match is None:
                gap.set_obsolete()
                continue
            gap.update(fresh.pop(match))
        fresh = [
            candidate for candidate in fresh
            if not any(gap.is_equal(candidate, self.context.tolerance) for gap in unaffected)
        ]

        logger.debug(
            "Recheck: %d affected gaps, %d new gaps",
            len(affected), len(fresh),
        )
        return fresh, messages

    def _features_in(self, bounds: Bounds):
        return iter_layer_features_in_bounds(
            self.context,
            list(self.context.feature_pools),
            bounds,
            self.config.compatible_geometry_types,
        )

    def _changed_area(self, changes: Changes, affected: List[GapRecord]) -> Optional[Bounds]:
        area: Optional[Bounds] = None
        for layer_id, feature_changes in changes.items():
            pool = self.context.feature_pools.get(layer_id)
            if pool is None:
                continue
            transform = self.context.layer_transform(layer_id)
            for feature_id in feature_changes:
                feature = pool.get_feature(feature_id)
                if feature is None or feature.geometry.is_empty:
                    continue
                bounds = transform.forward(feature.geometry).bounds
                area = bounds if area is None else combine_bounds(area, bounds)
        for gap in affected:
            area = gap.bbox if area is None else combine_bounds(area, gap.bbox)
        return area

    @staticmethod
    def resolution_methods() -> List[str]:
        """Descriptions of the fix methods, indexed by ``FixMethod`` value."""
        return [_RESOLUTION_METHODS[method] for method in sorted(FixMethod, key=lambda m: m.value)]


def _find_match(gap: GapRecord, candidates: List[GapRecord], tolerance: float) -> Optional[int]:
    for index, candidate in enumerate(candidates):
        if gap.is_equal(candidate, tolerance):
            return index
    for index, candidate in enumerate(candidates):
        if gap.close_match(candidate):
            return index
    return None


__all__ = ['GapCheck']
