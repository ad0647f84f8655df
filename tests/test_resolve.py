"""Tests for gap resolution."""

from unittest.mock import patch

import pytest
from shapely.geometry import Polygon, MultiPolygon, box

from polygap import (
    CheckContext,
    Feature,
    MemoryFeaturePool,
    GapRecord,
    FixMethod,
    ErrorStatus,
    merge_with_neighbor,
    apply_merge,
    resolve_gap,
)
from polygap.core.errors import (
    ConfigurationError,
    NoMergeFoundError,
    DegenerateMergeError,
    EngineError,
)
from polygap.core.types import ChangeType, ChangeWhat
from polygap.engine import GeometryEngine
from polygap.records import Change
from polygap.transform import OffsetTransform


def _gap(geometry, neighbors) -> GapRecord:
    return GapRecord(
        geometry=geometry,
        area=geometry.area,
        bbox=geometry.bounds,
        neighbors=neighbors,
    )


def _grid_context(removed=()):
    """3x3 grid without its centre; ids follow grid order."""
    squares = [
        box(x, y, x + 1, y + 1)
        for y in range(3)
        for x in range(3)
        if (x, y) != (1, 1)
    ]
    pool = MemoryFeaturePool(
        "parcels",
        (Feature(fid, geom) for fid, geom in enumerate(squares) if fid not in removed),
    )
    pools = {"parcels": pool}
    return CheckContext(pools, tolerance=1e-8, reduced_tolerance=1e-4)


def _grid_gap() -> GapRecord:
    return _gap(box(1, 1, 2, 2), {"parcels": {1, 3, 4, 6}})


class _FailingTransform(OffsetTransform):

    def inverse(self, geometry):
        raise EngineError("transform", "point outside projection domain")


def _donut() -> Polygon:
    return Polygon(
        [(0, 0), (6, 0), (6, 6), (0, 6)],
        [[(2, 2), (4, 2), (4, 4), (2, 4)]],
    )


class TestMergeWithNeighbor:
    """Tests for merge_with_neighbor()."""

    def test_single_neighbor_fills_hole(self):
        donut = _donut()
        context = CheckContext(
            {"parcels": MemoryFeaturePool.from_geometries("parcels", [donut])},
            tolerance=1e-8,
            reduced_tolerance=1e-4,
        )
        gap = _gap(box(2, 2, 4, 4), {"parcels": {0}})

        instruction = merge_with_neighbor(gap, context)

        assert instruction.layer_id == "parcels"
        assert instruction.feature_id == 0
        assert instruction.part_index == 0
        assert instruction.geometry.area == pytest.approx(donut.area + gap.area)
        assert isinstance(instruction.geometry, Polygon)
        assert len(instruction.geometry.interiors) == 0

    def test_equal_edges_pick_lowest_id(self):
        instruction = merge_with_neighbor(_grid_gap(), _grid_context())

        assert instruction.feature_id == 1
        assert instruction.geometry.equals(box(1, 0, 2, 2))

    def test_longest_edge_wins_across_layers(self):
        pools = {
            "a": MemoryFeaturePool.from_geometries("a", [box(0, 0, 1, 1)]),
            "b": MemoryFeaturePool.from_geometries("b", [box(1, 1, 3, 2)]),
        }
        context = CheckContext(pools, tolerance=1e-8, reduced_tolerance=1e-4)
        gap = _gap(box(1, 0, 3, 1), {"a": {0}, "b": {0}})

        instruction = merge_with_neighbor(gap, context)

        assert instruction.layer_id == "b"
        assert instruction.geometry.equals(box(1, 0, 3, 2))

    def test_multipart_neighbor_targets_part(self):
        feature = MultiPolygon([box(10, 10, 11, 11), box(0, 0, 1, 1)])
        context = CheckContext(
            {"a": MemoryFeaturePool.from_geometries("a", [feature])},
            tolerance=1e-8,
            reduced_tolerance=1e-4,
        )
        gap = _gap(box(1, 0, 2, 1), {"a": {0}})

        instruction = merge_with_neighbor(gap, context)

        assert instruction.part_index == 1
        assert instruction.geometry.equals(box(0, 0, 2, 1))

    def test_only_first_gap_part_is_used(self):
        gap_geometry = MultiPolygon([box(1, 1, 2, 2), box(50, 50, 51, 51)])
        gap = _gap(gap_geometry, {"parcels": {1, 3, 4, 6}})

        instruction = merge_with_neighbor(gap, _grid_context())

        assert instruction.geometry.bounds == pytest.approx((1, 0, 2, 2))

    def test_no_shared_edge_raises(self):
        """A neighbor touching only at a corner cannot take the gap."""
        context = CheckContext(
            {"a": MemoryFeaturePool.from_geometries("a", [box(0, 0, 1, 1)])},
            tolerance=1e-8,
            reduced_tolerance=1e-4,
        )
        gap = _gap(box(1, 1, 2, 2), {"a": {0}})

        with pytest.raises(NoMergeFoundError):
            merge_with_neighbor(gap, context)

    def test_deleted_neighbor_is_skipped(self):
        context = _grid_context(removed={1})

        instruction = merge_with_neighbor(_grid_gap(), context)

        assert instruction.feature_id == 3

    def test_all_neighbors_deleted_raises(self):
        context = _grid_context(removed={1, 3, 4, 6})

        with pytest.raises(NoMergeFoundError):
            merge_with_neighbor(_grid_gap(), context)

    def test_reads_current_geometry(self):
        """A neighbor changed after detection is measured as it is now."""
        context = _grid_context()
        pool = context.pool("parcels")
        # Shrink feature 1 away from the gap: it no longer shares an edge
        pool.update_feature(pool.get_feature(1).with_geometry(box(1, 0, 2, 0.5)))

        instruction = merge_with_neighbor(_grid_gap(), context)

        assert instruction.feature_id == 3

    def test_idempotent(self):
        context = _grid_context()
        gap = _grid_gap()

        first = merge_with_neighbor(gap, context)
        second = merge_with_neighbor(gap, context)

        assert (first.layer_id, first.feature_id, first.part_index) == (
            second.layer_id, second.feature_id, second.part_index
        )
        assert first.geometry.equals(second.geometry)

    def test_does_not_write(self):
        context = _grid_context()
        before = context.pool("parcels").get_feature(1).geometry

        merge_with_neighbor(_grid_gap(), context)

        assert context.pool("parcels").get_feature(1).geometry.equals(before)

    def test_multipart_union_refused(self):
        with patch.object(
            GeometryEngine, "union",
            return_value=MultiPolygon([box(0, 0, 1, 1), box(3, 3, 4, 4)]),
        ):
            with pytest.raises(DegenerateMergeError, match="MultiPolygon") as info:
                merge_with_neighbor(_grid_gap(), _grid_context())

        assert info.value.layer_id == "parcels"
        assert info.value.feature_id == 1

    def test_empty_union_refused(self):
        with patch.object(GeometryEngine, "union", return_value=Polygon()):
            with pytest.raises(DegenerateMergeError):
                merge_with_neighbor(_grid_gap(), _grid_context())

    def test_union_failure_reports_engine_message(self):
        with patch.object(GeometryEngine, "union", side_effect=EngineError("union", "TopologyException")):
            with pytest.raises(DegenerateMergeError, match="TopologyException"):
                merge_with_neighbor(_grid_gap(), _grid_context())

    def test_gap_mapped_into_layer_crs(self):
        """Layer stored 100 units left of the analysis CRS."""
        donut_layer = _donut()
        pools = {"shifted": MemoryFeaturePool.from_geometries("shifted", [donut_layer])}
        context = CheckContext(
            pools,
            tolerance=1e-8,
            reduced_tolerance=1e-4,
            layer_transforms={"shifted": OffsetTransform(dx=100.0)},
        )
        gap = _gap(box(102, 2, 104, 4), {"shifted": {0}})

        instruction = merge_with_neighbor(gap, context)

        assert instruction.geometry.bounds == pytest.approx((0, 0, 6, 6))
        assert instruction.geometry.area == pytest.approx(36.0)


class TestApplyMerge:
    """Tests for apply_merge()."""

    def test_single_part_feature_replaced(self):
        context = _grid_context()
        changes = {}
        instruction = merge_with_neighbor(_grid_gap(), context)

        updated = apply_merge(instruction, context, changes)

        assert updated.geometry.equals(box(1, 0, 2, 2))
        assert context.pool("parcels").get_feature(1).geometry.equals(box(1, 0, 2, 2))
        assert changes == {"parcels": {1: [Change(ChangeWhat.FEATURE, ChangeType.CHANGED)]}}

    def test_multipart_feature_keeps_other_parts(self):
        feature = MultiPolygon([box(10, 10, 11, 11), box(0, 0, 1, 1)])
        context = CheckContext(
            {"a": MemoryFeaturePool.from_geometries("a", [feature])},
            tolerance=1e-8,
            reduced_tolerance=1e-4,
        )
        changes = {}
        instruction = merge_with_neighbor(_gap(box(1, 0, 2, 1), {"a": {0}}), context)

        updated = apply_merge(instruction, context, changes)

        assert isinstance(updated.geometry, MultiPolygon)
        assert updated.geometry.geoms[0].equals(box(10, 10, 11, 11))
        assert updated.geometry.geoms[1].equals(box(0, 0, 2, 1))
        assert changes == {"a": {0: [Change(ChangeWhat.PART, ChangeType.CHANGED, 1)]}}


class TestResolveGap:
    """Tests for resolve_gap()."""

    def test_no_change_marks_fixed(self):
        context = _grid_context()
        gap = _grid_gap()
        before = {fid: context.pool("parcels").get_feature(fid).geometry for fid in (1, 3, 4, 6)}

        result = resolve_gap(gap, FixMethod.NO_CHANGE, context)

        assert result is None
        assert gap.status == ErrorStatus.FIXED
        assert gap.fix_method == FixMethod.NO_CHANGE
        for fid, geometry in before.items():
            assert context.pool("parcels").get_feature(fid).geometry.equals(geometry)

    def test_merge_marks_fixed_and_writes(self):
        context = _grid_context()
        gap = _grid_gap()
        changes = {}

        instruction = resolve_gap(gap, FixMethod.MERGE_LONGEST_EDGE, context, changes)

        assert instruction is not None
        assert gap.status == ErrorStatus.FIXED
        assert context.pool("parcels").get_feature(1).geometry.area == pytest.approx(2.0)
        assert 1 in changes["parcels"]

    def test_merge_failure_leaves_pool_untouched(self):
        context = CheckContext(
            {"a": MemoryFeaturePool.from_geometries("a", [box(0, 0, 1, 1)])},
            tolerance=1e-8,
            reduced_tolerance=1e-4,
        )
        gap = _gap(box(1, 1, 2, 2), {"a": {0}})
        changes = {}

        result = resolve_gap(gap, FixMethod.MERGE_LONGEST_EDGE, context, changes)

        assert result is None
        assert gap.status == ErrorStatus.FIX_FAILED
        assert gap.resolution_message.startswith("Failed to merge with neighbor:")
        assert changes == {}
        assert context.pool("a").get_feature(0).geometry.equals(box(0, 0, 1, 1))

    def test_degenerate_merge_fails_cleanly(self):
        context = _grid_context()
        gap = _grid_gap()
        with patch.object(GeometryEngine, "union", return_value=Polygon()):
            resolve_gap(gap, FixMethod.MERGE_LONGEST_EDGE, context)

        assert gap.status == ErrorStatus.FIX_FAILED
        assert context.pool("parcels").get_feature(1).geometry.equals(box(1, 0, 2, 1))

    @pytest.mark.parametrize("method", ["explode", 7, None])
    def test_unknown_method(self, method):
        gap = _grid_gap()

        result = resolve_gap(gap, method, _grid_context())

        assert result is None
        assert gap.status == ErrorStatus.FIX_FAILED
        assert gap.resolution_message == "Unknown method"

    @pytest.mark.parametrize("method", ["merge_longest_edge", "MERGE_LONGEST_EDGE", 0])
    def test_method_aliases(self, method):
        gap = _grid_gap()

        resolve_gap(gap, method, _grid_context())

        assert gap.status == ErrorStatus.FIXED
        assert gap.fix_method == FixMethod.MERGE_LONGEST_EDGE

    def test_neighbor_layer_without_pool_is_skipped(self):
        context = CheckContext(
            {"a": MemoryFeaturePool.from_geometries("a", [box(0, 0, 1, 1)])},
            tolerance=1e-8,
            reduced_tolerance=1e-4,
        )
        gap = _gap(box(1, 0, 2, 1), {"a": {0}, "gone": {3}})
        changes = {}

        instruction = resolve_gap(gap, FixMethod.MERGE_LONGEST_EDGE, context, changes)

        assert instruction.layer_id == "a"
        assert gap.status == ErrorStatus.FIXED
        assert list(changes) == ["a"]

    def test_only_unknown_layers_fails(self):
        context = _grid_context()
        gap = _gap(box(1, 1, 2, 2), {"gone": {1, 3}})

        result = resolve_gap(gap, FixMethod.MERGE_LONGEST_EDGE, context)

        assert result is None
        assert gap.status == ErrorStatus.FIX_FAILED

    def test_transform_failure_fails_cleanly(self):
        context = _grid_context()
        context.layer_transforms["parcels"] = _FailingTransform()
        gap = _grid_gap()

        result = resolve_gap(gap, FixMethod.MERGE_LONGEST_EDGE, context)

        assert result is None
        assert gap.status == ErrorStatus.FIX_FAILED
        assert "Cannot map gap into layer 'parcels'" in gap.resolution_message
        assert context.pool("parcels").get_feature(1).geometry.equals(box(1, 0, 2, 1))

    def test_configuration_error_fails_cleanly(self):
        context = _grid_context()
        gap = _grid_gap()
        with patch("polygap.resolve.merge_with_neighbor", side_effect=ConfigurationError("no pool")):
            result = resolve_gap(gap, FixMethod.MERGE_LONGEST_EDGE, context)

        assert result is None
        assert gap.status == ErrorStatus.FIX_FAILED
        assert gap.resolution_message == "Failed to merge with neighbor: no pool"
