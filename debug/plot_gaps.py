"""Simple gap visualization helpers for debugging."""

import matplotlib.pyplot as plt
from shapely.geometry import Polygon, MultiPolygon
from shapely.geometry.base import BaseGeometry

from polygap import GapCheck


def plot_gaps(features, gaps, title: str = "Gap Check"):
    """Plot features with detected gaps highlighted.

    Args:
        features: Feature geometries (analysis CRS)
        gaps: GapRecord list from detection
        title: Plot title
    """
    fig, ax = plt.subplots(figsize=(8, 8))

    for geom in features:
        _plot_geometry(ax, geom, color='lightgray', alpha=0.8)
    for gap in gaps:
        _plot_geometry(ax, gap.geometry, color='red', alpha=0.6)
        minx, miny, maxx, maxy = gap.bbox
        ax.plot([minx, maxx, maxx, minx, minx], [miny, miny, maxy, maxy, miny],
                color='red', linestyle='--', linewidth=0.8)
        ax.annotate(f"{gap.area:.3g}", (gap.location.x, gap.location.y), ha='center')

    ax.set_title(f"{title} ({len(gaps)} gaps)")
    ax.set_aspect('equal')
    ax.grid(True, alpha=0.3)
    plt.tight_layout()
    plt.show()


def plot_check_fix(check: GapCheck, title: str = "Merge Longest Edge"):
    """Run a check, fix every gap and plot before and after."""
    layer_ids = list(check.context.feature_pools)

    before = _analysis_geometries(check, layer_ids)
    gaps, _ = check.collect_errors()
    check.fix_errors(gaps)
    after = _analysis_geometries(check, layer_ids)

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 5))

    for geom in before:
        _plot_geometry(ax1, geom, color='red', alpha=0.5)
    for gap in gaps:
        _plot_geometry(ax1, gap.geometry, color='black', alpha=0.8)
    ax1.set_title(f"Original ({len(gaps)} gaps)")
    ax1.set_aspect('equal')
    ax1.grid(True, alpha=0.3)

    for geom in after:
        _plot_geometry(ax2, geom, color='blue', alpha=0.5)
    ax2.set_title("Fixed")
    ax2.set_aspect('equal')
    ax2.grid(True, alpha=0.3)

    fig.suptitle(title)
    plt.tight_layout()
    plt.show()


def _analysis_geometries(check: GapCheck, layer_ids):
    geometries = []
    for layer_id in layer_ids:
        pool = check.context.pool(layer_id)
        transform = check.context.layer_transform(layer_id)
        for fid in pool.all_feature_ids():
            geometries.append(transform.forward(pool.get_feature(fid).geometry))
    return geometries


def _plot_geometry(ax, geom: BaseGeometry, color='blue', alpha=0.5):
    """Plot a polygonal geometry on the given axes."""
    if isinstance(geom, Polygon):
        _plot_polygon(ax, geom, color=color, alpha=alpha)
    elif isinstance(geom, MultiPolygon):
        for poly in geom.geoms:
            _plot_polygon(ax, poly, color=color, alpha=alpha)


def _plot_polygon(ax, poly: Polygon, color='blue', alpha=0.5):
    """Plot a single polygon with holes."""
    if poly.is_empty:
        return
    x, y = poly.exterior.xy
    ax.fill(x, y, color=color, alpha=alpha, edgecolor='black', linewidth=1.5)

    for interior in poly.interiors:
        x, y = interior.xy
        ax.fill(x, y, color='white', edgecolor='black', linewidth=1)


if __name__ == "__main__":
    from shapely.geometry import box

    from polygap import CheckContext, MemoryFeaturePool

    squares = [
        box(x, y, x + 1, y + 1)
        for y in range(4)
        for x in range(5)
        if (x, y) not in {(1, 1), (3, 2)}
    ]
    pools = {"parcels": MemoryFeaturePool.from_geometries("parcels", squares)}
    plot_check_fix(GapCheck(CheckContext.from_precision(pools)))
