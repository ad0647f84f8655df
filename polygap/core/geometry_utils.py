"""Common geometry part and bounding box utilities.

Gap detection and resolution treat every geometry as a sequence of parts:
a multi-part geometry exposes its members, any other non-empty geometry is
its own single part.
"""

from typing import Iterator, List, Tuple
from shapely.geometry import MultiPolygon, GeometryCollection
from shapely.geometry.base import BaseGeometry, BaseMultipartGeometry

Bounds = Tuple[float, float, float, float]


def part_count(geometry: BaseGeometry) -> int:
    """Return the number of parts of ``geometry``.

    Examples:
        >>> part_count(Polygon([(0, 0), (1, 0), (1, 1)]))
        1
        >>> part_count(MultiPolygon([poly1, poly2]))
        2
    """
    if geometry is None or geometry.is_empty:
        return 0
    if isinstance(geometry, BaseMultipartGeometry):
        return len(geometry.geoms)
    return 1


def get_part(geometry: BaseGeometry, index: int) -> BaseGeometry:
    """Return part ``index`` of ``geometry``.

    Single-part geometries return themselves for any index, matching how a
    polygon is addressed as "part 0" of a feature.
    """
    if isinstance(geometry, BaseMultipartGeometry):
        return geometry.geoms[index]
    return geometry


def iter_parts(geometry: BaseGeometry) -> Iterator[BaseGeometry]:
    """Iterate over the parts of ``geometry`` in index order."""
    for index in range(part_count(geometry)):
        yield get_part(geometry, index)


def is_single_part(geometry: BaseGeometry) -> bool:
    """True if ``geometry`` is a single-part geometry type."""
    return not isinstance(geometry, BaseMultipartGeometry)


def replace_part(
    geometry: BaseGeometry,
    index: int,
    new_part: BaseGeometry
) -> BaseGeometry:
    """Return a copy of ``geometry`` with part ``index`` replaced.

    Single-part geometries are replaced whole.

    Args:
        geometry: Geometry to modify
        index: Index of the part to replace
        new_part: Replacement part (must be single-part)

    Returns:
        New geometry of the same collection type as ``geometry``

    Examples:
        >>> multi = MultiPolygon([square(0, 0), square(5, 5)])
        >>> result = replace_part(multi, 1, square(5, 5, size=2))
        >>> result.geoms[1].area
        4.0
    """
    if not isinstance(geometry, BaseMultipartGeometry):
        return new_part

    parts: List[BaseGeometry] = list(geometry.geoms)
    parts[index] = new_part
    if isinstance(geometry, MultiPolygon):
        return MultiPolygon(parts)
    if isinstance(geometry, GeometryCollection):
        return GeometryCollection(parts)
    return type(geometry)(parts)


def bounds_equal(a: Bounds, b: Bounds, tolerance: float = 0.0) -> bool:
    """Compare two bounding boxes coordinate by coordinate."""
    return all(abs(x - y) <= tolerance for x, y in zip(a, b))


def combine_bounds(a: Bounds, b: Bounds) -> Bounds:
    """Smallest bounding box containing both ``a`` and ``b``."""
    return (
        min(a[0], b[0]),
        min(a[1], b[1]),
        max(a[2], b[2]),
        max(a[3], b[3]),
    )


__all__ = [
    'Bounds',
    'part_count',
    'get_part',
    'iter_parts',
    'is_single_part',
    'replace_part',
    'bounds_equal',
    'combine_bounds',
]
