"""
Geometry-region intersection engine for SkyBrief.

This module decides whether a hazard geometry intersects a target
region (box segment or corridor polygon), computes geometry bounds
for fast rejection, and clamps geometry into a box for display.
"""

from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from skybrief.common.geo import (
    Bounds, Point, bounds_disjoint, calculate_bounding_box, clamp,
    point_in_polygon, ring_edges, segments_intersect
)
from skybrief.core.models import (
    BoxSegment, Corridor, Geometry, GeometryCollection, Hazard,
    LineStringGeometry, MultiLineStringGeometry, MultiPointGeometry,
    MultiPolygonGeometry, PointGeometry, PolygonGeometry, Region
)


def iter_positions(geometry: Geometry) -> Iterator[Sequence[float]]:
    """형상의 모든 좌표를 평탄화하여 순회합니다 (컬렉션 재귀 포함)."""
    if isinstance(geometry, PointGeometry):
        yield geometry.coordinates
    elif isinstance(geometry, (MultiPointGeometry, LineStringGeometry)):
        yield from geometry.coordinates
    elif isinstance(geometry, (MultiLineStringGeometry, PolygonGeometry)):
        for part in geometry.coordinates:
            yield from part
    elif isinstance(geometry, MultiPolygonGeometry):
        for polygon in geometry.coordinates:
            for ring in polygon:
                yield from ring
    elif isinstance(geometry, GeometryCollection):
        for child in geometry.geometries:
            yield from iter_positions(child)
    else:
        raise TypeError(f"unsupported geometry type: {type(geometry).__name__}")

def compute_bounds(geometry: Optional[Geometry]) -> Optional[Bounds]:
    """
    형상의 경계 상자를 계산합니다.

    Args:
        geometry: 형상 모델

    Returns:
        (min_lon, min_lat, max_lon, max_lat), 좌표가 없으면 None
    """
    if geometry is None:
        return None
    return calculate_bounding_box(iter_positions(geometry))

def region_bounds(region: Region) -> Bounds:
    if isinstance(region, BoxSegment):
        return (region.min_lon, region.min_lat, region.max_lon, region.max_lat)
    if isinstance(region, Corridor):
        bounds = calculate_bounding_box(region.polygon.coordinates[0])
        if bounds is None:
            raise ValueError("corridor polygon has no outer ring")
        return bounds
    raise TypeError(f"unsupported region type: {type(region).__name__}")


# ---- 영역 기본 연산 ----

def _region_contains(region: Region, point: Point) -> bool:
    lon, lat = point
    if isinstance(region, BoxSegment):
        return region.min_lon <= lon <= region.max_lon and region.min_lat <= lat <= region.max_lat
    return point_in_polygon(lon, lat, region.polygon.coordinates)

def _region_edges(region: Region) -> List[Tuple[Point, Point]]:
    if isinstance(region, BoxSegment):
        return ring_edges(_region_corners(region))
    edges: List[Tuple[Point, Point]] = []
    for ring in region.polygon.coordinates:
        edges.extend(ring_edges(ring))
    return edges

def _region_corners(region: Region) -> List[Point]:
    if isinstance(region, BoxSegment):
        return [
            (region.min_lon, region.min_lat),
            (region.max_lon, region.min_lat),
            (region.max_lon, region.max_lat),
            (region.min_lon, region.max_lat),
        ]
    return [(p[0], p[1]) for p in region.polygon.coordinates[0]]

def _as_points(coords: Iterable[Sequence[float]]) -> List[Point]:
    return [(float(p[0]), float(p[1])) for p in coords]


# ---- 형상별 판정 ----

def _line_intersects(points: List[Point], region: Region, closed: bool = False) -> bool:
    if any(_region_contains(region, p) for p in points):
        return True
    if len(points) < 2:
        return False
    segments = ring_edges(points) if closed else list(zip(points, points[1:]))
    edges = _region_edges(region)
    for a, b in segments:
        for c, d in edges:
            if segments_intersect(a, b, c, d):
                return True
    return False

def _polygon_intersects(rings: List[List[Sequence[float]]], region: Region) -> bool:
    if not rings:
        return False
    # 링의 꼭짓점/변이 영역과 닿는 경우
    for ring in rings:
        if _line_intersects(_as_points(ring), region, closed=True):
            return True
    # 영역이 폴리곤 안에 완전히 들어간 경우
    return any(point_in_polygon(lon, lat, rings) for lon, lat in _region_corners(region))

def _exact_intersects(geometry: Geometry, region: Region) -> bool:
    if isinstance(geometry, PointGeometry):
        return _region_contains(region, _as_points([geometry.coordinates])[0])
    if isinstance(geometry, MultiPointGeometry):
        return any(_region_contains(region, p) for p in _as_points(geometry.coordinates))
    if isinstance(geometry, LineStringGeometry):
        return _line_intersects(_as_points(geometry.coordinates), region)
    if isinstance(geometry, MultiLineStringGeometry):
        return any(_line_intersects(_as_points(line), region) for line in geometry.coordinates)
    if isinstance(geometry, PolygonGeometry):
        return _polygon_intersects(geometry.coordinates, region)
    if isinstance(geometry, MultiPolygonGeometry):
        return any(_polygon_intersects(polygon, region) for polygon in geometry.coordinates)
    if isinstance(geometry, GeometryCollection):
        return any(intersects(child, region) for child in geometry.geometries)
    raise TypeError(f"unsupported geometry type: {type(geometry).__name__}")

def intersects(geometry: Optional[Geometry], region: Region) -> bool:
    """
    형상이 영역과 교차하는지 정확히 판정합니다.

    경계 상자가 떨어져 있으면 정밀 판정 없이 False 를 반환합니다.

    Args:
        geometry: 위험기상 형상
        region: 박스 조각 또는 코리더

    Returns:
        교차하면 True (좌표가 없는 형상은 False)
    """
    bounds = compute_bounds(geometry)
    if bounds is None:
        return False
    if bounds_disjoint(bounds, region_bounds(region)):
        return False
    return _exact_intersects(geometry, region)

def intersects_any(geometry: Optional[Geometry], regions: Sequence[Region]) -> bool:
    return any(intersects(geometry, region) for region in regions)

def filter_by_regions(hazards: Sequence[Hazard], regions: Sequence[Region]) -> List[Hazard]:
    """영역 중 하나라도 교차하는 위험기상만 남깁니다."""
    return [h for h in hazards if intersects_any(h.geometry, regions)]


# ---- 표시용 클램프 ----

def _clamp_position(position: Sequence[float], box: BoxSegment) -> List[float]:
    lon = clamp(position[0], box.min_lon, box.max_lon)
    lat = clamp(position[1], box.min_lat, box.max_lat)
    return [lon, lat, *position[2:]]

def _clamp_nested(coords, depth: int, box: BoxSegment):
    if depth == 0:
        return _clamp_position(coords, box)
    return [_clamp_nested(c, depth - 1, box) for c in coords]

def clamp_to_box(geometry: Geometry, box: BoxSegment) -> Geometry:
    """
    모든 좌표를 박스 범위로 클램프한 형상 사본을 반환합니다.

    표시 전용이며 필터링 판정에는 사용하지 않습니다.

    Args:
        geometry: 원본 형상
        box: 박스 조각

    Returns:
        클램프된 형상
    """
    if isinstance(geometry, PointGeometry):
        depth = 0
    elif isinstance(geometry, (MultiPointGeometry, LineStringGeometry)):
        depth = 1
    elif isinstance(geometry, (MultiLineStringGeometry, PolygonGeometry)):
        depth = 2
    elif isinstance(geometry, MultiPolygonGeometry):
        depth = 3
    elif isinstance(geometry, GeometryCollection):
        return geometry.model_copy(update={
            "geometries": [clamp_to_box(child, box) for child in geometry.geometries]
        })
    else:
        raise TypeError(f"unsupported geometry type: {type(geometry).__name__}")
    return geometry.model_copy(update={"coordinates": _clamp_nested(geometry.coordinates, depth, box)})
