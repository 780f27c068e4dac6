"""
Geographic utilities for SkyBrief.

This module provides planar and great-circle primitives including
distance calculation, ray-casting point-in-polygon testing,
segment intersection and coordinate validation.
"""

import math
from typing import Iterable, List, Optional, Sequence, Tuple

# 거의 0인 외적은 공선으로 간주
EPSILON = 1e-12

KM_PER_NM = 1.852
KM_PER_DEG = 111.32

Point = Tuple[float, float]
Bounds = Tuple[float, float, float, float]  # (min_lon, min_lat, max_lon, max_lat)

def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (킬로미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (킬로미터)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    # 지구 반지름 (킬로미터)
    return c * 6371.0

def distance_nm(a: Point, b: Point) -> float:
    """(경도, 위도) 두 점 사이 거리 (해리)"""
    return haversine_distance(a[1], a[0], b[1], b[0]) / KM_PER_NM

# Ray casting (lon,lat) vs ring [[lon,lat], ...]
def point_in_ring(lon: float, lat: float, ring: Sequence[Sequence[float]]) -> bool:
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        intersect = ((yi > lat) != (yj > lat)) and \
                    (lon < (xj - xi) * (lat - yi) / (yj - yi + EPSILON) + xi)
        if intersect:
            inside = not inside
        j = i
    return inside

def point_in_polygon(lon: float, lat: float, rings: Sequence[Sequence[Sequence[float]]]) -> bool:
    """
    점이 폴리곤 내부에 있는지 확인합니다 (홀 고려).

    외곽 링 내부이면서 모든 홀 링의 외부일 때만 내부로 판단합니다.

    Args:
        lon: 경도
        lat: 위도
        rings: [외곽 링, 홀 링, ...]

    Returns:
        내부이면 True
    """
    if not rings or len(rings[0]) < 3:
        return False
    if not point_in_ring(lon, lat, rings[0]):
        return False
    for hole in rings[1:]:
        if len(hole) >= 3 and point_in_ring(lon, lat, hole):
            return False
    return True

def orientation(p: Point, q: Point, r: Point) -> int:
    """세 점의 방향 (0: 공선, 1: 시계, 2: 반시계)"""
    value = (q[1] - p[1]) * (r[0] - q[0]) - (q[0] - p[0]) * (r[1] - q[1])
    if abs(value) < EPSILON:
        return 0
    return 1 if value > 0 else 2

def on_segment(p: Point, q: Point, r: Point) -> bool:
    """공선인 p, q, r 에서 q가 선분 pr 위에 있는지"""
    return (min(p[0], r[0]) <= q[0] <= max(p[0], r[0]) and
            min(p[1], r[1]) <= q[1] <= max(p[1], r[1]))

def segments_intersect(p1: Point, q1: Point, p2: Point, q2: Point) -> bool:
    """
    두 선분이 교차(접촉 포함)하는지 확인합니다.

    Args:
        p1, q1: 첫 번째 선분의 끝점
        p2, q2: 두 번째 선분의 끝점

    Returns:
        교차하면 True
    """
    o1 = orientation(p1, q1, p2)
    o2 = orientation(p1, q1, q2)
    o3 = orientation(p2, q2, p1)
    o4 = orientation(p2, q2, q1)

    if o1 != o2 and o3 != o4:
        return True

    # 공선 겹침
    if o1 == 0 and on_segment(p1, p2, q1):
        return True
    if o2 == 0 and on_segment(p1, q2, q1):
        return True
    if o3 == 0 and on_segment(p2, p1, q2):
        return True
    if o4 == 0 and on_segment(p2, q1, q2):
        return True
    return False

def ring_edges(ring: Sequence[Sequence[float]]) -> List[Tuple[Point, Point]]:
    """링의 모든 변 (닫는 변 포함)"""
    points = [(float(p[0]), float(p[1])) for p in ring]
    if len(points) < 2:
        return []
    edges = list(zip(points, points[1:]))
    if points[0] != points[-1]:
        edges.append((points[-1], points[0]))
    return edges

def calculate_bounding_box(points: Iterable[Sequence[float]]) -> Optional[Bounds]:
    """
    점 집합의 경계 상자를 계산합니다.

    Args:
        points: [(경도, 위도), ...]

    Returns:
        (min_lon, min_lat, max_lon, max_lat) 또는 점이 없으면 None
    """
    lons: List[float] = []
    lats: List[float] = []
    for p in points:
        lons.append(p[0])
        lats.append(p[1])
    if not lons:
        return None
    return (min(lons), min(lats), max(lons), max(lats))

def bounds_disjoint(a: Bounds, b: Bounds) -> bool:
    """두 경계 상자가 서로 떨어져 있는지"""
    return a[2] < b[0] or b[2] < a[0] or a[3] < b[1] or b[3] < a[1]

def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    return (math.isfinite(lat) and math.isfinite(lon) and
            -90 <= lat <= 90 and -180 <= lon <= 180)

def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
