"""
Region construction for SkyBrief.

This module turns route waypoints into search and display regions:
a dateline-aware bounding box, its non-wrapping box segments for
upstream queries, and a buffered route corridor polygon.
"""

import math
from typing import List, Sequence, Tuple
from shapely.geometry import LineString, MultiLineString
from shapely.geometry.base import BaseGeometry

from skybrief.common.errors import CorridorConstructionError, InvalidInputError
from skybrief.common.geo import KM_PER_DEG, KM_PER_NM, clamp, distance_nm, validate_coordinates
from skybrief.core.models import (
    BoundingBox, BoxSegment, Corridor, LineStringGeometry, MultiLineStringGeometry,
    MultiPolygonGeometry, PolygonGeometry, Waypoint
)
from skybrief.observability.logging_setup import get_logger

log = get_logger("skybrief.regions")

def _check_waypoints(waypoints: Sequence[Waypoint]) -> None:
    if not waypoints:
        raise InvalidInputError("Invalid coordinates provided for bounding box calculation")
    for wp in waypoints:
        if not validate_coordinates(wp.lat, wp.lon):
            raise InvalidInputError(f"Invalid coordinate for {wp.ident or 'waypoint'}: lat={wp.lat} lon={wp.lon}")

def _wrap_lon(lon: float) -> float:
    if lon > 180:
        return lon - 360
    if lon < -180:
        return lon + 360
    return lon

def compute_bounding_box(waypoints: Sequence[Waypoint], buffer_deg: float = 1.5) -> BoundingBox:
    """
    웨이포인트들을 감싸는 버퍼 포함 경계 상자를 계산합니다.

    경도 폭이 180도를 넘으면 날짜변경선을 넘는 짧은 쪽으로 계산하여
    min_lon > max_lon 인 박스를 반환합니다.

    Args:
        waypoints: 경로 지점 목록
        buffer_deg: 사방으로 확장할 버퍼 (도)

    Returns:
        경계 상자

    Raises:
        InvalidInputError: 지점이 없거나 좌표 범위를 벗어난 경우
    """
    _check_waypoints(waypoints)
    if buffer_deg < 0 or not math.isfinite(buffer_deg):
        raise InvalidInputError(f"Invalid bounding box buffer: {buffer_deg}")

    lons = [wp.lon for wp in waypoints]
    lats = [wp.lat for wp in waypoints]
    min_lat = max(-90.0, min(lats) - buffer_deg)
    max_lat = min(90.0, max(lats) + buffer_deg)

    if max(lons) - min(lons) <= 180:
        return BoundingBox(
            min_lon=max(-180.0, min(lons) - buffer_deg),
            min_lat=min_lat,
            max_lon=min(180.0, max(lons) + buffer_deg),
            max_lat=max_lat,
        )

    # 날짜변경선 횡단: 음수 경도를 0~360 으로 옮겨 계산
    shifted = [lon + 360 if lon < 0 else lon for lon in lons]
    west = min(shifted) - buffer_deg
    east = max(shifted) + buffer_deg
    if max(shifted) - min(shifted) > 180 or east - west >= 360:
        log.warning(f"경로가 경도 전체에 걸쳐 있어 전 경도 박스 사용 span:{max(lons) - min(lons):.1f}")
        return BoundingBox(min_lon=-180.0, min_lat=min_lat, max_lon=180.0, max_lat=max_lat)

    box = BoundingBox(min_lon=_wrap_lon(west), min_lat=min_lat, max_lon=_wrap_lon(east), max_lat=max_lat)
    log.debug(f"날짜변경선 횡단 박스 계산 min_lon:{box.min_lon} max_lon:{box.max_lon}")
    return box

def split_at_antimeridian(box: BoundingBox) -> List[BoxSegment]:
    """
    날짜변경선을 넘는 박스를 두 조각으로 나눕니다.

    Args:
        box: 경계 상자

    Returns:
        박스 조각 목록 (1개 또는 2개)
    """
    if box.min_lon > box.max_lon:
        return [
            BoxSegment(min_lon=box.min_lon, min_lat=box.min_lat, max_lon=180.0, max_lat=box.max_lat),
            BoxSegment(min_lon=-180.0, min_lat=box.min_lat, max_lon=box.max_lon, max_lat=box.max_lat),
        ]
    return [BoxSegment(min_lon=box.min_lon, min_lat=box.min_lat, max_lon=box.max_lon, max_lat=box.max_lat)]

def _fmt(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text

def format_bbox(segment: BoxSegment) -> str:
    """제공자 쿼리/캐시 키용 "minLon,minLat,maxLon,maxLat" 문자열"""
    return ",".join(_fmt(v) for v in (segment.min_lon, segment.min_lat, segment.max_lon, segment.max_lat))

def parse_bbox(text: str) -> BoundingBox:
    """
    "minLon,minLat,maxLon,maxLat" 문자열을 경계 상자로 변환합니다.

    Raises:
        InvalidInputError: 형식 또는 범위 오류
    """
    parts = [p.strip() for p in (text or "").split(",")]
    if len(parts) != 4:
        raise InvalidInputError(f"Invalid bbox string: {text!r}")
    try:
        min_lon, min_lat, max_lon, max_lat = (float(p) for p in parts)
    except ValueError:
        raise InvalidInputError(f"Invalid bbox string: {text!r}") from None
    if not (validate_coordinates(min_lat, min_lon) and validate_coordinates(max_lat, max_lon)) or min_lat > max_lat:
        raise InvalidInputError(f"Invalid bbox range: {text!r}")
    return BoundingBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

def box_area(segment: BoxSegment) -> float:
    """박스 면적 (제곱 도)"""
    return (segment.max_lon - segment.min_lon) * (segment.max_lat - segment.min_lat)


# ---- 코리더 ----

def resample_route(points: Sequence[Tuple[float, float]], sample_nm: float) -> List[Tuple[float, float]]:
    """
    폴리라인을 일정 간격(해리)으로 다시 샘플링합니다.

    마지막 지점은 간격의 배수가 아니어도 항상 포함됩니다.

    Args:
        points: [(경도, 위도), ...]
        sample_nm: 샘플 간격 (해리)

    Returns:
        샘플 지점 목록
    """
    lengths = [distance_nm(a, b) for a, b in zip(points, points[1:])]
    total = sum(lengths)
    samples: List[Tuple[float, float]] = []

    target = 0.0
    seg_index = 0
    seg_start = 0.0
    while target <= total + 1e-9:
        while seg_index < len(lengths) - 1 and seg_start + lengths[seg_index] < target:
            seg_start += lengths[seg_index]
            seg_index += 1
        seg_len = lengths[seg_index] if lengths else 0.0
        t = 0.0 if seg_len == 0 else clamp((target - seg_start) / seg_len, 0.0, 1.0)
        (x1, y1), (x2, y2) = points[seg_index], points[seg_index + 1]
        samples.append((x1 + (x2 - x1) * t, y1 + (y2 - y1) * t))
        target += sample_nm

    if samples[-1] != tuple(points[-1]):
        samples.append(tuple(points[-1]))
    return samples

def _projection(lats: Sequence[float]) -> Tuple[float, float]:
    # 평균 위도 기준 등장방형 근사 (km/deg)
    lat0 = sum(lats) / len(lats)
    kx = math.cos(math.radians(lat0)) * KM_PER_DEG
    if kx < 1e-6:
        raise CorridorConstructionError("route too close to a pole for planar buffering")
    return kx, KM_PER_DEG

def _unproject(geom: BaseGeometry, kx: float, ky: float):
    def _ring(coords) -> List[List[float]]:
        return [[clamp(x / kx, -180.0, 180.0), clamp(y / ky, -90.0, 90.0)] for x, y in coords]

    def _polygon(poly) -> List[List[List[float]]]:
        return [_ring(poly.exterior.coords)] + [_ring(r.coords) for r in poly.interiors]

    if geom.geom_type == "Polygon":
        return PolygonGeometry(coordinates=_polygon(geom))
    if geom.geom_type == "MultiPolygon":
        return MultiPolygonGeometry(coordinates=[_polygon(p) for p in geom.geoms])
    raise CorridorConstructionError(f"unexpected buffer result: {geom.geom_type}")

def buffer_lines(geometry, width_km: float):
    """
    선 형상을 주어진 폭(km)으로 버퍼링한 폴리곤을 반환합니다.

    Args:
        geometry: LineString 또는 MultiLineString 형상 모델
        width_km: 버퍼 거리 (킬로미터)

    Returns:
        PolygonGeometry 또는 MultiPolygonGeometry
    """
    if isinstance(geometry, LineStringGeometry):
        lines = [geometry.coordinates]
    elif isinstance(geometry, MultiLineStringGeometry):
        lines = list(geometry.coordinates)
    else:
        raise TypeError(f"cannot buffer geometry type {type(geometry).__name__}")
    lines = [line for line in lines if len(line) >= 2]
    if not lines:
        raise CorridorConstructionError("no line with two or more positions")

    kx, ky = _projection([p[1] for line in lines for p in line])
    projected = MultiLineString([[(p[0] * kx, p[1] * ky) for p in line] for line in lines])
    buffered = projected.buffer(width_km, quad_segs=8)
    if buffered.is_empty:
        raise CorridorConstructionError("buffer produced an empty polygon")
    return _unproject(buffered, kx, ky)

def build_corridor(waypoints: Sequence[Waypoint], width_nm: float = 100.0, sample_nm: float = 20.0) -> Corridor:
    """
    경로를 따라 버퍼링한 코리더 폴리곤을 만듭니다.

    Args:
        waypoints: 경로 지점 목록 (2개 이상)
        width_nm: 버퍼 폭 (해리)
        sample_nm: 경로 샘플 간격 (해리)

    Returns:
        코리더

    Raises:
        InvalidInputError: 좌표 범위 또는 파라미터 오류
        CorridorConstructionError: 지점 부족, 모든 지점 동일, 날짜변경선 횡단
    """
    if len(waypoints) < 2:
        raise CorridorConstructionError("corridor requires at least two waypoints")
    _check_waypoints(waypoints)
    if width_nm <= 0 or sample_nm <= 0:
        raise InvalidInputError(f"Invalid corridor parameters width_nm={width_nm} sample_nm={sample_nm}")

    points = [(wp.lon, wp.lat) for wp in waypoints]
    if len(set(points)) < 2:
        raise CorridorConstructionError("all waypoints are identical")
    if any(abs(a[0] - b[0]) > 180 for a, b in zip(points, points[1:])):
        raise CorridorConstructionError("route crosses the antimeridian")

    samples = resample_route(points, sample_nm)
    kx, ky = _projection([p[1] for p in samples])
    line = LineString([(x * kx, y * ky) for x, y in samples])
    buffered = line.buffer(width_nm * KM_PER_NM, quad_segs=8)
    if buffered.is_empty or buffered.geom_type != "Polygon":
        raise CorridorConstructionError(f"corridor buffer failed: {buffered.geom_type}")
    min_x, _, max_x, _ = buffered.bounds
    if min_x / kx < -180.0 or max_x / kx > 180.0:
        raise CorridorConstructionError("corridor buffer crosses the antimeridian")

    corridor = Corridor(
        polygon=_unproject(buffered, kx, ky),
        width_nm=width_nm,
        sample_nm=sample_nm,
        sample_count=len(samples),
    )
    log.debug(f"코리더 생성 samples:{len(samples)} width_nm:{width_nm} vertices:{len(corridor.polygon.coordinates[0])}")
    return corridor
