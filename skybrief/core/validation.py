"""
Structural validation for SkyBrief records.

This module checks normalized hazards and observations before they
reach the briefing response. Failing records raise ValidationDrop,
which the orchestrator counts and excludes.
"""

from typing import Optional

from skybrief.common.errors import ValidationDrop
from skybrief.common.geo import validate_coordinates
from skybrief.core.intersection import iter_positions
from skybrief.core.models import (
    Geometry, GeometryCollection, Hazard, Metar, MultiPolygonGeometry, PointGeometry, PolygonGeometry
)

def _rings_ok(rings) -> bool:
    return bool(rings) and all(len(ring) >= 4 for ring in rings)

def is_valid_geometry(geometry: Optional[Geometry]) -> bool:
    """
    형상이 좌표를 가지고 모든 좌표가 유한하며 범위 안에 있는지 확인합니다.

    Args:
        geometry: 형상 모델

    Returns:
        유효하면 True
    """
    if geometry is None:
        return False
    if isinstance(geometry, PolygonGeometry) and not _rings_ok(geometry.coordinates):
        return False
    if isinstance(geometry, MultiPolygonGeometry):
        if not geometry.coordinates or not all(_rings_ok(p) for p in geometry.coordinates):
            return False
    if isinstance(geometry, GeometryCollection):
        return bool(geometry.geometries) and all(is_valid_geometry(g) for g in geometry.geometries)

    count = 0
    for position in iter_positions(geometry):
        if not validate_coordinates(position[1], position[0]):
            return False
        count += 1
    return count > 0

def validate_hazard(hazard: Hazard) -> Hazard:
    """
    위험기상 레코드의 구조를 검증합니다.

    Args:
        hazard: 정규화된 위험기상

    Returns:
        검증을 통과한 동일 레코드

    Raises:
        ValidationDrop: 필수 필드 누락, 형상 오류, 좌표 범위 오류
    """
    if not hazard.id:
        raise ValidationDrop(hazard.kind, None, "missing id")
    if not hazard.phenomenon:
        raise ValidationDrop(hazard.kind, hazard.id, "missing phenomenon")
    if not is_valid_geometry(hazard.geometry):
        raise ValidationDrop(hazard.kind, hazard.id, "invalid geometry")

    if hazard.kind == "PIREP":
        if not isinstance(hazard.geometry, PointGeometry):
            raise ValidationDrop(hazard.kind, hazard.id, "PIREP geometry must be a point")
        if not hazard.intensity:
            raise ValidationDrop(hazard.kind, hazard.id, "missing intensity")
        if hazard.observed_at is None:
            raise ValidationDrop(hazard.kind, hazard.id, "missing observation time")
        if hazard.flight_level is not None and hazard.flight_level < 0:
            raise ValidationDrop(hazard.kind, hazard.id, "negative flight level")
    elif not hazard.severity:
        raise ValidationDrop(hazard.kind, hazard.id, "missing severity")
    return hazard

def validate_observation(metar: Metar) -> Metar:
    """
    METAR 관측 레코드의 구조를 검증합니다.

    Raises:
        ValidationDrop: ICAO 누락 또는 좌표 범위 오류
    """
    if not metar.icao:
        raise ValidationDrop("METAR", None, "missing icao")
    if metar.lat is None or metar.lon is None:
        raise ValidationDrop("METAR", metar.icao, "missing coordinates")
    if not validate_coordinates(metar.lat, metar.lon):
        raise ValidationDrop("METAR", metar.icao, f"coordinates out of range lat={metar.lat} lon={metar.lon}")
    return metar
