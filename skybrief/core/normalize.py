"""
Normalization utilities for SkyBrief.

This module converts raw provider payloads (METAR and TAF JSON,
SIGMET/ISIGMET GeoJSON features, PIREP records) into the domain
models used by the briefing pipeline.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from skybrief.common.errors import CorridorConstructionError
from skybrief.common.geo import validate_coordinates
from skybrief.core.models import (
    CloudLayer, ForecastBlock, GeometryCollection, Hazard, LineStringGeometry, Metar,
    MultiLineStringGeometry, MultiPolygonGeometry, PointGeometry, PolygonGeometry, Taf, Wind,
    parse_geometry
)
from skybrief.core.regions import buffer_lines
from skybrief.observability.logging_setup import get_logger

log = get_logger("skybrief.normalize")

CEILING_COVERS = ("BKN", "OVC", "OVX", "VV")
METERS_TO_SM = 0.000621371


# ---- 기본 변환 ----

def normalize_timestamp(value: Any) -> Optional[datetime]:
    """
    다양한 형식의 시각 값을 UTC datetime 으로 변환합니다.

    epoch 초(1e12 미만)와 마이크로초(1e14~1e17)는 밀리초로 환산해 처리합니다.

    Args:
        value: epoch 숫자, 숫자 문자열, ISO-8601 문자열 또는 datetime

    Returns:
        UTC datetime 또는 해석 불가 시 None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                log.debug(f"시각 해석 실패 value:{text}")
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None

    millis = float(value)
    if abs(millis) < 1e12:
        millis *= 1000
    elif 1e14 <= abs(millis) < 1e17:
        millis /= 1000
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None

def to_number(value: Any) -> Optional[float]:
    """숫자로 변환 가능한 값이면 float, 아니면 None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None

def parse_visibility(value: Any) -> Optional[float]:
    """
    시정 값을 법정마일(SM)로 변환합니다.

    "10+", "P6SM", "1 1/2", "M1/4", "9999M"(미터) 형식을 처리합니다.

    Args:
        value: 숫자 또는 시정 문자열

    Returns:
        법정마일 또는 None
    """
    number = to_number(value)
    if number is not None:
        return number
    if not isinstance(value, str):
        return None

    text = value.strip().upper().replace("SM", "").rstrip("+").strip()
    if not text:
        return None
    if text.endswith("M") and text[:-1].isdigit():
        return round(int(text[:-1]) * METERS_TO_SM, 2)
    text = text.lstrip("PM").strip()

    total = 0.0
    try:
        for part in text.split():
            if "/" in part:
                num, den = part.split("/", 1)
                total += float(num) / float(den)
            else:
                total += float(part)
    except (ValueError, ZeroDivisionError):
        return None
    return total

def parse_wind(direction: Any, speed: Any, gust: Any) -> Wind:
    variable = isinstance(direction, str) and direction.strip().upper() == "VRB"
    heading = None if variable else to_number(direction)
    return Wind(
        direction=int(heading) % 360 if heading is not None else None,
        variable=variable,
        speed=to_number(speed),
        gust=to_number(gust),
    )

def parse_clouds(raw: Any) -> List[CloudLayer]:
    layers: List[CloudLayer] = []
    if not isinstance(raw, list):
        return layers
    for item in raw:
        if not isinstance(item, dict) or not item.get("cover"):
            continue
        base = to_number(item.get("base"))
        layers.append(CloudLayer(cover=str(item["cover"]).upper(), base_ft=int(base) if base is not None else None))
    return layers

def extract_ceiling(clouds: Sequence[CloudLayer]) -> Optional[int]:
    """BKN/OVC/OVX/VV 층 중 가장 낮은 운저 (피트)"""
    bases = [c.base_ft for c in clouds if c.cover in CEILING_COVERS and c.base_ft is not None]
    return min(bases) if bases else None

def derive_flight_category(visibility_sm: Optional[float], ceiling_ft: Optional[int]) -> Optional[str]:
    """시정과 운고로 비행 등급(VFR/MVFR/IFR/LIFR)을 계산합니다."""
    if visibility_sm is None and ceiling_ft is None:
        return None
    if (ceiling_ft is not None and ceiling_ft < 500) or (visibility_sm is not None and visibility_sm < 1):
        return "LIFR"
    if (ceiling_ft is not None and ceiling_ft < 1000) or (visibility_sm is not None and visibility_sm < 3):
        return "IFR"
    if (ceiling_ft is not None and ceiling_ft <= 3000) or (visibility_sm is not None and visibility_sm <= 5):
        return "MVFR"
    return "VFR"


# ---- METAR / TAF ----

def normalize_metar(raw: Dict[str, Any]) -> Metar:
    """
    METAR JSON 레코드를 정규화합니다.

    Args:
        raw: 제공자 METAR 레코드

    Returns:
        정규화된 METAR
    """
    clouds = parse_clouds(raw.get("clouds"))
    visibility = parse_visibility(raw.get("visib"))
    category = raw.get("fltCat") or raw.get("fltcat")
    icao = raw.get("icaoId")
    return Metar(
        icao=str(icao).upper() if icao else None,
        name=raw.get("name"),
        lat=to_number(raw.get("lat")),
        lon=to_number(raw.get("lon")),
        observed_at=normalize_timestamp(raw.get("obsTimeMs", raw.get("obsTime"))),
        temperature=to_number(raw.get("temp")),
        dewpoint=to_number(raw.get("dewp")),
        wind=parse_wind(raw.get("wdir"), raw.get("wspd"), raw.get("wgst")),
        visibility_sm=visibility,
        altimeter=to_number(raw.get("altim")),
        flight_category=str(category).upper() if category else derive_flight_category(visibility, extract_ceiling(clouds)),
        raw_text=raw.get("rawOb"),
        clouds=clouds,
        present_weather=raw.get("wxString") or "",
    )

def _normalize_block(raw: Dict[str, Any]) -> ForecastBlock:
    clouds = parse_clouds(raw.get("clouds"))
    visibility = parse_visibility(raw.get("visib"))
    ceiling = extract_ceiling(clouds)
    change = raw.get("fcstChange")
    probability = to_number(raw.get("probability"))
    return ForecastBlock(
        change_type=str(change).upper() if change else None,
        start=normalize_timestamp(raw.get("timeFrom")),
        end=normalize_timestamp(raw.get("timeTo")),
        probability=int(probability) if probability is not None else None,
        wind=parse_wind(raw.get("wdir"), raw.get("wspd"), raw.get("wgst")),
        visibility_sm=visibility,
        ceiling_ft=ceiling,
        clouds=clouds,
        weather=raw.get("wxString") or "",
        flight_category=derive_flight_category(visibility, ceiling),
    )

def normalize_taf(raw: Dict[str, Any]) -> Taf:
    """
    TAF JSON 레코드를 예보 블록 목록으로 정규화합니다.

    Args:
        raw: 제공자 TAF 레코드 (fcsts 포함)

    Returns:
        정규화된 TAF
    """
    blocks = [_normalize_block(b) for b in raw.get("fcsts") or [] if isinstance(b, dict)]
    icao = raw.get("icaoId")
    return Taf(
        icao=str(icao).upper() if icao else None,
        issued_at=normalize_timestamp(raw.get("issueTime")),
        valid_from=normalize_timestamp(raw.get("validTimeFrom")),
        valid_to=normalize_timestamp(raw.get("validTimeTo")),
        raw_text=raw.get("rawTAF"),
        blocks=blocks,
    )

def current_block(taf: Taf, now: datetime) -> Optional[ForecastBlock]:
    """
    현재 시각에 유효한 기본 예보 블록을 고릅니다.

    TEMPO/PROB 블록은 해당 시간대의 기본 블록이 없을 때만 사용합니다.
    """
    if not taf.blocks:
        return None

    def _covers(block: ForecastBlock) -> bool:
        return (block.start is None or block.start <= now) and (block.end is None or now < block.end)

    covering = [b for b in taf.blocks if _covers(b)]
    base = [b for b in covering if b.change_type not in ("TEMPO", "PROB")]
    if base:
        return base[-1]
    if covering:
        return covering[0]
    return taf.blocks[0]


# ---- 위험기상 ----

def categorize_sigmet_phenomenon(hazard: Any) -> Optional[str]:
    """국내 SIGMET hazard 문자열을 현상 분류로 변환합니다."""
    if not hazard:
        return None
    text = str(hazard).upper()
    if "TURB" in text:
        return "TURBULENCE"
    if "ICE" in text:
        return "ICING"
    if "CONVECTIVE" in text or "TSTM" in text:
        return "CONVECTIVE"
    if "MOUNTAIN" in text or "MTN" in text:
        return "MOUNTAIN_WAVE"
    if "DUST" in text or "SAND" in text:
        return "DUST"
    if "ASH" in text or "VOLCANIC" in text:
        return "VOLCANIC_ASH"
    if "IFR" in text:
        return "IFR_CONDITIONS"
    return text

_ISIGMET_CATEGORIES = [
    (re.compile(r"(CONV|TS|CB|TSTMS|THUNDER)"), "CONVECTIVE"),
    (re.compile(r"(TURB|CAT)"), "TURBULENCE"),
    (re.compile(r"(ICE|ICING)"), "ICING"),
    (re.compile(r"(ASH|VOLC|VA)"), "VOLCANIC_ASH"),
    (re.compile(r"(TROPICAL|CYCLONE|TC)"), "TROPICAL_CYCLONE"),
    (re.compile(r"(DUST|SAND|DS)"), "DUST"),
    (re.compile(r"(RADIOACTIVE|RDOACT)"), "RADIOACTIVE"),
    (re.compile(r"(MTW|MOUNTAIN|WAVE)"), "MOUNTAIN_WAVE"),
]

def categorize_isigmet_phenomenon(properties: Dict[str, Any]) -> str:
    """국제 SIGMET 속성에서 현상 분류를 결정합니다 (없으면 UNKNOWN)."""
    hazard = (properties.get("hazard") or properties.get("hazard_type")
              or properties.get("hazardType") or properties.get("qualifier"))
    if not hazard:
        return "UNKNOWN"
    text = str(hazard).upper()
    for pattern, category in _ISIGMET_CATEGORIES:
        if pattern.search(text):
            return category
    return text

def normalize_sigmet(feature: Dict[str, Any]) -> Hazard:
    """
    국내 SIGMET GeoJSON feature 를 정규화합니다.

    Args:
        feature: GeoJSON feature

    Returns:
        위험기상 레코드 (검증 전)
    """
    props = feature.get("properties") or {}
    record_id = props.get("id") or props.get("airSigmetId")
    severity = props.get("severity")
    return Hazard(
        id=str(record_id) if record_id is not None else None,
        kind="SIGMET",
        phenomenon=categorize_sigmet_phenomenon(props.get("hazard")),
        severity=str(severity) if severity is not None else None,
        valid_from=normalize_timestamp(props.get("validTimeFrom")),
        valid_to=normalize_timestamp(props.get("validTimeTo")),
        altitude_low=to_number(props.get("altitudeLow1")),
        altitude_high=to_number(props.get("altitudeHi1", props.get("altitudeHigh1"))),
        geometry=parse_geometry(feature.get("geometry")),
        raw_text=props.get("rawAirSigmet") or props.get("rawText"),
    )

def _coerce_isigmet_geometry(raw: Any, line_buffer_km: float):
    geometry = parse_geometry(raw)
    if isinstance(geometry, GeometryCollection):
        members = [g for g in geometry.geometries
                   if isinstance(g, (PolygonGeometry, MultiPolygonGeometry,
                                     LineStringGeometry, MultiLineStringGeometry))]
        geometry = members[0] if members else None
    if isinstance(geometry, (LineStringGeometry, MultiLineStringGeometry)):
        try:
            geometry = buffer_lines(geometry, line_buffer_km)
        except CorridorConstructionError as e:
            log.warning(f"ISIGMET 선 형상 버퍼링 실패 error:{e}")
            return None
    return geometry

def normalize_isigmet(feature: Dict[str, Any], line_buffer_km: float = 10.0) -> Optional[Hazard]:
    """
    국제 SIGMET GeoJSON feature 를 정규화합니다.

    유효 시간이 없는 feature 는 건너뜁니다. 선 형상은 폴리곤으로 버퍼링합니다.

    Args:
        feature: GeoJSON feature
        line_buffer_km: 선 형상 버퍼 거리 (킬로미터)

    Returns:
        위험기상 레코드 또는 None
    """
    props = feature.get("properties") or {}
    valid_from = normalize_timestamp(props.get("validTimeFrom"))
    valid_to = normalize_timestamp(props.get("validTimeTo"))
    if valid_from is None or valid_to is None:
        log.warning(f"유효 시간이 없는 ISIGMET 건너뜀 id:{props.get('id')}")
        return None

    record_id = props.get("id") or props.get("isigmetId") or props.get("sigmet_id")
    if record_id is None and (props.get("firId") or props.get("seriesId")):
        record_id = f"isigmet-{props.get('firId') or 'unknown'}-{props.get('seriesId') or int(valid_from.timestamp())}"
    return Hazard(
        id=str(record_id) if record_id is not None else None,
        kind="ISIGMET",
        phenomenon=categorize_isigmet_phenomenon(props),
        severity=str(props.get("severity") or props.get("qualifier") or "UNKNOWN"),
        valid_from=valid_from,
        valid_to=valid_to,
        altitude_low=to_number(props.get("base", props.get("altitudeLow1"))),
        altitude_high=to_number(props.get("top", props.get("altitudeHigh1"))),
        geometry=_coerce_isigmet_geometry(feature.get("geometry"), line_buffer_km),
        fir=props.get("firName") or props.get("fir") or props.get("firId"),
        raw_text=props.get("rawSigmet") or props.get("rawIntlSigmet") or props.get("rawText"),
    )

_PIREP_PHENOMENA = [
    ("TURBULENCE", re.compile(r"\b(TURB\w*|TB|CHOP\w*)\b")),
    ("ICING", re.compile(r"\b(ICE|ICG|IC|RIME|MIXED|MX)\b")),
    ("CLOUDS", re.compile(r"\b(IMC|IFR|BKN\d*|OVC\d*|SKC|SCT\d*)\b")),
    ("PRECIPITATION", re.compile(r"\b(RAIN|SNOW|PRECIP|[-+]?RA|[-+]?SN|[-+]?DZ)\b")),
    ("WIND", re.compile(r"\b(WIND|SHEAR|LLWS|GUST\w*)\b")),
    ("CONVECTIVE", re.compile(r"\b(TSTM\w*|CONVECTIVE|CB|TS)\b")),
]

_PIREP_INTENSITY = [
    ("SEVERE", re.compile(r"\b(SEVERE|SEV|SVR|EXTREME|EXTRM)\b")),
    ("MODERATE", re.compile(r"\b(MODERATE|MOD)\b")),
    ("LIGHT", re.compile(r"\b(LIGHT|LGT)\b")),
    ("TRACE", re.compile(r"\b(TRACE|TRC)\b")),
    ("SMOOTH", re.compile(r"\b(SMOOTH|SMTH|SMT|NEG)\b")),
]

PIREP_PRIORITY = ["TURBULENCE", "ICING", "CONVECTIVE", "PRECIPITATION", "WIND", "CLOUDS"]

def categorize_pirep(raw_text: Optional[str]) -> List[str]:
    """PIREP 원문에서 보고된 현상 목록을 추출합니다."""
    if not raw_text:
        return []
    text = raw_text.upper()
    return [name for name, pattern in _PIREP_PHENOMENA if pattern.search(text)]

def extract_intensity(raw_text: Optional[str]) -> str:
    if raw_text:
        text = raw_text.upper()
        for name, pattern in _PIREP_INTENSITY:
            if pattern.search(text):
                return name
    return "UNKNOWN"

def primary_phenomenon(phenomena: Sequence[str]) -> str:
    for name in PIREP_PRIORITY:
        if name in phenomena:
            return name
    return "OTHER"

def parse_altitude(value: Any) -> Optional[float]:
    """
    PIREP 고도 값을 피트로 변환합니다.

    "FL250" 과 세 자리 이하 숫자("050")는 100 피트 단위로 해석합니다.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
        return number * 100 if number < 1000 else number
    text = str(value).strip().upper()
    if not text or text in ("UKN", "UNKN", "UNKNOWN"):
        return None
    if text.startswith("FL"):
        text = text[2:]
    if not text.isdigit():
        return None
    number = float(text)
    return number * 100 if len(text) <= 3 else number

def normalize_pirep(raw: Dict[str, Any]) -> Optional[Hazard]:
    """
    PIREP 레코드를 점 형상의 위험기상으로 정규화합니다.

    Args:
        raw: 제공자 PIREP 레코드

    Returns:
        위험기상 레코드 또는 좌표가 없거나 범위를 벗어나면 None
    """
    lat = to_number(raw.get("lat"))
    lon = to_number(raw.get("lon"))
    if lat is None or lon is None or not validate_coordinates(lat, lon):
        log.warning(f"좌표가 없는 PIREP 건너뜀 id:{raw.get('pirepId')}")
        return None

    altitude = parse_altitude(raw.get("fltLvl", raw.get("fltlvl")))
    phenomena = categorize_pirep(raw.get("rawOb"))
    intensity = extract_intensity(raw.get("rawOb"))
    record_id = raw.get("pirepId")
    return Hazard(
        id=str(record_id) if record_id is not None else None,
        kind="PIREP",
        phenomenon=primary_phenomenon(phenomena),
        severity=intensity,
        geometry=PointGeometry(coordinates=[lon, lat]),
        raw_text=raw.get("rawOb"),
        phenomena=phenomena,
        intensity=intensity,
        altitude_ft=altitude,
        flight_level=int(altitude // 100) if altitude is not None else None,
        aircraft_type=raw.get("acType"),
        observed_at=normalize_timestamp(raw.get("obsTime")),
    )
