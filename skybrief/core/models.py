"""
Core domain models for SkyBrief.

This module defines the core domain models using Pydantic v2
for type safety and validation: GeoJSON-style geometries as a
closed tagged union, search regions, normalized hazards and
observations, reliability results and the assembled briefing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

# 위험기상 종류
HazardKind = Literal["SIGMET", "ISIGMET", "PIREP"]
Rating = Literal["HIGH", "MEDIUM", "LOW", "VERY_LOW", "UNKNOWN"]

# [경도, 위도(, 고도)]
Position = Annotated[List[float], Field(min_length=2)]


# ---- 형상 (tagged union) ----

class PointGeometry(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: Position

class MultiPointGeometry(BaseModel):
    type: Literal["MultiPoint"] = "MultiPoint"
    coordinates: List[Position]

class LineStringGeometry(BaseModel):
    type: Literal["LineString"] = "LineString"
    coordinates: List[Position]

class MultiLineStringGeometry(BaseModel):
    type: Literal["MultiLineString"] = "MultiLineString"
    coordinates: List[List[Position]]

class PolygonGeometry(BaseModel):
    """폴리곤 (첫 링이 외곽, 나머지는 홀)"""
    type: Literal["Polygon"] = "Polygon"
    coordinates: List[List[Position]]

class MultiPolygonGeometry(BaseModel):
    type: Literal["MultiPolygon"] = "MultiPolygon"
    coordinates: List[List[List[Position]]]

class GeometryCollection(BaseModel):
    type: Literal["GeometryCollection"] = "GeometryCollection"
    geometries: List["Geometry"] = Field(default_factory=list)

Geometry = Annotated[
    Union[
        PointGeometry,
        MultiPointGeometry,
        LineStringGeometry,
        MultiLineStringGeometry,
        PolygonGeometry,
        MultiPolygonGeometry,
        GeometryCollection,
    ],
    Field(discriminator="type"),
]

GeometryCollection.model_rebuild()

_geometry_adapter = TypeAdapter(Geometry)

def parse_geometry(raw: object) -> Optional[Geometry]:
    """
    GeoJSON 형상 딕셔너리를 모델로 변환합니다.

    Args:
        raw: 제공자 응답의 geometry 값

    Returns:
        형상 모델 또는 None (알 수 없는 타입/잘못된 구조)
    """
    if raw is None:
        return None
    try:
        return _geometry_adapter.validate_python(raw)
    except ValidationError:
        return None


# ---- 영역 ----

class Waypoint(BaseModel):
    """경로 지점 (좌표 + 선택적 식별자)"""
    lon: float
    lat: float
    ident: Optional[str] = None

class BoundingBox(BaseModel):
    """검색 박스. min_lon > max_lon 이면 날짜변경선을 넘는 박스"""
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @property
    def wraps(self) -> bool:
        return self.min_lon > self.max_lon

class BoxSegment(BaseModel):
    """날짜변경선을 넘지 않는 박스 조각"""
    kind: Literal["box"] = "box"
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @model_validator(mode="after")
    def _check_order(self) -> "BoxSegment":
        if self.min_lon > self.max_lon or self.min_lat > self.max_lat:
            raise ValueError("box segment bounds are inverted")
        return self

class Corridor(BaseModel):
    """경로를 버퍼링한 코리더 폴리곤"""
    kind: Literal["corridor"] = "corridor"
    polygon: PolygonGeometry
    width_nm: float
    sample_nm: float
    sample_count: int

Region = Union[BoxSegment, Corridor]


# ---- 위험기상 ----

class Hazard(BaseModel):
    """정규화된 위험기상 레코드 (SIGMET/ISIGMET/PIREP)"""
    id: Optional[str] = None
    kind: HazardKind
    phenomenon: Optional[str] = None
    severity: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    geometry: Optional[Geometry] = None
    raw_text: Optional[str] = None
    altitude_low: Optional[float] = None
    altitude_high: Optional[float] = None
    fir: Optional[str] = None
    # PIREP 전용
    phenomena: List[str] = Field(default_factory=list)
    intensity: Optional[str] = None
    altitude_ft: Optional[float] = None
    flight_level: Optional[int] = None
    aircraft_type: Optional[str] = None
    observed_at: Optional[datetime] = None
    # 표시용 (박스에 클램프된 형상)
    display_geometry: Optional[Geometry] = None


# ---- 관측/예보 ----

class Wind(BaseModel):
    direction: Optional[int] = None
    variable: bool = False
    speed: Optional[float] = None
    gust: Optional[float] = None

class CloudLayer(BaseModel):
    cover: str
    base_ft: Optional[int] = None

class Metar(BaseModel):
    """정규화된 METAR 관측"""
    icao: Optional[str] = None
    name: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    observed_at: Optional[datetime] = None
    temperature: Optional[float] = None
    dewpoint: Optional[float] = None
    wind: Wind = Field(default_factory=Wind)
    visibility_sm: Optional[float] = None
    altimeter: Optional[float] = None
    flight_category: Optional[str] = None
    raw_text: Optional[str] = None
    clouds: List[CloudLayer] = Field(default_factory=list)
    present_weather: str = ""

class ForecastBlock(BaseModel):
    """TAF 예보 블록 (FM/BECMG/TEMPO/PROB 또는 기본)"""
    change_type: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    probability: Optional[int] = None
    wind: Wind = Field(default_factory=Wind)
    visibility_sm: Optional[float] = None
    ceiling_ft: Optional[int] = None
    clouds: List[CloudLayer] = Field(default_factory=list)
    weather: str = ""
    flight_category: Optional[str] = None

class Taf(BaseModel):
    """정규화된 TAF"""
    icao: Optional[str] = None
    issued_at: Optional[datetime] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    raw_text: Optional[str] = None
    blocks: List[ForecastBlock] = Field(default_factory=list)


# ---- 신뢰도 ----

class FactorScore(BaseModel):
    factor: Literal["visibility", "ceiling", "weather", "wind"]
    score: float
    weight: float
    details: str = ""

class ReliabilityResult(BaseModel):
    """예보 신뢰도 결과"""
    score: float = Field(ge=0.0, le=1.0)
    rating: Rating
    confidence: float = Field(ge=0.0, le=1.0)
    factors: List[FactorScore] = Field(default_factory=list)
    summary: str = ""


# ---- 브리핑 응답 ----

class AirportBriefing(BaseModel):
    icao: str
    name: Optional[str] = None
    coordinates: Optional[Waypoint] = None
    flight_category: Optional[str] = None
    has_metar: bool = False
    has_taf: bool = False
    metar: Optional[Metar] = None
    taf: Optional[Taf] = None
    current_forecast: Optional[ForecastBlock] = None
    reliability: Optional[ReliabilityResult] = None

class HazardGroup(BaseModel):
    total: int = 0
    items: List[Hazard] = Field(default_factory=list)
    active: List[Hazard] = Field(default_factory=list)
    by_category: Dict[str, List[Hazard]] = Field(default_factory=dict)

class KindStats(BaseModel):
    fetched: int = 0
    after_corridor: int = 0
    after_box: int = 0
    validation_dropped: int = 0
    box_filtered: bool = True

class FilterStats(BaseModel):
    corridor_applied: bool = False
    corridor_fallback: bool = False
    corridor_retention: Optional[float] = None
    kinds: Dict[str, KindStats] = Field(default_factory=dict)
    observations_dropped: int = 0

class SourceUnavailable(BaseModel):
    source: str
    reason: str

class CorridorSummary(BaseModel):
    sigmet_total: int = 0
    convective: int = 0
    icing: int = 0
    turbulence: int = 0
    other: int = 0
    pirep_total: int = 0
    pirep_turbulence_mod_plus: int = 0
    pirep_icing_mod_plus: int = 0
    lowest_ceiling_ft: Optional[int] = None
    worst_visibility_sm: Optional[float] = None

class BriefingResponse(BaseModel):
    """한 요청에 대한 종합 브리핑"""
    generated_at: datetime
    route: List[str]
    bounding_box: Optional[BoundingBox] = None
    box_segments: List[BoxSegment] = Field(default_factory=list)
    corridor: Optional[Corridor] = None
    airports: List[AirportBriefing] = Field(default_factory=list)
    pireps: HazardGroup = Field(default_factory=HazardGroup)
    sigmets: HazardGroup = Field(default_factory=HazardGroup)
    isigmets: HazardGroup = Field(default_factory=HazardGroup)
    filtering: FilterStats = Field(default_factory=FilterStats)
    corridor_summary: Optional[CorridorSummary] = None
    unavailable: List[SourceUnavailable] = Field(default_factory=list)
