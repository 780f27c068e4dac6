"""
Briefing orchestrator for SkyBrief.

This module runs one briefing request through its states:
ParseRoute -> FetchObservations -> DeriveRegions -> FetchHazardsParallel
-> FilterByCorridor -> FallbackIfOverfiltered -> FilterByBox -> Validate
-> Score -> Assemble. Partial upstream failures degrade the affected
section instead of failing the whole request.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

from skybrief.common.errors import (
    CorridorConstructionError, InputError, UpstreamError, UpstreamUnavailable, ValidationDrop
)
from skybrief.common.geo import validate_coordinates
from skybrief.core.intersection import clamp_to_box, filter_by_regions
from skybrief.core.models import (
    AirportBriefing, BoundingBox, BoxSegment, BriefingResponse, Corridor, FilterStats,
    Hazard, HazardGroup, KindStats, Metar, ReliabilityResult, SourceUnavailable, Taf, Waypoint
)
from skybrief.core.normalize import current_block
from skybrief.core.regions import build_corridor, compute_bounding_box, split_at_antimeridian
from skybrief.core.reliability import compare_forecast
from skybrief.core.summary import summarize_corridor
from skybrief.core.validation import validate_hazard, validate_observation
from skybrief.observability import metrics
from skybrief.observability.logging_setup import get_logger, with_context
from skybrief.ports.weather import WeatherSourcePort

log = get_logger("skybrief.briefing")

HAZARD_KINDS = ("PIREP", "SIGMET", "ISIGMET")
CRITICAL_SOURCES = ("METAR", "TAF")

_ICAO = re.compile(r"^[A-Z][A-Z0-9]{3}$")

def parse_route(route: Union[str, Sequence[str]]) -> List[str]:
    """
    경로 입력을 ICAO 식별자 목록으로 변환합니다.

    쉼표/공백으로 구분된 문자열 또는 목록을 받아 대문자화하고
    순서를 유지한 채 중복을 제거합니다.

    Args:
        route: "KLAX,KPHX" 형식 문자열 또는 식별자 목록

    Returns:
        ICAO 식별자 목록

    Raises:
        InputError: 유효한 식별자가 하나도 없는 경우
    """
    tokens = re.split(r"[\s,]+", route) if isinstance(route, str) else list(route)
    icaos: List[str] = []
    for token in tokens:
        code = str(token).strip().upper()
        if not code:
            continue
        if not _ICAO.match(code):
            log.warning(f"잘못된 공항 식별자 무시 token:{code}")
            continue
        if code not in icaos:
            icaos.append(code)
    if not icaos:
        raise InputError(f"No valid ICAO airport codes in route: {route!r}")
    return icaos


@dataclass
class _BriefingState:
    icaos: List[str]
    now: datetime
    metars: Dict[str, Metar] = field(default_factory=dict)
    tafs: Dict[str, Taf] = field(default_factory=dict)
    waypoints: List[Waypoint] = field(default_factory=list)
    bbox: Optional[BoundingBox] = None
    segments: List[BoxSegment] = field(default_factory=list)
    corridor: Optional[Corridor] = None
    hazards: Dict[str, List[Hazard]] = field(default_factory=lambda: {k: [] for k in HAZARD_KINDS})
    stats: FilterStats = field(default_factory=FilterStats)
    unavailable: List[SourceUnavailable] = field(default_factory=list)
    reliability: Dict[str, ReliabilityResult] = field(default_factory=dict)


class BriefingOrchestrator:
    """경로 브리핑 오케스트레이터"""

    def __init__(self,
                 source: WeatherSourcePort,
                 *,
                 buffer_deg: float = 1.5,
                 corridor_enabled: bool = True,
                 corridor_width_nm: float = 100.0,
                 corridor_sample_nm: float = 20.0,
                 corridor_min_retention: float = 0.10,
                 box_filter_exempt_kinds: Sequence[str] = ("ISIGMET",),
                 pirep_max_age_hours: float = 3.0,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        초기화합니다.

        Args:
            source: 기상 데이터 소스 포트
            buffer_deg: 경계 상자 버퍼 (도)
            corridor_enabled: 코리더 필터 사용 여부
            corridor_width_nm: 코리더 폭 (해리)
            corridor_sample_nm: 코리더 샘플 간격 (해리)
            corridor_min_retention: 이 비율 미만만 남으면 코리더 결과를 버림
            box_filter_exempt_kinds: 박스 필터를 적용하지 않는 위험기상 종류
            pirep_max_age_hours: 최근 PIREP 으로 보는 시간 (시간)
            clock: 현재 UTC 시각 함수 (테스트에서 주입)
        """
        self.source = source
        self.buffer_deg = buffer_deg
        self.corridor_enabled = corridor_enabled
        self.corridor_width_nm = corridor_width_nm
        self.corridor_sample_nm = corridor_sample_nm
        self.corridor_min_retention = corridor_min_retention
        self.box_filter_exempt_kinds = {k.upper() for k in box_filter_exempt_kinds}
        self.pirep_max_age_hours = pirep_max_age_hours
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        log.info("브리핑 오케스트레이터 초기화됨")

    async def brief(self, route: Union[str, Sequence[str]]) -> BriefingResponse:
        """
        경로에 대한 브리핑을 생성합니다.

        Args:
            route: 공항 식별자 경로

        Returns:
            종합 브리핑

        Raises:
            InputError: 경로에 유효한 공항이 없는 경우
            UpstreamUnavailable: METAR 와 TAF 가 모두 실패한 경우
        """
        icaos = parse_route(route)
        state = _BriefingState(icaos=icaos, now=self._clock())

        with with_context(route=",".join(icaos)), metrics.briefing_seconds.time():
            await self._fetch_observations(state)
            self._derive_regions(state)
            await self._fetch_hazards(state)
            self._filter_by_corridor(state)
            self._filter_by_box(state)
            self._validate(state)
            self._score(state)
            response = self._assemble(state)

        log.info(
            f"브리핑 생성 완료 airports:{len(icaos)} "
            f"pireps:{response.pireps.total} sigmets:{response.sigmets.total} "
            f"isigmets:{response.isigmets.total} unavailable:{len(response.unavailable)}"
        )
        return response

    def _mark_unavailable(self, state: _BriefingState, source: str, error: BaseException) -> None:
        metrics.source_failures.labels(source=source).inc()
        log.warning(f"데이터 소스 사용 불가 source:{source} error:{error}")
        state.unavailable.append(SourceUnavailable(source=source, reason=str(error)))

    # ---- FetchObservations ----

    async def _fetch_observations(self, state: _BriefingState) -> None:
        results = await asyncio.gather(
            self.source.fetch_metars(state.icaos),
            self.source.fetch_tafs(state.icaos),
            return_exceptions=True,
        )
        failed = []
        for name, result in zip(CRITICAL_SOURCES, results):
            if isinstance(result, UpstreamError):
                self._mark_unavailable(state, name, result)
                failed.append(name)
            elif isinstance(result, BaseException):
                raise result
        if len(failed) == len(CRITICAL_SOURCES):
            raise UpstreamUnavailable(f"All critical sources unavailable: {', '.join(failed)}")

        metar_list, taf_list = [r if isinstance(r, list) else [] for r in results]
        # 제공자는 최신 관측을 먼저 반환하므로 공항별 첫 레코드만 사용
        for metar in metar_list:
            if metar.icao in state.icaos and metar.icao not in state.metars:
                state.metars[metar.icao] = metar
        for taf in taf_list:
            if taf.icao in state.icaos and taf.icao not in state.tafs:
                state.tafs[taf.icao] = taf

    # ---- DeriveRegions ----

    def _derive_regions(self, state: _BriefingState) -> None:
        for icao in state.icaos:
            metar = state.metars.get(icao)
            if metar is None or metar.lat is None or metar.lon is None:
                log.warning(f"좌표가 없는 공항 제외 icao:{icao}")
                continue
            if not validate_coordinates(metar.lat, metar.lon):
                log.warning(f"좌표 범위 오류 공항 제외 icao:{icao} lat:{metar.lat} lon:{metar.lon}")
                continue
            state.waypoints.append(Waypoint(lon=metar.lon, lat=metar.lat, ident=icao))

        if not state.waypoints:
            log.warning("경로 좌표가 없어 위험기상 조회를 건너뜀")
            return

        state.bbox = compute_bounding_box(state.waypoints, self.buffer_deg)
        state.segments = split_at_antimeridian(state.bbox)

        if self.corridor_enabled and len(state.waypoints) >= 2:
            try:
                state.corridor = build_corridor(state.waypoints, self.corridor_width_nm, self.corridor_sample_nm)
            except CorridorConstructionError as e:
                log.warning(f"코리더 생성 실패, 박스 필터만 사용 error:{e}")

    # ---- FetchHazardsParallel ----

    async def _fetch_kind(self, fetch: Callable[[BoxSegment], Awaitable[List[Hazard]]],
                          segments: List[BoxSegment]) -> List[Hazard]:
        parts = await asyncio.gather(*(fetch(segment) for segment in segments))
        merged: List[Hazard] = []
        seen = set()
        for part in parts:
            for hazard in part:
                if hazard.id is not None:
                    if hazard.id in seen:
                        continue
                    seen.add(hazard.id)
                merged.append(hazard)
        return merged

    async def _fetch_hazards(self, state: _BriefingState) -> None:
        if not state.segments:
            for kind in HAZARD_KINDS:
                state.unavailable.append(SourceUnavailable(source=kind, reason="no route coordinates"))
            return

        fetchers = {
            "PIREP": self.source.fetch_pireps,
            "SIGMET": self.source.fetch_sigmets,
            "ISIGMET": self.source.fetch_isigmets,
        }
        results = await asyncio.gather(
            *(self._fetch_kind(fetchers[kind], state.segments) for kind in HAZARD_KINDS),
            return_exceptions=True,
        )
        for kind, result in zip(HAZARD_KINDS, results):
            if isinstance(result, UpstreamError):
                self._mark_unavailable(state, kind, result)
                result = []
            elif isinstance(result, BaseException):
                raise result
            state.hazards[kind] = result
            state.stats.kinds[kind] = KindStats(fetched=len(result), after_corridor=len(result), after_box=len(result))

    # ---- FilterByCorridor / FallbackIfOverfiltered ----

    def _filter_by_corridor(self, state: _BriefingState) -> None:
        if state.corridor is None:
            return
        filtered = {kind: filter_by_regions(hazards, [state.corridor]) for kind, hazards in state.hazards.items()}
        self._fallback_if_overfiltered(state, filtered)

    def _fallback_if_overfiltered(self, state: _BriefingState, filtered: Dict[str, List[Hazard]]) -> None:
        pre_total = sum(len(h) for h in state.hazards.values())
        post_total = sum(len(h) for h in filtered.values())
        retention = post_total / pre_total if pre_total else 1.0
        state.stats.corridor_retention = round(retention, 4)

        if pre_total > 0 and retention < self.corridor_min_retention:
            metrics.corridor_fallbacks.inc()
            state.stats.corridor_fallback = True
            log.warning(
                f"코리더 필터가 너무 공격적이어서 박스 결과로 되돌림 "
                f"kept:{post_total}/{pre_total} threshold:{self.corridor_min_retention}"
            )
            return

        state.hazards = filtered
        state.stats.corridor_applied = True
        for kind, hazards in filtered.items():
            stats = state.stats.kinds.setdefault(kind, KindStats())
            stats.after_corridor = len(hazards)
            stats.after_box = len(hazards)
        log.debug(f"코리더 필터 적용 kept:{post_total}/{pre_total}")

    # ---- FilterByBox ----

    def _filter_by_box(self, state: _BriefingState) -> None:
        if not state.segments:
            return
        for kind, hazards in state.hazards.items():
            stats = state.stats.kinds.setdefault(kind, KindStats())
            if kind in self.box_filter_exempt_kinds:
                stats.box_filtered = False
                stats.after_box = len(hazards)
                continue
            kept = filter_by_regions(hazards, state.segments)
            state.hazards[kind] = kept
            stats.after_box = len(kept)

    # ---- Validate ----

    def _validate(self, state: _BriefingState) -> None:
        for kind, hazards in state.hazards.items():
            valid: List[Hazard] = []
            for hazard in hazards:
                try:
                    valid.append(validate_hazard(hazard))
                except ValidationDrop as e:
                    metrics.validation_drops.labels(kind=kind).inc()
                    log.warning(f"검증 실패 레코드 제외 {e}")
            state.stats.kinds.setdefault(kind, KindStats()).validation_dropped = len(hazards) - len(valid)
            state.hazards[kind] = valid

        for icao in list(state.metars):
            try:
                validate_observation(state.metars[icao])
            except ValidationDrop as e:
                metrics.validation_drops.labels(kind="METAR").inc()
                log.warning(f"검증 실패 관측 제외 {e}")
                del state.metars[icao]
                state.stats.observations_dropped += 1

    # ---- Score ----

    def _score(self, state: _BriefingState) -> None:
        for icao in state.icaos:
            metar = state.metars.get(icao)
            taf = state.tafs.get(icao)
            if metar is None or taf is None:
                continue
            state.reliability[icao] = compare_forecast(current_block(taf, state.now), metar)

    # ---- Assemble ----

    def _is_active(self, hazard: Hazard, now: datetime) -> bool:
        if hazard.kind == "PIREP":
            if hazard.observed_at is None:
                return False
            return now - hazard.observed_at <= timedelta(hours=self.pirep_max_age_hours)
        return ((hazard.valid_from is None or hazard.valid_from <= now) and
                (hazard.valid_to is None or now <= hazard.valid_to))

    def _group(self, hazards: List[Hazard], now: datetime) -> HazardGroup:
        group = HazardGroup(total=len(hazards), items=hazards)
        for hazard in hazards:
            if hazard.kind == "PIREP":
                categories = [p.lower() for p in hazard.phenomena] or ["other"]
            else:
                categories = [hazard.phenomenon or "UNKNOWN"]
            for category in categories:
                group.by_category.setdefault(category, []).append(hazard)
            if self._is_active(hazard, now):
                group.active.append(hazard)
        return group

    def _clamp_for_display(self, state: _BriefingState) -> None:
        # 날짜변경선을 넘는 박스는 클램프하지 않음
        if len(state.segments) != 1:
            return
        segment = state.segments[0]
        for kind, hazards in state.hazards.items():
            state.hazards[kind] = [
                h.model_copy(update={"display_geometry": clamp_to_box(h.geometry, segment)})
                for h in hazards
            ]

    def _assemble(self, state: _BriefingState) -> BriefingResponse:
        self._clamp_for_display(state)

        airports: List[AirportBriefing] = []
        for icao in state.icaos:
            metar = state.metars.get(icao)
            taf = state.tafs.get(icao)
            airports.append(AirportBriefing(
                icao=icao,
                name=metar.name if metar else None,
                coordinates=Waypoint(lon=metar.lon, lat=metar.lat, ident=icao) if metar else None,
                flight_category=metar.flight_category if metar else None,
                has_metar=metar is not None,
                has_taf=taf is not None,
                metar=metar,
                taf=taf,
                current_forecast=current_block(taf, state.now) if taf else None,
                reliability=state.reliability.get(icao),
            ))

        advisories = state.hazards["SIGMET"] + state.hazards["ISIGMET"]
        return BriefingResponse(
            generated_at=state.now,
            route=state.icaos,
            bounding_box=state.bbox,
            box_segments=state.segments,
            corridor=state.corridor,
            airports=airports,
            pireps=self._group(state.hazards["PIREP"], state.now),
            sigmets=self._group(state.hazards["SIGMET"], state.now),
            isigmets=self._group(state.hazards["ISIGMET"], state.now),
            filtering=state.stats,
            corridor_summary=summarize_corridor(advisories, state.hazards["PIREP"], state.metars.values()),
            unavailable=state.unavailable,
        )
