"""
Domain fetchers for SkyBrief.

This module implements the weather source port on top of the AWC
client: per-kind cache keys, the extra HTTP 429 retry, ID chunking
through a bounded worker pool, and normalization of each payload.
"""

from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from pydantic import ValidationError

from skybrief.adapters.awc.client import AWCClient, UpstreamResponse
from skybrief.common.errors import RateLimitedError, UpstreamUnavailable
from skybrief.common.pool import chunk, run_pool
from skybrief.common.retry import BackoffPolicy, retry_with_backoff
from skybrief.core.models import BoxSegment, Hazard, Metar, Taf
from skybrief.core.normalize import (
    normalize_isigmet, normalize_metar, normalize_pirep, normalize_sigmet, normalize_taf
)
from skybrief.core.regions import format_bbox
from skybrief.observability import metrics
from skybrief.observability.logging_setup import get_logger
from skybrief.ports.cache import CachePort

log = get_logger("skybrief.fetchers")

T = TypeVar('T')

def ensure_features(data: Any) -> List[Dict[str, Any]]:
    """FeatureCollection 또는 feature 배열에서 feature 목록을 꺼냅니다."""
    if isinstance(data, dict):
        features = data.get("features")
        return [f for f in features if isinstance(f, dict)] if isinstance(features, list) else []
    if isinstance(data, list):
        return [f for f in data if isinstance(f, dict)]
    return []

def _records(data: Any) -> List[Dict[str, Any]]:
    return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []

# 정규화 중 건너뛸 레코드 오류
NORMALIZE_ERRORS = (ValidationError, ValueError, TypeError, AttributeError, KeyError)

def normalize_records(kind: str, raw_items: Iterable[Dict[str, Any]],
                      normalize: Callable[[Dict[str, Any]], Optional[T]]) -> Tuple[List[T], int]:
    """
    레코드를 하나씩 정규화하고 실패한 레코드는 건너뜁니다.

    Args:
        kind: 데이터 종류 (로그/메트릭 라벨)
        raw_items: 제공자 레코드 목록
        normalize: 레코드 정규화 함수 (None 반환은 건너뜀)

    Returns:
        (정규화된 레코드 목록, 건너뛴 레코드 수)
    """
    records: List[T] = []
    skipped = 0
    for raw in raw_items:
        try:
            record = normalize(raw)
        except NORMALIZE_ERRORS as e:
            log.warning(f"{kind} 레코드 정규화 오류 건너뜀 error:{e.__class__.__name__}: {e}")
            record = None
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        metrics.validation_drops.labels(kind=kind).inc(skipped)
        log.warning(f"{kind} 정규화 실패 레코드 건너뜀 count:{skipped}")
    return records, skipped

def observation_key(kind: str, icaos: Sequence[str]) -> str:
    return f"{kind}:{','.join(sorted(set(i.upper() for i in icaos)))}"

def hazard_key(kind: str, segment: BoxSegment) -> str:
    return f"{kind}:{format_bbox(segment)}"

class AWCWeatherSource:
    """AWC 기반 기상 데이터 소스"""

    def __init__(self,
                 client: AWCClient,
                 cache: CachePort,
                 *,
                 chunk_size: int = 20,
                 pool_size: int = 3,
                 observation_rate_limit: Optional[BackoffPolicy] = None,
                 hazard_rate_limit: Optional[BackoffPolicy] = None,
                 observation_ttl_sec: Optional[float] = None,
                 hazard_ttl_sec: float = 300.0,
                 empty_ttl_sec: float = 300.0,
                 hazard_timeout_sec: float = 15.0,
                 line_hazard_buffer_km: float = 10.0):
        """
        초기화합니다.

        Args:
            client: AWC API 클라이언트
            cache: 도메인 TTL 캐시
            chunk_size: 한 요청에 담을 공항 ID 수
            pool_size: 동시 요청 워커 수
            observation_rate_limit: METAR/TAF 의 429 재시도 정책
            hazard_rate_limit: 위험기상의 429 재시도 정책
            observation_ttl_sec: METAR/TAF 캐시 TTL (None이면 캐시 기본값)
            hazard_ttl_sec: 위험기상 캐시 TTL (초)
            empty_ttl_sec: 204 응답 캐시 TTL (초)
            hazard_timeout_sec: 위험기상 요청 타임아웃 (초)
            line_hazard_buffer_km: 선 형상 ISIGMET 버퍼 (킬로미터)
        """
        self.client = client
        self.cache = cache
        self.chunk_size = chunk_size
        self.pool_size = pool_size
        self.observation_rate_limit = observation_rate_limit or BackoffPolicy(
            max_retries=1, base_delay=1.0, jitter=0, exponential=False)
        self.hazard_rate_limit = hazard_rate_limit or BackoffPolicy(
            max_retries=1, base_delay=1.5, jitter=0, exponential=False)
        self.observation_ttl_sec = observation_ttl_sec
        self.hazard_ttl_sec = hazard_ttl_sec
        self.empty_ttl_sec = empty_ttl_sec
        self.hazard_timeout_sec = hazard_timeout_sec
        self.line_hazard_buffer_km = line_hazard_buffer_km

    async def _rate_limited(self, kind: str, policy: BackoffPolicy,
                            func: Callable[[], Awaitable[T]]) -> T:
        """HTTP 429 에 한해 정책만큼 추가 재시도합니다."""
        try:
            return await retry_with_backoff(
                func,
                policy,
                retry_on=(RateLimitedError,),
                operation=f"{kind} 조회",
                on_retry=lambda attempt, error: metrics.rate_limit_retries.labels(kind=kind).inc(),
            )
        except RateLimitedError as e:
            raise UpstreamUnavailable(f"{kind} still rate limited after retry", status=429,
                                      endpoint=e.endpoint) from e

    # ---- 관측/예보 ----

    async def _fetch_by_ids(self, kind: str, path: str, icaos: Sequence[str],
                            normalize: Callable[[Dict[str, Any]], T]) -> List[T]:
        ids = sorted(set(i.upper() for i in icaos if i))
        if not ids:
            return []
        key = observation_key(kind.lower(), ids)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        async def _fetch_chunk(part: List[str]) -> List[T]:
            response: UpstreamResponse = await self._rate_limited(
                kind, self.observation_rate_limit,
                lambda: self.client.request(path, {"ids": ",".join(part), "format": "json"})
            )
            if response.no_content:
                return []
            records, _ = normalize_records(kind, _records(response.data), normalize)
            return records

        parts = chunk(ids, self.chunk_size)
        results = await run_pool([partial(_fetch_chunk, part) for part in parts], self.pool_size)
        records = [record for part in results for record in part]
        self.cache.set(key, records, self.observation_ttl_sec)
        log.info(f"{kind} 조회 완료 airports:{len(ids)} chunks:{len(parts)} records:{len(records)}")
        return records

    async def fetch_metars(self, icaos: Sequence[str]) -> List[Metar]:
        return await self._fetch_by_ids("METAR", "/metar", icaos, normalize_metar)

    async def fetch_tafs(self, icaos: Sequence[str]) -> List[Taf]:
        return await self._fetch_by_ids("TAF", "/taf", icaos, normalize_taf)

    # ---- 위험기상 ----

    async def _fetch_hazards(self, kind: str, path: str, segment: BoxSegment, fmt: str,
                             normalize: Callable[[Dict[str, Any]], Optional[Hazard]]) -> List[Hazard]:
        key = hazard_key(kind.lower(), segment)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        bbox = format_bbox(segment)
        response: UpstreamResponse = await self._rate_limited(
            kind, self.hazard_rate_limit,
            lambda: self.client.request(path, {"bbox": bbox, "format": fmt}, timeout_sec=self.hazard_timeout_sec)
        )
        if response.no_content:
            log.info(f"{kind} 데이터 없음 (204) bbox:{bbox}")
            self.cache.set(key, [], self.empty_ttl_sec)
            return []

        raw_items = ensure_features(response.data) if fmt == "geojson" else _records(response.data)
        normalized, _ = normalize_records(kind, raw_items, normalize)
        hazards: List[Hazard] = []
        seen = set()
        for hazard in normalized:
            if hazard.id is not None:
                if hazard.id in seen:
                    continue
                seen.add(hazard.id)
            hazards.append(hazard)

        self.cache.set(key, hazards, self.hazard_ttl_sec)
        log.info(f"{kind} 조회 완료 bbox:{bbox} records:{len(hazards)}")
        return hazards

    async def fetch_sigmets(self, segment: BoxSegment) -> List[Hazard]:
        return await self._fetch_hazards("SIGMET", "/airsigmet", segment, "geojson", normalize_sigmet)

    async def fetch_isigmets(self, segment: BoxSegment) -> List[Hazard]:
        return await self._fetch_hazards(
            "ISIGMET", "/isigmet", segment, "geojson",
            partial(normalize_isigmet, line_buffer_km=self.line_hazard_buffer_km)
        )

    async def fetch_pireps(self, segment: BoxSegment) -> List[Hazard]:
        return await self._fetch_hazards("PIREP", "/pirep", segment, "json", normalize_pirep)
