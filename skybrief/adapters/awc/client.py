"""
Aviation Weather Center API client for SkyBrief.

This module issues HTTP requests to the upstream weather data
provider with request deduplication and bounded retries on network
errors, timeouts and 5xx responses.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from skybrief.common.errors import (
    BoundingBoxRejected, RateLimitedError, UpstreamRejection,
    UpstreamTimeout, UpstreamTransientError, UpstreamUnavailable
)
from skybrief.common.retry import BackoffPolicy, retry_with_backoff
from skybrief.observability import metrics
from skybrief.observability.logging_setup import get_logger

log = get_logger("skybrief.awc")

@dataclass
class UpstreamResponse:
    status: int
    data: Any = None

    @property
    def no_content(self) -> bool:
        return self.status == 204 or self.data is None

@dataclass
class _DedupEntry:
    task: "asyncio.Future[UpstreamResponse]"
    started_at: float

def sanitize_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """None 과 빈 문자열 값을 제거한 쿼리 파라미터"""
    return {k: v for k, v in (params or {}).items() if v is not None and v != ""}

def _is_generic_retryable(error: BaseException) -> bool:
    # 429 는 도메인 계층에서 별도로 처리
    return isinstance(error, UpstreamTransientError) and not isinstance(error, RateLimitedError)

class AWCClient:
    """AWC 데이터 API 클라이언트"""

    def __init__(self,
                 base_url: str = "https://aviationweather.gov/api/data",
                 *,
                 user_agent: str = "SkyBrief/1.0",
                 timeout_sec: float = 10.0,
                 dedup_window_sec: float = 5.0,
                 retry_policy: Optional[BackoffPolicy] = None,
                 clock: Optional[Callable[[], float]] = None):
        """
        초기화합니다.

        Args:
            base_url: API 기본 URL
            user_agent: User-Agent 헤더
            timeout_sec: 기본 요청 타임아웃 (초)
            dedup_window_sec: 동일 요청을 공유하는 시간 창 (초)
            retry_policy: 네트워크/5xx 재시도 정책
            clock: 현재 시각 함수 (테스트에서 주입)
        """
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent
        self.timeout_sec = timeout_sec
        self.dedup_window_sec = dedup_window_sec
        self.retry_policy = retry_policy or BackoffPolicy(max_retries=3, base_delay=1.0, jitter=1.0)
        self._clock = clock or time.monotonic
        self._dedup: Dict[str, _DedupEntry] = {}
        self.session: Optional[aiohttp.ClientSession] = None

        log.info(f"AWC 클라이언트 초기화됨 base_url:{self.base_url}")

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        self.session = aiohttp.ClientSession(
            headers={
                "User-Agent": self.user_agent,
                "Accept": "application/json"
            },
            timeout=aiohttp.ClientTimeout(total=self.timeout_sec)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session:
            await self.session.close()
            self.session = None

    @staticmethod
    def dedup_key(method: str, path: str, params: Dict[str, Any]) -> str:
        return f"{method.upper()}:{path}:{json.dumps(params, sort_keys=True, default=str)}"

    def _prune_dedup(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._dedup.items()
                   if e.task.done() and now - e.started_at >= self.dedup_window_sec]
        for key in expired:
            del self._dedup[key]

    def clear_dedup_cache(self) -> None:
        self._dedup.clear()

    def dedup_snapshot(self) -> List[Dict[str, Any]]:
        """진단용 중복제거 캐시 상태 (키, 경과 시간, 완료 여부)"""
        now = self._clock()
        return [
            {"key": key, "age_sec": now - entry.started_at, "done": entry.task.done()}
            for key, entry in self._dedup.items()
        ]

    async def request(self,
                      path: str,
                      params: Optional[Dict[str, Any]] = None,
                      *,
                      method: str = "GET",
                      timeout_sec: Optional[float] = None) -> UpstreamResponse:
        """
        중복제거와 재시도를 적용해 API 요청을 수행합니다.

        같은 메서드/경로/파라미터의 요청이 시간 창 안에 이미 진행 중이거나
        완료되었으면 그 결과를 공유합니다. 실패한 요청은 즉시 캐시에서 제거됩니다.

        Args:
            path: API 경로 (예: "/metar")
            params: 쿼리 파라미터
            method: HTTP 메서드
            timeout_sec: 요청별 타임아웃 (초)

        Returns:
            응답 상태와 JSON 데이터

        Raises:
            RateLimitedError: HTTP 429
            UpstreamRejection: 429 이외의 4xx
            UpstreamUnavailable: 재시도 소진
        """
        clean = sanitize_params(params)
        key = self.dedup_key(method, path, clean)
        self._prune_dedup()

        entry = self._dedup.get(key)
        if entry is not None and self._clock() - entry.started_at < self.dedup_window_sec:
            metrics.upstream_dedup_hits.inc()
            log.debug(f"중복 요청 공유 key:{key}")
            return await asyncio.shield(entry.task)

        task = asyncio.ensure_future(self._request_with_retry(method, path, clean, timeout_sec))
        self._dedup[key] = _DedupEntry(task=task, started_at=self._clock())

        def _evict_failed(done: "asyncio.Future[UpstreamResponse]") -> None:
            current = self._dedup.get(key)
            if current is not None and current.task is done and (done.cancelled() or done.exception() is not None):
                del self._dedup[key]

        task.add_done_callback(_evict_failed)
        return await asyncio.shield(task)

    async def _request_with_retry(self, method: str, path: str, params: Dict[str, Any],
                                  timeout_sec: Optional[float]) -> UpstreamResponse:
        def _count_retry(attempt: int, error: BaseException) -> None:
            metrics.upstream_retries.labels(endpoint=path).inc()

        try:
            return await retry_with_backoff(
                lambda: self._send(method, path, params, timeout_sec),
                self.retry_policy,
                retry_on=(UpstreamTransientError,),
                should_retry=_is_generic_retryable,
                operation=f"AWC {method} {path}",
                on_retry=_count_retry,
            )
        except RateLimitedError:
            raise
        except UpstreamTransientError as e:
            raise UpstreamUnavailable(
                f"{path} unavailable after {self.retry_policy.max_retries + 1} attempts: {e}",
                status=e.status, endpoint=path
            ) from e

    async def _send(self, method: str, path: str, params: Dict[str, Any],
                    timeout_sec: Optional[float]) -> UpstreamResponse:
        """
        단일 HTTP 요청을 보내고 상태 코드를 예외로 변환합니다.

        Raises:
            RuntimeError: 세션이 없는 경우
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=timeout_sec or self.timeout_sec)
        started = time.perf_counter()
        try:
            async with self.session.request(method, url, params=params, timeout=timeout) as response:
                status = response.status
                metrics.upstream_requests.labels(endpoint=path, status=str(status)).inc()

                if status == 204:
                    return UpstreamResponse(status=204)
                if status == 429:
                    raise RateLimitedError(f"{path} rate limited", endpoint=path)
                if status == 400 and "bbox" in params:
                    raise BoundingBoxRejected(f"{path} rejected bbox {params['bbox']}", status=status, endpoint=path)
                if 400 <= status < 500:
                    raise UpstreamRejection(f"{path} rejected with HTTP {status}", status=status, endpoint=path)
                if status >= 500:
                    raise UpstreamTransientError(f"{path} failed with HTTP {status}", status=status, endpoint=path)

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise UpstreamTransientError(f"{path} returned invalid JSON", status=status, endpoint=path) from e
                return UpstreamResponse(status=status, data=data)
        except asyncio.TimeoutError as e:
            metrics.upstream_requests.labels(endpoint=path, status="timeout").inc()
            raise UpstreamTimeout(f"{path} timed out after {timeout.total}s", endpoint=path) from e
        except aiohttp.ClientError as e:
            metrics.upstream_requests.labels(endpoint=path, status="error").inc()
            raise UpstreamTransientError(f"{path} network error: {e}", endpoint=path) from e
        finally:
            metrics.upstream_request_seconds.labels(endpoint=path).observe(time.perf_counter() - started)
