"""
Retry utilities for SkyBrief.

This module provides a reusable backoff policy and a retry helper
shared by the upstream transport and the per-kind rate-limit handling.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar
from skybrief.observability.logging_setup import get_logger

log = get_logger("skybrief.retry")

T = TypeVar('T')

class BackoffPolicy:
    """최대 재시도 횟수와 지연 계산을 묶은 백오프 정책"""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        jitter: float = 1.0,
        max_delay: float = 60.0,
        exponential: bool = True,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None
    ):
        """
        초기화합니다.

        Args:
            max_retries: 최초 시도 이후 최대 재시도 횟수
            base_delay: 기본 지연 시간 (초)
            jitter: 추가되는 무작위 지연의 상한 (초), 0이면 지터 없음
            max_delay: 최대 지연 시간 (초)
            exponential: True면 base * 2^attempt, False면 고정 지연
            sleep: 대기 함수 (테스트에서 주입)
            rng: 난수 생성기
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.jitter = jitter
        self.max_delay = max_delay
        self.exponential = exponential
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    def delay_for(self, attempt: int) -> float:
        """
        재시도 지연 시간을 계산합니다.

        Args:
            attempt: 0부터 시작하는 재시도 순번

        Returns:
            지연 시간 (초)
        """
        delay = self.base_delay * (2 ** attempt) if self.exponential else self.base_delay
        if self.jitter > 0:
            delay += self._rng.uniform(0, self.jitter)
        return min(self.max_delay, delay)

    async def wait(self, attempt: int) -> float:
        """지연 시간만큼 대기하고 그 값을 반환합니다."""
        delay = self.delay_for(attempt)
        await self._sleep(delay)
        return delay

async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    policy: BackoffPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    operation: str = "operation",
    on_retry: Optional[Callable[[int, BaseException], None]] = None
) -> T:
    """
    백오프 정책에 따라 함수를 재시도합니다.

    retry_on 에 해당하지 않거나 should_retry 가 False 인 예외는 즉시 전파됩니다.

    Args:
        func: 재시도할 비동기 함수
        policy: 백오프 정책
        retry_on: 재시도 대상 예외 타입
        should_retry: 예외별 재시도 여부 판정 함수
        operation: 로그용 작업 이름
        on_retry: 재시도 직전에 호출되는 콜백 (메트릭 등)

    Returns:
        함수 실행 결과

    Raises:
        마지막 시도에서 발생한 예외
    """
    attempt = 0
    while True:
        try:
            return await func()
        except retry_on as e:
            if should_retry is not None and not should_retry(e):
                raise
            if attempt >= policy.max_retries:
                log.error(f"{operation} 최종 실패 (시도 {attempt + 1}/{policy.max_retries + 1}): {e}")
                raise
            if on_retry is not None:
                on_retry(attempt, e)
            delay = await policy.wait(attempt)
            log.warning(
                f"{operation} 실패 (시도 {attempt + 1}/{policy.max_retries + 1}): {e}. "
                f"{delay:.1f}초 대기 후 재시도"
            )
            attempt += 1
