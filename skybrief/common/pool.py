"""
Bounded concurrency helpers for SkyBrief.

This module splits large ID lists into fixed-size chunks and runs
fetch tasks through a fixed-size asyncio worker pool so a wide
request never opens unbounded simultaneous connections.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar('T')

def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """
    리스트를 고정 크기 묶음으로 나눕니다.

    Args:
        items: 나눌 항목
        size: 묶음 크기 (1 이상)

    Returns:
        묶음 목록 (마지막 묶음은 더 작을 수 있음)
    """
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]

async def run_pool(
    factories: Sequence[Callable[[], Awaitable[T]]],
    size: int = 3,
    *,
    return_exceptions: bool = False
) -> List[Any]:
    """
    작업 팩토리들을 고정 크기 워커 풀로 실행합니다.

    Args:
        factories: 호출 시 코루틴을 돌려주는 함수 목록
        size: 동시에 실행할 워커 수
        return_exceptions: True면 예외를 결과 자리에 담아 반환

    Returns:
        입력 순서대로의 결과 목록

    Raises:
        return_exceptions=False 일 때 입력 순서상 첫 번째 예외
    """
    results: List[Any] = [None] * len(factories)
    queue: asyncio.Queue = asyncio.Queue()
    for index, factory in enumerate(factories):
        queue.put_nowait((index, factory))

    async def _worker() -> None:
        while True:
            try:
                index, factory = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[index] = await factory()
            except Exception as e:
                results[index] = e
            finally:
                queue.task_done()

    workers = [asyncio.create_task(_worker()) for _ in range(max(1, min(size, len(factories))))]
    await asyncio.gather(*workers)

    if not return_exceptions:
        for result in results:
            if isinstance(result, Exception):
                raise result
    return results
