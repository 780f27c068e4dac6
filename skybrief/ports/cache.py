"""
Cache port interface.

This module defines the protocol for the domain TTL cache.
"""

from typing import Any, Optional, Protocol

class CachePort(Protocol):
    """TTL 캐시 포트 인터페이스"""

    def get(self, key: str) -> Optional[Any]:
        """
        키로 값을 조회합니다.

        Args:
            key: 조회할 키

        Returns:
            값 또는 None (없거나 만료됨)
        """
        ...

    def set(self, key: str, value: Any, ttl_sec: Optional[float] = None) -> None:
        """
        키-값을 저장합니다.

        Args:
            key: 저장할 키
            value: 저장할 값
            ttl_sec: TTL (초), None이면 기본 TTL
        """
        ...

    def delete(self, key: str) -> None:
        """
        키를 삭제합니다.

        Args:
            key: 삭제할 키
        """
        ...
