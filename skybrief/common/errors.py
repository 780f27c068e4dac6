"""
Error taxonomy for SkyBrief.

This module defines the exceptions raised by region construction,
upstream access, record validation and the briefing pipeline.
"""

from typing import Optional


class BriefingError(Exception):
    """SkyBrief 최상위 예외"""


class InputError(BriefingError):
    """잘못된 경로/좌표 입력 (재시도하지 않음)"""


class InvalidInputError(InputError):
    """웨이포인트 또는 좌표 범위 오류"""


class UpstreamError(BriefingError):
    """기상 데이터 제공자 관련 예외의 기반 클래스"""

    def __init__(self, message: str, *, status: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint


class UpstreamTransientError(UpstreamError):
    """네트워크 오류, 5xx, 429 등 재시도 가능한 실패"""


class UpstreamTimeout(UpstreamTransientError):
    """요청 타임아웃"""


class RateLimitedError(UpstreamTransientError):
    """HTTP 429 (도메인 계층에서 한 번 더 재시도)"""

    def __init__(self, message: str = "rate limited", *, endpoint: Optional[str] = None):
        super().__init__(message, status=429, endpoint=endpoint)


class UpstreamUnavailable(UpstreamError):
    """재시도를 모두 소진한 경우"""


class UpstreamRejection(UpstreamError):
    """429 이외의 4xx 응답 (재시도하지 않음)"""


class BoundingBoxRejected(UpstreamRejection):
    """제공자가 bbox 파라미터를 거부함 (HTTP 400)"""


class CorridorConstructionError(BriefingError):
    """코리더 폴리곤을 만들 수 없는 경로"""


class ValidationDrop(BriefingError):
    """구조 검증에 실패한 단일 레코드"""

    def __init__(self, kind: str, record_id: Optional[str], reason: str):
        super().__init__(f"{kind}:{record_id or 'unknown'} {reason}")
        self.kind = kind
        self.record_id = record_id
        self.reason = reason
