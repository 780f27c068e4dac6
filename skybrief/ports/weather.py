"""
Weather source port interface.

This module defines the protocol for fetching normalized
observations, forecasts and hazards for a briefing.
"""

from typing import List, Protocol, Sequence

from skybrief.core.models import BoxSegment, Hazard, Metar, Taf

class WeatherSourcePort(Protocol):
    """기상 데이터 소스 포트 인터페이스"""

    async def fetch_metars(self, icaos: Sequence[str]) -> List[Metar]:
        """공항 목록의 최신 METAR 를 가져옵니다."""
        ...

    async def fetch_tafs(self, icaos: Sequence[str]) -> List[Taf]:
        """공항 목록의 TAF 를 가져옵니다."""
        ...

    async def fetch_pireps(self, segment: BoxSegment) -> List[Hazard]:
        """박스 조각 안의 PIREP 를 가져옵니다."""
        ...

    async def fetch_sigmets(self, segment: BoxSegment) -> List[Hazard]:
        """박스 조각 안의 국내 SIGMET 를 가져옵니다."""
        ...

    async def fetch_isigmets(self, segment: BoxSegment) -> List[Hazard]:
        """박스 조각 안의 국제 SIGMET 를 가져옵니다."""
        ...
