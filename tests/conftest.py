"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import pytest
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from skybrief.settings import Settings
from skybrief.core.models import BoxSegment, Hazard, PointGeometry, PolygonGeometry, Waypoint


class FakeClock:
    """수동으로 진행시키는 시계"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    """테스트용 수동 시계"""
    return FakeClock()


@pytest.fixture
def fixed_now():
    """고정된 브리핑 시각"""
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.log_level = "INFO"
    settings.observability.metrics_enabled = False
    return settings


@pytest.fixture
def klax_kphx():
    """KLAX → KPHX 경로 웨이포인트"""
    return [
        Waypoint(lon=-118.4, lat=34.0, ident="KLAX"),
        Waypoint(lon=-112.0, lat=33.4, ident="KPHX"),
    ]


@pytest.fixture
def unit_box():
    """(0,0)-(10,10) 박스 조각"""
    return BoxSegment(min_lon=0.0, min_lat=0.0, max_lon=10.0, max_lat=10.0)


@pytest.fixture
def square_polygon():
    """(0,0)-(4,4) 정사각형 폴리곤"""
    return PolygonGeometry(coordinates=[[[0, 0], [4, 0], [4, 4], [0, 4], [0, 0]]])


@pytest.fixture
def make_hazard(fixed_now):
    """테스트용 위험기상 생성 함수"""
    def _make(hazard_id: str, lon: float, lat: float, kind: str = "SIGMET", **extra) -> Hazard:
        if kind == "PIREP":
            defaults = dict(phenomenon="TURBULENCE", severity="MODERATE", intensity="MODERATE",
                            phenomena=["TURBULENCE"], observed_at=fixed_now)
            geometry = PointGeometry(coordinates=[lon, lat])
        else:
            defaults = dict(phenomenon="CONVECTIVE", severity="1",
                            valid_from=fixed_now, valid_to=fixed_now)
            d = 0.1
            geometry = PolygonGeometry(coordinates=[[
                [lon - d, lat - d], [lon + d, lat - d], [lon + d, lat + d], [lon - d, lat + d], [lon - d, lat - d]
            ]])
        defaults.update(extra)
        return Hazard(id=hazard_id, kind=kind, geometry=geometry, **defaults)
    return _make


@pytest.fixture
def mock_source():
    """테스트용 기상 데이터 소스"""
    source = AsyncMock()
    source.fetch_metars.return_value = []
    source.fetch_tafs.return_value = []
    source.fetch_pireps.return_value = []
    source.fetch_sigmets.return_value = []
    source.fetch_isigmets.return_value = []
    return source


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "asyncio: 비동기 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "property: hypothesis 속성 기반 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 비동기 테스트에 asyncio 마커 추가
        if asyncio.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)

        # hypothesis 테스트 마커 추가
        if "hypothesis" in item.nodeid:
            item.add_marker(pytest.mark.property)
