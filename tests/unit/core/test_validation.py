"""
구조 검증 모듈 단위 테스트

이 모듈은 위험기상과 관측 레코드의 구조 검증을 테스트합니다.
"""

import pytest
from skybrief.common.errors import ValidationDrop
from skybrief.core.models import (
    GeometryCollection, Hazard, Metar, MultiPolygonGeometry, PointGeometry, PolygonGeometry
)
from skybrief.core.validation import is_valid_geometry, validate_hazard, validate_observation


class TestIsValidGeometry:
    """형상 유효성 테스트"""

    def test_valid_polygon(self, square_polygon):
        """정상 폴리곤 테스트"""
        assert is_valid_geometry(square_polygon) is True

    def test_short_ring(self):
        """꼭짓점이 부족한 링 테스트"""
        assert is_valid_geometry(PolygonGeometry(coordinates=[[[0, 0], [1, 0], [0, 0]]])) is False

    def test_empty_multipolygon(self):
        """빈 다중 폴리곤 테스트"""
        assert is_valid_geometry(MultiPolygonGeometry(coordinates=[])) is False

    def test_out_of_range_coordinate(self):
        """범위를 벗어난 좌표 테스트"""
        assert is_valid_geometry(PointGeometry(coordinates=[200, 0])) is False

    def test_collection(self, square_polygon):
        """형상 컬렉션 테스트"""
        assert is_valid_geometry(GeometryCollection(geometries=[square_polygon])) is True
        assert is_valid_geometry(GeometryCollection()) is False

    def test_missing(self):
        """형상 없음 테스트"""
        assert is_valid_geometry(None) is False


class TestValidateHazard:
    """위험기상 검증 테스트"""

    def test_valid_sigmet(self, make_hazard):
        """정상 SIGMET 테스트"""
        hazard = make_hazard("S1", 5, 5)
        assert validate_hazard(hazard) is hazard

    def test_valid_pirep(self, make_hazard):
        """정상 PIREP 테스트"""
        hazard = make_hazard("P1", 5, 5, kind="PIREP")
        assert validate_hazard(hazard) is hazard

    def test_missing_id(self, make_hazard):
        """ID 누락 테스트"""
        with pytest.raises(ValidationDrop) as exc_info:
            validate_hazard(make_hazard(None, 5, 5))
        assert exc_info.value.kind == "SIGMET"
        assert exc_info.value.reason == "missing id"

    def test_missing_severity(self, make_hazard):
        """SIGMET 심각도 누락 테스트"""
        with pytest.raises(ValidationDrop, match="missing severity"):
            validate_hazard(make_hazard("S1", 5, 5, severity=None))

    def test_missing_geometry(self):
        """형상 누락 테스트"""
        hazard = Hazard(id="S1", kind="SIGMET", phenomenon="ICING", severity="1")
        with pytest.raises(ValidationDrop, match="invalid geometry"):
            validate_hazard(hazard)

    def test_pirep_requires_point(self, make_hazard, square_polygon):
        """PIREP 는 점 형상이어야 함"""
        hazard = make_hazard("P1", 5, 5, kind="PIREP").model_copy(update={"geometry": square_polygon})
        with pytest.raises(ValidationDrop, match="point"):
            validate_hazard(hazard)

    def test_pirep_missing_observation_time(self, make_hazard):
        """PIREP 관측 시각 누락 테스트"""
        with pytest.raises(ValidationDrop, match="observation time"):
            validate_hazard(make_hazard("P1", 5, 5, kind="PIREP", observed_at=None))

    def test_pirep_negative_flight_level(self, make_hazard):
        """음수 비행고도 테스트"""
        with pytest.raises(ValidationDrop):
            validate_hazard(make_hazard("P1", 5, 5, kind="PIREP", flight_level=-10))


class TestValidateObservation:
    """관측 검증 테스트"""

    def test_valid_metar(self):
        """정상 METAR 테스트"""
        metar = Metar(icao="KLAX", lat=34.0, lon=-118.4)
        assert validate_observation(metar) is metar

    def test_missing_icao(self):
        """ICAO 누락 테스트"""
        with pytest.raises(ValidationDrop):
            validate_observation(Metar(lat=34.0, lon=-118.4))

    def test_missing_coordinates(self):
        """좌표 누락 테스트"""
        with pytest.raises(ValidationDrop, match="missing coordinates"):
            validate_observation(Metar(icao="KLAX"))

    def test_out_of_range(self):
        """좌표 범위 오류 테스트"""
        with pytest.raises(ValidationDrop, match="out of range"):
            validate_observation(Metar(icao="KLAX", lat=120, lon=0))
