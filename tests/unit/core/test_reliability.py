"""
예보 신뢰도 모듈 단위 테스트

이 모듈은 요소별 점수, 가중 재정규화, 등급 산정을 테스트합니다.
"""

import pytest
from hypothesis import given, strategies as st, settings
from skybrief.core.models import CloudLayer, ForecastBlock, Metar, Wind
from skybrief.core.reliability import (
    ForecastComparison, build_comparison, compare_forecast, rating_for,
    score_ceiling, score_reliability, score_visibility, score_weather, score_wind, summarize
)


class TestFactorScores:
    """요소별 점수 테스트"""

    @pytest.mark.parametrize("forecast,actual,expected", [
        (10, 10, 1.0), (5, 4, 0.8), (6, 4, 0.6), (10, 4, 0.3), (0, 0, 1.0), (1, 0, 0.3),
    ])
    def test_score_visibility(self, forecast, actual, expected):
        """상대 오차 시정 점수 테스트"""
        assert score_visibility(forecast, actual) == expected

    @pytest.mark.parametrize("forecast,actual,expected", [
        (1500, 1500, 1.0), (1500, 1200, 0.8), (2000, 1200, 0.6), (3000, 1000, 0.3),
    ])
    def test_score_ceiling(self, forecast, actual, expected):
        """절대 오차 운고 점수 테스트"""
        assert score_ceiling(forecast, actual) == expected

    @pytest.mark.parametrize("forecast,actual,expected", [
        ("", "", 1.0), ("-RA", "RA", 1.0), ("TSRA", "-RA", 0.7), ("TS", "", 0.5), ("", "SN", 0.3), ("TS", "SN", 0.4),
    ])
    def test_score_weather(self, forecast, actual, expected):
        """주요 기상현상 일치 점수 테스트"""
        assert score_weather(forecast, actual) == expected

    def test_score_wind_exact(self):
        """바람 완전 일치 테스트"""
        assert score_wind(Wind(direction=250, speed=10), Wind(direction=250, speed=10)) == 1.0

    def test_score_wind_direction_wraps(self):
        """풍향 360도 순환 테스트"""
        assert score_wind(Wind(direction=350, speed=10), Wind(direction=10, speed=10)) == 1.0

    def test_score_wind_variable(self):
        """가변 풍향 테스트"""
        # 0.5*1.0 + 0.3*0.6 + 0.2*1.0
        assert score_wind(Wind(variable=True, speed=4), Wind(direction=90, speed=4)) == 0.88

    def test_score_wind_gust_mismatch(self):
        """돌풍 불일치 테스트"""
        # 0.5*1.0 + 0.3*1.0 + 0.2*0.4
        assert score_wind(Wind(direction=250, speed=10, gust=30), Wind(direction=250, speed=10)) == 0.88

    def test_score_wind_missing_speed(self):
        """풍속 없음 테스트"""
        assert score_wind(Wind(direction=250), Wind(direction=250, speed=10)) is None


class TestScoreReliability:
    """가중 신뢰도 점수 테스트"""

    def test_perfect_match(self):
        """완전 일치는 정확히 1.0"""
        comparison = ForecastComparison(
            visibility=(10, 10),
            ceiling=(1500, 1500),
            weather=("-RA", "-RA"),
            wind=(Wind(direction=250, speed=10), Wind(direction=250, speed=10)),
        )
        result = score_reliability(comparison)

        assert result.score == 1.0
        assert result.rating == "HIGH"
        assert result.confidence == 1.0
        assert len(result.factors) == 4

    def test_no_factors(self):
        """비교 가능한 요소가 없는 경우"""
        result = score_reliability(ForecastComparison())

        assert result.score == 0.0
        assert result.rating == "UNKNOWN"
        assert result.factors == []
        assert result.summary == "No comparable data"

    def test_weights_renormalized(self):
        """없는 요소 제외 후 재정규화 테스트"""
        result = score_reliability(ForecastComparison(visibility=(10, 10), weather=("", "SN")))

        # (0.30*1.0 + 0.25*0.3) / 0.55
        assert result.score == 0.68
        assert result.rating == "MEDIUM"
        assert {f.factor for f in result.factors} == {"visibility", "weather"}

    def test_wind_without_speed_excluded(self):
        """풍속 없는 바람 요소 제외 테스트"""
        comparison = ForecastComparison(visibility=(10, 10), wind=(Wind(), Wind(speed=5)))
        result = score_reliability(comparison)
        assert [f.factor for f in result.factors] == ["visibility"]

    @pytest.mark.parametrize("score,rating", [
        (1.0, "HIGH"), (0.8, "HIGH"), (0.79, "MEDIUM"), (0.6, "MEDIUM"), (0.3, "LOW"), (0.29, "VERY_LOW"),
    ])
    def test_rating_for(self, score, rating):
        """등급 경계 테스트"""
        assert rating_for(score) == rating

    def test_summary_names_weakest_factor(self):
        """요약에 가장 약한 요소 포함 테스트"""
        result = score_reliability(ForecastComparison(visibility=(10, 10), ceiling=(3000, 1000)))
        assert "weakest: ceiling" in summarize(result)


class TestBuildComparison:
    """비교 입력 구성 테스트"""

    def test_ceiling_requires_both_sides(self):
        """운고는 양쪽 모두 있을 때만 비교"""
        block = ForecastBlock(visibility_sm=6, ceiling_ft=1500, weather="-RA")
        metar = Metar(icao="KLAX", visibility_sm=6, clouds=[CloudLayer(cover="SCT", base_ft=800)])

        comparison = build_comparison(block, metar)
        assert comparison.ceiling is None
        assert comparison.visibility == (6, 6)
        assert comparison.weather == ("-RA", "")

    def test_full_comparison(self):
        """모든 요소 비교 테스트"""
        block = ForecastBlock(visibility_sm=6, ceiling_ft=1500, wind=Wind(direction=250, speed=10))
        metar = Metar(icao="KLAX", visibility_sm=6, wind=Wind(direction=250, speed=10),
                      clouds=[CloudLayer(cover="BKN", base_ft=1500)])

        result = compare_forecast(block, metar)
        assert result.score == 1.0
        assert {f.factor for f in result.factors} == {"visibility", "ceiling", "weather", "wind"}

    def test_missing_inputs(self):
        """예보 또는 관측이 없는 경우"""
        assert compare_forecast(None, Metar(icao="KLAX")).rating == "UNKNOWN"
        assert compare_forecast(ForecastBlock(), None).rating == "UNKNOWN"


class TestReliabilityProperties:
    """신뢰도 속성 테스트"""

    @given(
        vis=st.one_of(st.none(), st.tuples(st.floats(0, 20), st.floats(0, 20))),
        ceiling=st.one_of(st.none(), st.tuples(st.floats(0, 20000), st.floats(0, 20000))),
        weather=st.one_of(st.none(), st.tuples(st.sampled_from(["", "TS", "-RA", "SN FZ", "TSRA"]),
                                                 st.sampled_from(["", "TS", "-RA", "SN FZ", "BR"]))),
        speeds=st.tuples(st.floats(0, 60), st.floats(0, 60)),
        directions=st.tuples(st.integers(0, 359), st.integers(0, 359)),
    )
    @settings(max_examples=200)
    def test_score_and_confidence_in_unit_interval(self, vis, ceiling, weather, speeds, directions):
        """점수와 신뢰도는 항상 0~1"""
        wind = (Wind(direction=directions[0], speed=speeds[0]), Wind(direction=directions[1], speed=speeds[1]))
        result = score_reliability(ForecastComparison(visibility=vis, ceiling=ceiling, weather=weather, wind=wind))

        assert 0.0 <= result.score <= 1.0
        assert 0.0 <= result.confidence <= 1.0
        assert result.rating != "UNKNOWN"
