"""
Forecast reliability scoring for SkyBrief.

This module compares a TAF forecast block with the METAR observed
during its validity and produces a weighted accuracy score over
visibility, ceiling, weather phenomena and wind.
"""

import math
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from skybrief.core.models import FactorScore, ForecastBlock, Metar, ReliabilityResult, Wind
from skybrief.core.normalize import extract_ceiling

WEIGHTS: Dict[str, float] = {
    "visibility": 0.30,
    "ceiling": 0.30,
    "weather": 0.25,
    "wind": 0.15,
}
TOTAL_WEIGHT = sum(WEIGHTS.values())

SIGNIFICANT_WEATHER = ("TS", "SN", "FZ", "RA")

# (상한, 점수) 구간표
VISIBILITY_BANDS: List[Tuple[float, float]] = [(0.10, 1.0), (0.25, 0.8), (0.50, 0.6)]
CEILING_BANDS: List[Tuple[float, float]] = [(200, 1.0), (500, 0.8), (1000, 0.6)]
WIND_SPEED_BANDS: List[Tuple[float, float]] = [(5, 1.0), (10, 0.75), (15, 0.5)]
WIND_DIRECTION_BANDS: List[Tuple[float, float]] = [(20, 1.0), (45, 0.75), (90, 0.5)]
GUST_BANDS: List[Tuple[float, float]] = [(5, 1.0), (10, 0.75)]

VARIABLE_DIRECTION_SCORE = 0.6


class ForecastComparison(BaseModel):
    """예보와 관측 비교 입력 (없는 요소는 None)"""
    visibility: Optional[Tuple[float, float]] = None
    ceiling: Optional[Tuple[float, float]] = None
    weather: Optional[Tuple[str, str]] = None
    wind: Optional[Tuple[Wind, Wind]] = None


def _band(error: float, bands: List[Tuple[float, float]], default: float) -> float:
    for limit, score in bands:
        if error <= limit:
            return score
    return default

def score_visibility(forecast: float, actual: float) -> float:
    """상대 오차 기반 시정 점수"""
    error = abs(forecast - actual)
    if actual > 0:
        relative = error / actual
    else:
        relative = 0.0 if error == 0 else 1.0
    return _band(relative, VISIBILITY_BANDS, 0.3)

def score_ceiling(forecast: float, actual: float) -> float:
    """절대 오차(피트) 기반 운고 점수"""
    return _band(abs(forecast - actual), CEILING_BANDS, 0.3)

def significant_codes(weather: str) -> List[str]:
    text = (weather or "").upper()
    return [code for code in SIGNIFICANT_WEATHER if code in text]

def score_weather(forecast: str, actual: str) -> float:
    """
    주요 기상현상(TS/SN/FZ/RA) 일치 점수.

    Args:
        forecast: 예보 기상 문자열
        actual: 관측 기상 문자열

    Returns:
        점수 (0~1)
    """
    predicted = set(significant_codes(forecast))
    observed = set(significant_codes(actual))
    if not predicted and not observed:
        return 1.0
    if predicted and observed:
        if predicted == observed:
            return 1.0
        ratio = len(predicted & observed) / max(len(predicted), len(observed))
        if ratio >= 0.8:
            return 0.9
        if ratio >= 0.5:
            return 0.7
        return 0.4
    # 예보만 있음 (오경보) / 관측만 있음 (미탐지)
    return 0.5 if predicted else 0.3

def score_wind(forecast: Wind, actual: Wind) -> Optional[float]:
    """
    풍속/풍향/돌풍을 합친 바람 점수.

    Returns:
        0.5*풍속 + 0.3*풍향 + 0.2*돌풍, 풍속이 없으면 None
    """
    if forecast.speed is None or actual.speed is None:
        return None
    speed = _band(abs(forecast.speed - actual.speed), WIND_SPEED_BANDS, 0.3)

    if forecast.variable or actual.variable or forecast.direction is None or actual.direction is None:
        direction = VARIABLE_DIRECTION_SCORE
    else:
        diff = abs(forecast.direction - actual.direction) % 360
        direction = _band(min(diff, 360 - diff), WIND_DIRECTION_BANDS, 0.25)

    if forecast.gust is not None or actual.gust is not None:
        gust = _band(abs((forecast.gust or 0) - (actual.gust or 0)), GUST_BANDS, 0.4)
    else:
        gust = 1.0
    return round(0.5 * speed + 0.3 * direction + 0.2 * gust, 2)

def build_comparison(block: Optional[ForecastBlock], metar: Optional[Metar]) -> ForecastComparison:
    """
    예보 블록과 관측에서 데이터가 있는 요소만 비교 입력으로 구성합니다.

    Args:
        block: 현재 유효한 예보 블록
        metar: 관측

    Returns:
        비교 입력
    """
    if block is None or metar is None:
        return ForecastComparison()

    comparison = ForecastComparison(weather=(block.weather or "", metar.present_weather or ""))
    if block.visibility_sm is not None and metar.visibility_sm is not None:
        comparison.visibility = (block.visibility_sm, metar.visibility_sm)
    actual_ceiling = extract_ceiling(metar.clouds)
    if block.ceiling_ft is not None and actual_ceiling is not None:
        comparison.ceiling = (float(block.ceiling_ft), float(actual_ceiling))
    if block.wind.speed is not None and metar.wind.speed is not None:
        comparison.wind = (block.wind, metar.wind)
    return comparison

def rating_for(score: float) -> str:
    if score >= 0.8:
        return "HIGH"
    if score >= 0.6:
        return "MEDIUM"
    if score >= 0.3:
        return "LOW"
    return "VERY_LOW"

def score_reliability(comparison: ForecastComparison) -> ReliabilityResult:
    """
    비교 입력으로 가중 신뢰도 점수를 계산합니다.

    데이터가 있는 요소의 가중치만으로 재정규화한 가중 평균을 사용합니다.

    Args:
        comparison: 예보/관측 비교 입력

    Returns:
        신뢰도 결과 (요소가 없으면 UNKNOWN, 점수 0)
    """
    factors: List[FactorScore] = []
    if comparison.visibility is not None:
        f, a = comparison.visibility
        factors.append(FactorScore(factor="visibility", score=score_visibility(f, a), weight=WEIGHTS["visibility"],
                                   details=f"forecast {f:g}SM vs actual {a:g}SM"))
    if comparison.ceiling is not None:
        f, a = comparison.ceiling
        factors.append(FactorScore(factor="ceiling", score=score_ceiling(f, a), weight=WEIGHTS["ceiling"],
                                   details=f"forecast {f:.0f}ft vs actual {a:.0f}ft"))
    if comparison.weather is not None:
        f, a = comparison.weather
        factors.append(FactorScore(factor="weather", score=score_weather(f, a), weight=WEIGHTS["weather"],
                                   details=f"forecast '{f or 'none'}' vs actual '{a or 'none'}'"))
    if comparison.wind is not None:
        wind_score = score_wind(*comparison.wind)
        if wind_score is not None:
            factors.append(FactorScore(factor="wind", score=wind_score, weight=WEIGHTS["wind"]))

    if not factors:
        return ReliabilityResult(score=0.0, rating="UNKNOWN", confidence=0.0, summary="No comparable data")

    used_weight = sum(f.weight for f in factors)
    score = round(sum(f.score * f.weight for f in factors) / used_weight, 2)

    scores = [f.score for f in factors]
    if len(scores) > 1:
        mean = sum(scores) / len(scores)
        std = math.sqrt(sum((s - mean) ** 2 for s in scores) / len(scores))
    else:
        std = 0.0
    coverage = min(1.0, used_weight / TOTAL_WEIGHT)
    confidence = round((coverage + max(0.0, 1.0 - std)) / 2, 2)

    result = ReliabilityResult(score=score, rating=rating_for(score), confidence=confidence, factors=factors)
    result.summary = summarize(result)
    return result

def summarize(result: ReliabilityResult) -> str:
    """신뢰도 결과 한 줄 요약"""
    if result.rating == "UNKNOWN" or not result.factors:
        return "No comparable data"
    weakest = min(result.factors, key=lambda f: f.score)
    text = f"{result.rating} reliability ({result.score:.0%}) across {len(result.factors)} factors"
    if weakest.score < 1.0:
        text += f"; weakest: {weakest.factor} ({weakest.score:.2f})"
    return text

def compare_forecast(block: Optional[ForecastBlock], metar: Optional[Metar]) -> ReliabilityResult:
    return score_reliability(build_comparison(block, metar))
