"""
Corridor summary for SkyBrief.

This module condenses the filtered hazards and route observations
into the headline counts shown above a briefing.
"""

from typing import Iterable, Sequence

from skybrief.core.models import CorridorSummary, Hazard, Metar
from skybrief.core.normalize import extract_ceiling

MOD_PLUS = ("MODERATE", "SEVERE")

def summarize_corridor(advisories: Sequence[Hazard],
                       pireps: Sequence[Hazard],
                       metars: Iterable[Metar]) -> CorridorSummary:
    """
    경로 위험기상 요약을 계산합니다.

    Args:
        advisories: SIGMET/ISIGMET 목록
        pireps: PIREP 목록
        metars: 경로 공항 관측

    Returns:
        요약 카운트와 최저 운고/최악 시정
    """
    summary = CorridorSummary(sigmet_total=len(advisories), pirep_total=len(pireps))

    for hazard in advisories:
        phenomenon = (hazard.phenomenon or "").upper()
        if "CONVECTIVE" in phenomenon:
            summary.convective += 1
        elif "ICING" in phenomenon:
            summary.icing += 1
        elif "TURBULENCE" in phenomenon:
            summary.turbulence += 1
        else:
            summary.other += 1

    for pirep in pireps:
        if pirep.intensity not in MOD_PLUS:
            continue
        if "TURBULENCE" in pirep.phenomena:
            summary.pirep_turbulence_mod_plus += 1
        if "ICING" in pirep.phenomena:
            summary.pirep_icing_mod_plus += 1

    ceilings = []
    visibilities = []
    for metar in metars:
        ceiling = extract_ceiling(metar.clouds)
        if ceiling is not None:
            ceilings.append(ceiling)
        if metar.visibility_sm is not None:
            visibilities.append(metar.visibility_sm)
    summary.lowest_ceiling_ft = min(ceilings) if ceilings else None
    summary.worst_visibility_sm = min(visibilities) if visibilities else None
    return summary
