"""
Orchestrators for SkyBrief.

This module contains the orchestrator that coordinates
the flow between the weather source port and the core.
"""
from .briefing import BriefingOrchestrator, parse_route

__all__ = ["BriefingOrchestrator", "parse_route"]
