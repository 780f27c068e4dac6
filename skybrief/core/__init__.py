"""
Core domain models and pure functions for SkyBrief.

This module contains the domain models and pure logic (regions,
intersection, normalization, validation, reliability) that are
independent of external I/O.
"""

from .models import BoundingBox, BoxSegment, Corridor, Hazard, ReliabilityResult, Waypoint
from .regions import build_corridor, compute_bounding_box, split_at_antimeridian
from .intersection import clamp_to_box, compute_bounds, intersects
from .reliability import score_reliability

__all__ = [
    "BoundingBox", "BoxSegment", "Corridor", "Hazard", "ReliabilityResult", "Waypoint",
    "build_corridor", "compute_bounding_box", "split_at_antimeridian",
    "clamp_to_box", "compute_bounds", "intersects", "score_reliability",
]
