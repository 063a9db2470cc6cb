"""Coverage profile handling for reruns."""

from rerunfails.coverage.accumulator import CoverageAccumulator
from rerunfails.coverage.profile import Block, Profile, merge_profiles, parse_cover_profile, parse_profiles

__all__ = [
    "Block",
    "CoverageAccumulator",
    "Profile",
    "merge_profiles",
    "parse_cover_profile",
    "parse_profiles",
]
