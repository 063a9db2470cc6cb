"""Collecting coverage profiles from reruns and merging them into the original."""

import logging
from pathlib import Path

from rerunfails.coverage.profile import Profile, merge_profiles, parse_profiles, write_profiles

log = logging.getLogger(__name__)


class CoverageAccumulator:
    """Accumulates the profiles written by every rerun of a session."""

    def __init__(self, main_profile_path: Path | str):
        """Initialize the accumulator.

        Args:
            main_profile_path: Profile written by the original run; the merged
                result replaces it
        """
        self.main_profile_path = Path(main_profile_path)
        self.partials: list[list[Profile]] = []

    def rerun_profile_path(self, attempt: int, index: int) -> Path:
        """Return the profile path for the index-th rerun of an attempt."""
        return self.main_profile_path.with_name(f"{self.main_profile_path.name}.{attempt}.{index}")

    def collect(self, path: Path | str) -> list[Profile]:
        """Read a rerun profile into memory and delete the file.

        The file is removed even when parsing fails. A failed removal is
        logged and the parsed profile is kept.

        Raises:
            CoverageIOError: If the profile cannot be read
            CoverageParseError: If the profile is malformed
        """
        path = Path(path)
        try:
            profiles = parse_profiles(path)
        finally:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.warning("Failed to remove rerun coverage profile %s: %s", path, e)

        self.partials.append(profiles)
        return profiles

    def merge(self) -> Path:
        """Merge every collected profile into the main profile file.

        Raises:
            CoverageIOError: If the main profile cannot be read or written
            CoverageParseError: If any profile cannot be merged
        """
        main = parse_profiles(self.main_profile_path)
        merged = merge_profiles([main, *self.partials])
        write_profiles(self.main_profile_path, merged)
        log.debug(
            "Merged %d rerun coverage profile(s) into %s", len(self.partials), self.main_profile_path
        )
        return self.main_profile_path
