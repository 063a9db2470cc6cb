"""Reading, writing and merging Go coverage profiles.

A profile file starts with a ``mode: <set|count|atomic>`` line followed by
one line per block::

    example.com/pkg/file.go:12.34,15.2 3 7

giving the block's start line.column, end line.column, number of statements
and execution count.
"""

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Sequence

from rerunfails.errors import CoverageIOError, CoverageParseError

_MODE_PREFIX = "mode: "
_BLOCK_RE = re.compile(r"^(.+):([0-9]+)\.([0-9]+),([0-9]+)\.([0-9]+) ([0-9]+) ([0-9]+)$")


@dataclass(frozen=True)
class Block:
    """One source span and the number of times it executed."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int
    num_stmt: int
    count: int

    @property
    def span(self) -> tuple[int, int, int, int]:
        return (self.start_line, self.start_col, self.end_line, self.end_col)


@dataclass
class Profile:
    """Blocks of a single source file."""

    file_name: str
    mode: str
    blocks: list[Block] = field(default_factory=list)


def combine_counts(mode: str, a: int, b: int) -> int:
    """Combine two counts of the same block: "set" profiles only record 0 or 1."""
    if mode == "set":
        return 1 if (a or b) else 0
    return a + b


def _merge_block(mode: str, file_name: str, a: Block, b: Block) -> Block:
    if a.num_stmt != b.num_stmt:
        raise CoverageParseError(
            f"inconsistent statement count for {file_name}:{a.start_line}.{a.start_col}: "
            f"{a.num_stmt} != {b.num_stmt}"
        )
    return replace(a, count=combine_counts(mode, a.count, b.count))


def _fold_blocks(mode: str, file_name: str, blocks: Iterable[Block]) -> list[Block]:
    merged: dict[tuple[int, int, int, int], Block] = {}
    for block in blocks:
        existing = merged.get(block.span)
        merged[block.span] = block if existing is None else _merge_block(mode, file_name, existing, block)
    return [merged[span] for span in sorted(merged)]


def parse_profiles_text(text: str, source: str = "<string>") -> list[Profile]:
    """Parse profile content. Profiles are returned sorted by file name."""
    mode = ""
    by_file: dict[str, list[Block]] = {}

    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        if line.startswith(_MODE_PREFIX):
            line_mode = line[len(_MODE_PREFIX):].strip()
            if mode and line_mode != mode:
                raise CoverageParseError(f"{source}:{lineno}: mode {line_mode!r} does not match {mode!r}")
            mode = line_mode
            continue
        if not mode:
            raise CoverageParseError(f"{source}:{lineno}: missing mode line")

        match = _BLOCK_RE.match(line)
        if match is None:
            raise CoverageParseError(f"{source}:{lineno}: malformed block {line!r}")
        file_name = match.group(1)
        numbers = [int(g) for g in match.groups()[1:]]
        by_file.setdefault(file_name, []).append(Block(*numbers))

    return [
        Profile(file_name=name, mode=mode, blocks=_fold_blocks(mode, name, blocks))
        for name, blocks in sorted(by_file.items())
    ]


def parse_profiles(path: Path | str) -> list[Profile]:
    """Read a profile file.

    Raises:
        CoverageIOError: If the file cannot be read
        CoverageParseError: If the content is malformed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CoverageIOError(f"failed to read coverage profile {path}: {e}") from e
    return parse_profiles_text(text, source=str(path))


def format_profiles(profiles: Sequence[Profile]) -> str:
    if not profiles:
        return ""
    lines = [_MODE_PREFIX + profiles[0].mode]
    for profile in profiles:
        for b in profile.blocks:
            lines.append(
                f"{profile.file_name}:{b.start_line}.{b.start_col},{b.end_line}.{b.end_col} "
                f"{b.num_stmt} {b.count}"
            )
    return "\n".join(lines) + "\n"


def write_profiles(path: Path | str, profiles: Sequence[Profile]) -> None:
    """Write profiles to a file, replacing its previous content."""
    path = Path(path)
    try:
        path.write_text(format_profiles(profiles), encoding="utf-8")
    except OSError as e:
        raise CoverageIOError(f"failed to write coverage profile {path}: {e}") from e


def merge_profiles(profile_sets: Iterable[Sequence[Profile]]) -> list[Profile]:
    """Merge several sets of profiles into one.

    Blocks are keyed by file and span. A block present in more than one set
    has its counts combined (summed, or or-ed in "set" mode); every other
    block passes through unchanged.

    Raises:
        CoverageParseError: If the sets were recorded with different modes
    """
    mode = ""
    by_file: dict[str, list[Block]] = {}
    for profiles in profile_sets:
        for profile in profiles:
            if mode and profile.mode != mode:
                raise CoverageParseError(
                    f"cannot merge coverage profiles with modes {mode!r} and {profile.mode!r}"
                )
            mode = profile.mode
            by_file.setdefault(profile.file_name, []).extend(profile.blocks)

    return [
        Profile(file_name=name, mode=mode, blocks=_fold_blocks(mode, name, blocks))
        for name, blocks in sorted(by_file.items())
    ]


def parse_cover_profile(args: Sequence[str]) -> tuple[bool, str]:
    """Find the coverage profile path in go test arguments.

    Recognizes ``-coverprofile=path``, ``-coverprofile path`` and the
    ``-test.coverprofile`` spellings, with one or two leading dashes.

    Returns:
        (True, path) if a profile is requested, otherwise (False, "")
    """
    names = ("coverprofile", "test.coverprofile")
    for i, arg in enumerate(args):
        if not arg.startswith("-"):
            continue
        name, sep, value = arg.lstrip("-").partition("=")
        if name not in names:
            continue
        if sep:
            return True, value
        if i + 1 < len(args):
            return True, args[i + 1]
    return False, ""
