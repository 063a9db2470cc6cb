"""Selection of which failed test cases to rerun."""

from typing import Callable

from rerunfails.testjson.models import TestCase

TestCaseFilter = Callable[[list[TestCase]], list[TestCase]]


def filter_failed_unique(cases: list[TestCase]) -> list[TestCase]:
    """Return the distinct failing leaves, sorted by package and test name.

    A failing parent test is dropped when one of its subtests also failed,
    because rerunning the subtest is enough to rerun the failure.
    """
    unique: dict[tuple[str, str], TestCase] = {}
    for tc in cases:
        unique.setdefault(tc.key, tc)

    names = {}
    for package, test in unique:
        names.setdefault(package, set()).add(test)

    result = []
    for key in sorted(unique):
        package, test = key
        prefix = test + "/"
        if any(other.startswith(prefix) for other in names[package]):
            continue
        result.append(unique[key])
    return result


def filter_root_cases(cases: list[TestCase]) -> list[TestCase]:
    """Return only the root tests; rerunning a root reruns all its subtests."""
    seen = set()
    result = []
    for tc in cases:
        if tc.test.is_subtest() or tc.key in seen:
            continue
        seen.add(tc.key)
        result.append(tc)
    return result


def rerun_fails_filter(run_root_cases: bool) -> TestCaseFilter:
    """Return the filter for the session's rerun policy."""
    if run_root_cases:
        return filter_root_cases
    return filter_failed_unique
