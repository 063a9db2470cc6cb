"""Tests for rerun test case filters."""

from rerunfails.core.filters import filter_failed_unique, filter_root_cases, rerun_fails_filter
from rerunfails.testjson.models import TestCase, TestName


def case(test: str, package: str = "pkg", run_id: int = 0) -> TestCase:
    return TestCase(package=package, test=TestName(test), run_id=run_id)


class TestFilterFailedUnique:
    """Tests for the unique-leaf policy."""

    def test_deduplicates_by_package_and_test(self):
        """Test that repeated failures are selected once."""
        result = filter_failed_unique([case("TestA"), case("TestA", run_id=1), case("TestA", package="other")])
        assert [tc.key for tc in result] == [("other", "TestA"), ("pkg", "TestA")]
        assert result[1].run_id == 0

    def test_drops_parents_of_failed_subtests(self):
        """Test that a parent is not rerun when one of its subtests failed."""
        result = filter_failed_unique([case("TestFoo/bar/baz"), case("TestFoo/bar"), case("TestFoo"), case("TestFooBar")])
        assert [tc.test for tc in result] == ["TestFoo/bar/baz", "TestFooBar"]

    def test_parent_in_other_package_is_kept(self):
        """Test that parents only match subtests of the same package."""
        result = filter_failed_unique([case("TestFoo"), case("TestFoo/bar", package="other")])
        assert [tc.key for tc in result] == [("other", "TestFoo/bar"), ("pkg", "TestFoo")]

    def test_empty(self):
        """Test filtering no failures."""
        assert filter_failed_unique([]) == []


class TestFilterRootCases:
    """Tests for the root-only policy."""

    def test_keeps_only_root_tests(self):
        """Test that only root tests are selected."""
        result = filter_root_cases([case("TestFoo"), case("TestFoo/bar")])
        assert [tc.test for tc in result] == ["TestFoo"]

    def test_keeps_order_and_drops_duplicates(self):
        """Test that root selection keeps order and drops duplicates."""
        result = filter_root_cases([case("TestB"), case("TestA"), case("TestB", run_id=1)])
        assert [tc.test for tc in result] == ["TestB", "TestA"]


class TestRerunFailsFilter:
    """Tests for policy selection."""

    def test_selects_policy(self):
        """Test choosing the filter from the root-cases setting."""
        assert rerun_fails_filter(True) is filter_root_cases
        assert rerun_fails_filter(False) is filter_failed_unique
