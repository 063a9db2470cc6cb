"""Tests for rerun command line building."""

import re

import pytest

from rerunfails.core.command import (
    RerunOptions,
    flag_name,
    go_test_cmd_args,
    run_flag_for_test,
    run_pattern,
)
from rerunfails.testjson.models import TestCase, TestName


class TestRunPattern:
    """Tests for run_pattern."""

    def test_root_test(self):
        """Test pattern for a root test."""
        assert run_pattern("TestFoo") == "^TestFoo$"

    def test_subtest_escapes_each_segment(self):
        """Test that every subtest segment is escaped and anchored."""
        assert run_pattern("TestFoo/bar baz") == r"^TestFoo$/^bar\ baz$"

    def test_nested_subtest_with_metacharacters(self):
        """Test escaping of regex metacharacters in nested subtests."""
        assert run_pattern("TestFoo/a.b/c(1)") == r"^TestFoo$/^a\.b$/^c\(1\)$"

    def test_pattern_does_not_match_prefix_sibling(self):
        """Test that the pattern does not select tests sharing a prefix."""
        pattern = run_pattern("TestFoo").split("/")[0]
        assert re.search(pattern, "TestFoo")
        assert not re.search(pattern, "TestFooBar")

    def test_run_flag(self):
        """Test building the -test.run flag."""
        assert run_flag_for_test("TestFoo") == "-test.run=^TestFoo$"


class TestRerunOptions:
    """Tests for RerunOptions."""

    def test_from_test_case(self):
        """Test options built from a failed test case."""
        opts = RerunOptions.from_test_case(TestCase(package="example.com/pkg", test=TestName("TestA/sub")))
        assert opts.args() == ["-test.run=^TestA$/^sub$", "example.com/pkg"]

    def test_with_coverprofile_returns_copy(self):
        """Test that adding a coverage profile leaves the original options unchanged."""
        opts = RerunOptions(run_flag="-test.run=^TestA$", pkg="pkg")
        with_cover = opts.with_coverprofile("c.out.0.1")

        assert opts.coverprofile_flag == ""
        assert with_cover.args() == ["-test.run=^TestA$", "pkg", "-coverprofile=c.out.0.1"]

    def test_empty_options(self):
        """Test that empty options add no arguments."""
        assert RerunOptions().args() == []


class TestFlagName:
    """Tests for flag_name."""

    def test_variants(self):
        """Test flag name extraction for the accepted spellings."""
        assert flag_name("-run=x") == "run"
        assert flag_name("--run") == "run"
        assert flag_name("-test.run=x") == "run"
        assert flag_name("-v") == "v"


class TestGoTestCmdArgs:
    """Tests for go_test_cmd_args."""

    def test_initial_run_adds_json(self):
        """Test that -json is added to the initial run."""
        assert go_test_cmd_args(["-count=1", "./..."], RerunOptions()) == [
            "go", "test", "-json", "-count=1", "./...",
        ]

    def test_does_not_duplicate_json(self):
        """Test that an existing -json flag is not repeated."""
        assert go_test_cmd_args(["-json", "./..."], RerunOptions()) == ["go", "test", "-json", "./..."]

    def test_rerun_replaces_run_flag_and_packages(self):
        """Test that a rerun replaces -run and the package patterns."""
        opts = RerunOptions.from_test_case(TestCase(package="pkg/a", test=TestName("TestA")))
        args = go_test_cmd_args(["-run", "TestA|TestB", "-count", "1", "./pkg/..."], opts)

        assert args == ["go", "test", "-json", "-count", "1", "-test.run=^TestA$", "pkg/a"]

    def test_rerun_replaces_coverprofile(self):
        """Test that a rerun writes coverage to its own profile."""
        opts = RerunOptions(run_flag="-test.run=^TestA$", pkg="pkg").with_coverprofile("c.out.0.0")
        args = go_test_cmd_args(["-coverprofile=c.out", "-v", "./..."], opts)

        assert args == ["go", "test", "-json", "-v", "-test.run=^TestA$", "pkg", "-coverprofile=c.out.0.0"]

    def test_binary_args_stay_last(self):
        """Test that -args and everything after it stay at the end."""
        opts = RerunOptions(run_flag="-test.run=^TestA$", pkg="pkg")
        args = go_test_cmd_args(["./...", "-args", "-update", "golden"], opts)

        assert args == ["go", "test", "-json", "-test.run=^TestA$", "pkg", "-args", "-update", "golden"]

    @pytest.mark.parametrize(
        "flag",
        ["-C", "-asmflags", "-buildmode", "-compiler", "-gccgoflags", "-installsuffix", "-overlay", "-pgo", "-pkgdir", "-toolexec"],
    )
    def test_build_flag_values_are_kept(self, flag):
        """Test that build flags keep their separate value on a rerun."""
        opts = RerunOptions(run_flag="-test.run=^TestA$", pkg="pkg")
        args = go_test_cmd_args([flag, "value", "./..."], opts)

        assert args == ["go", "test", "-json", flag, "value", "-test.run=^TestA$", "pkg"]
