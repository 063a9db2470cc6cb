"""Building go test command lines for reruns."""

import re
from dataclasses import dataclass, replace
from typing import Iterable

from rerunfails.testjson.models import TestCase, TestName

RUN_FLAG_PREFIX = "-test.run="

# go test flags that take a separate value when written without "=".
_VALUE_FLAGS = frozenset(
    {
        "C",
        "asmflags",
        "bench",
        "benchtime",
        "blockprofile",
        "blockprofilerate",
        "buildmode",
        "compiler",
        "count",
        "coverpkg",
        "covermode",
        "coverprofile",
        "cpu",
        "cpuprofile",
        "exec",
        "fuzz",
        "fuzzminimizetime",
        "fuzztime",
        "gccgoflags",
        "gcflags",
        "installsuffix",
        "list",
        "ldflags",
        "memprofile",
        "memprofilerate",
        "mod",
        "modfile",
        "mutexprofile",
        "mutexprofilefraction",
        "o",
        "outputdir",
        "overlay",
        "p",
        "parallel",
        "pgo",
        "pkgdir",
        "run",
        "shuffle",
        "skip",
        "tags",
        "timeout",
        "toolexec",
        "trace",
        "vet",
    }
)


def run_pattern(test: str) -> str:
    """Return a -run pattern that selects exactly the named test.

    Each `/`-separated segment is escaped and anchored on its own, so
    `TestFoo/bar` selects neither `TestFooBar` nor `TestFoo/barbaz`.
    """
    return "/".join(f"^{re.escape(part)}$" for part in TestName(test).segments())


def run_flag_for_test(test: str) -> str:
    return RUN_FLAG_PREFIX + run_pattern(test)


@dataclass(frozen=True)
class RerunOptions:
    """Arguments that select what a single rerun executes."""

    run_flag: str = ""
    pkg: str = ""
    coverprofile_flag: str = ""

    def args(self) -> list[str]:
        return [arg for arg in (self.run_flag, self.pkg, self.coverprofile_flag) if arg]

    def with_coverprofile(self, path: str) -> "RerunOptions":
        return replace(self, coverprofile_flag=f"-coverprofile={path}")

    @classmethod
    def from_test_case(cls, tc: TestCase) -> "RerunOptions":
        return cls(run_flag=run_flag_for_test(tc.test), pkg=tc.package)


def flag_name(arg: str) -> str:
    """Return the bare name of a flag argument, e.g. "run" for "-test.run=x"."""
    name = arg.lstrip("-").split("=", 1)[0]
    if name.startswith("test."):
        name = name[len("test."):]
    return name


def go_test_cmd_args(base_args: Iterable[str], rerun_opts: RerunOptions) -> list[str]:
    """Build the go test command line for a run.

    Args:
        base_args: Arguments given to the original go test invocation
        rerun_opts: Selection for this run; empty options repeat the original run

    Returns:
        Command line starting with "go", "test"
    """
    base_args = list(base_args)
    binary_args: list[str] = []
    if "-args" in base_args:
        index = base_args.index("-args")
        base_args, binary_args = base_args[:index], base_args[index:]

    kept: list[str] = []
    has_json = False
    args = iter(base_args)
    for arg in args:
        if not arg.startswith("-"):
            # A package pattern; replaced by the package of the rerun.
            if not rerun_opts.pkg:
                kept.append(arg)
            continue

        name = flag_name(arg)
        value = None
        if name in _VALUE_FLAGS and "=" not in arg:
            value = next(args, None)

        if name == "json":
            has_json = True
        if name == "run" and rerun_opts.run_flag:
            continue
        if name == "coverprofile" and rerun_opts.coverprofile_flag:
            continue

        kept.append(arg)
        if value is not None:
            kept.append(value)

    result = ["go", "test"]
    if not has_json:
        result.append("-json")
    return result + kept + rerun_opts.args() + binary_args
