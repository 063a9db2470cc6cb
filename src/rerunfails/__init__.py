"""
rerunfails - rerun failing Go tests until they pass or attempts run out.

This package provides tools to:
- Run `go test -json` and collect the failing test cases
- Re-execute only the failures, one precise `-test.run` selection at a time
- Merge the coverage profiles written by every rerun into the original one
- Write a per-test tally of runs and failures
"""

__version__ = "0.1.0"
__author__ = "rerunfails Team"
