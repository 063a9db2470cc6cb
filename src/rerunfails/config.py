"""Configuration management for rerunfails."""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class GoTestConfig(BaseModel):
    """go test invocation configuration."""

    args: list[str] = Field(default_factory=list, description="Arguments passed to go test (e.g. ['-count=1', './...'])")
    working_directory: str = Field(default=".", description="Directory to run go test in")
    environment: dict[str, str] = Field(default_factory=dict, description="Additional environment variables")


class RerunConfig(BaseModel):
    """Rerun behaviour configuration."""

    max_attempts: int = Field(default=0, description="Maximum number of rerun rounds (0 disables reruns)")
    max_failures: int = Field(default=10, description="Do not rerun when the initial run has more failures")
    run_root_cases: bool = Field(default=False, description="Rerun root tests instead of only the failed subtests")
    report_file: Optional[str] = Field(default=None, description="Write a runs/failures tally to this file")

    @field_validator("max_attempts", "max_failures")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value must not be negative")
        return v


class RerunFailsConfig(BaseModel):
    """Main configuration for rerunfails."""

    test: GoTestConfig = Field(default_factory=GoTestConfig)
    rerun: RerunConfig = Field(default_factory=RerunConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "RerunFailsConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "RerunFailsConfig":
        """Find and load configuration file, searching up the directory tree."""
        if start_dir is None:
            start_dir = Path.cwd()
        else:
            start_dir = Path(start_dir)

        config_names = ["rerunfails.json", ".rerunfails.json"]

        current = start_dir.resolve()
        for directory in [current, *current.parents]:
            for name in config_names:
                config_path = directory / name
                if config_path.exists():
                    return cls.from_file(config_path)

        raise FileNotFoundError(
            "No configuration file found. Create rerunfails.json or run 'rerunfails init'"
        )

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)

    def get_absolute_paths(self, base_dir: Path | str | None = None) -> dict[str, Optional[Path]]:
        """Get absolute paths for the paths in the config."""
        if base_dir is None:
            base_dir = Path.cwd()
        else:
            base_dir = Path(base_dir)

        report_file = None
        if self.rerun.report_file:
            report_file = (base_dir / self.rerun.report_file).resolve()

        return {
            "working_directory": (base_dir / self.test.working_directory).resolve(),
            "report_file": report_file,
        }


def get_default_config() -> RerunFailsConfig:
    """Return a default configuration."""
    return RerunFailsConfig(
        test=GoTestConfig(args=["./..."], working_directory="."),
        rerun=RerunConfig(max_attempts=2),
    )


def create_example_config(output_path: Path | str) -> Path:
    """Create an example configuration file."""
    output_path = Path(output_path)
    config = get_default_config()
    config.rerun.report_file = "rerun-report.txt"
    config.to_file(output_path)
    return output_path
