"""Configuration module for musicscan."""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    return Path(__file__).parent.parent


def default_concurrency() -> int:
    return os.cpu_count() or 4


@dataclass
class ScannerConfig:
    field_separator: str = ";"
    max_concurrency: int = field(default_factory=default_concurrency)
    backlog_factor: int = 2
    progress_interval: int = 100


@dataclass
class Config:
    database_path: Path = field(default_factory=lambda: _get_project_root() / "data" / "library.db")
    output_directory: Path = field(default_factory=lambda: _get_project_root() / "data" / "covers")
    scanner: ScannerConfig = field(default_factory=ScannerConfig)


@dataclass(frozen=True)
class ScanRequest:
    """Parameters of a single scan. Built once and never mutated."""

    root_directory: Path
    output_directory: Path
    database_path: Path
    field_separator: str = ";"
    max_concurrency: int = field(default_factory=default_concurrency)
    force_rescan: bool = False

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive, got {self.max_concurrency}")
        object.__setattr__(self, "root_directory", Path(self.root_directory))
        object.__setattr__(self, "output_directory", Path(self.output_directory))
        object.__setattr__(self, "database_path", Path(self.database_path))

    @property
    def worker_count(self) -> int:
        """Number of extraction workers, capped at the host CPU count."""
        return min(self.max_concurrency, default_concurrency())
