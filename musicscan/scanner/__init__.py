"""Scanner module for discovering and synchronizing music files."""

from .changes import ChangeDetector
from .emitter import ResultEmitter, SongResult
from .filesystem import DiscoveredPath, classify_filename, parse_filename, walk_directory
from .pool import JobResult, WorkerPool
from .progress import ProgressReporter, ScanStats
from .scanner import OutcomeKind, ScanHandle, ScanOutcome, Scanner

__all__ = [
    "Scanner",
    "ScanHandle",
    "ScanOutcome",
    "OutcomeKind",
    "ScanStats",
    "ChangeDetector",
    "DiscoveredPath",
    "classify_filename",
    "parse_filename",
    "walk_directory",
    "JobResult",
    "WorkerPool",
    "ResultEmitter",
    "SongResult",
    "ProgressReporter",
]
