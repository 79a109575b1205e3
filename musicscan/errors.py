"""Error types raised and reported while scanning a music library."""

from pathlib import Path


class ScanError(Exception):
    """Base class for errors reported by a scan."""

    def __init__(self, message: str, path: Path | str | None = None):
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message}: {self.path}"


class FilesystemError(ScanError):
    """Raised when a file or directory cannot be read."""


class ExtractionError(ScanError):
    """Raised when a file is corrupt, unsupported or cannot be parsed."""


class DatabaseError(ScanError):
    """Raised when the library database cannot be read or written."""


class ScanAbortedError(ScanError):
    """Reported on completion when a scan stopped before finishing its work."""
