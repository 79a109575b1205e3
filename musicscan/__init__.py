"""Music Scanner - Incremental, concurrent indexing of a local music library."""

__version__ = "0.1.0"

from musicscan.api import scan_files
from musicscan.config import ScanRequest
from musicscan.database import Database
from musicscan.scanner import Scanner

__all__ = ["Database", "Scanner", "ScanRequest", "scan_files"]
