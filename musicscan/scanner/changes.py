"""Change detection against the last persisted library state."""

from musicscan.database.models import ChangeState, KnownFile
from musicscan.library.synchronizer import LibrarySynchronizer
from musicscan.scanner.filesystem import DiscoveredPath


class ChangeDetector:
    """Decides whether a discovered file needs to be extracted again.

    A file is unchanged when both its modification time and its size match
    what the last scan stored, including files whose last extraction failed.
    """

    def __init__(self, synchronizer: LibrarySynchronizer, force_rescan: bool = False):
        self.synchronizer = synchronizer
        self.force_rescan = force_rescan

    def detect(self, discovered: DiscoveredPath) -> tuple[ChangeState, KnownFile | None]:
        known = self.synchronizer.known_state(discovered.path, discovered.kind)
        if known is None:
            return ChangeState.NEW, None

        if self.force_rescan:
            return ChangeState.MODIFIED, known

        if known.mtime_ns == discovered.mtime_ns and known.size == discovered.size:
            return ChangeState.UNCHANGED, known

        return ChangeState.MODIFIED, known
