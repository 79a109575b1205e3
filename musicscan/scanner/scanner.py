"""Main scanner implementation."""

import logging
import queue
import sqlite3
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from musicscan.config import ScanRequest
from musicscan.database import ChangeState, Database, FileKind, Playlist, PlaylistEntry, Song
from musicscan.errors import DatabaseError, ExtractionError, FilesystemError, ScanAbortedError, ScanError
from musicscan.extractor import PlaylistParser, SongExtractor, remote_song
from musicscan.library import LibrarySynchronizer
from musicscan.scanner.changes import ChangeDetector
from musicscan.scanner.filesystem import DiscoveredPath, classify_filename, walk_directory
from musicscan.scanner.pool import JobResult, WorkerPool
from musicscan.scanner.progress import ScanStats

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_DB_FAILURES = 3

_END = object()


class OutcomeKind(Enum):
    SONG = "song"
    PLAYLIST = "playlist"


@dataclass
class ScanOutcome:
    """Terminal result for one discovered song or playlist file."""

    kind: OutcomeKind
    record: Song | Playlist | None = None
    error: ScanError | None = None
    path: str | None = None
    playlist_id: str | None = None

    @property
    def song(self) -> Song | None:
        return self.record if isinstance(self.record, Song) else None

    @property
    def playlist(self) -> Playlist | None:
        return self.record if isinstance(self.record, Playlist) else None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Job:
    discovered: DiscoveredPath
    playlist_id: str | None = None


class ScanHandle:
    """A running scan.

    Outcomes are consumed once, lazily, through :meth:`outcomes`. The stream
    ends after the last outcome; :attr:`error` then holds the reason the scan
    stopped early, if it did.
    """

    def __init__(self) -> None:
        self.stats = ScanStats()
        self.error: ScanError | None = None
        self._queue: queue.Queue = queue.Queue()
        self._abort = threading.Event()
        self._done = threading.Event()
        self._consumed = False

    def outcomes(self) -> Iterator[ScanOutcome]:
        if self._consumed:
            raise RuntimeError("Scan outcomes can only be consumed once")
        self._consumed = True
        while True:
            item = self._queue.get()
            if item is _END:
                return
            yield item

    def abort(self) -> None:
        """Stop scheduling new work; in-flight jobs are still reported."""
        self._abort.set()

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the scan has produced its last outcome."""
        return self._done.wait(timeout)

    def publish(self, outcome: ScanOutcome) -> None:
        self._queue.put(outcome)

    def finish(self, error: ScanError | None) -> None:
        self.error = error
        self._queue.put(_END)
        self._done.set()


class Scanner:
    """Scans a music folder and synchronizes it into the library database.

    A scanner runs once. Discovery, extraction and database writes overlap:
    a coordinator thread walks the tree and feeds a bounded worker pool, and
    it alone writes to the database as results complete.
    """

    def __init__(
        self,
        request: ScanRequest,
        backlog_factor: int = 2,
        extractor: SongExtractor | None = None,
        playlist_parser: PlaylistParser | None = None,
    ):
        self.request = request
        self.backlog_factor = backlog_factor
        self.extractor = extractor or SongExtractor(request.output_directory, request.field_separator)
        self.playlist_parser = playlist_parser or PlaylistParser(request.field_separator)
        self.handle: ScanHandle | None = None

        self._synchronizer: LibrarySynchronizer | None = None
        self._detector: ChangeDetector | None = None
        self._pool: WorkerPool | None = None
        self._pending_playlists: list[Playlist] = []
        self._outstanding: dict[str, _Job] = {}
        self._reported_paths: set[str] = set()
        self._scheduled_members: set[str] = set()
        self._reported_remote: set[tuple[str, str]] = set()
        self._consecutive_db_failures = 0
        self._fatal_error: DatabaseError | None = None

    def start(self) -> ScanHandle:
        """Start scanning in the background and return immediately."""
        if self.handle is not None:
            raise RuntimeError("Scanner has already been started")

        self.handle = ScanHandle()
        thread = threading.Thread(target=self._run, name="musicscan-coordinator")
        thread.start()
        return self.handle

    def scan(self) -> Iterator[ScanOutcome]:
        return self.start().outcomes()

    def _run(self) -> None:
        error: ScanError | None = None
        try:
            error = self._run_scan()
        except Exception as e:
            logger.exception("Scan of %s failed", self.request.root_directory)
            error = _as_scan_error(e, self.request.root_directory)
        finally:
            self.handle.stats.end_time = time.time()
            self._finish_stats()
            self.handle.finish(error)

    def _run_scan(self) -> ScanError | None:
        request = self.request
        logger.info(
            "Starting scan of %s with %d workers%s",
            request.root_directory,
            request.worker_count,
            " (forced rescan)" if request.force_rescan else "",
        )

        try:
            request.output_directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return FilesystemError(
                f"Cannot create output directory ({e.strerror or e})", request.output_directory
            )

        db = Database(request.database_path)
        try:
            db.connect()
        except (sqlite3.Error, OSError) as e:
            db.close()
            logger.error("Cannot open library database %s: %s", request.database_path, e)
            return DatabaseError(f"Cannot open library database ({e})", request.database_path)

        with db, WorkerPool(request.worker_count, self.backlog_factor) as pool:
            self._pool = pool
            self._synchronizer = LibrarySynchronizer(db)
            self._detector = ChangeDetector(self._synchronizer, request.force_rescan)
            try:
                return self._execute()
            except Exception as e:
                self._abandon_outstanding(_as_scan_error(e, request.root_directory))
                raise
            finally:
                self.handle.stats.peak_in_flight = pool.peak_in_flight

    def _execute(self) -> ScanError | None:
        for discovered in walk_directory(self.request.root_directory):
            if self._should_stop():
                break
            self._handle_discovered(discovered)

        self._collect_all()

        if self._should_stop():
            self._abandon_playlists()
        else:
            self._resolve_playlists()

        if not self._should_stop():
            try:
                self._synchronizer.refresh_unresolved_members()
            except DatabaseError as e:
                logger.warning("Cannot link unresolved playlist members: %s", e)

        if self._fatal_error is not None:
            return self._fatal_error
        if self.handle.aborted:
            logger.info("Scan of %s aborted", self.request.root_directory)
            return ScanAbortedError("Scan aborted before completion", self.request.root_directory)
        return None

    def _should_stop(self) -> bool:
        return self.handle.aborted or self._fatal_error is not None

    def _handle_discovered(self, discovered: DiscoveredPath) -> None:
        stats = self.handle.stats

        if discovered.error is not None:
            if discovered.kind is FileKind.SKIP:
                stats.directory_errors += 1
            else:
                stats.files_discovered += 1
                self._count_failure(discovered.kind)
            self._publish(discovered.kind, error=discovered.error, path=str(discovered.path))
            return

        stats.files_discovered += 1
        try:
            state, known = self._detector.detect(discovered)
        except DatabaseError as e:
            self._database_failed(e)
            self._count_failure(discovered.kind)
            self._publish(discovered.kind, error=e, path=str(discovered.path))
            return

        if state is ChangeState.UNCHANGED:
            stats.unchanged += 1
            logger.debug("Unchanged: %s", discovered.path)
            return

        known_id = known.id if known else None
        if discovered.kind is FileKind.PLAYLIST:
            self._submit(_Job(discovered), self.playlist_parser.parse, discovered.path, known_id)
        else:
            self._submit(_Job(discovered), self.extractor.extract, discovered.path, known_id)
        self._collect_ready()

    def _submit(self, job: _Job, func, *args) -> None:
        while not self._pool.has_capacity:
            self._handle_result(self._pool.next_result())
        self._outstanding[str(job.discovered.path)] = job
        self._pool.submit(job, func, *args)

    def _collect_ready(self) -> None:
        while (result := self._pool.poll()) is not None:
            self._handle_result(result)

    def _collect_all(self) -> None:
        for result in self._pool.drain():
            self._handle_result(result)

    def _handle_result(self, result: JobResult) -> None:
        job: _Job = result.payload
        discovered = job.discovered

        if result.error is not None:
            error = result.error
            if not isinstance(error, ScanError):
                logger.exception("Unexpected failure extracting %s", discovered.path, exc_info=error)
                error = ExtractionError(f"Unexpected extraction failure ({error!r})", discovered.path)
            self._extraction_failed(job, error)
            return

        if discovered.kind is FileKind.PLAYLIST:
            self._pending_playlists.append(result.value)
        else:
            self._store_song(result.value)

    def _extraction_failed(self, job: _Job, error: ScanError) -> None:
        discovered = job.discovered
        logger.warning("%s", error)
        self._count_failure(discovered.kind)

        if self._fatal_error is None:
            try:
                self._synchronizer.record_failure(
                    discovered.path, discovered.kind, discovered.mtime_ns, discovered.size, error.message
                )
            except DatabaseError as e:
                self._database_failed(e)
            else:
                self._consecutive_db_failures = 0

        self._publish(discovered.kind, error=error, path=str(discovered.path), playlist_id=job.playlist_id)

    def _store_song(self, song: Song) -> None:
        if self._fatal_error is not None:
            self._count_failure(FileKind.AUDIO)
            self._publish(FileKind.AUDIO, error=self._fatal_error, path=song.path, playlist_id=song.playlist_id)
            return

        try:
            self._synchronizer.upsert_song(song)
        except DatabaseError as e:
            self._database_failed(e)
            self._count_failure(FileKind.AUDIO)
            self._publish(FileKind.AUDIO, error=e, path=song.path, playlist_id=song.playlist_id)
            return

        self._consecutive_db_failures = 0
        self.handle.stats.songs_synced += 1
        self._publish(FileKind.AUDIO, record=song, path=song.path, playlist_id=song.playlist_id)

    def _resolve_playlists(self) -> None:
        # Members outside the scanned tree are extracted once all songs are stored.
        for playlist in self._pending_playlists:
            for entry in playlist.entries:
                if self._should_stop():
                    break
                self._schedule_member(entry, playlist.id)
        self._collect_all()

        if self._should_stop():
            self._abandon_playlists()
            return

        for playlist in self._pending_playlists:
            self._store_playlist(playlist)
        self._pending_playlists.clear()

    def _schedule_member(self, entry: PlaylistEntry, playlist_id: str) -> None:
        if entry.is_remote:
            self._publish_remote(entry, playlist_id)
            return

        location = entry.location
        if location in self._reported_paths or location in self._scheduled_members:
            return

        path = Path(location)
        if classify_filename(path.name) is not FileKind.AUDIO:
            return

        try:
            stat_result = path.stat()
        except OSError:
            logger.debug("Playlist member %s not found", path)
            return

        discovered = DiscoveredPath(
            path=path,
            kind=FileKind.AUDIO,
            mtime_ns=stat_result.st_mtime_ns,
            size=stat_result.st_size,
        )
        try:
            state, known = self._detector.detect(discovered)
        except DatabaseError as e:
            self._database_failed(e)
            return

        # Stored songs and remembered failures are skipped alike while unchanged.
        if state is ChangeState.UNCHANGED:
            return

        self._scheduled_members.add(location)
        self.handle.stats.files_discovered += 1
        known_id = known.id if known else None
        self._submit(_Job(discovered, playlist_id), self.extractor.extract, path, known_id, playlist_id)

    def _publish_remote(self, entry: PlaylistEntry, playlist_id: str) -> None:
        song = remote_song(entry, playlist_id)
        if (playlist_id, song.id) in self._reported_remote:
            return
        self._reported_remote.add((playlist_id, song.id))
        self.handle.stats.remote_songs += 1
        self._publish(FileKind.AUDIO, record=song, path=song.path, playlist_id=playlist_id)

    def _store_playlist(self, playlist: Playlist) -> None:
        try:
            playlist.member_song_ids = self._synchronizer.resolve_members(playlist)
            self._synchronizer.upsert_playlist(playlist)
        except DatabaseError as e:
            self._database_failed(e)
            self._count_failure(FileKind.PLAYLIST)
            self._publish(FileKind.PLAYLIST, error=e, path=playlist.source_path)
            return

        self._consecutive_db_failures = 0
        self.handle.stats.playlists_synced += 1
        unresolved = playlist.member_song_ids.count(None)
        if unresolved:
            logger.info("Playlist %s has %d unresolved members", playlist.source_path, unresolved)
        self._publish(FileKind.PLAYLIST, record=playlist, path=playlist.source_path)

    def _abandon_playlists(self) -> None:
        error = self._fatal_error or ScanAbortedError("Scan aborted before playlist was stored")
        for playlist in self._pending_playlists:
            self._count_failure(FileKind.PLAYLIST)
            self._publish(
                FileKind.PLAYLIST,
                error=type(error)(error.message, playlist.source_path),
                path=playlist.source_path,
            )
        self._pending_playlists.clear()

    def _abandon_outstanding(self, error: ScanError) -> None:
        for _ in self._pool.drain():
            pass
        self._pending_playlists.clear()
        for path, job in list(self._outstanding.items()):
            self._count_failure(job.discovered.kind)
            self._publish(job.discovered.kind, error=error, path=path, playlist_id=job.playlist_id)

    def _database_failed(self, error: DatabaseError) -> None:
        self._consecutive_db_failures += 1
        logger.error("%s", error)
        if self._consecutive_db_failures >= MAX_CONSECUTIVE_DB_FAILURES and self._fatal_error is None:
            self._fatal_error = DatabaseError(
                f"Library database unavailable after {self._consecutive_db_failures} "
                f"consecutive failures, scan aborted",
                self.request.database_path,
            )
            logger.error("%s", self._fatal_error)

    def _count_failure(self, kind: FileKind) -> None:
        if kind is FileKind.PLAYLIST:
            self.handle.stats.playlists_failed += 1
        else:
            self.handle.stats.songs_failed += 1

    def _publish(
        self,
        kind: FileKind,
        record: Song | Playlist | None = None,
        error: ScanError | None = None,
        path: str | None = None,
        playlist_id: str | None = None,
    ) -> None:
        if path is not None:
            self._outstanding.pop(path, None)
            if kind is not FileKind.PLAYLIST:
                self._reported_paths.add(path)
        outcome_kind = OutcomeKind.PLAYLIST if kind is FileKind.PLAYLIST else OutcomeKind.SONG
        self.handle.publish(
            ScanOutcome(kind=outcome_kind, record=record, error=error, path=path, playlist_id=playlist_id)
        )

    def _finish_stats(self) -> None:
        stats = self.handle.stats
        logger.info(
            "Scan finished: %d discovered, %d songs, %d playlists, %d unchanged, %d errors",
            stats.files_discovered,
            stats.songs_synced,
            stats.playlists_synced,
            stats.unchanged,
            stats.songs_failed + stats.playlists_failed,
        )


def _as_scan_error(error: Exception, path: Path) -> ScanError:
    if isinstance(error, ScanError):
        return error
    return ScanError(f"Unexpected scan failure ({error})", path)
