"""Progress reporting utilities for scanning."""

import threading
import time
from dataclasses import dataclass, field

import click


@dataclass
class ScanStats:
    """Statistics for an ongoing scan operation."""

    files_discovered: int = 0
    songs_synced: int = 0
    songs_failed: int = 0
    playlists_synced: int = 0
    playlists_failed: int = 0
    unchanged: int = 0
    remote_songs: int = 0
    directory_errors: int = 0
    peak_in_flight: int = 0
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None

    @property
    def files_processed(self) -> int:
        return (
            self.songs_synced
            + self.songs_failed
            + self.playlists_synced
            + self.playlists_failed
            + self.unchanged
        )

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time or time.time()) - self.start_time


class ProgressReporter:
    """Reports scan progress to the user.

    Counts are fed from the delivery thread of a running scan, so updates
    are guarded by a lock.
    """

    def __init__(self, interval: int = 100):
        self.interval = interval
        self.songs = 0
        self.playlists = 0
        self.errors = 0
        self._last_report_count = 0
        self._lock = threading.Lock()

    def song_done(self, failed: bool, path: str | None = None) -> None:
        with self._lock:
            self.songs += 1
            if failed:
                self.errors += 1
            self._report_if_needed(path)

    def playlist_done(self, failed: bool, path: str | None = None) -> None:
        with self._lock:
            self.playlists += 1
            if failed:
                self.errors += 1
            self._report_if_needed(path)

    def report_error(self, message: str) -> None:
        click.echo(f"  ! {message}", err=True)

    def report_completion(self, stats: ScanStats) -> None:
        duration = _format_duration(stats.elapsed_seconds)
        click.echo(
            f"\nScan complete: {stats.files_discovered:,} files discovered "
            f"({duration})"
        )
        click.echo(f"  Songs synchronized: {stats.songs_synced:,}")
        click.echo(f"  Playlists synchronized: {stats.playlists_synced:,}")
        click.echo(f"  Unchanged: {stats.unchanged:,}")
        click.echo(f"  Errors: {stats.songs_failed + stats.playlists_failed:,}")
        if stats.directory_errors:
            click.echo(f"  Unreadable directories: {stats.directory_errors:,}")
        click.echo(f"  Peak concurrent extractions: {stats.peak_in_flight}")

    def report_interruption(self, stats: ScanStats) -> None:
        click.echo(
            f"\nScan interrupted. Changes so far are saved; run again to continue.\n"
            f"Processed: {stats.files_processed:,} of {stats.files_discovered:,} files"
        )

    def _report_if_needed(self, path: str | None) -> None:
        total = self.songs + self.playlists
        if total - self._last_report_count >= self.interval:
            display = path if path else "..."
            click.echo(f"[{self.songs:,} songs, {self.playlists:,} playlists] {display}", err=True)
            self._last_report_count = total


def _format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
