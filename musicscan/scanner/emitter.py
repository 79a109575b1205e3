"""Delivery of scan outcomes to caller callbacks."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from musicscan.database import Playlist, Song
from musicscan.errors import ScanError
from musicscan.scanner.scanner import OutcomeKind, ScanHandle, ScanOutcome

logger = logging.getLogger(__name__)


@dataclass
class SongResult:
    """Payload of a song callback."""

    song: Song
    playlist_id: str | None = None


SongCallback = Callable[[ScanError | None, SongResult | None], None]
PlaylistCallback = Callable[[ScanError | None, Playlist | None], None]
DoneCallback = Callable[[ScanError | None], None]


class ResultEmitter:
    """Translates the outcome stream of a scan into the three callbacks.

    Callbacks run on the emitter's own thread, never on the thread that
    started the scan, and never block extraction. ``on_done`` fires exactly
    once, after every other callback. A callback that raises is logged and
    delivery continues.
    """

    def __init__(
        self,
        on_song: SongCallback | None = None,
        on_playlist: PlaylistCallback | None = None,
        on_done: DoneCallback | None = None,
    ):
        self.on_song = on_song
        self.on_playlist = on_playlist
        self.on_done = on_done
        self._thread: threading.Thread | None = None

    def attach(self, handle: ScanHandle) -> None:
        if self._thread is not None:
            raise RuntimeError("Emitter is already attached to a scan")
        self._thread = threading.Thread(
            target=self._deliver, args=(handle,), name="musicscan-emitter"
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _deliver(self, handle: ScanHandle) -> None:
        try:
            for outcome in handle.outcomes():
                self._dispatch(outcome)
        finally:
            self._invoke(self.on_done, handle.error)

    def _dispatch(self, outcome: ScanOutcome) -> None:
        if outcome.kind is OutcomeKind.PLAYLIST:
            self._invoke(self.on_playlist, outcome.error, outcome.playlist)
            return

        song = outcome.song
        result = SongResult(song=song, playlist_id=outcome.playlist_id) if song else None
        self._invoke(self.on_song, outcome.error, result)

    def _invoke(self, callback: Callable | None, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Scan callback %s raised", getattr(callback, "__name__", callback))
