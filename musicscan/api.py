"""Callback entry point for scanning a music library."""

from pathlib import Path

from musicscan.config import ScanRequest, default_concurrency
from musicscan.scanner.emitter import DoneCallback, PlaylistCallback, ResultEmitter, SongCallback
from musicscan.scanner.scanner import ScanHandle, Scanner


def scan_files(
    root_directory: Path | str,
    output_directory: Path | str,
    database_path: Path | str,
    field_separator: str = ";",
    max_concurrency: int | None = None,
    force_rescan: bool = False,
    on_song: SongCallback | None = None,
    on_playlist: PlaylistCallback | None = None,
    on_done: DoneCallback | None = None,
) -> ScanHandle:
    """Scan ``root_directory`` in the background, reporting through callbacks.

    Returns immediately. ``on_song(error, result)`` fires once per song and
    ``on_playlist(error, playlist)`` once per playlist, with exactly one of the
    two arguments set. ``on_done(error)`` fires last, exactly once; ``error``
    is set only when the scan stopped early.

    Raises ValueError for an invalid ``max_concurrency``; every other problem
    is reported through the callbacks.
    """
    request = ScanRequest(
        root_directory=Path(root_directory),
        output_directory=Path(output_directory),
        database_path=Path(database_path),
        field_separator=field_separator,
        max_concurrency=default_concurrency() if max_concurrency is None else max_concurrency,
        force_rescan=force_rescan,
    )
    emitter = ResultEmitter(on_song=on_song, on_playlist=on_playlist, on_done=on_done)
    handle = Scanner(request).start()
    emitter.attach(handle)
    return handle
