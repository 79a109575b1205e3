"""Filesystem traversal utilities for discovering songs and playlists."""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from musicscan.database.models import FileKind, ParsedFilename
from musicscan.errors import FilesystemError

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({"flac", "mp3", "ogg", "m4a", "webm", "wav", "wv", "aac", "opus"})
PLAYLIST_EXTENSIONS = frozenset({"m3u", "m3u8"})


@dataclass
class DiscoveredPath:
    path: Path
    kind: FileKind
    mtime_ns: int = 0
    size: int = 0
    error: FilesystemError | None = None


def parse_filename(filename: str) -> ParsedFilename:
    if not filename:
        return ParsedFilename(full=filename, base=filename, extension=None)

    dot_index = filename.rfind(".")

    if dot_index <= 0 or dot_index == len(filename) - 1:
        return ParsedFilename(full=filename, base=filename.rstrip("."), extension=None)

    extension = filename[dot_index + 1 :].lower()
    base = filename[:dot_index]

    return ParsedFilename(full=filename, base=base, extension=extension)


def classify_filename(filename: str) -> FileKind:
    extension = parse_filename(filename).extension
    if extension in AUDIO_EXTENSIONS:
        return FileKind.AUDIO
    if extension in PLAYLIST_EXTENSIONS:
        return FileKind.PLAYLIST
    return FileKind.SKIP


def walk_directory(root: Path) -> Iterator[DiscoveredPath]:
    """Lazily yield every song and playlist file below ``root``.

    Symlinked directories are followed, but each real directory is entered
    once. Unreadable directories are yielded as entries carrying an error.
    """
    root = Path(root)
    try:
        real_root = root.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        logger.warning("Cannot access scan root %s: %s", root, e)
        yield _error_entry(root, FileKind.SKIP, "Cannot access scan root", e)
        return

    if real_root.is_file():
        kind = classify_filename(real_root.name)
        if kind is not FileKind.SKIP:
            entry = _file_entry(real_root, kind)
            if entry:
                yield entry
        return

    yield from _walk_recursive(real_root, visited_dirs=set(), seen_files=set())


def _walk_recursive(
    directory: Path,
    visited_dirs: set[Path],
    seen_files: set[Path],
) -> Iterator[DiscoveredPath]:
    if directory in visited_dirs:
        logger.debug("Skipping already visited directory: %s", directory)
        return
    visited_dirs.add(directory)

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except PermissionError as e:
        logger.warning("Permission denied scanning directory: %s", directory)
        yield _error_entry(directory, FileKind.SKIP, "Permission denied", e)
        return
    except OSError as e:
        logger.error("Error scanning directory %s: %s", directory, e)
        yield _error_entry(directory, FileKind.SKIP, "Cannot read directory", e)
        return

    subdirs: list[Path] = []
    for entry in entries:
        try:
            if entry.is_dir():
                subdirs.append(Path(entry.path).resolve())
                continue
            if not entry.is_file():
                continue
        except OSError as e:
            logger.warning("Cannot inspect %s: %s", entry.path, e)
            continue

        kind = classify_filename(entry.name)
        if kind is FileKind.SKIP:
            continue

        discovered = _file_entry(Path(entry.path), kind)
        if discovered is None or discovered.path in seen_files:
            continue
        seen_files.add(discovered.path)
        yield discovered

    for subdir in subdirs:
        yield from _walk_recursive(subdir, visited_dirs, seen_files)


def _file_entry(path: Path, kind: FileKind) -> DiscoveredPath | None:
    try:
        real_path = path.resolve(strict=True)
        stat_result = real_path.stat()
    except FileNotFoundError:
        logger.warning("File disappeared during scan: %s", path)
        return None
    except (OSError, RuntimeError) as e:
        logger.warning("Cannot stat %s: %s", path, e)
        return _error_entry(path, kind, "Cannot read file", e)

    return DiscoveredPath(
        path=real_path,
        kind=kind,
        mtime_ns=stat_result.st_mtime_ns,
        size=stat_result.st_size,
    )


def _error_entry(path: Path, kind: FileKind, message: str, cause: Exception) -> DiscoveredPath:
    return DiscoveredPath(
        path=path,
        kind=kind,
        error=FilesystemError(f"{message} ({cause.__class__.__name__})", path),
    )
