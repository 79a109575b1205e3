"""Extended M3U playlist parsing."""

import re
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

from musicscan.database.models import LOCAL_SONG_TYPE, Playlist, PlaylistEntry, Song, stable_id
from musicscan.errors import ExtractionError
from musicscan.extractor.extractor import UNKNOWN_ARTIST
from musicscan.extractor.parser import split_multi_value

URL_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
URL_SONG_TYPE = "URL"


class PlaylistParser:
    """Parses M3U/M3U8 files into Playlist records.

    Supported directives are ``#EXTINF:<seconds>,<artist> - <title>``,
    ``#PLAYLIST:<name>`` and ``#MOOSINF:<type>``, which marks the next entry
    as a non-local song of that type. Other comment lines are ignored.
    Relative entries are resolved against the playlist's folder.
    """

    def __init__(self, field_separator: str = ";") -> None:
        self.field_separator = field_separator

    def parse(self, path: Path, known_id: str | None = None) -> Playlist:
        path = Path(path)
        try:
            stat_result = path.stat()
            raw = path.read_bytes()
        except OSError as e:
            raise ExtractionError(f"Cannot read playlist ({e.strerror or e})", path) from e

        name: str | None = None
        entries: list[PlaylistEntry] = []
        duration: float | None = None
        artists: list[str] = []
        title: str | None = None
        song_type: str | None = None

        for line in _decode(raw).splitlines():
            line = line.strip()
            if not line:
                continue

            if line.startswith("#EXTINF:"):
                duration, artists, title = self._parse_extinf(line[len("#EXTINF:") :])
                continue

            if line.startswith("#MOOSINF:"):
                song_type = line[len("#MOOSINF:") :].strip() or None
                continue

            if line.startswith("#PLAYLIST:"):
                name = line[len("#PLAYLIST:") :].strip() or name
                continue

            if line.startswith("#"):
                continue

            entry = _make_entry(line, path.parent, song_type)
            entry.title = title
            entry.artists = artists
            entry.duration = duration
            entries.append(entry)

            duration, artists, title, song_type = None, [], None, None

        return Playlist(
            id=known_id or stable_id(str(path)),
            name=name or path.stem,
            source_path=str(path),
            entries=entries,
            size=stat_result.st_size,
            mtime_ns=stat_result.st_mtime_ns,
        )

    def _parse_extinf(self, value: str) -> tuple[float | None, list[str], str | None]:
        length_part, _, display = value.partition(",")

        duration: float | None
        try:
            duration = float(length_part.split()[0]) if length_part.strip() else None
        except ValueError:
            duration = None
        if duration is not None and duration < 0:
            duration = None

        artist_part, separator, title_part = display.partition(" - ")
        if not separator:
            title = display.strip() or None
            return duration, [], title

        artists = [a for a in split_multi_value([artist_part], self.field_separator) if a]
        return duration, artists, title_part.strip() or None


def remote_song(entry: PlaylistEntry, playlist_id: str | None = None) -> Song:
    """Build the song reported for a non-local playlist entry."""
    return Song(
        id=f"{entry.song_type}:{entry.location}",
        path=entry.location,
        title=entry.title or entry.location,
        artists=entry.artists or [UNKNOWN_ARTIST],
        duration=entry.duration,
        playlist_id=playlist_id,
        song_type=entry.song_type,
        playback_url=entry.location,
    )


def _make_entry(line: str, base_directory: Path, song_type: str | None = None) -> PlaylistEntry:
    if song_type and song_type != LOCAL_SONG_TYPE:
        return PlaylistEntry(location=line, song_type=song_type)

    if line.lower().startswith("file://"):
        local_path = Path(url2pathname(urlparse(line).path))
    elif URL_SCHEME.match(line):
        return PlaylistEntry(location=line, song_type=URL_SONG_TYPE)
    else:
        local_path = Path(line)

    if not local_path.is_absolute():
        local_path = base_directory / local_path

    return PlaylistEntry(location=str(local_path.resolve()))


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")
