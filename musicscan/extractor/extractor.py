"""SongExtractor implementation."""

import logging
from pathlib import Path

from mutagen import File, MutagenError

from musicscan.database.models import Song, stable_id
from musicscan.errors import ExtractionError
from musicscan.extractor.covers import find_embedded_picture, find_folder_cover, store_cover
from musicscan.extractor.parser import (
    ALBUM_ARTIST_KEYS,
    ALBUM_KEYS,
    ARTIST_KEYS,
    DATE_KEYS,
    DISC_KEYS,
    GENRE_KEYS,
    LYRICS_KEYS,
    TITLE_KEYS,
    TRACK_KEYS,
    get_number_pair,
    get_tag_value,
    get_tag_values,
    parse_lrc,
    parse_year,
    split_multi_value,
)

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"


class SongExtractor:
    """Extracts song metadata and cover art from audio files using mutagen.

    Safe to call from several worker threads at once: it holds no mutable
    state and cover files are keyed by song id.
    """

    def __init__(self, output_directory: Path, field_separator: str = ";") -> None:
        self.output_directory = Path(output_directory)
        self.field_separator = field_separator

    def extract(
        self,
        path: Path,
        known_id: str | None = None,
        playlist_id: str | None = None,
    ) -> Song:
        """Read one audio file into a Song, raising ExtractionError on failure."""
        path = Path(path)
        song_id = known_id or stable_id(str(path))

        try:
            stat_result = path.stat()
            audio = File(str(path))
        except MutagenError as e:
            raise ExtractionError(f"Cannot parse audio file ({e})", path) from e
        except OSError as e:
            raise ExtractionError(f"Cannot read audio file ({e.strerror or e})", path) from e

        if audio is None:
            raise ExtractionError("Unsupported or unrecognised audio format", path)

        tags = audio.tags
        info = getattr(audio, "info", None)
        track_number, _ = get_number_pair(tags, *TRACK_KEYS)
        disc_number, _ = get_number_pair(tags, *DISC_KEYS)
        genres = split_multi_value(get_tag_values(tags, *GENRE_KEYS), self.field_separator)

        song = Song(
            id=song_id,
            path=str(path),
            title=get_tag_value(tags, *TITLE_KEYS) or path.stem,
            artists=split_multi_value(
                get_tag_values(tags, *ARTIST_KEYS),
                self.field_separator,
                placeholder=UNKNOWN_ARTIST,
            ),
            album=get_tag_value(tags, *ALBUM_KEYS),
            album_artist=get_tag_value(tags, *ALBUM_ARTIST_KEYS),
            duration=_info_value(info, "length", float),
            track_number=track_number,
            disc_number=disc_number,
            year=parse_year(get_tag_value(tags, *DATE_KEYS)),
            genres=[genre for genre in genres if genre],
            bitrate=_info_value(info, "bitrate", int),
            sample_rate=_info_value(info, "sample_rate", int),
            lyrics=get_tag_value(tags, *LYRICS_KEYS) or _read_lrc(path),
            size=stat_result.st_size,
            mtime_ns=stat_result.st_mtime_ns,
            playlist_id=playlist_id,
        )

        self._attach_cover(song, audio, path)
        return song

    def _attach_cover(self, song: Song, audio, path: Path) -> None:
        picture = find_embedded_picture(audio)
        if picture is None:
            folder_cover = find_folder_cover(path)
            if folder_cover:
                song.cover_path = str(folder_cover)
            return

        try:
            stored = store_cover(self.output_directory, song.id, picture)
        except OSError as e:
            logger.warning("Cannot store cover art for %s: %s", path, e)
            return

        song.cover_path = str(stored.path)
        song.cover_thumbnail_path = str(stored.thumbnail_path) if stored.thumbnail_path else None


def _info_value(info, attribute: str, cast):
    value = getattr(info, attribute, None) if info is not None else None
    if not value:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        return None


def _read_lrc(path: Path) -> str | None:
    lrc_path = path.with_suffix(".lrc")
    try:
        text = lrc_path.read_bytes().decode("utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug("Cannot read lyrics file %s: %s", lrc_path, e)
        return None
    return parse_lrc(text) or None
