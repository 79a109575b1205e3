"""Data models for the library database."""

import hashlib
from dataclasses import dataclass, field
from enum import Enum


LOCAL_SONG_TYPE = "LOCAL"


class FileKind(Enum):
    """Classification of a filesystem entry."""

    AUDIO = "audio"
    PLAYLIST = "playlist"
    SKIP = "skip"


class ChangeState(Enum):
    """Whether a discovered file needs extraction."""

    NEW = "new"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


@dataclass
class Song:
    """Represents a song record as stored in the library."""

    id: str
    path: str
    title: str
    artists: list[str]
    album: str | None = None
    album_artist: str | None = None
    duration: float | None = None
    track_number: int | None = None
    disc_number: int | None = None
    year: int | None = None
    genres: list[str] = field(default_factory=list)
    bitrate: int | None = None
    sample_rate: int | None = None
    lyrics: str | None = None
    cover_path: str | None = None
    cover_thumbnail_path: str | None = None
    size: int = 0
    mtime_ns: int = 0
    playlist_id: str | None = None
    song_type: str = LOCAL_SONG_TYPE
    playback_url: str | None = None


@dataclass
class PlaylistEntry:
    """A single entry parsed from a playlist file."""

    location: str
    title: str | None = None
    artists: list[str] = field(default_factory=list)
    duration: float | None = None
    song_type: str = LOCAL_SONG_TYPE

    @property
    def is_remote(self) -> bool:
        return self.song_type != LOCAL_SONG_TYPE


@dataclass
class Playlist:
    """Represents a playlist record and its ordered members."""

    id: str
    name: str
    source_path: str
    entries: list[PlaylistEntry] = field(default_factory=list)
    member_song_ids: list[str | None] = field(default_factory=list)
    size: int = 0
    mtime_ns: int = 0


@dataclass
class KnownFile:
    """Last persisted state of a file, used for change detection."""

    id: str | None
    mtime_ns: int
    size: int
    failed: bool = False


@dataclass
class ParsedFilename:
    """Parsed components of a filename."""

    full: str
    base: str
    extension: str | None


def stable_id(*parts: str) -> str:
    """Derive a deterministic identifier from one or more key strings."""
    digest = hashlib.blake2b(digest_size=16)
    for part in parts:
        digest.update(part.encode("utf-8", errors="surrogateescape"))
        digest.update(b"\x00")
    return digest.hexdigest()
