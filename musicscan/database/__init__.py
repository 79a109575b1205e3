"""Database module for musicscan."""

from .connection import Database
from .models import (
    LOCAL_SONG_TYPE,
    ChangeState,
    FileKind,
    KnownFile,
    ParsedFilename,
    Playlist,
    PlaylistEntry,
    Song,
    stable_id,
)
from .schema import create_schema

__all__ = [
    "LOCAL_SONG_TYPE",
    "Database",
    "create_schema",
    "stable_id",
    "ChangeState",
    "FileKind",
    "KnownFile",
    "ParsedFilename",
    "Playlist",
    "PlaylistEntry",
    "Song",
]
