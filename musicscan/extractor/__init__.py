"""Metadata extraction from audio and playlist files."""

from musicscan.extractor.covers import EmbeddedPicture, StoredCover, store_cover
from musicscan.extractor.extractor import UNKNOWN_ARTIST, SongExtractor
from musicscan.extractor.parser import split_multi_value
from musicscan.extractor.playlist import PlaylistParser, remote_song

__all__ = [
    "EmbeddedPicture",
    "StoredCover",
    "store_cover",
    "UNKNOWN_ARTIST",
    "SongExtractor",
    "split_multi_value",
    "PlaylistParser",
    "remote_song",
]
