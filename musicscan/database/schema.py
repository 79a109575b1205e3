"""Database schema definition."""

import sqlite3

SCHEMA_SQL = """
-- Song inventory
CREATE TABLE IF NOT EXISTS songs (
    id TEXT PRIMARY KEY,
    path TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    album_id TEXT REFERENCES albums(id) ON DELETE SET NULL,
    album_artist TEXT,
    duration REAL,
    track_number INTEGER,
    disc_number INTEGER,
    year INTEGER,
    bitrate INTEGER,
    sample_rate INTEGER,
    lyrics TEXT,
    cover_path TEXT,
    cover_thumbnail_path TEXT,
    file_size INTEGER NOT NULL,
    file_mtime_ns INTEGER NOT NULL,
    scanned_at_unix REAL NOT NULL,
    scanned_at INTEGER NOT NULL,

    -- Owned by library consumers, never written by the scanner
    date_added INTEGER,
    play_count INTEGER DEFAULT 0,
    last_played_at INTEGER
);

CREATE TABLE IF NOT EXISTS albums (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    artist TEXT,
    cover_path TEXT,
    cover_thumbnail_path TEXT
);

CREATE TABLE IF NOT EXISTS artists (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS song_artists (
    song_id TEXT NOT NULL REFERENCES songs(id) ON DELETE CASCADE,
    artist_id TEXT NOT NULL REFERENCES artists(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    PRIMARY KEY(song_id, position)
);

CREATE TABLE IF NOT EXISTS genres (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS song_genres (
    song_id TEXT NOT NULL REFERENCES songs(id) ON DELETE CASCADE,
    genre_id TEXT NOT NULL REFERENCES genres(id) ON DELETE CASCADE,
    PRIMARY KEY(song_id, genre_id)
);

-- Playlists and their ordered members
CREATE TABLE IF NOT EXISTS playlists (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    source_path TEXT NOT NULL UNIQUE,
    file_size INTEGER NOT NULL,
    file_mtime_ns INTEGER NOT NULL,
    scanned_at_unix REAL NOT NULL,
    scanned_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS playlist_songs (
    playlist_id TEXT NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    song_id TEXT REFERENCES songs(id) ON DELETE SET NULL,
    location TEXT NOT NULL,
    song_type TEXT NOT NULL DEFAULT 'LOCAL',
    title TEXT,
    artist TEXT,
    duration REAL,
    PRIMARY KEY(playlist_id, position)
);

-- Files whose last extraction failed, so unchanged broken files are not retried
CREATE TABLE IF NOT EXISTS scan_errors (
    path TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    file_mtime_ns INTEGER NOT NULL,
    error_message TEXT NOT NULL,
    failed_at_unix REAL NOT NULL,
    failed_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_songs_album ON songs(album_id) WHERE album_id IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_songs_title ON songs(title COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_song_artists_artist ON song_artists(artist_id);
CREATE INDEX IF NOT EXISTS idx_playlist_songs_song
    ON playlist_songs(song_id) WHERE song_id IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_playlist_songs_unresolved
    ON playlist_songs(location) WHERE song_id IS NULL;
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create any missing tables and indexes."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()
