"""Persists extracted songs and playlists into the library database."""

import logging
import sqlite3
import time
from pathlib import Path

from musicscan.database.connection import Database
from musicscan.database.models import FileKind, KnownFile, Playlist, PlaylistEntry, Song, stable_id
from musicscan.errors import DatabaseError

logger = logging.getLogger(__name__)

UPSERT_SONG_SQL = """
    INSERT INTO songs (
        id, path, title, album_id, album_artist, duration,
        track_number, disc_number, year, bitrate, sample_rate, lyrics,
        cover_path, cover_thumbnail_path, file_size, file_mtime_ns,
        scanned_at_unix, scanned_at, date_added
    ) VALUES (
        :id, :path, :title, :album_id, :album_artist, :duration,
        :track_number, :disc_number, :year, :bitrate, :sample_rate, :lyrics,
        :cover_path, :cover_thumbnail_path, :file_size, :file_mtime_ns,
        :scanned_at_unix, :scanned_at, :scanned_at
    )
    ON CONFLICT(id) DO UPDATE SET
        path = excluded.path,
        title = excluded.title,
        album_id = excluded.album_id,
        album_artist = excluded.album_artist,
        duration = excluded.duration,
        track_number = excluded.track_number,
        disc_number = excluded.disc_number,
        year = excluded.year,
        bitrate = excluded.bitrate,
        sample_rate = excluded.sample_rate,
        lyrics = excluded.lyrics,
        cover_path = excluded.cover_path,
        cover_thumbnail_path = excluded.cover_thumbnail_path,
        file_size = excluded.file_size,
        file_mtime_ns = excluded.file_mtime_ns,
        scanned_at_unix = excluded.scanned_at_unix,
        scanned_at = excluded.scanned_at
"""

UPSERT_PLAYLIST_SQL = """
    INSERT INTO playlists (
        id, name, source_path, file_size, file_mtime_ns, scanned_at_unix, scanned_at
    ) VALUES (
        :id, :name, :source_path, :file_size, :file_mtime_ns, :scanned_at_unix, :scanned_at
    )
    ON CONFLICT(id) DO UPDATE SET
        name = excluded.name,
        source_path = excluded.source_path,
        file_size = excluded.file_size,
        file_mtime_ns = excluded.file_mtime_ns,
        scanned_at_unix = excluded.scanned_at_unix,
        scanned_at = excluded.scanned_at
"""


class LibrarySynchronizer:
    """Upserts songs and playlists keyed by their stable ids.

    Every write runs in its own transaction. Callers must use one instance
    from a single thread, which serializes all writes of a scan.
    """

    def __init__(self, db: Database):
        self.db = db

    def known_state(self, path: Path | str, kind: FileKind) -> KnownFile | None:
        """Return the last persisted state of a file, or None if never seen."""
        if kind is FileKind.PLAYLIST:
            query = "SELECT id, file_mtime_ns, file_size FROM playlists WHERE source_path = ?"
        else:
            query = "SELECT id, file_mtime_ns, file_size FROM songs WHERE path = ?"

        try:
            record_row = self.db.conn.execute(query, (str(path),)).fetchone()
            error_row = self.db.conn.execute(
                "SELECT file_mtime_ns, file_size FROM scan_errors WHERE path = ?",
                (str(path),),
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot read library state ({e})", path) from e

        known_id = record_row["id"] if record_row else None
        if error_row:
            return KnownFile(
                id=known_id,
                mtime_ns=error_row["file_mtime_ns"],
                size=error_row["file_size"],
                failed=True,
            )
        if record_row:
            return KnownFile(
                id=known_id,
                mtime_ns=record_row["file_mtime_ns"],
                size=record_row["file_size"],
            )
        return None

    def upsert_song(self, song: Song) -> None:
        now = time.time()
        try:
            with self.db.transaction() as conn:
                album_id = self._upsert_album(conn, song)
                conn.execute(
                    UPSERT_SONG_SQL,
                    {
                        "id": song.id,
                        "path": song.path,
                        "title": song.title,
                        "album_id": album_id,
                        "album_artist": song.album_artist,
                        "duration": song.duration,
                        "track_number": song.track_number,
                        "disc_number": song.disc_number,
                        "year": song.year,
                        "bitrate": song.bitrate,
                        "sample_rate": song.sample_rate,
                        "lyrics": song.lyrics,
                        "cover_path": song.cover_path,
                        "cover_thumbnail_path": song.cover_thumbnail_path,
                        "file_size": song.size,
                        "file_mtime_ns": song.mtime_ns,
                        "scanned_at_unix": now,
                        "scanned_at": int(now),
                    },
                )
                self._replace_artists(conn, song)
                self._replace_genres(conn, song)
                conn.execute("DELETE FROM scan_errors WHERE path = ?", (song.path,))
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot store song ({e})", song.path) from e

    def upsert_playlist(self, playlist: Playlist) -> None:
        now = time.time()
        member_ids = playlist.member_song_ids or [None] * len(playlist.entries)
        rows = [
            (
                playlist.id,
                position,
                song_id,
                entry.location,
                entry.song_type,
                entry.title,
                ", ".join(entry.artists) or None,
                entry.duration,
            )
            for position, (entry, song_id) in enumerate(zip(playlist.entries, member_ids))
        ]

        try:
            with self.db.transaction() as conn:
                conn.execute(
                    UPSERT_PLAYLIST_SQL,
                    {
                        "id": playlist.id,
                        "name": playlist.name,
                        "source_path": playlist.source_path,
                        "file_size": playlist.size,
                        "file_mtime_ns": playlist.mtime_ns,
                        "scanned_at_unix": now,
                        "scanned_at": int(now),
                    },
                )
                conn.execute("DELETE FROM playlist_songs WHERE playlist_id = ?", (playlist.id,))
                conn.executemany(
                    """
                    INSERT INTO playlist_songs
                    (playlist_id, position, song_id, location, song_type, title, artist, duration)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                conn.execute("DELETE FROM scan_errors WHERE path = ?", (playlist.source_path,))
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot store playlist ({e})", playlist.source_path) from e

    def resolve_members(self, playlist: Playlist) -> list[str | None]:
        """Resolve each entry to a song id by path, then by unique title.

        Remote and unmatched entries resolve to None so the playlist keeps its
        full length.
        """
        return [self.resolve_entry(entry) for entry in playlist.entries]

    def resolve_entry(self, entry: PlaylistEntry) -> str | None:
        if entry.is_remote:
            return None
        song_id = self.song_id_for_path(entry.location)
        if song_id is None and entry.title:
            song_id = self._match_title(entry)
        return song_id

    def song_id_for_path(self, path: Path | str) -> str | None:
        try:
            row = self.db.conn.execute(
                "SELECT id FROM songs WHERE path = ?", (str(path),)
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot read library state ({e})", path) from e
        return row["id"] if row else None

    def refresh_unresolved_members(self) -> int:
        """Link unresolved members of stored playlists to songs added since."""
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    UPDATE playlist_songs
                    SET song_id = (SELECT s.id FROM songs s WHERE s.path = playlist_songs.location)
                    WHERE song_id IS NULL
                      AND EXISTS (SELECT 1 FROM songs s WHERE s.path = playlist_songs.location)
                    """
                )
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot update playlist members ({e})") from e

        if cursor.rowcount:
            logger.info("Linked %d previously unresolved playlist members", cursor.rowcount)
        return cursor.rowcount

    def record_failure(
        self,
        path: Path | str,
        kind: FileKind,
        mtime_ns: int,
        size: int,
        message: str,
    ) -> None:
        now = time.time()
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO scan_errors
                    (path, kind, file_size, file_mtime_ns, error_message,
                     failed_at_unix, failed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (str(path), kind.value, size, mtime_ns, message, now, int(now)),
                )
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot record scan failure ({e})", path) from e

    def get_stats(self) -> dict:
        """Get library totals from the database."""
        row = self.db.conn.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM songs) as songs,
                (SELECT COUNT(*) FROM albums) as albums,
                (SELECT COUNT(*) FROM artists) as artists,
                (SELECT COUNT(*) FROM playlists) as playlists,
                (SELECT COUNT(*) FROM playlist_songs WHERE song_id IS NULL) as unresolved_members,
                (SELECT COUNT(*) FROM scan_errors) as errors
            """
        ).fetchone()
        return dict(row) if row else {}

    def _upsert_album(self, conn: sqlite3.Connection, song: Song) -> str | None:
        if not song.album:
            return None

        album_id = stable_id("album", song.album.lower(), (song.album_artist or "").lower())
        conn.execute(
            """
            INSERT INTO albums (id, name, artist, cover_path, cover_thumbnail_path)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                cover_path = COALESCE(albums.cover_path, excluded.cover_path),
                cover_thumbnail_path = COALESCE(
                    albums.cover_thumbnail_path, excluded.cover_thumbnail_path
                )
            """,
            (album_id, song.album, song.album_artist, song.cover_path, song.cover_thumbnail_path),
        )
        return album_id

    def _replace_artists(self, conn: sqlite3.Connection, song: Song) -> None:
        conn.execute("DELETE FROM song_artists WHERE song_id = ?", (song.id,))
        rows = [
            (song.id, self._upsert_named(conn, "artists", name), position)
            for position, name in enumerate(song.artists)
        ]
        conn.executemany(
            "INSERT INTO song_artists (song_id, artist_id, position) VALUES (?, ?, ?)",
            rows,
        )

    def _replace_genres(self, conn: sqlite3.Connection, song: Song) -> None:
        conn.execute("DELETE FROM song_genres WHERE song_id = ?", (song.id,))
        genre_ids = {self._upsert_named(conn, "genres", name) for name in song.genres}
        conn.executemany(
            "INSERT INTO song_genres (song_id, genre_id) VALUES (?, ?)",
            [(song.id, genre_id) for genre_id in sorted(genre_ids)],
        )

    def _upsert_named(self, conn: sqlite3.Connection, table: str, name: str) -> str:
        row_id = stable_id(table, name.lower())
        conn.execute(
            f"INSERT INTO {table} (id, name) VALUES (?, ?) ON CONFLICT DO NOTHING",
            (row_id, name),
        )
        row = conn.execute(
            f"SELECT id FROM {table} WHERE id = ? OR name = ? LIMIT 1",
            (row_id, name),
        ).fetchone()
        return row["id"]

    def _match_title(self, entry: PlaylistEntry) -> str | None:
        query = "SELECT id FROM songs WHERE title = ? COLLATE NOCASE"
        params: list[str] = [entry.title or ""]
        if entry.artists:
            query += """
                AND EXISTS (
                    SELECT 1 FROM song_artists sa JOIN artists a ON a.id = sa.artist_id
                    WHERE sa.song_id = songs.id AND a.name = ? COLLATE NOCASE
                )
            """
            params.append(entry.artists[0])

        try:
            rows = self.db.conn.execute(query + " LIMIT 2", params).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot read library state ({e})", entry.location) from e
        return rows[0]["id"] if len(rows) == 1 else None
