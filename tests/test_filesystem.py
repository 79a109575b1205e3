"""Tests for filesystem utilities."""

import os
from pathlib import Path

import pytest

from musicscan.database.models import FileKind, ParsedFilename
from musicscan.scanner.filesystem import classify_filename, parse_filename, walk_directory


class TestParseFilename:
    """Tests for parse_filename function."""

    def test_simple_extension(self):
        result = parse_filename("song.MP3")
        assert result == ParsedFilename(full="song.MP3", base="song", extension="mp3")

    def test_double_extension(self):
        result = parse_filename("archive.tar.gz")
        assert result == ParsedFilename(full="archive.tar.gz", base="archive.tar", extension="gz")

    def test_no_extension(self):
        result = parse_filename("README")
        assert result == ParsedFilename(full="README", base="README", extension=None)

    def test_dotfile_no_extension(self):
        result = parse_filename(".flac")
        assert result == ParsedFilename(full=".flac", base=".flac", extension=None)

    def test_dotfile_with_extension(self):
        result = parse_filename(".hidden.ogg")
        assert result == ParsedFilename(full=".hidden.ogg", base=".hidden", extension="ogg")

    def test_trailing_dot(self):
        result = parse_filename("file.")
        assert result == ParsedFilename(full="file.", base="file", extension=None)

    def test_empty_string(self):
        result = parse_filename("")
        assert result == ParsedFilename(full="", base="", extension=None)

    def test_multiple_dots(self):
        result = parse_filename("01. Intro (feat. Someone).flac")
        assert result == ParsedFilename(
            full="01. Intro (feat. Someone).flac",
            base="01. Intro (feat. Someone)",
            extension="flac",
        )


class TestClassifyFilename:
    """Tests for classify_filename function."""

    @pytest.mark.parametrize(
        "name",
        ["a.flac", "a.mp3", "a.ogg", "a.m4a", "a.webm", "a.wav", "a.wv", "a.aac", "a.opus", "A.FLAC"],
    )
    def test_audio(self, name: str):
        assert classify_filename(name) is FileKind.AUDIO

    @pytest.mark.parametrize("name", ["mix.m3u", "mix.m3u8", "MIX.M3U"])
    def test_playlist(self, name: str):
        assert classify_filename(name) is FileKind.PLAYLIST

    @pytest.mark.parametrize("name", ["cover.jpg", "notes.txt", "song.lrc", "README", ".mp3"])
    def test_skipped(self, name: str):
        assert classify_filename(name) is FileKind.SKIP


class TestWalkDirectory:
    """Tests for walk_directory function."""

    def test_walks_empty_directory(self, tmp_path: Path):
        assert list(walk_directory(tmp_path)) == []

    def test_emits_only_songs_and_playlists(self, tmp_path: Path):
        (tmp_path / "song.mp3").write_bytes(b"x")
        (tmp_path / "list.m3u").write_text("song.mp3\n")
        (tmp_path / "cover.jpg").write_bytes(b"jpg")
        (tmp_path / "notes.txt").write_text("hello")

        entries = list(walk_directory(tmp_path))
        kinds = {entry.path.name: entry.kind for entry in entries}

        assert kinds == {"song.mp3": FileKind.AUDIO, "list.m3u": FileKind.PLAYLIST}

    def test_walks_nested_directories(self, tmp_path: Path):
        album = tmp_path / "Artist" / "Album"
        album.mkdir(parents=True)
        (tmp_path / "root.flac").write_bytes(b"x")
        (album / "01.flac").write_bytes(b"x")

        names = {entry.path.name for entry in walk_directory(tmp_path)}
        assert names == {"root.flac", "01.flac"}

    def test_directories_not_emitted(self, tmp_path: Path):
        (tmp_path / "folder.mp3").mkdir()
        assert list(walk_directory(tmp_path)) == []

    def test_records_size_and_mtime(self, tmp_path: Path):
        song = tmp_path / "song.ogg"
        song.write_bytes(b"12345")

        [entry] = list(walk_directory(tmp_path))

        assert entry.size == 5
        assert entry.mtime_ns == song.stat().st_mtime_ns
        assert entry.error is None

    def test_paths_are_canonical(self, tmp_path: Path):
        (tmp_path / "song.mp3").write_bytes(b"x")

        [entry] = list(walk_directory(tmp_path / "." / ""))

        assert entry.path == (tmp_path / "song.mp3").resolve()
        assert entry.path.is_absolute()

    def test_alphabetical_order(self, tmp_path: Path):
        for name in ("zebra.mp3", "apple.mp3", "middle.mp3"):
            (tmp_path / name).write_bytes(b"x")

        names = [entry.path.name for entry in walk_directory(tmp_path)]
        assert names == ["apple.mp3", "middle.mp3", "zebra.mp3"]

    def test_is_lazy(self, tmp_path: Path):
        (tmp_path / "a.mp3").write_bytes(b"x")
        (tmp_path / "b.mp3").write_bytes(b"x")

        walker = walk_directory(tmp_path)
        first = next(walker)

        assert first.path.name == "a.mp3"

    def test_symlink_loop_terminates(self, tmp_path: Path):
        music = tmp_path / "music"
        music.mkdir()
        (music / "song.mp3").write_bytes(b"x")
        (music / "loop").symlink_to(music, target_is_directory=True)

        entries = list(walk_directory(music))

        assert [entry.path.name for entry in entries] == ["song.mp3"]

    def test_follows_symlinked_directory(self, tmp_path: Path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "linked.mp3").write_bytes(b"x")
        music = tmp_path / "music"
        music.mkdir()
        (music / "link").symlink_to(outside, target_is_directory=True)

        entries = list(walk_directory(music))

        assert [entry.path for entry in entries] == [(outside / "linked.mp3").resolve()]

    def test_file_reached_twice_emitted_once(self, tmp_path: Path):
        (tmp_path / "song.mp3").write_bytes(b"x")
        (tmp_path / "alias.mp3").symlink_to(tmp_path / "song.mp3")

        entries = list(walk_directory(tmp_path))

        assert len(entries) == 1
        assert entries[0].path.name == "song.mp3"

    def test_missing_root_yields_error(self, tmp_path: Path):
        entries = list(walk_directory(tmp_path / "does-not-exist"))

        assert len(entries) == 1
        assert entries[0].kind is FileKind.SKIP
        assert entries[0].error is not None

    def test_root_file_is_emitted(self, tmp_path: Path):
        song = tmp_path / "single.wav"
        song.write_bytes(b"x")

        entries = list(walk_directory(song))

        assert [entry.path for entry in entries] == [song.resolve()]
        assert entries[0].kind is FileKind.AUDIO

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0,
        reason="permission checks do not apply to root",
    )
    def test_unreadable_directory_reported_and_walk_continues(self, tmp_path: Path):
        locked = tmp_path / "locked"
        locked.mkdir()
        (locked / "hidden.mp3").write_bytes(b"x")
        (tmp_path / "visible.mp3").write_bytes(b"x")
        locked.chmod(0)

        try:
            entries = list(walk_directory(tmp_path))
        finally:
            locked.chmod(0o755)

        errors = [entry for entry in entries if entry.error is not None]
        files = [entry.path.name for entry in entries if entry.error is None]

        assert files == ["visible.mp3"]
        assert len(errors) == 1
        assert errors[0].kind is FileKind.SKIP
        assert errors[0].path == locked.resolve()
