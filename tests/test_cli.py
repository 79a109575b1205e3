"""Tests for the command line interface."""

from pathlib import Path

from click.testing import CliRunner

from musicscan.cli import cli
from musicscan.database import Database


class TestScanCommand:
    """Tests for the scan command."""

    def test_scans_and_summarises(self, tmp_path: Path, make_wav):
        music = tmp_path / "music"
        make_wav(music / "one.wav")
        make_wav(music / "two.wav")
        (music / "broken.flac").write_bytes(b"garbage")
        db_path = tmp_path / "library.db"

        result = CliRunner().invoke(
            cli,
            [
                "scan",
                str(music),
                "--output",
                str(tmp_path / "covers"),
                "--database",
                str(db_path),
                "--threads",
                "2",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Scan complete: 3 files discovered" in result.output
        assert "Songs synchronized: 2" in result.output
        assert "Errors: 1" in result.output
        with Database(db_path) as db:
            assert db.conn.execute("SELECT COUNT(*) FROM songs").fetchone()[0] == 2

    def test_rejects_zero_threads(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["scan", str(tmp_path), "--threads", "0"])

        assert result.exit_code != 0

    def test_missing_source_path(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["scan", str(tmp_path / "nope")])

        assert result.exit_code != 0


class TestStatusCommand:
    """Tests for the status command."""

    def test_no_database(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["status", "--database", str(tmp_path / "none.db")])

        assert result.exit_code == 0
        assert "No database found" in result.output

    def test_shows_counts(self, tmp_path: Path, make_wav):
        music = tmp_path / "music"
        make_wav(music / "one.wav")
        (music / "mix.m3u").write_text("one.wav\nmissing.wav\n")
        db_path = tmp_path / "library.db"
        runner = CliRunner()
        runner.invoke(
            cli,
            ["scan", str(music), "--output", str(tmp_path / "covers"), "--database", str(db_path)],
        )

        result = runner.invoke(cli, ["status", "--database", str(db_path)])

        assert result.exit_code == 0
        assert "Songs:" in result.output
        assert "Playlists:" in result.output
        lines = dict(
            (label.strip(), value.strip())
            for label, _, value in (line.partition(":") for line in result.output.splitlines())
        )
        assert lines["Songs"] == "1"
        assert lines["Playlists"] == "1"
        assert lines["Unresolved members"] == "1"
