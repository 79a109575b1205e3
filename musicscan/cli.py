"""CLI interface for musicscan."""

import logging
import sys
import threading
from datetime import datetime
from pathlib import Path

import click

from musicscan.api import scan_files
from musicscan.config import Config
from musicscan.database import Database
from musicscan.errors import ScanAbortedError, ScanError
from musicscan.library import LibrarySynchronizer
from musicscan.scanner import ProgressReporter


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase log output (-vv for debug)")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["config"] = Config()


@cli.command()
@click.argument("source_path", type=click.Path(exists=True, path_type=Path))
@click.option("--output", type=click.Path(path_type=Path), help="Directory for cover art")
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.option("--separator", type=str, default=None, help="Separator for multi-value tags")
@click.option("--threads", type=click.IntRange(min=1), default=None, help="Maximum concurrent extractions")
@click.option("--force", is_flag=True, help="Re-extract every file, even unchanged ones")
@click.option("--progress-interval", type=int, default=None, help="Print status every N files")
@click.pass_context
def scan(
    ctx: click.Context,
    source_path: Path,
    output: Path | None,
    database: Path | None,
    separator: str | None,
    threads: int | None,
    force: bool,
    progress_interval: int | None,
) -> None:
    """Scan SOURCE_PATH for songs and playlists."""
    config: Config = ctx.obj["config"]
    progress = ProgressReporter(interval=progress_interval or config.scanner.progress_interval)
    finished = threading.Event()
    outcome: dict[str, ScanError | None] = {"error": None}

    def on_song(error, result):
        if error is not None:
            progress.report_error(str(error))
        progress.song_done(failed=error is not None, path=result.song.path if result else None)

    def on_playlist(error, playlist):
        if error is not None:
            progress.report_error(str(error))
        progress.playlist_done(failed=error is not None, path=playlist.source_path if playlist else None)

    def on_done(error):
        outcome["error"] = error
        finished.set()

    click.echo(f"Starting scan of {source_path.resolve()}")
    handle = scan_files(
        source_path,
        output or config.output_directory,
        database or config.database_path,
        field_separator=config.scanner.field_separator if separator is None else separator,
        max_concurrency=threads or config.scanner.max_concurrency,
        force_rescan=force,
        on_song=on_song,
        on_playlist=on_playlist,
        on_done=on_done,
    )

    try:
        while not finished.wait(0.5):
            pass
    except KeyboardInterrupt:
        handle.abort()
        finished.wait()
        progress.report_interruption(handle.stats)
        sys.exit(130)

    error = outcome["error"]
    if isinstance(error, ScanAbortedError):
        progress.report_interruption(handle.stats)
        sys.exit(130)

    progress.report_completion(handle.stats)
    if error is not None:
        click.echo(f"Error: {error}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.pass_context
def status(ctx: click.Context, database: Path | None) -> None:
    """Show library totals."""
    config: Config = ctx.obj["config"]
    db_path = database or config.database_path

    if not db_path.exists():
        click.echo("No database found. Run 'musicscan scan' first.")
        return

    with Database(db_path) as db:
        stats = LibrarySynchronizer(db).get_stats()
        last_scan = db.conn.execute("SELECT MAX(scanned_at) AS last FROM songs").fetchone()

        click.echo("\nLibrary:")
        click.echo("-" * 40)
        click.echo(f"  Songs:              {stats.get('songs', 0):>10,}")
        click.echo(f"  Albums:             {stats.get('albums', 0):>10,}")
        click.echo(f"  Artists:            {stats.get('artists', 0):>10,}")
        click.echo(f"  Playlists:          {stats.get('playlists', 0):>10,}")
        click.echo(f"  Unresolved members: {stats.get('unresolved_members', 0):>10,}")
        click.echo(f"  Files with errors:  {stats.get('errors', 0):>10,}")
        click.echo(f"  Last song scanned:  {_format_relative_time(last_scan['last']):>10}")

        errors = db.conn.execute(
            "SELECT path, error_message FROM scan_errors ORDER BY failed_at DESC LIMIT 10"
        ).fetchall()
        if errors:
            click.echo("\nRecent errors:")
            for row in errors:
                click.echo(f"  {_truncate(row['path'], 50):<50} {row['error_message']}")


def _format_relative_time(unix_timestamp: int | None) -> str:
    if not unix_timestamp:
        return "never"

    now = datetime.now()
    then = datetime.fromtimestamp(unix_timestamp)
    delta = now - then

    if delta.days > 1:
        return f"{delta.days} days ago"
    if delta.days == 1:
        return "yesterday"
    if delta.seconds > 3600:
        hours = delta.seconds // 3600
        return f"{hours}h ago"
    if delta.seconds > 60:
        minutes = delta.seconds // 60
        return f"{minutes}m ago"
    return "just now"


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return "..." + text[-(max_len - 3) :]


def main() -> None:
    """Entry point for the CLI."""
    cli(standalone_mode=True)  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    main()
