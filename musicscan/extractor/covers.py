"""Cover art discovery and storage."""

import base64
import io
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mutagen import MutagenError
from mutagen.flac import Picture
from mutagen.mp4 import MP4Cover
from PIL import Image

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (80, 80)
IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "bmp"}
MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
}


@dataclass
class EmbeddedPicture:
    data: bytes
    mime: str | None = None


@dataclass
class StoredCover:
    path: Path
    thumbnail_path: Path | None


def find_embedded_picture(audio: Any) -> EmbeddedPicture | None:
    """Return the first picture embedded in a mutagen file, if any."""
    pictures = getattr(audio, "pictures", None)
    if pictures:
        return EmbeddedPicture(pictures[0].data, pictures[0].mime)

    tags = getattr(audio, "tags", None)
    if not tags:
        return None

    for key in list(tags.keys()):
        if isinstance(key, str) and key.startswith("APIC"):
            frame = tags[key]
            return EmbeddedPicture(frame.data, frame.mime)

    if "covr" in tags and tags["covr"]:
        cover = tags["covr"][0]
        is_png = getattr(cover, "imageformat", None) == MP4Cover.FORMAT_PNG
        return EmbeddedPicture(bytes(cover), "image/png" if is_png else "image/jpeg")

    if "metadata_block_picture" in tags:
        for encoded in tags["metadata_block_picture"]:
            try:
                picture = Picture(base64.b64decode(encoded))
            except (ValueError, MutagenError) as e:
                logger.debug("Ignoring malformed Vorbis picture block: %s", e)
                continue
            return EmbeddedPicture(picture.data, picture.mime)

    return None


def store_cover(output_directory: Path, song_id: str, picture: EmbeddedPicture) -> StoredCover:
    """Write a cover and its thumbnail, named after the song id.

    A cover already on disk with the same bytes is left untouched, and the
    thumbnail is only rebuilt when missing or when the cover changed.
    """
    extension = MIME_EXTENSIONS.get((picture.mime or "").lower(), "jpg")
    cover_path = output_directory / f"{song_id}.{extension}"
    thumbnail_path = output_directory / f"{song_id}-low.png"

    changed = not _has_content(cover_path, picture.data)
    if changed:
        _atomic_write(cover_path, picture.data)
        _remove_stale_covers(output_directory, song_id, extension)

    if changed or not thumbnail_path.exists():
        try:
            _atomic_write(thumbnail_path, _render_thumbnail(picture.data))
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning("Cannot create thumbnail for %s: %s", cover_path, e)
            return StoredCover(path=cover_path, thumbnail_path=None)

    return StoredCover(path=cover_path, thumbnail_path=thumbnail_path)


def find_folder_cover(song_path: Path) -> Path | None:
    """Find a ``cover.*`` image next to a song."""
    try:
        with os.scandir(song_path.parent) as it:
            names = sorted(entry.name for entry in it if entry.is_file())
    except OSError:
        return None

    for name in names:
        stem, _, extension = name.lower().rpartition(".")
        if stem.startswith("cover") and extension in IMAGE_EXTENSIONS:
            return song_path.parent / name
    return None


def _render_thumbnail(data: bytes) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        thumbnail = img.convert("RGBA").resize(THUMBNAIL_SIZE, Image.Resampling.NEAREST)
    buffer = io.BytesIO()
    thumbnail.save(buffer, format="PNG")
    return buffer.getvalue()


def _remove_stale_covers(output_directory: Path, song_id: str, current_extension: str) -> None:
    for extension in sorted(set(MIME_EXTENSIONS.values()) - {current_extension}):
        (output_directory / f"{song_id}.{extension}").unlink(missing_ok=True)


def _has_content(path: Path, data: bytes) -> bool:
    try:
        if path.stat().st_size != len(data):
            return False
        return path.read_bytes() == data
    except OSError:
        return False


def _atomic_write(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    tmp_path.write_bytes(data)
    os.replace(tmp_path, path)
