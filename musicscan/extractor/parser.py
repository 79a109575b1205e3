"""Tag field parsing utilities.

Mutagen exposes tags differently per container: ID3 frames carry a ``text``
attribute, Vorbis comments map to lists of strings and MP4 atoms map to lists
of strings, tuples or bytes. The helpers here flatten all of them to strings.
"""

import re
from typing import Any

TITLE_KEYS = ("TIT2", "title", "\xa9nam")
ARTIST_KEYS = ("TPE1", "artist", "\xa9ART")
ALBUM_KEYS = ("TALB", "album", "\xa9alb")
ALBUM_ARTIST_KEYS = ("TPE2", "albumartist", "aART")
DATE_KEYS = ("TDRC", "TYER", "date", "year", "\xa9day")
GENRE_KEYS = ("TCON", "genre", "\xa9gen")
TRACK_KEYS = ("TRCK", "tracknumber", "trkn")
DISC_KEYS = ("TPOS", "discnumber", "disk")
LYRICS_KEYS = ("USLT", "lyrics", "unsyncedlyrics", "\xa9lyr")

LRC_TIMESTAMP = re.compile(r"\[\d{2}:\d{2}[.:]\d{2,3}\]")


def get_tag_values(tags: Any, *keys: str) -> list[str]:
    """Get all non-empty string values of the first key present in tags."""
    if tags is None:
        return []
    for key in keys:
        raw = _lookup(tags, key)
        if raw is None:
            continue
        values = [text for text in (_to_text(item) for item in _as_list(raw)) if text]
        if values:
            return values
    return []


def get_tag_value(tags: Any, *keys: str) -> str | None:
    """Get the first non-empty string value for any of the keys."""
    values = get_tag_values(tags, *keys)
    return values[0] if values else None


def get_number_pair(tags: Any, *keys: str) -> tuple[int | None, int | None]:
    """Get a ``number/total`` pair such as a track or disc number."""
    if tags is None:
        return None, None
    for key in keys:
        raw = _lookup(tags, key)
        if raw is None:
            continue
        for item in _as_list(raw):
            if isinstance(item, tuple):
                number = item[0] or None
                total = (item[1] or None) if len(item) > 1 else None
                return number, total
            number, total = parse_number_pair(_to_text(item))
            if number is not None:
                return number, total
    return None, None


def parse_number_pair(value: str | None) -> tuple[int | None, int | None]:
    """Parse 'number/total' format (e.g., '5/12')."""
    if not value:
        return None, None

    number_str, _, total_str = value.partition("/")
    try:
        number = int(number_str.strip()) if number_str.strip() else None
        total = int(total_str.strip()) if total_str.strip() else None
    except ValueError:
        return None, None
    return number, total


def parse_year(value: str | None) -> int | None:
    """Extract a four digit year from a date-like tag value."""
    if not value:
        return None
    match = re.search(r"\d{4}", value)
    if not match:
        return None
    year = int(match.group(0))
    return year if 1000 <= year <= 9999 else None


def split_multi_value(values: list[str], separator: str, placeholder: str = "") -> list[str]:
    """Split delimited tag values into an ordered list of trimmed names.

    An empty separator disables splitting. The result is never empty: when
    nothing remains, ``placeholder`` is returned as the single value.
    """
    result: list[str] = []
    for value in values:
        parts = value.split(separator) if separator else [value]
        for part in parts:
            part = part.strip()
            if part:
                result.append(part)
    return result or [placeholder]


def parse_lrc(text: str) -> str:
    """Strip timestamps from LRC lyrics, keeping only timed lines."""
    lines = []
    for line in text.splitlines():
        if LRC_TIMESTAMP.search(line):
            lines.append(LRC_TIMESTAMP.sub("", line).strip())
    return "\n".join(lines)


def _lookup(tags: Any, key: str) -> Any:
    try:
        if key in tags:
            return tags[key]
    except (KeyError, ValueError, TypeError):
        return None

    # ID3 frames such as USLT and COMM are stored as "USLT::eng"
    if len(key) == 4 and key.isupper() and hasattr(tags, "keys"):
        prefix = f"{key}:"
        for tag_key in tags.keys():
            if isinstance(tag_key, str) and tag_key.startswith(prefix):
                return tags[tag_key]
    return None


def _as_list(raw: Any) -> list[Any]:
    if hasattr(raw, "text"):
        text = raw.text
        return [text] if isinstance(text, str) else list(text)
    if isinstance(raw, (list, tuple)) and not _is_number_pair(raw):
        return list(raw)
    return [raw]


def _is_number_pair(raw: Any) -> bool:
    return isinstance(raw, tuple) and all(isinstance(v, int) for v in raw)


def _to_text(item: Any) -> str:
    if isinstance(item, bytes):
        return item.decode("utf-8", errors="replace").strip()
    if isinstance(item, tuple):
        return "/".join(str(v) for v in item if v)
    return str(item).strip()
