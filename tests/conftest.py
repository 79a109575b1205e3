"""Shared test fixtures."""

import wave
from collections.abc import Callable
from pathlib import Path

import pytest


def write_wav(path: Path, frames: int = 800, framerate: int = 8000) -> Path:
    """Write a short silent mono WAV file that mutagen can read."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(framerate)
        wav.writeframes(b"\x00\x00" * frames)
    return path


@pytest.fixture
def make_wav() -> Callable[..., Path]:
    return write_wav
