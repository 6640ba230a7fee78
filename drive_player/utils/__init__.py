"""
Utility functions for drive-player.

This module provides common helpers used across the application:
    - Filename sanitization (using yt-dlp's sanitize_filename)
    - Directory creation
    - Duration and size formatting for CLI output
    - Reading the duration of a cached audio file (mutagen)

Usage:
    from drive_player.utils import (
        sanitize_filename,
        ensure_directory,
        format_duration
    )
"""

import math
from pathlib import Path

import mutagen
from mutagen import MutagenError
from yt_dlp.utils import sanitize_filename as yt_dlp_sanitize

from drive_player.core.logger import get_logger

logger = get_logger(__name__)


# File suffixes listed as playable offline audio
AUDIO_SUFFIXES = frozenset({".mp3", ".m4a", ".wav", ".aac", ".flac", ".ogg"})


def sanitize_filename(name: str, restricted: bool = False) -> str:
    """
    Sanitize a string for use as a single path component.

    Uses yt-dlp's sanitize_filename function. Used for cache subfolder
    names, which come from remote folder names and may contain characters
    the local file system rejects.

    Args:
        name: The string to sanitize (e.g., a remote folder name).
        restricted: If True, use more aggressive sanitization that
                   removes all special characters. Default False.

    Returns:
        Sanitized string safe for use as a directory or file name.

    Examples:
        sanitize_filename("AC/DC")         # "AC⧸DC"
        sanitize_filename("Live: 2024")    # "Live： 2024"
    """
    return yt_dlp_sanitize(name, restricted=restricted)


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If directory cannot be created (permissions, etc.)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_audio_path(path: Path) -> bool:
    """True if the file suffix is one of AUDIO_SUFFIXES (case-insensitive)."""
    return path.suffix.lower() in AUDIO_SUFFIXES


def format_duration(seconds: float | None) -> str:
    """
    Format a duration in seconds as "m:ss" or "h:mm:ss".

    None, NaN, infinite and negative values render as "0:00", which is
    what the player shows before the engine knows the length.

    Examples:
        format_duration(225)     # "3:45"
        format_duration(3750)    # "1:02:30"
        format_duration(None)    # "0:00"
    """
    if seconds is None or math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return "0:00"

    total = int(seconds)
    if total < 3600:
        return f"{total // 60}:{total % 60:02d}"
    hours = total // 3600
    minutes = (total % 3600) // 60
    return f"{hours}:{minutes:02d}:{total % 60:02d}"


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count for display.

    Examples:
        format_file_size(512)       # "512 B"
        format_file_size(1536)      # "1.5 KB"
        format_file_size(1048576)   # "1.0 MB"
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            return f"{size:.1f} {unit}"
    return f"{size:.1f} GB"


def read_audio_duration(path: Path) -> float | None:
    """
    Read the playing time of an audio file with mutagen.

    Returns:
        Duration in seconds, or None if the file is not a format mutagen
        understands or cannot be read.
    """
    try:
        audio = mutagen.File(str(path))
    except (MutagenError, OSError) as e:
        logger.debug(f"Could not read audio info for {path.name}: {e}")
        return None

    if audio is None or getattr(audio, "info", None) is None:
        return None

    length = getattr(audio.info, "length", None)
    return float(length) if length is not None else None
