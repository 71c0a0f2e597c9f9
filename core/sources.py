"""
core/sources.py — Media source identification.

Streaming videos expose no waveform, so their notes come from the composition
generator seeded by the video id. parse_video_id() extracts that id from the
URL forms users paste:

    https://youtu.be/<id>
    https://www.youtube.com/watch?v=<id>
    https://www.youtube.com/embed/<id>
    https://www.youtube.com/v/<id>

Anything else (including malformed URLs) returns None.
"""

from __future__ import annotations

from enum import Enum
from urllib.parse import parse_qs, urlparse


class SourceType(str, Enum):
    """Where a session's notes come from."""

    FILE = "file"  # decoded audio → analytical path
    VIDEO = "video"  # streaming video id → procedural path


def parse_video_id(url: str) -> str | None:
    """Extract the video id from a YouTube URL.

    Examples:
        >>> parse_video_id("https://youtu.be/dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
        >>> parse_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42")
        'dQw4w9WgXcQ'
        >>> parse_video_id("not a url") is None
        True
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None

    host = parsed.hostname.lower()
    if host == "youtu.be":
        video_id = parsed.path.lstrip("/").split("/")[0]
        return video_id or None

    if "youtube.com" in host:
        values = parse_qs(parsed.query).get("v")
        if values and values[0]:
            return values[0]
        parts = parsed.path.split("/")
        if len(parts) > 2 and parts[1] in ("embed", "v") and parts[2]:
            return parts[2]

    return None
