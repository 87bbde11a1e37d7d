import math
import re
from typing import Optional
from urllib.parse import quote

_BARE_ID = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_URL_PATTERNS = (
    re.compile(r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts)/|.*[?&]v=))([^\"&?/\s]{11})"),
    re.compile(r"(?:youtu\.be/)([^\"&?/\s]{11})"),
    re.compile(r"(?:youtube-nocookie\.com/embed/)([^\"&?/\s]{11})"),
)

# Coin payout per watched duration, highest tier first
COIN_TIERS = (
    (540, 200),
    (480, 150),
    (420, 130),
    (360, 100),
    (300, 90),
    (240, 70),
    (180, 55),
    (150, 50),
    (120, 45),
    (90, 35),
    (60, 25),
    (45, 15),
    (30, 10),
)
MIN_COINS = 5


def extract_video_id(value: Optional[str]) -> Optional[str]:
    """
    Returns the 11-character video id from a watch/short/embed URL, or the
    value itself when it already is a bare id. None when nothing matches.
    """
    if not value:
        return None
    value = value.strip()
    if _BARE_ID.match(value):
        return value
    for pattern in _URL_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return None


def build_embed_url(video_id: str, attempt: int = 0, origin: Optional[str] = None) -> str:
    """
    Returns the embed URL for a load attempt. Each retry falls back to a less
    restrictive strategy; attempts past the last strategy reuse the first.
    """
    strategies = (
        f"https://www.youtube.com/embed/{video_id}?autoplay=0&controls=1&modestbranding=1&rel=0&fs=0&enablejsapi=1",
        f"https://www.youtube-nocookie.com/embed/{video_id}?autoplay=0&controls=1&modestbranding=1&rel=0&fs=0",
        f"https://www.youtube.com/embed/{video_id}?autoplay=0&controls=1",
    )
    url = strategies[attempt] if 0 <= attempt < len(strategies) else strategies[0]
    if origin and "enablejsapi=1" in url:
        url += f"&origin={quote(origin, safe='')}"
    return url


def completion_threshold(target_seconds: float, ratio: float = 0.95, tolerance_seconds: float = 2.0) -> float:
    """Watch time after which a session counts as watched: max(target - tolerance, target * ratio)."""
    return max(target_seconds - tolerance_seconds, target_seconds * ratio)


def coins_for_duration(duration_seconds: float) -> int:
    """Client-side estimate of the coins the backend pays for a video of this length."""
    for min_seconds, coins in COIN_TIERS:
        if duration_seconds >= min_seconds:
            return coins
    return MIN_COINS


def format_seconds_to_human_readable(seconds: Optional[float]) -> str:
    """
    Converts a float of seconds into a human-readable string (e.g., "1h 25m 30s").
    Handles hours, minutes, and seconds, omitting units if their value is zero.
    """
    if seconds is None:
        return "N/A"

    seconds = math.ceil(max(seconds, 0))

    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    remaining_seconds = seconds % 60

    parts = []
    if hours > 0:
        parts.append(f"{int(hours)}h")
    if minutes > 0:
        parts.append(f"{int(minutes)}m")
    if remaining_seconds > 0 or (hours == 0 and minutes == 0):  # Always show seconds under a minute
        parts.append(f"{int(remaining_seconds)}s")

    return " ".join(parts)
