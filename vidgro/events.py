"""
Events exchanged with the embedded video widget.

The widget posts JSON envelopes discriminated by a ``type`` field. Every
envelope is parsed into one member of a closed set of event classes.
Anything that does not fit becomes a ``ParseError`` or an ``UnknownEvent``,
both of which the orchestrator treats as a permanent failure.
"""
import json
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

# Widget error codes that mean the content can never play in an embed
EMBEDDING_ERROR_CODES = frozenset({100, 101, 150})

PLAYER_ERROR_MESSAGES = {
    2: "Invalid video ID",
    5: "HTML5 player error",
    100: "Video not found or private",
    101: "Video not embeddable",
    150: "Video not embeddable",
}

# YouTube player state codes carried by STATE_CHANGE
STATE_UNSTARTED = -1
STATE_ENDED = 0
STATE_PLAYING = 1
STATE_PAUSED = 2
STATE_BUFFERING = 3
STATE_CUED = 5


@dataclass(frozen=True)
class PlayerEvent:
    pass


@dataclass(frozen=True)
class ReadyTimeout(PlayerEvent):
    message: str = "Player ready timeout"


@dataclass(frozen=True)
class LoadingTimeout(PlayerEvent):
    message: str = "Video loading timeout"


@dataclass(frozen=True)
class ApiLoadError(PlayerEvent):
    message: str = "Failed to load player API"


@dataclass(frozen=True)
class PlayerInitError(PlayerEvent):
    message: str = "Failed to initialize player"


@dataclass(frozen=True)
class PlayerReadySuccess(PlayerEvent):
    pass


@dataclass(frozen=True)
class VideoStarted(PlayerEvent):
    pass


@dataclass(frozen=True)
class StateChange(PlayerEvent):
    state: int


@dataclass(frozen=True)
class ProgressUpdate(PlayerEvent):
    current_time: float


@dataclass(frozen=True)
class CoinsEligible(PlayerEvent):
    current_time: Optional[float] = None


@dataclass(frozen=True)
class VideoCompleted(PlayerEvent):
    reason: str = "natural_end"
    current_time: Optional[float] = None


@dataclass(frozen=True)
class PlayerError(PlayerEvent):
    code: Union[int, str, None] = None
    message: str = "Unknown error"
    is_embedding_error: bool = False


@dataclass(frozen=True)
class PlayerWarning(PlayerEvent):
    message: str = ""


@dataclass(frozen=True)
class StallDetected(PlayerEvent):
    """Synthesized when playback stays stuck after a resume was already requested."""
    current_time: float = 0.0


@dataclass(frozen=True)
class UnknownEvent(PlayerEvent):
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ParseError(PlayerEvent):
    raw: str
    detail: str


ERROR_EVENTS = (
    ReadyTimeout,
    LoadingTimeout,
    ApiLoadError,
    PlayerInitError,
    PlayerError,
    StallDetected,
    UnknownEvent,
    ParseError,
)


def is_error_event(event: PlayerEvent) -> bool:
    return isinstance(event, ERROR_EVENTS)


class _FieldError(ValueError):
    pass


def _number(payload: Dict[str, Any], key: str, required: bool = True) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        if required:
            raise _FieldError(f"missing '{key}'")
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _FieldError(f"'{key}' must be a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise _FieldError(f"'{key}' out of range: {value}")
    return value


def _text(payload: Dict[str, Any], key: str, default: str) -> str:
    value = payload.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise _FieldError(f"'{key}' must be a string")
    return value


def _flag(payload: Dict[str, Any], key: str) -> Optional[bool]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _FieldError(f"'{key}' must be a boolean")
    return value


def _state_change(payload):
    state = payload.get("state")
    if isinstance(state, bool) or not isinstance(state, int):
        raise _FieldError("'state' must be an integer")
    return StateChange(state=state)


def _player_error(payload):
    code = payload.get("error")
    if isinstance(code, bool) or not isinstance(code, (int, str, type(None))):
        raise _FieldError("'error' must be an integer or string code")
    default_message = PLAYER_ERROR_MESSAGES.get(code, "Unknown error") if isinstance(code, int) else "Unknown error"
    embedding = _flag(payload, "isEmbeddingError")
    if embedding is None:
        embedding = code in EMBEDDING_ERROR_CODES
    return PlayerError(code=code, message=_text(payload, "message", default_message), is_embedding_error=embedding)


def _video_unplayable(payload):
    instant = _flag(payload, "instantSkip")
    return PlayerError(
        code=payload.get("error") if isinstance(payload.get("error"), (int, str)) else None,
        message=_text(payload, "message", "Video unplayable"),
        is_embedding_error=bool(instant),
    )


_PARSERS: Dict[str, Callable[[Dict[str, Any]], PlayerEvent]] = {
    "PLAYER_READY_TIMEOUT": lambda p: ReadyTimeout(message=_text(p, "message", ReadyTimeout.message)),
    "READY_TIMEOUT": lambda p: ReadyTimeout(message=_text(p, "message", ReadyTimeout.message)),
    "LOADING_TIMEOUT": lambda p: LoadingTimeout(message=_text(p, "message", LoadingTimeout.message)),
    "API_LOAD_ERROR": lambda p: ApiLoadError(message=_text(p, "message", ApiLoadError.message)),
    "PLAYER_INIT_ERROR": lambda p: PlayerInitError(message=_text(p, "message", PlayerInitError.message)),
    "PLAYER_READY_SUCCESS": lambda p: PlayerReadySuccess(),
    "PLAYER_READY": lambda p: PlayerReadySuccess(),
    "VIDEO_STARTED": lambda p: VideoStarted(),
    "STATE_CHANGE": _state_change,
    "PROGRESS_UPDATE": lambda p: ProgressUpdate(current_time=_number(p, "currentTime")),
    "COINS_ELIGIBLE": lambda p: CoinsEligible(current_time=_number(p, "currentTime", required=False)),
    "COINS_EARNED": lambda p: CoinsEligible(current_time=_number(p, "currentTime", required=False)),
    "VIDEO_COMPLETED": lambda p: VideoCompleted(
        reason=_text(p, "reason", "natural_end"),
        current_time=_number(p, "currentTime", required=False),
    ),
    "VIDEO_ENDED_EARLY": lambda p: VideoCompleted(
        reason="ended_early",
        current_time=_number(p, "currentTime", required=False),
    ),
    "PLAYER_ERROR": _player_error,
    "VIDEO_UNPLAYABLE": _video_unplayable,
    "PLAYER_WARNING": lambda p: PlayerWarning(message=_text(p, "message", "")),
}

KNOWN_MESSAGE_TYPES = frozenset(_PARSERS)


def parse_message(raw: Union[str, bytes]) -> PlayerEvent:
    """
    Parses one serialized widget message. Never raises.

    Returns a concrete event, ``UnknownEvent`` for an unrecognized ``type``,
    or ``ParseError`` when the envelope or its fields are malformed.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            return ParseError(raw=repr(raw), detail=f"invalid utf-8: {e}")
    if not isinstance(raw, str):
        return ParseError(raw=repr(raw), detail=f"expected text, got {type(raw).__name__}")

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        return ParseError(raw=raw, detail=f"invalid JSON: {e.msg}")

    if not isinstance(payload, dict):
        return ParseError(raw=raw, detail="envelope is not an object")

    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        return ParseError(raw=raw, detail="missing 'type' discriminator")

    parser = _PARSERS.get(event_type)
    if parser is None:
        return UnknownEvent(event_type=event_type, payload=payload)

    try:
        return parser(payload)
    except _FieldError as e:
        return ParseError(raw=raw, detail=f"{event_type}: {e}")
