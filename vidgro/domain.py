import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class PlaybackStatus(str, Enum):
    """Lifecycle of a single viewing attempt."""
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"
    COMPLETED = "completed"
    ERRORED = "errored"
    ABANDONED = "abandoned"


class PlayerCommand(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"


class TerminalReason(str, Enum):
    """Why a session stopped. Sent upward with on_terminal."""
    COMPLETED = "completed"
    ENDED_EARLY = "ended_early"
    USER_SKIP = "user_skip"
    TIMEOUT = "timeout"
    CONTENT_UNAVAILABLE = "content_unavailable"
    RETRIES_EXHAUSTED = "retries_exhausted"
    PROTOCOL_ERROR = "protocol_error"


TERMINAL_STATES = frozenset({PlaybackStatus.COMPLETED, PlaybackStatus.ABANDONED})

_ACTIVE = (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED, PlaybackStatus.BUFFERING)

ALLOWED_TRANSITIONS = {
    PlaybackStatus.LOADING: {PlaybackStatus.READY, PlaybackStatus.PLAYING},
    PlaybackStatus.READY: set(_ACTIVE) | {PlaybackStatus.COMPLETED},
    PlaybackStatus.PLAYING: {PlaybackStatus.PAUSED, PlaybackStatus.BUFFERING, PlaybackStatus.COMPLETED},
    PlaybackStatus.PAUSED: {PlaybackStatus.PLAYING, PlaybackStatus.BUFFERING, PlaybackStatus.COMPLETED},
    PlaybackStatus.BUFFERING: {PlaybackStatus.PLAYING, PlaybackStatus.PAUSED, PlaybackStatus.COMPLETED},
    PlaybackStatus.ERRORED: {PlaybackStatus.LOADING},
    PlaybackStatus.COMPLETED: set(),
    PlaybackStatus.ABANDONED: set(),
}


@dataclass
class VideoItem:
    """A queued video as handed out by the backend."""
    id: str
    youtube_url: str  # Full URL or bare 11-character id
    title: str = ""
    duration_seconds: float = 0.0
    coin_reward: int = 3


@dataclass
class PlaybackSession:
    """
    Transient state for one attempt at watching a video to its target duration.
    Replaced wholesale when the host assigns another video.
    """
    video_id: str
    target_duration_seconds: float
    generation: int = 0
    status: PlaybackStatus = PlaybackStatus.LOADING
    current_time_seconds: float = 0.0
    has_started: bool = False
    has_reached_completion_threshold: bool = False
    reward_signaled: bool = False
    retry_count: int = 0
    stuck_ticks: int = 0
    last_reported_time: Optional[float] = None
    resume_requested: bool = False  # Set once per stuck episode
    terminal_reason: Optional[TerminalReason] = None
    video: Optional[VideoItem] = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition(self, new_status: PlaybackStatus) -> bool:
        if self.is_terminal:
            return False
        if new_status in (PlaybackStatus.ERRORED, PlaybackStatus.ABANDONED):
            return True
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition(self, new_status: PlaybackStatus) -> bool:
        """Moves to new_status if the state machine allows it. Returns False otherwise."""
        if new_status == self.status:
            return True
        if not self.can_transition(new_status):
            logger.debug("Ignoring transition %s -> %s for %s", self.status.value, new_status.value, self.video_id)
            return False
        self.status = new_status
        return True

    def mark_started(self) -> None:
        self.has_started = True

    def mark_threshold_reached(self) -> None:
        self.has_reached_completion_threshold = True

    def signal_reward(self) -> bool:
        """Latches reward_signaled. True only for the call that flipped it."""
        if self.reward_signaled or not self.has_reached_completion_threshold:
            return False
        self.reward_signaled = True
        return True

    def reset_progress_probe(self) -> None:
        self.stuck_ticks = 0
        self.last_reported_time = None
        self.resume_requested = False
