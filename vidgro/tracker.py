"""
Progress & completion tracking for a playback session.

The tracker mutates a ``PlaybackSession`` in response to widget events and
returns the side effects the controller should carry out. It never talks to
the widget or the host directly, which keeps it deterministic under test.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from vidgro.domain import PlaybackSession, PlaybackStatus, TerminalReason
from vidgro.events import (
    STATE_BUFFERING,
    STATE_ENDED,
    STATE_PAUSED,
    STATE_PLAYING,
    CoinsEligible,
    PlayerEvent,
    PlayerReadySuccess,
    PlayerWarning,
    ProgressUpdate,
    StallDetected,
    StateChange,
    VideoCompleted,
    VideoStarted,
)
from vidgro.settings import ControllerSettings
from vidgro.utils import completion_threshold

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Effect:
    pass


@dataclass(frozen=True)
class ReadyStateChanged(Effect):
    ready: bool


@dataclass(frozen=True)
class ProgressReported(Effect):
    current_time: float


@dataclass(frozen=True)
class ResumeRequested(Effect):
    pass


@dataclass(frozen=True)
class StopRequested(Effect):
    pass


@dataclass(frozen=True)
class RewardEligible(Effect):
    current_time: float


@dataclass(frozen=True)
class LivenessFailure(Effect):
    event: StallDetected


@dataclass(frozen=True)
class SessionFinished(Effect):
    reason: TerminalReason
    message: str


class ProgressTracker:

    def __init__(self, settings: Optional[ControllerSettings] = None):
        self.settings = settings or ControllerSettings()
        self._handlers: Dict[Type[PlayerEvent], Callable[[PlaybackSession, PlayerEvent], List[Effect]]] = {
            PlayerReadySuccess: self._on_ready,
            VideoStarted: self._on_started,
            StateChange: self._on_state_change,
            ProgressUpdate: self._on_progress,
            CoinsEligible: self._on_coins_eligible,
            VideoCompleted: self._on_completed,
            PlayerWarning: self._on_warning,
        }

    def threshold_for(self, session: PlaybackSession) -> float:
        return completion_threshold(
            session.target_duration_seconds,
            self.settings.completion_ratio,
            self.settings.completion_tolerance_seconds,
        )

    def handle(self, session: PlaybackSession, event: PlayerEvent) -> List[Effect]:
        if session.is_terminal:
            return []
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug("Tracker ignores %s", type(event).__name__)
            return []
        return handler(session, event)

    def _on_ready(self, session, event) -> List[Effect]:
        if session.status is not PlaybackStatus.LOADING:
            return []
        session.transition(PlaybackStatus.READY)
        return [ReadyStateChanged(True)]

    def _leave_loading(self, session) -> List[Effect]:
        """A widget that plays or reports progress is ready, even if its ready message never arrived."""
        if session.status is not PlaybackStatus.LOADING:
            return []
        logger.info("Treating activity from %s as ready", session.video_id)
        session.transition(PlaybackStatus.READY)
        return [ReadyStateChanged(True)]

    def _on_started(self, session, event) -> List[Effect]:
        effects = self._leave_loading(session)
        session.mark_started()
        session.transition(PlaybackStatus.PLAYING)
        return effects

    def _on_state_change(self, session, event: StateChange) -> List[Effect]:
        if event.state == STATE_PLAYING:
            effects = self._leave_loading(session)
            session.mark_started()
            session.transition(PlaybackStatus.PLAYING)
            return effects
        elif event.state == STATE_PAUSED:
            session.transition(PlaybackStatus.PAUSED)
        elif event.state == STATE_BUFFERING:
            session.transition(PlaybackStatus.BUFFERING)
        elif event.state == STATE_ENDED:
            # Stop right away so the widget does not show its end screen
            return [StopRequested()]
        return []

    def _on_progress(self, session, event: ProgressUpdate) -> List[Effect]:
        effects = self._leave_loading(session)
        t = event.current_time
        previous = session.last_reported_time
        session.current_time_seconds = t
        session.last_reported_time = t

        moved = previous is None or abs(t - previous) >= self.settings.stuck_epsilon_seconds
        if moved:
            session.stuck_ticks = 0
            session.resume_requested = False
            if session.status in (PlaybackStatus.READY, PlaybackStatus.BUFFERING) and t > 0:
                session.mark_started()
                session.transition(PlaybackStatus.PLAYING)
        elif session.status in (PlaybackStatus.PLAYING, PlaybackStatus.BUFFERING):
            session.stuck_ticks += 1
            if session.stuck_ticks >= self.settings.stuck_tick_threshold:
                session.stuck_ticks = 0
                if not session.resume_requested:
                    logger.info("Progress stuck at %.1fs for %s, requesting resume", t, session.video_id)
                    session.resume_requested = True
                    effects.append(ResumeRequested())
                else:
                    logger.warning("Progress still stuck at %.1fs for %s after resume", t, session.video_id)
                    effects.append(LivenessFailure(StallDetected(current_time=t)))

        effects.append(ProgressReported(t))
        effects.extend(self._check_threshold(session))
        return effects

    def _on_coins_eligible(self, session, event: CoinsEligible) -> List[Effect]:
        if event.current_time is not None and event.current_time > session.current_time_seconds:
            session.current_time_seconds = event.current_time
        effects = self._check_threshold(session)
        if not session.has_reached_completion_threshold:
            logger.debug(
                "Widget reported eligibility at %.1fs, below threshold %.1fs",
                session.current_time_seconds, self.threshold_for(session),
            )
        return effects

    def _on_completed(self, session, event: VideoCompleted) -> List[Effect]:
        if not session.can_transition(PlaybackStatus.COMPLETED):
            logger.warning("Completion reported while %s for %s, ignoring", session.status.value, session.video_id)
            return []
        if event.current_time is not None and event.current_time > session.current_time_seconds:
            session.current_time_seconds = event.current_time
        effects = self._check_threshold(session)
        session.transition(PlaybackStatus.COMPLETED)
        if session.has_reached_completion_threshold:
            reason = TerminalReason.COMPLETED
        else:
            reason = TerminalReason.ENDED_EARLY
            logger.info(
                "Video %s ended at %.1fs before the %.1fs threshold",
                session.video_id, session.current_time_seconds, self.threshold_for(session),
            )
        session.terminal_reason = reason
        effects.append(SessionFinished(reason, event.reason))
        return effects

    def _on_warning(self, session, event: PlayerWarning) -> List[Effect]:
        logger.info("Player warning for %s: %s", session.video_id, event.message)
        return []

    def _check_threshold(self, session: PlaybackSession) -> List[Effect]:
        # Progress from a widget that never left loading cannot complete the session
        if session.status is PlaybackStatus.LOADING or session.has_reached_completion_threshold:
            return []
        if session.current_time_seconds < self.threshold_for(session):
            return []
        session.mark_threshold_reached()
        if session.signal_reward():
            logger.info("Session %s reached watch threshold at %.1fs", session.video_id, session.current_time_seconds)
            return [RewardEligible(session.current_time_seconds)]
        return []
