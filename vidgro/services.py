import logging
from typing import Any, Optional, Union

from vidgro.domain import PlaybackSession, PlaybackStatus, PlayerCommand, TerminalReason, VideoItem
from vidgro.drivers.embedded_bridge import EmbeddedPlayerBridge
from vidgro.events import PlayerEvent, is_error_event
from vidgro.interfaces import IHostListener, IPlayerSurface, IQueueProvider, IScheduler
from vidgro.orchestrator import READY_WATCHDOG, SkipRetryOrchestrator
from vidgro.settings import ControllerSettings
from vidgro.tracker import (
    Effect,
    LivenessFailure,
    ProgressReported,
    ProgressTracker,
    ReadyStateChanged,
    ResumeRequested,
    RewardEligible,
    SessionFinished,
    StopRequested,
)
from vidgro.utils import extract_video_id

logger = logging.getLogger(__name__)


class PlaybackController:
    """
    Coordinates one embedded video widget for a hosting screen.

    Every input (widget messages, timer callbacks, UI intents) funnels into
    the same single-threaded mutation path. Each handler re-checks that the
    session it was started for is still the live one before acting, so a late
    message or timer from a replaced session is dropped.
    """

    def __init__(self, surface: IPlayerSurface, host: Optional[IHostListener], scheduler: IScheduler,
                 queue: Optional[IQueueProvider] = None, settings: Optional[ControllerSettings] = None,
                 origin: Optional[str] = None):
        self.settings = settings or ControllerSettings()
        self.host = host
        self.scheduler = scheduler
        self.bridge = EmbeddedPlayerBridge(surface, origin)
        self.tracker = ProgressTracker(self.settings)
        self.orchestrator = SkipRetryOrchestrator(self, self.bridge, scheduler, queue, self.settings)
        self.session: Optional[PlaybackSession] = None
        self.generation = 0
        self.auto_advance = False
        self.visible = True

    # === SESSION LIFECYCLE ===
    def assign_video(self, video: Union[VideoItem, str],
                     target_duration_seconds: Optional[float] = None) -> PlaybackSession:
        """
        Replaces the current session with a fresh one for the given video.
        Pending timers of the previous session are cancelled first.
        """
        item = video if isinstance(video, VideoItem) else None
        reference = item.youtube_url if item else video
        if target_duration_seconds is None:
            if item is None:
                raise ValueError("target_duration_seconds is required when assigning a bare URL or id")
            target_duration_seconds = item.duration_seconds
        if target_duration_seconds <= 0:
            raise ValueError(f"target duration must be positive, got {target_duration_seconds}")

        self.orchestrator.cancel_all()
        self.generation += 1
        video_id = extract_video_id(reference)
        session = PlaybackSession(
            video_id=video_id or str(reference),
            target_duration_seconds=float(target_duration_seconds),
            generation=self.generation,
            video=item,
        )
        self.session = session

        if video_id is None:
            logger.warning("Could not extract a video id from %r", reference)
            self.orchestrator.skip(session, TerminalReason.CONTENT_UNAVAILABLE, f"Invalid video reference: {reference}")
            return session

        logger.info("Session %d: %s, target %.1fs", session.generation, video_id, session.target_duration_seconds)
        self.bridge.load(video_id, session.generation)
        self.orchestrator.arm_watchdogs(session)
        return session

    def session_for(self, generation: int) -> Optional[PlaybackSession]:
        session = self.session
        if session is not None and session.generation == generation:
            return session
        return None

    def release(self, generation: int) -> bool:
        """Clears the session if it is still the given generation."""
        if self.session_for(generation) is None:
            return False
        self.session = None
        self.generation += 1
        return True

    def close(self) -> None:
        self.orchestrator.cancel_all()
        self.session = None
        self.generation += 1

    # === INBOUND ===
    def handle_message(self, raw: Union[str, bytes], generation: Optional[int] = None) -> Optional[PlayerEvent]:
        """
        Routes one serialized widget message. Messages tagged with a generation
        other than the live one are dropped unparsed.
        """
        if generation is not None and generation != self.generation:
            logger.debug("Dropping message from stale generation %d (live %d)", generation, self.generation)
            return None
        event = self.bridge.on_message(raw)
        self.dispatch(event, generation=generation)
        return event

    def dispatch(self, event: PlayerEvent, generation: Optional[int] = None) -> None:
        session = self.session
        if session is None:
            logger.debug("No live session for %s", type(event).__name__)
            return
        if generation is not None and generation != session.generation:
            return
        if session.is_terminal:
            logger.debug("Session %s already ended, ignoring %s", session.video_id, type(event).__name__)
            return

        self.orchestrator.note_activity(session, event)
        if is_error_event(event):
            self.orchestrator.handle_error(session, event)
            return
        if session.status is PlaybackStatus.ERRORED:
            # Waiting for the reload; anything else is from the dead widget
            return
        self._apply(session, self.tracker.handle(session, event))

    def _apply(self, session: PlaybackSession, effects) -> None:
        for effect in effects:
            if self.session is not session:
                logger.debug("Session replaced while applying effects")
                return
            self._apply_one(session, effect)

    def _apply_one(self, session: PlaybackSession, effect: Effect) -> None:
        if isinstance(effect, ReadyStateChanged):
            if effect.ready:
                self.orchestrator.cancel_watchdog(READY_WATCHDOG)
                self.bridge.update_auto_skip(self.auto_advance)
                self.bridge.set_tab_visibility(self.visible)
            self.notify("on_ready_state_changed", effect.ready)
        elif isinstance(effect, ProgressReported):
            self.notify("on_progress", effect.current_time)
        elif isinstance(effect, ResumeRequested):
            self.bridge.send_command(PlayerCommand.PLAY)
        elif isinstance(effect, StopRequested):
            self.bridge.send_command(PlayerCommand.STOP)
        elif isinstance(effect, RewardEligible):
            self.notify("on_reward_eligible")
            if self.auto_advance and self.session is session and session.can_transition(PlaybackStatus.COMPLETED):
                self.bridge.send_command(PlayerCommand.STOP)
                session.transition(PlaybackStatus.COMPLETED)
                self.orchestrator.conclude(session, TerminalReason.COMPLETED, "Auto-advance after reward",
                                           self.settings.reward_advance_delay_seconds)
        elif isinstance(effect, LivenessFailure):
            self.orchestrator.handle_error(session, effect.event)
        elif isinstance(effect, SessionFinished):
            self.orchestrator.conclude(session, effect.reason, effect.message,
                                       self.settings.completion_advance_delay_seconds)

    def notify(self, method: str, *args: Any) -> None:
        if self.host is None:
            return
        try:
            getattr(self.host, method)(*args)
        except Exception:
            logger.exception("Host listener %s failed", method)

    # === UI INTENTS ===
    def _live_session(self) -> Optional[PlaybackSession]:
        session = self.session
        if session is None or session.is_terminal:
            return None
        return session

    def play(self) -> bool:
        if self._live_session() is None:
            return False
        if not self.visible:
            logger.info("Not resuming playback while the player is hidden")
            return False
        return self.bridge.send_command(PlayerCommand.PLAY)

    def pause(self) -> bool:
        if self._live_session() is None:
            return False
        return self.bridge.send_command(PlayerCommand.PAUSE)

    def toggle_play_pause(self) -> bool:
        session = self._live_session()
        if session is None:
            return False
        if session.status in (PlaybackStatus.PLAYING, PlaybackStatus.BUFFERING):
            return self.pause()
        return self.play()

    def skip(self) -> bool:
        session = self._live_session()
        if session is None:
            return False
        return self.orchestrator.skip(session, TerminalReason.USER_SKIP, "Skipped by user")

    def set_auto_advance(self, enabled: bool) -> None:
        self.auto_advance = bool(enabled)
        if self._live_session() is not None:
            self.bridge.update_auto_skip(self.auto_advance)

    def set_visible(self, visible: bool) -> None:
        self.visible = bool(visible)
        if self._live_session() is not None:
            self.bridge.set_tab_visibility(self.visible)
