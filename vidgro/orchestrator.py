import logging
from typing import TYPE_CHECKING, Dict, Optional

from vidgro.domain import PlaybackSession, PlaybackStatus, TerminalReason
from vidgro.drivers.embedded_bridge import EmbeddedPlayerBridge
from vidgro.events import (
    ApiLoadError,
    LoadingTimeout,
    ParseError,
    PlayerError,
    PlayerEvent,
    PlayerInitError,
    PlayerReadySuccess,
    ReadyTimeout,
    UnknownEvent,
    VideoStarted,
    is_error_event,
)
from vidgro.interfaces import IQueueProvider, IScheduler, ITimerHandle
from vidgro.settings import ControllerSettings

if TYPE_CHECKING:
    from vidgro.services import PlaybackController

logger = logging.getLogger(__name__)

READY_WATCHDOG = "ready"
LOADING_WATCHDOG = "loading"


class SkipRetryOrchestrator:
    """
    Turns error and terminal conditions into a recovery action: reload the
    widget, or give up on the video and advance the external queue.

    Owns every timer of the active session (watchdogs, pending reload,
    pending advance). Timer callbacks carry the session generation and do
    nothing once that session has been replaced.
    """

    def __init__(self, owner: "PlaybackController", bridge: EmbeddedPlayerBridge, scheduler: IScheduler,
                 queue: Optional[IQueueProvider], settings: ControllerSettings):
        self.owner = owner
        self.bridge = bridge
        self.scheduler = scheduler
        self.queue = queue
        self.settings = settings
        self._watchdogs: Dict[str, ITimerHandle] = {}
        self._reload: Optional[ITimerHandle] = None
        self._advance: Optional[ITimerHandle] = None
        self._concluded_generation: Optional[int] = None

    # === TIMERS ===
    def arm_watchdogs(self, session: PlaybackSession) -> None:
        self.cancel_watchdogs()
        gen = session.generation
        self._watchdogs[READY_WATCHDOG] = self.scheduler.call_later(
            self.settings.ready_timeout_seconds, self._on_watchdog, gen, READY_WATCHDOG,
            name="ready watchdog")
        self._watchdogs[LOADING_WATCHDOG] = self.scheduler.call_later(
            self.settings.loading_timeout_seconds, self._on_watchdog, gen, LOADING_WATCHDOG,
            name="loading watchdog")

    def cancel_watchdog(self, name: str) -> None:
        handle = self._watchdogs.pop(name, None)
        if handle is not None:
            handle.cancel()

    def cancel_watchdogs(self) -> None:
        for name in list(self._watchdogs):
            self.cancel_watchdog(name)

    def cancel_all(self) -> None:
        """Cancels every pending timer. Called whenever the session is replaced."""
        self.cancel_watchdogs()
        for handle in (self._reload, self._advance):
            if handle is not None:
                handle.cancel()
        self._reload = None
        self._advance = None

    def watchdog_armed(self, name: str) -> bool:
        return name in self._watchdogs

    def note_activity(self, session: PlaybackSession, event: PlayerEvent) -> None:
        """Cancels the watchdogs that an incoming widget event satisfies."""
        if is_error_event(event):
            return
        # Any well-formed message proves the widget content loaded
        self.cancel_watchdog(LOADING_WATCHDOG)
        if isinstance(event, (PlayerReadySuccess, VideoStarted)):
            self.cancel_watchdog(READY_WATCHDOG)

    def _on_watchdog(self, generation: int, name: str) -> None:
        self._watchdogs.pop(name, None)
        session = self.owner.session_for(generation)
        if session is None or session.is_terminal:
            return
        logger.warning("%s watchdog fired for %s", name, session.video_id)
        if name == READY_WATCHDOG:
            event = ReadyTimeout(f"Player ready timeout after {self.settings.ready_timeout_seconds:g} seconds")
        else:
            event = LoadingTimeout(f"Video loading timeout after {self.settings.loading_timeout_seconds:g} seconds")
        self.owner.dispatch(event, generation=generation)

    # === ERROR POLICY ===
    def handle_error(self, session: PlaybackSession, event: PlayerEvent) -> None:
        if session.is_terminal:
            return

        if isinstance(event, (ParseError, UnknownEvent)):
            detail = event.detail if isinstance(event, ParseError) else f"unknown message type {event.event_type}"
            self.skip(session, TerminalReason.PROTOCOL_ERROR, detail)
            return

        if isinstance(event, (ReadyTimeout, LoadingTimeout)) and not self.settings.retry_on_timeout:
            self.skip(session, TerminalReason.TIMEOUT, event.message)
            return

        if isinstance(event, (ApiLoadError, PlayerInitError)) or (
                isinstance(event, PlayerError) and event.is_embedding_error):
            self.skip(session, TerminalReason.CONTENT_UNAVAILABLE, event.message)
            return

        message = getattr(event, "message", "") or type(event).__name__
        if session.retry_count >= self.settings.max_retries:
            logger.info("Retries exhausted for %s (%d/%d)", session.video_id,
                        session.retry_count, self.settings.max_retries)
            self.skip(session, TerminalReason.RETRIES_EXHAUSTED, message)
            return

        self._schedule_reload(session, message)

    def _schedule_reload(self, session: PlaybackSession, message: str) -> None:
        session.retry_count += 1
        session.transition(PlaybackStatus.ERRORED)
        self.cancel_watchdogs()
        logger.info("Reloading %s after error '%s' (attempt %d/%d)", session.video_id, message,
                    session.retry_count, self.settings.max_retries)
        self.owner.notify("on_ready_state_changed", False)
        if self._reload is not None:
            self._reload.cancel()
        self._reload = self.scheduler.call_later(
            self.settings.reload_delay_seconds, self._run_reload, session.generation, name="reload")

    def _run_reload(self, generation: int) -> None:
        self._reload = None
        session = self.owner.session_for(generation)
        if session is None or session.status is not PlaybackStatus.ERRORED:
            return
        session.transition(PlaybackStatus.LOADING)
        session.reset_progress_probe()
        self.bridge.load(session.video_id, generation, attempt=session.retry_count)
        self.arm_watchdogs(session)

    # === CONCLUSION ===
    def skip(self, session: PlaybackSession, reason: TerminalReason, message: str = "") -> bool:
        if reason is not TerminalReason.USER_SKIP:
            session.transition(PlaybackStatus.ERRORED)
        return self.conclude(session, reason, message, self.settings.skip_delay_seconds)

    def conclude(self, session: PlaybackSession, reason: TerminalReason, message: str, delay: float) -> bool:
        """
        Ends the session once: terminal state, widget cleanup, host notified,
        then the queue advances after delay. Returns False if already concluded.
        """
        if self._concluded_generation == session.generation:
            return False
        self._concluded_generation = session.generation
        self.cancel_all()

        if not session.is_terminal:
            session.transition(PlaybackStatus.ABANDONED)
        session.terminal_reason = reason
        logger.info("Session %s ended (%s): %s", session.video_id, reason.value, message)

        self.bridge.cleanup()
        self.owner.notify("on_terminal", reason, message)
        self._advance = self.scheduler.call_later(delay, self._run_advance, session.generation, name="advance")
        return True

    def _run_advance(self, generation: int) -> None:
        self._advance = None
        if not self.owner.release(generation):
            return
        if self.queue is None:
            return
        try:
            self.queue.advance()
            remaining = self.queue.remaining()
            if remaining <= self.settings.replenish_threshold:
                logger.info("Queue running low (%d left), requesting more videos", remaining)
                self.queue.replenish()
        except Exception:
            logger.exception("Queue update failed after session %d", generation)
