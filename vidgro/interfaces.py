from abc import ABC, abstractmethod
from typing import Any, Callable

from vidgro.domain import TerminalReason


class IPlayerSurface(ABC):
    """Abstract Base Class for the web content view hosting the embedded widget."""

    @abstractmethod
    def load(self, url: str, generation: int) -> None:
        """
        (Re)creates the embedded widget pointed at the given embed URL.

        Every message the new widget posts must be delivered to
        PlaybackController.handle_message tagged with this generation, so a
        widget that outlives its session is recognized and ignored.

        Args:
            url (str): The embed URL to load.
            generation (int): Generation of the session the widget belongs to.
        """
        pass

    @abstractmethod
    def inject_script(self, script: str) -> None:
        """
        Evaluates a script inside the embedded content. No result is returned.

        Args:
            script (str): The script source to inject.
        """
        pass


class IHostListener(ABC):
    """Abstract Base Class for the hosting screen. The only upward contract of the controller."""

    @abstractmethod
    def on_ready_state_changed(self, ready: bool) -> None:
        pass

    @abstractmethod
    def on_progress(self, current_time: float) -> None:
        pass

    @abstractmethod
    def on_reward_eligible(self) -> None:
        """Called at most once per session, when the watch threshold is first crossed."""
        pass

    @abstractmethod
    def on_terminal(self, reason: TerminalReason, message: str) -> None:
        """Called once per session when it completes or is abandoned."""
        pass


class IQueueProvider(ABC):
    """Abstract Base Class for the external video queue. Calls are fire-and-forget."""

    @abstractmethod
    def advance(self) -> None:
        pass

    @abstractmethod
    def remaining(self) -> int:
        """
        Returns:
            int: Number of videos left in the queue, including the current one.
        """
        pass

    @abstractmethod
    def replenish(self) -> None:
        pass


class ITimerHandle(ABC):

    @abstractmethod
    def cancel(self) -> None:
        pass


class IScheduler(ABC):
    """Abstract Base Class for the single clock source driving every timer."""

    @property
    @abstractmethod
    def now(self) -> float:
        pass

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any, name: str = "") -> ITimerHandle:
        """
        Schedules callback(*args) to run after delay seconds. The name only
        labels the timer in logs.

        Returns:
            ITimerHandle: A handle that can cancel the pending call.
        """
        pass
