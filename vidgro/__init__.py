from vidgro.domain import PlaybackSession, PlaybackStatus, PlayerCommand, TerminalReason, VideoItem
from vidgro.interfaces import IHostListener, IPlayerSurface, IQueueProvider, IScheduler
from vidgro.scheduler import ManualScheduler
from vidgro.services import PlaybackController
from vidgro.settings import ControllerSettings

__version__ = "0.3.0"

__all__ = [
    "ControllerSettings",
    "IHostListener",
    "IPlayerSurface",
    "IQueueProvider",
    "IScheduler",
    "ManualScheduler",
    "PlaybackController",
    "PlaybackSession",
    "PlaybackStatus",
    "PlayerCommand",
    "TerminalReason",
    "VideoItem",
]
