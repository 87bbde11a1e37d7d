import json
import logging
from typing import Optional, Union

from vidgro.domain import PlayerCommand
from vidgro.events import ParseError, PlayerEvent, UnknownEvent, parse_message
from vidgro.interfaces import IPlayerSurface
from vidgro.utils import build_embed_url

logger = logging.getLogger(__name__)

COMMAND_SCRIPTS = {
    PlayerCommand.PLAY: "window.playVideo && window.playVideo(); true;",
    PlayerCommand.PAUSE: "window.pauseVideo && window.pauseVideo(); true;",
    PlayerCommand.STOP: "window.stopVideo && window.stopVideo(); true;",
}
CLEANUP_SCRIPT = "window.cleanup && window.cleanup(); true;"


def _call_script(function: str, argument: Union[bool, int, str]) -> str:
    return f"window.{function} && window.{function}({json.dumps(argument)}); true;"


class EmbeddedPlayerBridge:
    """
    Message channel to the script running inside the embedded web content.

    Outbound calls inject scripts and are best-effort: a failing surface is
    logged and reported as False, never raised. Inbound messages are parsed
    into events; malformed ones come back as ParseError.
    """

    def __init__(self, surface: IPlayerSurface, origin: Optional[str] = None):
        self.surface = surface
        self.origin = origin
        self.commands_sent = 0
        self.messages_received = 0

    def load(self, video_id: str, generation: int, attempt: int = 0) -> bool:
        url = build_embed_url(video_id, attempt, self.origin)
        logger.info("Loading embed for %s (generation %d, attempt %d): %s", video_id, generation, attempt + 1, url)
        try:
            self.surface.load(url, generation)
            return True
        except Exception as e:
            logger.warning("Surface failed to load %s: %s", url, e)
            return False

    def send_command(self, command: PlayerCommand) -> bool:
        return self._inject(COMMAND_SCRIPTS[command])

    def set_tab_visibility(self, visible: bool) -> bool:
        return self._inject(_call_script("setTabVisibility", bool(visible)))

    def update_auto_skip(self, enabled: bool) -> bool:
        return self._inject(_call_script("updateAutoSkip", bool(enabled)))

    def cleanup(self) -> bool:
        return self._inject(CLEANUP_SCRIPT)

    def on_message(self, raw: Union[str, bytes]) -> PlayerEvent:
        self.messages_received += 1
        event = parse_message(raw)
        if isinstance(event, ParseError):
            logger.warning("Malformed player message: %s", event.detail)
        elif isinstance(event, UnknownEvent):
            logger.warning("Unrecognized player message type: %s", event.event_type)
        else:
            logger.debug("Player event: %s", event)
        return event

    def _inject(self, script: str) -> bool:
        try:
            self.surface.inject_script(script)
        except Exception as e:
            logger.warning("Script injection failed (%s): %s", script, e)
            return False
        self.commands_sent += 1
        return True
