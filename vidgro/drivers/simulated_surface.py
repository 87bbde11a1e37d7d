import json
import logging
import re
from typing import Callable, List, Optional

from vidgro.interfaces import IPlayerSurface
from vidgro.utils import extract_video_id

logger = logging.getLogger(__name__)

_SCRIPT_CALL = re.compile(r"window\.(\w+)\((.*?)\);")


class SimulatedPlayerSurface(IPlayerSurface):
    """
    In-process stand-in for the embedded widget. Interprets the injected
    control scripts and posts the same JSON messages the real widget would,
    one progress update per tick while playing. Each message is emitted with
    the generation the widget was loaded for.

    Knobs such as ``error_code``, ``stalled`` and ``respond`` let a bench or a
    test provoke the failure paths.
    """

    def __init__(self, emit: Optional[Callable[[str, int], None]] = None, duration: float = 30.0):
        self.emit = emit
        self.generation = 0
        self.duration = duration
        self.loaded_urls: List[str] = []
        self.scripts: List[str] = []
        self.error_code: Optional[int] = None
        self.stalled = False
        self.respond = True
        self.autoplay = True
        self.auto_skip = False
        self.visible = True
        self._reset()

    def _reset(self) -> None:
        self.video_id: Optional[str] = None
        self.position = 0.0
        self.ready = False
        self.playing = False
        self.started = False
        self.completed = False
        self.coins_announced = False
        self.was_playing_before_hidden = False

    # === IPlayerSurface ===
    def load(self, url: str, generation: int) -> None:
        self._reset()
        self.generation = generation
        self.loaded_urls.append(url)
        self.video_id = extract_video_id(url)

    def inject_script(self, script: str) -> None:
        self.scripts.append(script)
        match = _SCRIPT_CALL.search(script)
        if not match:
            logger.debug("Simulated widget ignores script: %s", script)
            return
        function, argument = match.group(1), match.group(2)
        value = json.loads(argument) if argument else None

        if function == "playVideo":
            self._set_playing(True)
        elif function == "pauseVideo":
            self._set_playing(False)
        elif function == "stopVideo":
            self.playing = False
        elif function == "cleanup":
            self._reset()
        elif function == "updateAutoSkip":
            self.auto_skip = bool(value)
        elif function == "setTabVisibility":
            self.visible = bool(value)
            if not self.visible:
                self.was_playing_before_hidden = self.playing
                self._set_playing(False)
            elif self.was_playing_before_hidden:
                self._set_playing(True)

    # === WIDGET BEHAVIOUR ===
    def tick(self, seconds: float = 1.0) -> None:
        """Advances the simulated widget by one polling interval."""
        if self.video_id is None or not self.respond or self.completed:
            return
        if not self.ready:
            if self.error_code is not None:
                self._post(type="PLAYER_ERROR", error=self.error_code,
                           isEmbeddingError=self.error_code in (100, 101, 150))
                self.video_id = None
                return
            self.ready = True
            self._post(type="PLAYER_READY_SUCCESS")
            if self.autoplay:
                self._set_playing(True)
            return
        if not self.playing:
            return

        if not self.stalled:
            self.position = min(self.position + seconds, self.duration)
        self._post(type="PROGRESS_UPDATE", currentTime=self.position,
                   progress=min(self.position / self.duration, 1) * 100 if self.duration else 100,
                   targetDuration=self.duration)

        if self.position >= self.duration and not self.coins_announced:
            self.coins_announced = True
            self._post(type="COINS_EARNED", currentTime=self.position)
            if self.auto_skip:
                self._finish("auto_complete_after_coins")
                return
        if self.position >= self.duration:
            self._post(type="STATE_CHANGE", state=0)
            self._finish("natural_end")

    def _finish(self, reason: str) -> None:
        self.completed = True
        self.playing = False
        self._post(type="VIDEO_COMPLETED", reason=reason, currentTime=self.position)

    def _set_playing(self, playing: bool) -> None:
        if not self.ready or self.completed or playing == self.playing:
            return
        if playing and not self.visible:
            return
        self.playing = playing
        if playing and not self.started:
            self.started = True
            self._post(type="VIDEO_STARTED")
        self._post(type="STATE_CHANGE", state=1 if playing else 2)

    def _post(self, **payload) -> None:
        if self.emit is not None:
            self.emit(json.dumps(payload), self.generation)
