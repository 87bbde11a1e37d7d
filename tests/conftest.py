import json

import pytest

from vidgro.interfaces import IHostListener, IPlayerSurface, IQueueProvider
from vidgro.scheduler import ManualScheduler
from vidgro.services import PlaybackController
from vidgro.settings import ControllerSettings


class RecordingSurface(IPlayerSurface):
    def __init__(self):
        self.loaded = []
        self.generations = []
        self.scripts = []
        self.fail = False

    def load(self, url, generation):
        if self.fail:
            raise RuntimeError("web view gone")
        self.loaded.append(url)
        self.generations.append(generation)

    def inject_script(self, script):
        if self.fail:
            raise RuntimeError("web view gone")
        self.scripts.append(script)

    def called(self, function):
        return [s for s in self.scripts if f"window.{function}(" in s]


class RecordingHost(IHostListener):
    def __init__(self):
        self.events = []

    def on_ready_state_changed(self, ready):
        self.events.append(("ready", ready))

    def on_progress(self, current_time):
        self.events.append(("progress", current_time))

    def on_reward_eligible(self):
        self.events.append(("reward",))

    def on_terminal(self, reason, message):
        self.events.append(("terminal", reason, message))

    def of(self, kind):
        return [e for e in self.events if e[0] == kind]


class RecordingQueue(IQueueProvider):
    def __init__(self, size=5):
        self.size = size
        self.advanced = 0
        self.replenished = 0

    def advance(self):
        self.advanced += 1
        self.size = max(self.size - 1, 0)

    def remaining(self):
        return self.size

    def replenish(self):
        self.replenished += 1


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def settings():
    return ControllerSettings()


@pytest.fixture
def controller(surface, host, scheduler, queue, settings):
    return PlaybackController(surface, host, scheduler, queue, settings)


@pytest.fixture
def send(controller):
    def _send(generation=None, **payload):
        return controller.handle_message(json.dumps(payload), generation=generation)
    return _send
