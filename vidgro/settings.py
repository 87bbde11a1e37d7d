import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path("~/.vidgro/settings.json").expanduser()


@dataclass(frozen=True)
class ControllerSettings:
    """Thresholds and delays for the playback controller. All durations in seconds."""
    completion_ratio: float = 0.95
    completion_tolerance_seconds: float = 2.0
    stuck_epsilon_seconds: float = 0.1
    stuck_tick_threshold: int = 3
    max_retries: int = 1
    retry_on_timeout: bool = False
    ready_timeout_seconds: float = 5.0
    loading_timeout_seconds: float = 3.0
    reload_delay_seconds: float = 1.0
    skip_delay_seconds: float = 0.2
    reward_advance_delay_seconds: float = 2.0
    completion_advance_delay_seconds: float = 3.0
    replenish_threshold: int = 2

    def __post_init__(self):
        if not 0 < self.completion_ratio <= 1:
            raise ValueError(f"completion_ratio must be in (0, 1], got {self.completion_ratio}")
        if self.stuck_tick_threshold < 1:
            raise ValueError("stuck_tick_threshold must be at least 1")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        for name in ("completion_tolerance_seconds", "stuck_epsilon_seconds", "ready_timeout_seconds",
                     "loading_timeout_seconds", "reload_delay_seconds", "skip_delay_seconds",
                     "reward_advance_delay_seconds", "completion_advance_delay_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.replenish_threshold < 0:
            raise ValueError("replenish_threshold cannot be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ControllerSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown controller settings: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_settings() -> Dict[str, Any]:
    return {
        "service_url": "http://localhost:54321",
        "service_key": "local-dev-key",
        "user_id": "local-user",
        "catalog_file": "videos.json",
        "controller": ControllerSettings().to_dict(),
    }


def load_settings(settings_path: Path = DEFAULT_SETTINGS_PATH) -> Dict[str, Any]:
    """Loads application settings from a JSON file, filling in defaults for missing keys."""
    settings = default_settings()
    if not settings_path.exists():
        return settings

    with open(settings_path, 'r', encoding='utf-8') as f:
        stored = json.load(f)

    controller = dict(settings["controller"])
    controller.update(stored.pop("controller", None) or {})
    settings.update(stored)
    settings["controller"] = controller
    return settings


def save_settings(settings: Dict[str, Any], settings_path: Path = DEFAULT_SETTINGS_PATH) -> None:
    """Saves application settings to a JSON file."""
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with open(settings_path, 'w', encoding='utf-8') as f:
        json.dump(settings, f, indent=4)


def controller_settings(settings: Dict[str, Any]) -> ControllerSettings:
    return ControllerSettings.from_dict(settings.get("controller") or {})
