import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from vidgro.utils import coins_for_duration


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder to handle datetime objects."""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class JsonBackend:
    """
    Local stand-in for the hosted backend. Keeps videos, views and balances
    in a JSON file and answers the procedures the client calls.
    """

    def __init__(self, storage_file: Path):
        self.storage_file = storage_file
        self.data: Dict[str, Any] = self._load_from_file()

    def _load_from_file(self) -> Dict[str, Any]:
        """Loads backend state from the JSON file."""
        empty = {"videos": [], "views": [], "balances": {}}
        if not self.storage_file.exists():
            return empty

        with open(self.storage_file, 'r', encoding='utf-8') as f:
            raw_data = json.load(f)

        for key, value in empty.items():
            raw_data.setdefault(key, value)
        return raw_data

    def _save_to_file(self) -> None:
        """Saves current state to the JSON file."""
        self.storage_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.storage_file, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, indent=4, cls=JSONEncoder)

    def __call__(self, procedure: str, params: Dict[str, Any]) -> Any:
        handler = getattr(self, f"_rpc_{procedure}", None)
        if handler is None:
            raise LookupError(f"Unknown procedure: {procedure}")
        return handler(**params)

    def add_video(self, video_id: str, youtube_url: str, title: str, duration_seconds: float,
                  owner_id: str = "", target_views: int = 100) -> None:
        self.data["videos"].append({
            "id": video_id,
            "youtube_url": youtube_url,
            "title": title,
            "duration_seconds": duration_seconds,
            "coin_reward": coins_for_duration(duration_seconds),
            "user_id": owner_id,
            "views_count": 0,
            "target_views": target_views,
            "status": "active",
        })
        self._save_to_file()

    def watched_ids(self, user_id: str) -> List[str]:
        return [view["video_id"] for view in self.data["views"] if view["viewer_id"] == user_id]

    def balance(self, user_id: str) -> int:
        return self.data["balances"].get(user_id, 0)

    def _rpc_get_video_queue(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        watched = set(self.watched_ids(user_id))
        rows = [
            video for video in self.data["videos"]
            if video["status"] == "active"
            and video.get("user_id") != user_id
            and video["views_count"] < video["target_views"]
            and video["id"] not in watched
        ]
        return rows[:limit]

    def _rpc_award_coins_for_video(self, user_id: str, video_id: str, watched_duration: int,
                                   coins: int) -> Dict[str, Any]:
        if video_id in self.watched_ids(user_id):
            return {"coins_earned": 0, "already_watched": True}

        self.data["views"].append({
            "video_id": video_id,
            "viewer_id": user_id,
            "watched_duration": watched_duration,
            "completed": True,
            "coins_earned": coins,
            "created_at": datetime.now(),
        })
        for video in self.data["videos"]:
            if video["id"] == video_id:
                video["views_count"] += 1
        self.data["balances"][user_id] = self.balance(user_id) + coins
        self._save_to_file()
        return {"coins_earned": coins, "balance": self.balance(user_id)}
