import logging
from typing import List, Optional

from vidgro.client import ServiceCallError, ServiceClient
from vidgro.domain import VideoItem
from vidgro.interfaces import IQueueProvider

logger = logging.getLogger(__name__)

QUEUE_SIZE = 10


class VideoQueue(IQueueProvider):
    """Local window over the backend's queue of videos for one viewer."""

    def __init__(self, client: ServiceClient, user_id: str, batch_size: int = QUEUE_SIZE):
        self.client = client
        self.user_id = user_id
        self.batch_size = batch_size
        self.items: List[VideoItem] = []
        self.index = 0

    def current(self) -> Optional[VideoItem]:
        if self.index < len(self.items):
            return self.items[self.index]
        return None

    def advance(self) -> None:
        next_index = self.index + 1
        if next_index < len(self.items):
            self.index = next_index
        else:
            logger.info("Queue exhausted, clearing for reload")
            self.items = []
            self.index = 0

    def remaining(self) -> int:
        return max(len(self.items) - self.index, 0)

    def replenish(self) -> int:
        """
        Appends videos not already queued.

        Returns:
            int: Number of videos added.
        """
        try:
            rows = self.client.rpc("get_video_queue", {"user_id": self.user_id, "limit": self.batch_size})
        except ServiceCallError as e:
            logger.warning("Could not replenish the video queue: %s", e)
            return 0

        queued = {item.id for item in self.items[self.index:]}
        added = 0
        for row in rows or []:
            item = VideoItem(
                id=str(row["id"]),
                youtube_url=row["youtube_url"],
                title=row.get("title", ""),
                duration_seconds=float(row.get("duration_seconds", 0)),
                coin_reward=int(row.get("coin_reward", 3)),
            )
            if item.id in queued or item.duration_seconds <= 0:
                continue
            self.items.append(item)
            queued.add(item.id)
            added += 1
        logger.info("Fetched %d videos for queue", added)
        return added
