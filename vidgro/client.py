import logging
import math
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

from vidgro.domain import VideoItem
from vidgro.utils import coins_for_duration

logger = logging.getLogger(__name__)

# Callable taking (procedure name, payload) and returning the decoded result
Transport = Callable[[str, Dict[str, Any]], Any]


class ClientNotInitializedError(RuntimeError):
    pass


class ClientAlreadyInitializedError(RuntimeError):
    pass


class ServiceCallError(Exception):
    def __init__(self, procedure: str, cause: Exception):
        super().__init__(f"{procedure} failed: {cause}")
        self.procedure = procedure
        self.cause = cause


class ServiceClient:
    """
    Handle on the hosted backend. Constructed explicitly and passed to whoever
    needs it; initialize() must run exactly once before any call.
    """

    def __init__(self, service_url: str, api_key: str):
        self.service_url = service_url
        self.api_key = api_key
        self._transport: Optional[Transport] = None

    @property
    def is_initialized(self) -> bool:
        return self._transport is not None

    def initialize(self, transport: Transport) -> "ServiceClient":
        if self.is_initialized:
            raise ClientAlreadyInitializedError("ServiceClient.initialize() called twice")
        missing = [name for name, value in (("service_url", self.service_url), ("api_key", self.api_key)) if not value]
        if missing:
            raise ValueError(f"Missing service configuration: {', '.join(missing)}")
        parsed = urlparse(self.service_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid service URL: {self.service_url}")
        self._transport = transport
        logger.info("Service client ready for %s", parsed.netloc)
        return self

    def rpc(self, procedure: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self._transport is None:
            raise ClientNotInitializedError(f"Cannot call {procedure}: ServiceClient is not initialized")
        payload = dict(params or {})
        logger.debug("rpc %s %s", procedure, payload)
        try:
            return self._transport(procedure, payload)
        except Exception as e:
            raise ServiceCallError(procedure, e) from e


class RewardLedger:
    """Records completed views with the backend, which owns the actual coin accounting."""

    def __init__(self, client: ServiceClient, tolerance_seconds: float = 2.0):
        self.client = client
        self.tolerance_seconds = tolerance_seconds

    def award(self, user_id: str, video: VideoItem, watched_seconds: float) -> int:
        """
        Watch time within tolerance_seconds of the full duration is recorded as
        the full duration; anything shorter is recorded and paid as watched.

        Returns:
            int: The coins credited, as reported by the backend.
        """
        if watched_seconds >= video.duration_seconds - self.tolerance_seconds:
            recorded = max(watched_seconds, video.duration_seconds)
        else:
            recorded = watched_seconds
        coins = coins_for_duration(min(recorded, video.duration_seconds))
        result = self.client.rpc("award_coins_for_video", {
            "user_id": user_id,
            "video_id": video.id,
            "watched_duration": int(math.floor(recorded)),
            "coins": coins,
        })
        if isinstance(result, dict) and "coins_earned" in result:
            return int(result["coins_earned"])
        return coins
