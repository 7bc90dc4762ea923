"""
Cross-instance start/stop signaling over shared Redis sets.

Two sets coordinate the instances of the service:
- the started set, where an instance announces every task it adopts
- the pending-stop set, where any instance asks for a task to be stopped

Both sets are unordered multisets with pop-any semantics; no ordering or
exactly-once delivery is assumed.
"""

import logging
import time
from typing import Optional

import redis

from utils.retry import retry_with_backoff

from .errors import SignalDecodeError
from .models import StartAnnouncement, StopRequest

logger = logging.getLogger(__name__)

STARTED_SET = "cc:v3:cloud_sync:instance_started"
PENDING_STOP_SET = "cc:v3:cloud_sync:pending_stop"

_transient = retry_with_backoff(
    max_retries=3,
    base_delay=0.5,
    max_delay=5.0,
    retryable_exceptions=(redis.ConnectionError, redis.TimeoutError),
)


class SignalQueue:
    """
    Adapter over the shared started/pending-stop sets

    Args:
        client: Redis client (``redis.Redis``); responses may be bytes or str
        started_set: Key of the started set
        pending_stop_set: Key of the pending-stop set
        poll_interval: Sleep between empty pops while waiting in ``take_one``
    """

    def __init__(
        self,
        client: redis.Redis,
        started_set: str = STARTED_SET,
        pending_stop_set: str = PENDING_STOP_SET,
        poll_interval: float = 0.2,
    ):
        self.client = client
        self.started_set = started_set
        self.pending_stop_set = pending_stop_set
        self.poll_interval = poll_interval

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "SignalQueue":
        """Create a queue backed by ``redis.Redis.from_url(url)``."""
        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    @_transient
    def announce(self, set_name: str, *messages: str) -> int:
        """
        Add messages to a shared set

        Returns:
            Number of messages that were not already present
        """
        if not messages:
            return 0
        return int(self.client.sadd(set_name, *messages))

    def announce_start(self, *announcements: StartAnnouncement) -> int:
        return self.announce(self.started_set, *(a.to_json() for a in announcements))

    def request_stop(self, request: StopRequest) -> int:
        logger.info(f"Requesting stop of task {request.task_id} (owner {request.owner_id})")
        return self.announce(self.pending_stop_set, request.to_json())

    def take_one(self, set_name: str, timeout: float = 0.0) -> Optional[str]:
        """
        Pop one arbitrary member of a set, waiting up to ``timeout`` seconds

        Redis has no blocking set pop, so an empty set is re-checked every
        ``poll_interval`` seconds until the timeout elapses.

        Returns:
            The popped message, or None if the set stayed empty
        """
        deadline = time.monotonic() + timeout
        while True:
            raw = self.client.spop(set_name)
            if raw is not None:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="replace")
                return raw
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(self.poll_interval, remaining))

    def take_stop_request(self, timeout: float = 0.0) -> Optional[str]:
        return self.take_one(self.pending_stop_set, timeout=timeout)

    @staticmethod
    def decode_stop(raw: Optional[str]) -> StopRequest:
        """
        Decode a pending-stop message

        Raises:
            SignalDecodeError: If the message is empty or malformed
        """
        return StopRequest.from_json(raw)

    def reconcile(self, started_set: str, *to_remove: str) -> int:
        """
        Remove from ``started_set`` every member also present in ``to_remove``

        Returns:
            Size of the started set after the difference is stored
        """
        return int(self.client.sdiffstore(started_set, [started_set, *to_remove]))

    def compact_started(self) -> int:
        return self.reconcile(self.started_set, self.pending_stop_set)

    def forget_started(self, task_id: int) -> int:
        """
        Remove every start announcement of a task from the started set

        Returns:
            Number of announcements removed
        """
        stale = []
        for raw in self.client.smembers(self.started_set):
            try:
                announcement = StartAnnouncement.from_json(raw)
            except SignalDecodeError as e:
                logger.warning(f"Skipping undecodable start announcement: {e}")
                continue
            if announcement.task_id == task_id:
                stale.append(raw)
        if not stale:
            return 0
        return int(self.client.srem(self.started_set, *stale))

    def started_tasks(self) -> list[StartAnnouncement]:
        """Decode every announcement in the started set, skipping bad ones."""
        announcements = []
        for raw in self.client.smembers(self.started_set):
            try:
                announcements.append(StartAnnouncement.from_json(raw))
            except SignalDecodeError as e:
                logger.warning(f"Skipping undecodable start announcement: {e}")
        return sorted(announcements, key=lambda a: a.task_id)
