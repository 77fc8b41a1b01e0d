"""Per-run progress channels.

A ``ProgressHub`` owns one channel per run id. Each channel keeps the latest
event (so late subscribers start from current state) and the queues of its
live subscribers. A channel is torn down a grace period after its last
subscriber leaves, or after the run finishes with nobody listening.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from citecheck_core.types import ProgressEvent

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"completed", "error", "cancelled"})


class Subscription:
    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._queue: queue.Queue[ProgressEvent] = queue.Queue()

    def put(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: float | None = None) -> ProgressEvent | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


@dataclass
class _Channel:
    latest: ProgressEvent | None = None
    subscribers: list[Subscription] = field(default_factory=list)
    expires_at: float | None = None


class ProgressHub:
    def __init__(self, grace_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.grace_seconds = grace_seconds
        self.clock = clock
        self._channels: dict[str, _Channel] = {}
        self._lock = threading.Lock()

    def open_run(self, run_id: str) -> None:
        with self._lock:
            channel = self._channels.setdefault(run_id, _Channel())
            channel.expires_at = None

    def has_run(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._channels

    def publish(self, run_id: str, event: ProgressEvent) -> None:
        with self._lock:
            channel = self._channels.setdefault(run_id, _Channel())
            channel.latest = event
            for subscription in channel.subscribers:
                subscription.put(event)
            if event.status in TERMINAL_STATUSES and not channel.subscribers:
                channel.expires_at = self.clock() + self.grace_seconds

    def callback(self, run_id: str) -> Callable[[ProgressEvent], None]:
        def publish(event: ProgressEvent) -> None:
            self.publish(run_id, event)

        return publish

    def latest(self, run_id: str) -> ProgressEvent | None:
        with self._lock:
            channel = self._channels.get(run_id)
            return channel.latest if channel else None

    def subscribe(self, run_id: str) -> Subscription:
        subscription = Subscription(run_id)
        with self._lock:
            channel = self._channels.setdefault(run_id, _Channel())
            channel.subscribers.append(subscription)
            channel.expires_at = None
            if channel.latest is not None:
                subscription.put(channel.latest)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            channel = self._channels.get(subscription.run_id)
            if channel is None:
                return
            if subscription in channel.subscribers:
                channel.subscribers.remove(subscription)
            if not channel.subscribers:
                channel.expires_at = self.clock() + self.grace_seconds

    def reap(self) -> list[str]:
        now = self.clock()
        with self._lock:
            expired = [
                run_id
                for run_id, channel in self._channels.items()
                if not channel.subscribers and channel.expires_at is not None and channel.expires_at <= now
            ]
            for run_id in expired:
                del self._channels[run_id]
        if expired:
            logger.debug("Closed progress channels: %s", ", ".join(expired))
        return expired

    def active_runs(self) -> list[str]:
        with self._lock:
            return sorted(self._channels)


class ProgressFileWriter:
    """Progress listener that mirrors the latest event into a JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def __call__(self, event: ProgressEvent) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(event.model_dump(by_alias=True), indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(self.path)
