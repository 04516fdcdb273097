"""
trustledger.events — Ledger event notifications.

Every committed ledger mutation is published on an EventBus. Subscribers
register glob patterns and get a callback, a webhook POST, or both.

Usage:
    bus = EventBus()
    bus.subscribe("score.*", lambda e: print(e.data["new_score"]))
    bus.add_webhook("https://example.com/hook", ["submission.recorded"])
"""

from __future__ import annotations

import fnmatch
import hashlib
import json
import logging
import threading
import time
import urllib.request
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    ACCOUNT_INITIALIZED = "account.initialized"
    VERIFIER_REGISTERED = "verifier.registered"
    VERIFIER_DEACTIVATED = "verifier.deactivated"
    VERIFIER_REACTIVATED = "verifier.reactivated"
    SUBMISSION_RECORDED = "submission.recorded"
    SCORE_UPDATED = "score.updated"
    DISPUTE_RAISED = "dispute.raised"


@dataclass
class Event:
    event_type: str
    data: dict = field(default_factory=dict)
    height: int = 0
    source: str = ""
    timestamp: float = 0.0
    event_id: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = time.time()
        if not self.event_id:
            payload = f"{self.event_type}:{self.timestamp}:{json.dumps(self.data, sort_keys=True)}"
            self.event_id = hashlib.sha256(payload.encode()).hexdigest()[:16]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Event":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class Subscription:
    subscriber_id: str
    patterns: list[str]  # glob patterns like "verifier.*"
    callback: Optional[Callable[[Event], None]] = None
    webhook_url: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    def matches(self, event_type: str) -> bool:
        return any(fnmatch.fnmatch(event_type, p) for p in self.patterns)


class EventBus:
    """
    In-process, thread-safe event bus.

    Dispatch is synchronous and happens after the ledger transaction has
    committed, so a failing subscriber can never undo a write. Subscriber
    failures are logged and do not reach the emitter.
    """

    def __init__(self, max_history: int = 1000, webhook_timeout: float = 5.0):
        self._subscriptions: dict[str, Subscription] = {}
        self._history: list[Event] = []
        self._max_history = max_history
        self._lock = threading.Lock()
        self._webhook_timeout = webhook_timeout
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}:{self._counter}"

    def subscribe(
        self,
        patterns: str | list[str],
        callback: Callable[[Event], None],
        subscriber_id: Optional[str] = None,
    ) -> str:
        """Register a callback for events matching glob pattern(s). Returns the subscription id."""
        if isinstance(patterns, str):
            patterns = [patterns]
        with self._lock:
            subscriber_id = subscriber_id or self._next_id("sub")
            self._subscriptions[subscriber_id] = Subscription(
                subscriber_id=subscriber_id, patterns=patterns, callback=callback,
            )
        return subscriber_id

    def add_webhook(self, url: str, patterns: str | list[str], subscriber_id: Optional[str] = None) -> str:
        """HTTP POST matching events to ``url`` (best-effort)."""
        if isinstance(patterns, str):
            patterns = [patterns]
        with self._lock:
            subscriber_id = subscriber_id or self._next_id("wh")
            self._subscriptions[subscriber_id] = Subscription(
                subscriber_id=subscriber_id, patterns=patterns, webhook_url=url,
            )
        return subscriber_id

    def unsubscribe(self, subscriber_id: str) -> bool:
        with self._lock:
            return self._subscriptions.pop(subscriber_id, None) is not None

    def emit(self, event_type: str, data: Optional[dict] = None, height: int = 0, source: str = "") -> Event:
        event = Event(
            event_type=event_type.value if isinstance(event_type, EventType) else event_type,
            data=data or {},
            height=height,
            source=source,
        )
        with self._lock:
            self._history.append(event)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history:]
            subs = [s for s in self._subscriptions.values() if s.matches(event.event_type)]

        for sub in subs:
            self._dispatch(sub, event)
        return event

    def _dispatch(self, sub: Subscription, event: Event):
        if sub.callback:
            try:
                sub.callback(event)
            except Exception:
                logger.exception("Event subscriber failed", extra={
                    "subscriber_id": sub.subscriber_id, "event_type": event.event_type,
                })
        if sub.webhook_url:
            self._send_webhook(sub.webhook_url, event)

    def _send_webhook(self, url: str, event: Event):
        req = urllib.request.Request(
            url,
            data=json.dumps(event.to_dict()).encode(),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            urllib.request.urlopen(req, timeout=self._webhook_timeout)
        except OSError as e:
            logger.warning("Webhook delivery failed: %s", type(e).__name__, extra={
                "url": url, "event_type": event.event_type,
            })

    def history(self, event_type: Optional[str] = None, limit: int = 50) -> list[Event]:
        with self._lock:
            events = list(self._history)
        if event_type:
            events = [e for e in events if fnmatch.fnmatch(e.event_type, event_type)]
        return events[-limit:]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


__all__ = ["EventType", "Event", "Subscription", "EventBus"]
