from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)

PIN_CREATED = "pin.created"
PIN_UPDATED = "pin.updated"
PIN_DELETED = "pin.deleted"


@dataclass(frozen=True)
class PinEvent:
    seq: int
    kind: str
    pin_id: int
    pin: object | None  # PinRecord, None for deletions
    at: datetime


Subscriber = Callable[[PinEvent], None]


class PinEvents:
    """
    Notifies observers about pin mutations.

    Subscribers are called synchronously after the store write has succeeded.
    The last ``backlog`` events are kept so polling clients can ask for
    everything after the sequence number they saw last.
    """

    def __init__(self, backlog: int = 200) -> None:
        self._seq = itertools.count(1)
        self._recent: deque[PinEvent] = deque(maxlen=backlog)
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, kind: str, pin_id: int, pin=None) -> PinEvent:
        with self._lock:
            event = PinEvent(seq=next(self._seq), kind=kind, pin_id=pin_id, pin=pin, at=datetime.now(timezone.utc))
            self._recent.append(event)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                # the store write is already committed at this point
                logger.exception("Pin event subscriber failed for %s #%s", kind, pin_id)
        return event

    def since(self, seq: int = 0) -> list[PinEvent]:
        with self._lock:
            return [e for e in self._recent if e.seq > seq]

    @property
    def last_seq(self) -> int:
        with self._lock:
            return self._recent[-1].seq if self._recent else 0
