#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Event Channel - Bounded per-session event queue

Events are delivered in emission order. When the queue is full the oldest
event is dropped and a single coalesced PERFORMANCE_ALERT reports how many
were lost. A SYNC_UPDATE replaces any undelivered SYNC_UPDATE from the same
pane, so consumers only see the latest cursor position.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from config.constants import EVENT_QUEUE_SIZE
from config.logging_config import get_logger

logger = get_logger(__name__)

OVERFLOW_REASON = "event_queue_overflow"


class EventType(str, Enum):
    """Session notifications"""
    QUALITY_CHANGE = "quality_change"
    SYNC_UPDATE = "sync_update"
    PERFORMANCE_ALERT = "performance_alert"


@dataclass(frozen=True)
class SessionEvent:
    """One notification; sequence increases across the session"""
    event_type: EventType
    sequence: int
    payload: Dict[str, Any] = field(default_factory=dict)
    pane_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "sequence": self.sequence,
            "pane_id": self.pane_id,
            "payload": dict(self.payload),
            "timestamp": self.timestamp,
        }


class EventChannel:
    """
    Bounded queue of SessionEvent.

    publish() never blocks. Call it from the event loop thread; other
    threads should go through loop.call_soon_threadsafe.
    """

    def __init__(self, maxsize: int = EVENT_QUEUE_SIZE):
        if maxsize < 2:
            raise ValueError("Event queue needs room for at least two events")
        self.maxsize = maxsize
        self._queue: Deque[SessionEvent] = deque()
        self._sequence = 0
        self._dropped_total = 0
        self._dropped_pending = 0
        self._superseded_total = 0
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def dropped_count(self) -> int:
        return self._dropped_total

    @property
    def superseded_count(self) -> int:
        return self._superseded_total

    def _next(self, event_type: EventType, payload: Dict[str, Any], pane_id: Optional[str]) -> SessionEvent:
        self._sequence += 1
        return SessionEvent(event_type, self._sequence, payload, pane_id)

    def publish(
        self,
        event_type: EventType,
        payload: Optional[Dict[str, Any]] = None,
        pane_id: Optional[str] = None,
    ) -> SessionEvent:
        event = self._next(event_type, dict(payload or {}), pane_id)

        if event_type == EventType.SYNC_UPDATE and pane_id is not None:
            superseded = [
                e for e in self._queue
                if e.event_type == EventType.SYNC_UPDATE and e.pane_id == pane_id
            ]
            for old in superseded:
                self._queue.remove(old)
            self._superseded_total += len(superseded)

        overflowed = self._make_room()
        self._queue.append(event)
        if overflowed:
            self._append_overflow_alert()

        self._ready.set()
        return event

    def _make_room(self) -> bool:
        overflowed = False
        while len(self._queue) >= self.maxsize:
            self._queue.popleft()
            self._dropped_total += 1
            self._dropped_pending += 1
            overflowed = True
        return overflowed

    def _append_overflow_alert(self) -> None:
        # Coalesce with an undelivered overflow alert
        for old in [e for e in self._queue if self._is_overflow_alert(e)]:
            self._queue.remove(old)
        self._make_room()
        alert = self._next(EventType.PERFORMANCE_ALERT, {
            "reason": OVERFLOW_REASON,
            "dropped": self._dropped_pending,
            "total_dropped": self._dropped_total,
        }, None)
        self._queue.append(alert)
        logger.warning(f"Event queue full; dropped {self._dropped_pending} oldest events")

    @staticmethod
    def _is_overflow_alert(event: SessionEvent) -> bool:
        return (event.event_type == EventType.PERFORMANCE_ALERT
                and event.payload.get("reason") == OVERFLOW_REASON)

    def _pop(self) -> SessionEvent:
        event = self._queue.popleft()
        if self._is_overflow_alert(event):
            self._dropped_pending = 0
        if not self._queue:
            self._ready.clear()
        return event

    def get_nowait(self) -> Optional[SessionEvent]:
        if not self._queue:
            return None
        return self._pop()

    async def get(self, timeout: Optional[float] = None) -> SessionEvent:
        """Wait for the next event; raises asyncio.TimeoutError after timeout"""
        while not self._queue:
            self._ready.clear()
            if timeout is None:
                await self._ready.wait()
            else:
                await asyncio.wait_for(self._ready.wait(), timeout)
        return self._pop()

    def drain(self) -> List[SessionEvent]:
        events = list(self._queue)
        self._queue.clear()
        self._ready.clear()
        if any(self._is_overflow_alert(e) for e in events):
            self._dropped_pending = 0
        return events

    def pending(self, event_type: Optional[EventType] = None) -> List[SessionEvent]:
        """Undelivered events, without consuming them"""
        return [e for e in self._queue if event_type is None or e.event_type == event_type]
