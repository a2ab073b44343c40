# coach_observer/action_bus.py
# =========================
# 活动事件总线（事件源侧同步投递 + 订阅方 async 消费）
# Action bus (sync publish for the event source + async consume per subscription)
# =========================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Set

from .schemas.action import ActionEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    """
    中文：同步投递结果（给事件源用）
    English: sync publish result (for the event source)
    """
    ok: bool
    delivered: int = 0
    dropped: bool = False
    reason: Optional[str] = None


@dataclass
class SubscriptionStats:
    enqueued: int = 0
    dropped: int = 0
    consumed: int = 0


class Subscription:
    """
    Per-subscriber FIFO inbox handed out by `ActionBus.subscribe`.

    Guarantees:
    - FIFO order for successfully enqueued events.
    - Does NOT block on put_nowait; drop-newest when full.
    - After close() no new events are accepted; iteration ends once drained.

    `session_id=None` subscribes to every session (fan-out listener).
    """

    def __init__(self, bus: "ActionBus", session_id: Optional[int], *, maxsize: int = 256) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be > 0")
        self._bus = bus
        self._session_id = session_id
        self._queue: asyncio.Queue[ActionEvent] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.stats = SubscriptionStats()

    @property
    def session_id(self) -> Optional[int]:
        return self._session_id

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def matches(self, event: ActionEvent) -> bool:
        return self._session_id is None or event.session_id == self._session_id

    def put_nowait(self, event: ActionEvent) -> bool:
        """
        Try enqueue without blocking.
        Returns True on success, False if closed or dropped due to full queue.
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
            self.stats.enqueued += 1
            return True
        except asyncio.QueueFull:
            self.stats.dropped += 1
            return False

    async def get(self, timeout: Optional[float] = None) -> Optional[ActionEvent]:
        """
        取一条事件；超时或（关闭且已空）返回 None
        Get one event; None on timeout or when closed and drained.
        """
        if self._closed and self._queue.empty():
            return None
        try:
            if timeout is None:
                event = await self._queue.get()
            else:
                event = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        self.stats.consumed += 1
        return event

    def close(self) -> None:
        """Release the handle. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._bus._unsubscribe(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ActionEvent:
        while True:
            event = await self.get(timeout=0.5)
            if event is None:
                if self._closed and self._queue.empty():
                    raise StopAsyncIteration
                continue
            return event


class ActionBus:
    """
    中文：
      进程内活动事件总线。
      - 事件源侧（同步）：publish_nowait(event) / publish_raw(payload)
      - 订阅侧（异步）：subscribe(session_id) -> Subscription，显式持有与释放

    English:
      In-process bus with explicit subscription handles instead of a
      process-wide listener registry. Each subscriber owns its handle and
      releases it with `Subscription.close()`.
    """

    def __init__(self, *, inbox_maxsize: int = 256) -> None:
        if inbox_maxsize <= 0:
            raise ValueError("inbox_maxsize must be > 0")
        self._inbox_maxsize = inbox_maxsize
        self._subscriptions: List[Subscription] = []
        self._closed = False

        # basic metrics
        self.published_total: int = 0
        self.invalid_total: int = 0
        self.unrouted_total: int = 0
        self.dropped_total: int = 0

    # -------------------------
    # 生命周期 / lifecycle
    # -------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        for sub in list(self._subscriptions):
            sub.close()

    def subscribe(self, session_id: Optional[int], *, maxsize: Optional[int] = None) -> Subscription:
        if self._closed:
            raise RuntimeError("ActionBus is closed")
        sub = Subscription(self, session_id, maxsize=maxsize or self._inbox_maxsize)
        self._subscriptions.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    def subscriber_count(self, session_id: Optional[int] = None) -> int:
        if session_id is None:
            return len(self._subscriptions)
        return sum(1 for s in self._subscriptions if s.session_id == session_id)

    def active_sessions(self) -> List[int]:
        sessions: Set[int] = {s.session_id for s in self._subscriptions if s.session_id is not None}
        return sorted(sessions)

    # -------------------------
    # 事件源侧：同步投递
    # Sync publish for the event source
    # -------------------------

    def publish_nowait(self, event: ActionEvent) -> PublishResult:
        """
        同步、不阻塞投递给所有匹配的订阅。
        Non-blocking fan-out to every matching subscription.
        """
        if self._closed:
            return PublishResult(ok=False, dropped=True, reason="closed")

        try:
            event.validate()
        except ValueError as e:
            self.invalid_total += 1
            logger.warning(f"ActionBus dropped invalid event: {e}")
            return PublishResult(ok=False, dropped=True, reason="invalid")

        self.published_total += 1

        delivered = 0
        for sub in list(self._subscriptions):
            if not sub.matches(event):
                continue
            if sub.put_nowait(event):
                delivered += 1
            else:
                self.dropped_total += 1

        if delivered == 0:
            self.unrouted_total += 1
        return PublishResult(ok=True, delivered=delivered)

    def publish_raw(self, payload: Mapping[str, Any]) -> PublishResult:
        """Validate a loosely-typed payload at the boundary, then publish it."""
        try:
            event = ActionEvent.from_mapping(payload)
        except ValueError as e:
            self.invalid_total += 1
            logger.warning(f"ActionBus dropped malformed payload: {e}")
            return PublishResult(ok=False, dropped=True, reason="invalid")
        return self.publish_nowait(event)

    def stats(self) -> Dict[str, int]:
        return {
            "published_total": self.published_total,
            "invalid_total": self.invalid_total,
            "unrouted_total": self.unrouted_total,
            "dropped_total": self.dropped_total,
            "subscribers": len(self._subscriptions),
        }
