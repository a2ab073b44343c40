# coach_observer/supervisor.py
# =========================
# 全局至多一个活跃 Observer：为新 session 启动前先停掉旧的
# At most one active Observer: starting one for a new session stops the old one first
# =========================

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from loguru import logger

from .observer.observer import Observer

ObserverFactory = Callable[[int], Observer]


class ObserverSupervisor:
    """
    Owns the active Observer for the process.

    `factory(session_id)` builds a fresh, unstarted Observer (typically with
    the current config snapshot).
    """

    def __init__(self, factory: ObserverFactory) -> None:
        self._factory = factory
        self._active: Optional[Observer] = None

    @property
    def active_observer(self) -> Optional[Observer]:
        return self._active

    async def start_for_session(self, session_id: int) -> Observer:
        if self._active is not None and self._active.session_id == session_id and self._active.active:
            return self._active

        await self.stop_active()

        observer = self._factory(session_id)
        await observer.start()
        self._active = observer
        return observer

    async def stop_active(self) -> None:
        observer, self._active = self._active, None
        if observer is None:
            return
        await observer.stop()

    async def set_muted_from_payload(self, payload: Mapping[str, Any]) -> bool:
        """
        Apply a client mute request `{"muted": bool}`.

        Returns False when the payload is invalid or no observer is running.
        """
        muted = payload.get("muted") if isinstance(payload, Mapping) else None
        if not isinstance(muted, bool):
            logger.warning(f"ignored mute request with invalid payload: {payload!r}")
            return False
        if self._active is None:
            logger.debug("mute request without an active observer")
            return False
        await self._active.set_muted(muted)
        return True
