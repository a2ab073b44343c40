from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from loguru import logger

from ..errors import DeliveryError
from .base import NudgeWriter, OutputAdapter
from .messages import NudgeMessage, OutboundMessage, StatusMessage


class DeliveryHub:
    """
    Fan nudge and status messages out to output adapters, with optional
    session-id routing.

    One failing adapter does not stop the others. `deliver_nudge` raises
    DeliveryError only when adapters exist and every one of them failed.
    """

    def __init__(
        self,
        adapters: Iterable[OutputAdapter] | None = None,
        *,
        session_adapters: Mapping[int, Iterable[OutputAdapter]] | None = None,
        nudge_writer: Optional[NudgeWriter] = None,
    ) -> None:
        self.adapters: List[OutputAdapter] = list(adapters or [])
        self.session_adapters: Dict[int, List[OutputAdapter]] = defaultdict(list)
        if session_adapters:
            for session_id, target_adapters in session_adapters.items():
                self.session_adapters[session_id].extend(list(target_adapters))
        self.nudge_writer = nudge_writer

    def add_adapter(self, adapter: OutputAdapter) -> None:
        self.adapters.append(adapter)

    def bind_session(self, session_id: int, adapter: OutputAdapter) -> None:
        self.session_adapters[session_id].append(adapter)

    def _resolve_adapters(self, session_id: Optional[int]) -> List[OutputAdapter]:
        if session_id is not None and session_id in self.session_adapters:
            return self.session_adapters[session_id]
        return self.adapters

    async def dispatch(self, message: OutboundMessage) -> int:
        """Send to every resolved adapter; returns how many succeeded."""
        targets = self._resolve_adapters(message.session_id)
        delivered = 0
        for adapter in targets:
            try:
                await adapter.send(message)
                delivered += 1
            except Exception as e:
                logger.bind(session_id=message.session_id).warning(
                    f"output adapter {type(adapter).__name__} failed for {message.type}: {e}"
                )
        if targets and delivered == 0:
            raise DeliveryError(f"all {len(targets)} output adapters failed for {message.type}")
        return delivered

    async def deliver_nudge(self, message: NudgeMessage) -> int:
        if self.nudge_writer is not None:
            message = await self._rewrite(message)
        return await self.dispatch(message)

    async def broadcast_status(self, message: StatusMessage) -> None:
        try:
            await self.dispatch(message)
        except DeliveryError as e:
            logger.bind(session_id=message.session_id).warning(f"status broadcast failed: {e}")

    async def _rewrite(self, message: NudgeMessage) -> NudgeMessage:
        try:
            text = await self.nudge_writer.write(message)
        except Exception as e:
            logger.bind(session_id=message.session_id).debug(f"nudge writer failed, using raw reasoning: {e}")
            return message
        if not text or not text.strip():
            return message
        return message.with_context(text.strip())
