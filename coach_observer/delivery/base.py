from __future__ import annotations

from typing import Optional, Protocol

from .messages import NudgeMessage, OutboundMessage


class OutputAdapter(Protocol):
    target_session_id: Optional[int] = None

    async def send(self, message: OutboundMessage) -> None:
        """Send one message to an external output channel (UI clients, terminal...)."""
        ...


class NudgeWriter(Protocol):
    async def write(self, message: NudgeMessage) -> Optional[str]:
        """Return coaching text for the nudge, or None to keep the raw reasoning."""
        ...
