from __future__ import annotations

from typing import Optional

from .messages import NudgeMessage, OutboundMessage, StatusMessage


class ConsoleOutputAdapter:
    """Output adapter for a terminal, prefixed with the session id."""

    def __init__(self, *, target_session_id: Optional[int] = None) -> None:
        self.target_session_id = target_session_id

    async def send(self, message: OutboundMessage) -> None:
        if self.target_session_id is not None and message.session_id != self.target_session_id:
            return
        prefix = f"[session:{message.session_id}]" if message.session_id is not None else "[observer]"
        print(f"{prefix} {self._render(message)}")

    @staticmethod
    def _render(message: OutboundMessage) -> str:
        if isinstance(message, NudgeMessage):
            return f"nudge ({message.signal}, {message.confidence:.2f}): {message.context}"
        if isinstance(message, StatusMessage):
            return f"status active={message.active} muted={message.muted}"
        return str(message)
