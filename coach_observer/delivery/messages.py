from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class NudgeMessage:
    """observer:nudge; `context` carries the classifier reasoning or its rewrite."""
    session_id: int
    signal: str
    confidence: float
    context: str

    type: str = "observer:nudge"

    def with_context(self, context: str) -> "NudgeMessage":
        return NudgeMessage(self.session_id, self.signal, self.confidence, context)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "data": {
                "signal": self.signal,
                "confidence": self.confidence,
                "context": self.context,
            },
        }


@dataclass(frozen=True)
class StatusMessage:
    """observer:status, sent on every start, stop and mute change."""
    active: bool
    muted: bool
    session_id: Optional[int] = None

    type: str = "observer:status"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "data": {
                "active": self.active,
                "muted": self.muted,
            },
        }


OutboundMessage = Union[NudgeMessage, StatusMessage]
