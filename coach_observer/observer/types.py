from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..errors import TriageError
from ..schemas.action import ActionEvent


class TriageSignal(str, Enum):
    STUCK_ON_IMPLEMENTATION = "stuck_on_implementation"
    LONG_IDLE = "long_idle"
    EXCESSIVE_HINTS = "excessive_hints"
    REPEATED_ERRORS = "repeated_errors"


class NudgeAction(str, Enum):
    SKIP = "skip"
    SUPPRESS = "suppress"
    DELIVER = "deliver"


class SuppressionReason(str, Enum):
    LOW_CONFIDENCE = "low_confidence"
    COOLDOWN = "cooldown"


# ========== 分类器输入 / classifier input ==========

@dataclass(frozen=True)
class ActivePhase:
    number: int
    title: str
    description: str = ""


@dataclass(frozen=True)
class RecentAction:
    action_type: str
    created_at: str
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def from_event(cls, event: ActionEvent) -> "RecentAction":
        return cls(
            action_type=event.action_type.value,
            created_at=event.created_at.isoformat(),
            data=dict(event.data) if event.data is not None else None,
        )


@dataclass(frozen=True)
class TriageContext:
    """Snapshot handed to the classifier. `recent_actions` is newest last."""
    session_id: int
    recent_actions: List[RecentAction] = field(default_factory=list)
    active_phase: Optional[ActivePhase] = None
    open_files: List[str] = field(default_factory=list)


# ========== 分类器输出 / classifier output ==========

@dataclass(frozen=True)
class TriageResult:
    should_nudge: bool
    confidence: float
    signal: TriageSignal
    reasoning: str

    def to_log_data(self) -> Dict[str, Any]:
        return {
            "should_nudge": self.should_nudge,
            "confidence": self.confidence,
            "signal": self.signal.value,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TriageResult":
        """
        Strict schema check of a classifier response.

        Raises TriageError when a field is missing or out of range.
        """
        should_nudge = payload.get("should_nudge")
        if not isinstance(should_nudge, bool):
            raise TriageError("should_nudge must be a boolean")

        confidence = payload.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise TriageError("confidence must be a number")
        if not (0.0 <= float(confidence) <= 1.0):
            raise TriageError(f"confidence out of range: {confidence}")

        raw_signal = payload.get("signal")
        try:
            signal = TriageSignal(str(raw_signal).strip().lower())
        except ValueError as e:
            raise TriageError(f"unknown signal: {raw_signal!r}") from e

        reasoning = payload.get("reasoning")
        if not isinstance(reasoning, str):
            raise TriageError("reasoning must be a string")

        return cls(
            should_nudge=should_nudge,
            confidence=float(confidence),
            signal=signal,
            reasoning=reasoning.strip(),
        )


@dataclass(frozen=True)
class TriageOk:
    result: TriageResult


@dataclass(frozen=True)
class TriageFailure:
    error: str
    exception_type: Optional[str] = None


TriageOutcome = Union[TriageOk, TriageFailure]


# ========== 抑制门输出 / suppression gate output ==========

@dataclass(frozen=True)
class GateVerdict:
    action: NudgeAction
    reason: Optional[SuppressionReason] = None
