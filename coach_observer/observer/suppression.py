from __future__ import annotations

from typing import Optional

from .types import GateVerdict, NudgeAction, SuppressionReason, TriageResult


class SuppressionGate:
    """
    根据分类结果决定是否真正投递 nudge
    Final delivery decision for a successful triage result.

    Order is fixed: should_nudge, then confidence, then cooldown. A
    low-confidence verdict is reported as low_confidence even while the
    cooldown is running.
    """

    def __init__(self, *, confidence_threshold: float, cooldown_ms: float) -> None:
        self.confidence_threshold = confidence_threshold
        self.cooldown_ms = cooldown_ms

    def in_cooldown(self, now: float, last_nudge_time: Optional[float]) -> bool:
        if last_nudge_time is None:
            return False
        return now - last_nudge_time < self.cooldown_ms

    def decide(self, result: TriageResult, *, now: float, last_nudge_time: Optional[float]) -> GateVerdict:
        if not result.should_nudge:
            return GateVerdict(NudgeAction.SKIP)

        if result.confidence < self.confidence_threshold:
            return GateVerdict(NudgeAction.SUPPRESS, SuppressionReason.LOW_CONFIDENCE)

        if self.in_cooldown(now, last_nudge_time):
            return GateVerdict(NudgeAction.SUPPRESS, SuppressionReason.COOLDOWN)

        return GateVerdict(NudgeAction.DELIVER)
