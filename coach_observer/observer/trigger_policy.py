from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List

from ..schemas.action import ActionType

# Every occurrence of these triggers triage.
TRIAGE_ALWAYS: FrozenSet[ActionType] = frozenset({
    ActionType.FILE_OPEN,
    ActionType.PHASE_COMPLETED,
})

# Counted toward the Nth-buffer-update trigger.
BUFFER_UPDATE_TYPES: FrozenSet[ActionType] = frozenset({
    ActionType.BUFFER_SUMMARY,
    ActionType.BUFFER_SIGNIFICANT_CHANGE,
})


class TriggerKind(str, Enum):
    ALWAYS = "always"
    COUNTER = "counter"
    NONE = "none"


@dataclass
class TriggerDecision:
    kind: TriggerKind
    reasons: List[str] = field(default_factory=list)

    @property
    def should_trigger(self) -> bool:
        return self.kind != TriggerKind.NONE


class TriggerPolicy:
    """
    决定一条事件是否值得调用分类器，并维护计数器
    Decide whether an action warrants a classifier call; owns the counters.

    The three rules are independent; an event that satisfies several of
    them still triggers once. Counters are only ever reset to zero, and
    only while evaluating the event that caused the reset.
    """

    def __init__(self, *, buffer_update_trigger_count: int, explain_request_trigger_count: int) -> None:
        self.buffer_update_trigger_count = buffer_update_trigger_count
        self.explain_request_trigger_count = explain_request_trigger_count
        self.buffer_update_count = 0
        self.explain_request_count = 0

    def evaluate(self, action_type: ActionType) -> TriggerDecision:
        always = False
        counter = False
        reasons: List[str] = []

        if action_type in TRIAGE_ALWAYS:
            always = True
            reasons.append(f"always:{action_type.value}")

        if action_type in BUFFER_UPDATE_TYPES:
            self.buffer_update_count += 1
            if self.buffer_update_count >= self.buffer_update_trigger_count:
                counter = True
                self.buffer_update_count = 0
                reasons.append("counter:buffer_update")

        # explain counter survives phase changes
        if action_type == ActionType.USER_EXPLAIN_REQUEST:
            self.explain_request_count += 1
            if self.explain_request_count >= self.explain_request_trigger_count:
                counter = True
                self.explain_request_count = 0
                reasons.append("counter:explain_request")

        # a new phase starts without inherited buffer-edit pressure
        if action_type == ActionType.PHASE_COMPLETED:
            self.buffer_update_count = 0

        if always:
            return TriggerDecision(TriggerKind.ALWAYS, reasons)
        if counter:
            return TriggerDecision(TriggerKind.COUNTER, reasons)
        return TriggerDecision(TriggerKind.NONE, reasons)
