from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class ObserverMetrics:
    events_total: int = 0
    ignored_total: int = 0
    muted_skips: int = 0
    flow_state_skips: int = 0
    # triggers that got past flow state; flow_state_skips holds the rest
    triggers_total: int = 0
    triage_calls: int = 0
    triage_failures: int = 0
    nudges_sent: int = 0
    delivery_failures: int = 0
    stale_results: int = 0
    handler_errors: int = 0

    suppressed_by_reason: Dict[str, int] = field(default_factory=dict)
    triggers_by_kind: Dict[str, int] = field(default_factory=dict)

    def inc_suppressed(self, reason: str) -> None:
        self.suppressed_by_reason[reason] = self.suppressed_by_reason.get(reason, 0) + 1

    def inc_trigger(self, kind: str) -> None:
        self.triggers_total += 1
        self.triggers_by_kind[kind] = self.triggers_by_kind.get(kind, 0) + 1
