from .config import MAX_RECENT_ACTIONS, ObserverConfig
from .flow_state import USER_INITIATED_ACTIONS, FlowStateTracker
from .llm_classifier import LLMTriageClassifier
from .metrics import ObserverMetrics
from .observer import Observer, SessionContextSource, SessionSnapshot, monotonic_ms
from .suppression import SuppressionGate
from .triage import TriageClassifier, TriageGateway, build_triage_context
from .trigger_policy import BUFFER_UPDATE_TYPES, TRIAGE_ALWAYS, TriggerDecision, TriggerKind, TriggerPolicy
from .types import (
    ActivePhase,
    GateVerdict,
    NudgeAction,
    RecentAction,
    SuppressionReason,
    TriageContext,
    TriageFailure,
    TriageOk,
    TriageOutcome,
    TriageResult,
    TriageSignal,
)

__all__ = [
    "MAX_RECENT_ACTIONS",
    "ObserverConfig",
    "USER_INITIATED_ACTIONS",
    "FlowStateTracker",
    "LLMTriageClassifier",
    "ObserverMetrics",
    "Observer",
    "SessionContextSource",
    "SessionSnapshot",
    "monotonic_ms",
    "SuppressionGate",
    "TriageClassifier",
    "TriageGateway",
    "build_triage_context",
    "BUFFER_UPDATE_TYPES",
    "TRIAGE_ALWAYS",
    "TriggerDecision",
    "TriggerKind",
    "TriggerPolicy",
    "ActivePhase",
    "GateVerdict",
    "NudgeAction",
    "RecentAction",
    "SuppressionReason",
    "TriageContext",
    "TriageFailure",
    "TriageOk",
    "TriageOutcome",
    "TriageResult",
    "TriageSignal",
]
