"""Classifier gateway: context in, tagged outcome out."""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Protocol

from loguru import logger

from ..action_log import ActionLog, record_action
from ..schemas.action import ActionEvent, ActionType
from .config import MAX_RECENT_ACTIONS
from .types import (
    ActivePhase,
    RecentAction,
    TriageContext,
    TriageFailure,
    TriageOk,
    TriageOutcome,
    TriageResult,
)


class TriageClassifier(Protocol):
    """External fast classifier. May raise on any failure."""

    async def classify(self, context: TriageContext) -> TriageResult:
        ...


def build_triage_context(
    session_id: int,
    events: Iterable[ActionEvent],
    *,
    limit: int = 1,
    active_phase: Optional[ActivePhase] = None,
    open_files: Optional[List[str]] = None,
) -> TriageContext:
    """Keep the newest `limit` events (capped at 20), oldest first."""
    limit = max(1, min(limit, MAX_RECENT_ACTIONS))
    recent = [RecentAction.from_event(e) for e in events][-limit:]
    return TriageContext(
        session_id=session_id,
        recent_actions=recent,
        active_phase=active_phase,
        open_files=list(open_files or []),
    )


class TriageGateway:
    """
    Wraps the classifier so that every call ends in `TriageOk` or
    `TriageFailure`; nothing raised by the classifier escapes.

    Each evaluation writes an `observer_triage` record. Log-sink failures
    are reported by `record_action` and do not change the outcome.
    """

    def __init__(
        self,
        classifier: TriageClassifier,
        *,
        action_log: Optional[ActionLog] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._classifier = classifier
        self._action_log = action_log
        self._timeout_seconds = timeout_seconds

    async def evaluate(self, context: TriageContext) -> TriageOutcome:
        log = logger.bind(session_id=context.session_id)
        try:
            result = await asyncio.wait_for(
                self._classifier.classify(context),
                timeout=self._timeout_seconds,
            )
            if not isinstance(result, TriageResult):
                raise TypeError(f"classifier returned {type(result).__name__}, expected TriageResult")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            log.warning(f"Triage evaluation failed (continuing): {message}")
            await record_action(
                self._action_log,
                context.session_id,
                ActionType.OBSERVER_TRIAGE,
                {"error": message, "exception_type": type(e).__name__},
            )
            return TriageFailure(error=message, exception_type=type(e).__name__)

        log.debug(
            f"triage verdict should_nudge={result.should_nudge} "
            f"confidence={result.confidence:.2f} signal={result.signal.value}"
        )
        await record_action(
            self._action_log,
            context.session_id,
            ActionType.OBSERVER_TRIAGE,
            result.to_log_data(),
        )
        return TriageOk(result)
