from __future__ import annotations

import asyncio
import json

import pytest
from conftest import ScriptedClassifier, make_result

from coach_observer.action_log import InMemoryActionLog
from coach_observer.errors import TriageError
from coach_observer.observer.llm_classifier import (
    LLMTriageClassifier,
    build_user_message,
    parse_json_payload,
)
from coach_observer.observer.triage import TriageGateway, build_triage_context
from coach_observer.observer.types import (
    ActivePhase,
    TriageFailure,
    TriageOk,
    TriageResult,
    TriageSignal,
)
from coach_observer.schemas.action import ActionType, make_action_event


def _context(session_id: int = 4, **kwargs):
    events = [make_action_event(session_id, ActionType.FILE_OPEN, {"path": "src/app.py"})]
    return build_triage_context(session_id, events, **kwargs)


def test_context_keeps_newest_events_only():
    events = [make_action_event(1, ActionType.BUFFER_SUMMARY, {"n": i}) for i in range(30)]

    single = build_triage_context(1, events)
    assert [a.data["n"] for a in single.recent_actions] == [29]

    capped = build_triage_context(1, events, limit=50)
    assert len(capped.recent_actions) == 20
    assert capped.recent_actions[-1].data["n"] == 29


async def test_gateway_returns_ok_and_logs_verdict():
    log = InMemoryActionLog()
    gateway = TriageGateway(ScriptedClassifier([make_result(confidence=0.8)]), action_log=log)

    outcome = await gateway.evaluate(_context())

    assert isinstance(outcome, TriageOk)
    assert outcome.result.confidence == 0.8
    (record,) = log.of_type(ActionType.OBSERVER_TRIAGE)
    assert record.data == {
        "should_nudge": True,
        "confidence": 0.8,
        "signal": "stuck_on_implementation",
        "reasoning": outcome.result.reasoning,
    }


async def test_gateway_turns_exceptions_into_failure():
    log = InMemoryActionLog()
    gateway = TriageGateway(ScriptedClassifier([RuntimeError("upstream 503")]), action_log=log)

    outcome = await gateway.evaluate(_context())

    assert isinstance(outcome, TriageFailure)
    assert outcome.error == "upstream 503"
    assert outcome.exception_type == "RuntimeError"
    (record,) = log.of_type(ActionType.OBSERVER_TRIAGE)
    assert record.data["error"] == "upstream 503"


async def test_gateway_times_out_slow_classifier():
    classifier = ScriptedClassifier()
    classifier.gate = asyncio.Event()
    gateway = TriageGateway(classifier, timeout_seconds=0.05)

    outcome = await gateway.evaluate(_context())

    assert isinstance(outcome, TriageFailure)
    assert outcome.exception_type == "TimeoutError"


async def test_gateway_rejects_wrong_return_type():
    class _Sloppy:
        async def classify(self, context):
            return {"should_nudge": True}

    outcome = await TriageGateway(_Sloppy()).evaluate(_context())
    assert isinstance(outcome, TriageFailure)
    assert outcome.exception_type == "TypeError"


# =============================================================================
# LLM classifier
# =============================================================================

class _FakeLLM:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls = []

    def call(self, messages, **params):
        self.calls.append((messages, params))
        return self.reply


@pytest.mark.parametrize(
    "raw",
    [
        '{"should_nudge": true, "confidence": 0.9, "signal": "long_idle", "reasoning": "idle"}',
        '```json\n{"should_nudge": true, "confidence": 0.9, "signal": "long_idle", "reasoning": "idle"}\n```',
        'Sure! {"should_nudge": true, "confidence": 0.9, "signal": "long_idle", "reasoning": "idle"} done',
    ],
)
def test_parse_json_payload_tolerates_wrapping(raw):
    payload = parse_json_payload(raw)
    result = TriageResult.from_payload(payload)

    assert result.signal == TriageSignal.LONG_IDLE
    assert result.confidence == 0.9


@pytest.mark.parametrize("raw", ["", "no json here", "[1, 2, 3]", "{broken"])
def test_parse_json_payload_rejects_non_objects(raw):
    with pytest.raises(TriageError):
        parse_json_payload(raw)


@pytest.mark.parametrize(
    "payload",
    [
        {"should_nudge": "yes", "confidence": 0.9, "signal": "long_idle", "reasoning": ""},
        {"should_nudge": True, "confidence": 1.2, "signal": "long_idle", "reasoning": ""},
        {"should_nudge": True, "confidence": True, "signal": "long_idle", "reasoning": ""},
        {"should_nudge": True, "confidence": 0.9, "signal": "bored", "reasoning": ""},
        {"should_nudge": True, "confidence": 0.9, "signal": "long_idle"},
    ],
)
def test_result_schema_is_strict(payload):
    with pytest.raises(TriageError):
        TriageResult.from_payload(payload)


def test_user_message_lists_phase_files_and_actions():
    context = _context(
        active_phase=ActivePhase(number=2, title="Wire the router", description="Add the /items route"),
        open_files=["src/app.py", "tests/test_app.py"],
    )

    text = build_user_message(context)

    assert "Session ID: 4" in text
    assert "Active Phase: #2 Wire the router" in text
    assert "  - tests/test_app.py" in text
    assert 'file_open | data: {"path": "src/app.py"}' in text


async def test_llm_classifier_parses_provider_reply():
    reply = json.dumps(
        {"should_nudge": True, "confidence": 0.75, "signal": "repeated_errors", "reasoning": "Same TypeError 4 times."}
    )
    llm = _FakeLLM(f"```json\n{reply}\n```")
    classifier = LLMTriageClassifier(llm_provider=llm)

    result = await classifier.classify(_context())

    assert result.signal == TriageSignal.REPEATED_ERRORS
    messages, params = llm.calls[0]
    assert messages[0]["role"] == "system"
    assert "Session ID: 4" in messages[1]["content"]
    assert params["temperature"] == 0.0


async def test_llm_classifier_invalid_reply_becomes_gateway_failure():
    gateway = TriageGateway(LLMTriageClassifier(llm_provider=_FakeLLM("I think they are fine.")))

    outcome = await gateway.evaluate(_context())

    assert isinstance(outcome, TriageFailure)
    assert outcome.exception_type == "TriageError"


async def test_llm_classifier_reports_missing_config(tmp_path):
    classifier = LLMTriageClassifier(config_path=str(tmp_path / "missing.yaml"))

    with pytest.raises(TriageError, match="llm_provider_init_failed"):
        await classifier.classify(_context())
    # the init failure is remembered
    with pytest.raises(TriageError):
        await classifier.classify(_context())
