from __future__ import annotations

import asyncio
import time

import pytest
from conftest import RecordingAdapter

from coach_observer.delivery.console import ConsoleOutputAdapter
from coach_observer.delivery.hub import DeliveryHub
from coach_observer.delivery.messages import NudgeMessage, StatusMessage
from coach_observer.delivery.nudge_writer import LLMNudgeWriter
from coach_observer.errors import DeliveryError


def _nudge(session_id: int = 1) -> NudgeMessage:
    return NudgeMessage(session_id=session_id, signal="long_idle", confidence=0.8, context="raw reasoning")


def test_message_wire_format():
    assert _nudge().to_dict() == {
        "type": "observer:nudge",
        "data": {"signal": "long_idle", "confidence": 0.8, "context": "raw reasoning"},
    }
    assert StatusMessage(active=True, muted=False, session_id=3).to_dict() == {
        "type": "observer:status",
        "data": {"active": True, "muted": False},
    }


async def test_one_failing_adapter_does_not_stop_the_others():
    good = RecordingAdapter()
    hub = DeliveryHub([RecordingAdapter(fail=True), good])

    delivered = await hub.deliver_nudge(_nudge())

    assert delivered == 1
    assert good.nudges == [_nudge()]


async def test_all_adapters_failing_raises_delivery_error():
    hub = DeliveryHub([RecordingAdapter(fail=True), RecordingAdapter(fail=True)])

    with pytest.raises(DeliveryError):
        await hub.deliver_nudge(_nudge())

    # status broadcasts never raise
    await hub.broadcast_status(StatusMessage(active=True, muted=False, session_id=1))


async def test_session_binding_routes_to_session_adapters():
    default = RecordingAdapter()
    bound = RecordingAdapter()
    hub = DeliveryHub([default], session_adapters={5: [bound]})

    await hub.deliver_nudge(_nudge(5))
    await hub.deliver_nudge(_nudge(6))

    assert len(bound.nudges) == 1
    assert [m.session_id for m in default.nudges] == [6]


async def test_no_adapters_is_not_an_error():
    assert await DeliveryHub().deliver_nudge(_nudge()) == 0


class _Writer:
    def __init__(self, text=None, exc=None) -> None:
        self.text = text
        self.exc = exc

    async def write(self, message):
        if self.exc is not None:
            raise self.exc
        return self.text


@pytest.mark.parametrize(
    "writer, expected",
    [
        (_Writer(text="  Try printing the value before the loop.  "), "Try printing the value before the loop."),
        (_Writer(text="   "), "raw reasoning"),
        (_Writer(exc=RuntimeError("model offline")), "raw reasoning"),
    ],
)
async def test_nudge_writer_rewrite_falls_back_to_reasoning(writer, expected):
    adapter = RecordingAdapter()
    hub = DeliveryHub([adapter], nudge_writer=writer)

    await hub.deliver_nudge(_nudge())

    assert adapter.nudges[0].context == expected
    assert adapter.nudges[0].signal == "long_idle"


class _SlowLLM:
    def call(self, messages, **params):
        time.sleep(0.3)
        return "late"


class _EchoLLM:
    def __init__(self) -> None:
        self.prompts = []

    def call(self, messages, **params):
        self.prompts.append(messages[-1]["content"])
        return " Break the problem into one smaller test. "


async def test_llm_nudge_writer():
    llm = _EchoLLM()
    text = await LLMNudgeWriter(llm).write(_nudge())

    assert text == "Break the problem into one smaller test."
    assert "Signal: long_idle" in llm.prompts[0]
    assert "raw reasoning" in llm.prompts[0]

    assert await LLMNudgeWriter(_SlowLLM(), timeout_seconds=0.05).write(_nudge()) is None


async def test_console_adapter_prints_and_filters(capsys):
    adapter = ConsoleOutputAdapter(target_session_id=1)

    await adapter.send(_nudge(1))
    await adapter.send(_nudge(2))
    await adapter.send(StatusMessage(active=False, muted=True, session_id=1))
    await asyncio.sleep(0)

    out = capsys.readouterr().out.splitlines()
    assert out == [
        "[session:1] nudge (long_idle, 0.80): raw reasoning",
        "[session:1] status active=False muted=True",
    ]
