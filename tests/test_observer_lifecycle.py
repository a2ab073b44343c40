from __future__ import annotations

import asyncio

import pytest
from conftest import ScriptedClassifier, make_result, wait_until

from coach_observer.delivery.messages import StatusMessage
from coach_observer.observer import Observer, SessionSnapshot
from coach_observer.observer.types import ActivePhase
from coach_observer.schemas.action import ActionType, make_action_event


def _observer(bus, hub, clock, action_log, classifier=None, **kwargs) -> Observer:
    return Observer(
        42,
        bus=bus,
        hub=hub,
        classifier=classifier or ScriptedClassifier([make_result(should_nudge=False)]),
        action_log=action_log,
        clock=clock,
        **kwargs,
    )


async def test_start_and_stop_are_idempotent_and_broadcast_status(bus, hub, adapter, clock, action_log):
    observer = _observer(bus, hub, clock, action_log)

    await observer.start()
    await observer.start()
    assert observer.active is True
    assert bus.subscriber_count(42) == 1

    await observer.stop()
    await observer.stop()
    assert observer.active is False
    assert bus.subscriber_count(42) == 0

    assert adapter.statuses == [
        StatusMessage(active=True, muted=False, session_id=42),
        StatusMessage(active=False, muted=False, session_id=42),
    ]


async def test_set_muted_broadcasts_without_unsubscribing(bus, hub, adapter, clock, action_log):
    observer = _observer(bus, hub, clock, action_log)
    await observer.start()

    await observer.set_muted(True)

    assert observer.muted is True
    assert observer.active is True
    assert bus.subscriber_count(42) == 1
    assert adapter.statuses[-1].to_dict()["data"] == {"active": True, "muted": True}
    await observer.stop()


async def test_events_flow_from_bus_through_consumer(bus, hub, adapter, clock, action_log):
    classifier = ScriptedClassifier([make_result(confidence=0.9)])
    observer = _observer(bus, hub, clock, action_log, classifier=classifier)
    await observer.start()

    bus.publish_nowait(make_action_event(7, ActionType.FILE_OPEN))
    bus.publish_nowait(make_action_event(42, ActionType.FILE_OPEN, {"path": "main.py"}))

    await wait_until(lambda: len(adapter.nudges) == 1)
    assert classifier.calls == 1
    assert classifier.contexts[0].session_id == 42
    assert observer.metrics.events_total == 1
    await observer.stop()


async def test_events_after_stop_are_ignored(bus, hub, clock, action_log):
    classifier = ScriptedClassifier()
    observer = _observer(bus, hub, clock, action_log, classifier=classifier)
    await observer.start()
    await observer.stop()

    await observer.handle_action(make_action_event(42, ActionType.FILE_OPEN))

    assert classifier.calls == 0
    assert observer.metrics.ignored_total == 1


async def test_wrong_session_is_silently_ignored(bus, hub, clock, action_log):
    classifier = ScriptedClassifier()
    observer = _observer(bus, hub, clock, action_log, classifier=classifier)
    await observer.start()

    await observer.handle_action(make_action_event(43, ActionType.FILE_OPEN))

    assert classifier.calls == 0
    assert observer.metrics.events_total == 0
    assert observer.flow_state_timestamps == []
    await observer.stop()


async def test_handler_errors_do_not_kill_the_consumer(bus, hub, adapter, clock, action_log):
    class _PhaseSource:
        def __init__(self) -> None:
            self.calls = 0

        async def snapshot(self, session_id):
            self.calls += 1
            return SessionSnapshot(active_phase=ActivePhase(1, "Setup"), open_files=["a.py"])

    classifier = ScriptedClassifier([make_result(confidence=0.9)])
    observer = _observer(bus, hub, clock, action_log, classifier=classifier, context_source=_PhaseSource())
    await observer.start()

    original = observer._apply_verdict
    failures = {"left": 1}

    async def _flaky(result):
        if failures["left"]:
            failures["left"] -= 1
            raise RuntimeError("boom")
        await original(result)

    observer._apply_verdict = _flaky

    bus.publish_nowait(make_action_event(42, ActionType.FILE_OPEN))
    bus.publish_nowait(make_action_event(42, ActionType.PHASE_COMPLETED))

    await wait_until(lambda: len(adapter.nudges) == 1)
    assert observer.metrics.handler_errors == 1
    assert observer.active is True
    assert classifier.contexts[1].active_phase == ActivePhase(1, "Setup")
    assert classifier.contexts[1].open_files == ["a.py"]
    await observer.stop()


async def test_context_source_failure_is_not_fatal(bus, hub, adapter, clock, action_log):
    class _DownSource:
        async def snapshot(self, session_id):
            raise ConnectionError("db down")

    classifier = ScriptedClassifier([make_result(confidence=0.9)])
    observer = _observer(bus, hub, clock, action_log, classifier=classifier, context_source=_DownSource())
    await observer.start()

    await observer.handle_action(make_action_event(42, ActionType.FILE_OPEN))

    assert classifier.contexts[0].active_phase is None
    assert len(adapter.nudges) == 1
    await observer.stop()


def test_observer_requires_a_classifier(bus, hub):
    with pytest.raises(ValueError):
        Observer(1, bus=bus, hub=hub)


async def test_stop_lets_in_flight_triage_finish_then_discards_it(bus, hub, adapter, clock, action_log):
    classifier = ScriptedClassifier([make_result(confidence=0.9)])
    classifier.gate = asyncio.Event()
    observer = _observer(bus, hub, clock, action_log, classifier=classifier)
    await observer.start()

    bus.publish_nowait(make_action_event(42, ActionType.FILE_OPEN))
    await wait_until(lambda: classifier.entered == 1)

    await observer.stop()
    assert observer.active is False
    assert bus.subscriber_count(42) == 0

    classifier.gate.set()
    await wait_until(lambda: observer.metrics.stale_results == 1)
    await wait_until(lambda: not observer._draining)

    assert len(action_log.of_type(ActionType.OBSERVER_TRIAGE)) == 1
    assert adapter.nudges == []
    assert observer.last_nudge_time is None
    assert action_log.of_type(ActionType.NUDGE_SENT) == []


async def test_stop_while_idle_ends_the_consumer(bus, hub, clock, action_log):
    observer = _observer(bus, hub, clock, action_log)
    await observer.start()
    task = observer._consumer_task

    await observer.stop()

    assert task.done()
    assert not observer._draining
