# tests/conftest.py
# Pytest 配置 + 通用测试替身（手动时钟 / 脚本化分类器 / 记录型输出 adapter）

import asyncio
import inspect
from typing import List, Optional, Sequence, Union

import pytest

from coach_observer.action_bus import ActionBus
from coach_observer.action_log import InMemoryActionLog
from coach_observer.delivery.hub import DeliveryHub
from coach_observer.delivery.messages import NudgeMessage, OutboundMessage, StatusMessage
from coach_observer.observer.types import TriageContext, TriageResult, TriageSignal


def pytest_addoption(parser):
    """兼容没有 pytest-asyncio 插件时的 ini 配置。"""
    parser.addini(
        "asyncio_mode",
        "Compatibility option when pytest-asyncio is unavailable",
        default="auto",
    )


def pytest_configure(config):
    """注册自定义 marker"""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires external services)"
    )
    config.addinivalue_line(
        "markers", "offline: mark test as offline test (no external services required)"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as asyncio coroutine test"
    )


# 默认给所有不标记的测试加上 offline marker
def pytest_collection_modifyitems(config, items):
    for item in items:
        if "integration" not in item.keywords:
            item.add_marker(pytest.mark.offline)


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """
    当 pytest-asyncio 不可用时，兜底执行 async 测试函数。
    """
    plugin_manager = pyfuncitem.config.pluginmanager
    if plugin_manager.hasplugin("pytest_asyncio") or plugin_manager.hasplugin("asyncio"):
        return None

    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    test_args = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    asyncio.run(test_function(**test_args))
    return True


# =============================================================================
# 测试替身 / fakes
# =============================================================================

class ManualClock:
    """Monotonic-ms clock driven by the test."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


def make_result(
    should_nudge: bool = True,
    confidence: float = 0.9,
    signal: TriageSignal = TriageSignal.STUCK_ON_IMPLEMENTATION,
    reasoning: str = "Same function edited for a while without progress.",
) -> TriageResult:
    return TriageResult(should_nudge=should_nudge, confidence=confidence, signal=signal, reasoning=reasoning)


ScriptItem = Union[TriageResult, BaseException]


class ScriptedClassifier:
    """
    Returns scripted results in order (the last one repeats). An exception
    in the script is raised instead. `gate`, when set, blocks every call
    until the event is set.
    """

    def __init__(self, script: Optional[Sequence[ScriptItem]] = None) -> None:
        self.script: List[ScriptItem] = list(script or [make_result()])
        self.contexts: List[TriageContext] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = 0

    @property
    def calls(self) -> int:
        return len(self.contexts)

    async def classify(self, context: TriageContext) -> TriageResult:
        self.contexts.append(context)
        self.entered += 1
        if self.gate is not None:
            await self.gate.wait()
        index = min(len(self.contexts) - 1, len(self.script) - 1)
        item = self.script[index]
        if isinstance(item, BaseException):
            raise item
        return item


class RecordingAdapter:
    def __init__(self, *, fail: bool = False, target_session_id: Optional[int] = None) -> None:
        self.fail = fail
        self.target_session_id = target_session_id
        self.messages: List[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(message)

    @property
    def nudges(self) -> List[NudgeMessage]:
        return [m for m in self.messages if isinstance(m, NudgeMessage)]

    @property
    def statuses(self) -> List[StatusMessage]:
        return [m for m in self.messages if isinstance(m, StatusMessage)]


async def wait_until(predicate, *, timeout: float = 2.0, interval: float = 0.01):
    """Wait until predicate() is True or timeout; raise on timeout."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    while not predicate():
        if loop.time() - start > timeout:
            raise TimeoutError("wait_until timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def bus() -> ActionBus:
    return ActionBus(inbox_maxsize=64)


@pytest.fixture
def action_log() -> InMemoryActionLog:
    return InMemoryActionLog()


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def hub(adapter: RecordingAdapter) -> DeliveryHub:
    return DeliveryHub([adapter])
