import asyncio
import sys

from loguru import logger

from coach_observer.action_bus import ActionBus
from coach_observer.action_log import InMemoryActionLog
from coach_observer.config_provider import ObserverConfigProvider
from coach_observer.delivery import ConsoleOutputAdapter, DeliveryHub
from coach_observer.logging_config import setup_logging
from coach_observer.observer import Observer, TriageContext, TriageResult, TriageSignal
from coach_observer.schemas import ActionType, make_action_event
from coach_observer.supervisor import ObserverSupervisor


class DemoClassifier:
    """
    规则版分类器（不依赖 LLM，方便本地演示）：
    连续出现 explain 请求 → excessive_hints；打开文件 → 低置信度；其它 → 不打扰
    """

    async def classify(self, context: TriageContext) -> TriageResult:
        await asyncio.sleep(0.05)
        last = context.recent_actions[-1].action_type if context.recent_actions else ""
        if last == ActionType.USER_EXPLAIN_REQUEST.value:
            return TriageResult(
                should_nudge=True,
                confidence=0.9,
                signal=TriageSignal.EXCESSIVE_HINTS,
                reasoning="Several explanations in a row. Try writing the next step yourself first.",
            )
        if last == ActionType.FILE_OPEN.value:
            return TriageResult(
                should_nudge=True,
                confidence=0.4,
                signal=TriageSignal.STUCK_ON_IMPLEMENTATION,
                reasoning="Jumping between files without edits.",
            )
        return TriageResult(
            should_nudge=False,
            confidence=0.8,
            signal=TriageSignal.STUCK_ON_IMPLEMENTATION,
            reasoning="Normal progress.",
        )


async def main():
    """
    Observer 演示入口：
    - 启动 session 42 的 Observer
    - 投递一段脚本化的活动流
    - 打印 metrics 与 action log
    """
    provider = ObserverConfigProvider("config/observer.yaml")
    bus = ActionBus(inbox_maxsize=256)
    action_log = InMemoryActionLog()
    hub = DeliveryHub([ConsoleOutputAdapter()])
    classifier = DemoClassifier()

    def build_observer(session_id: int) -> Observer:
        return Observer(
            session_id,
            bus=bus,
            hub=hub,
            classifier=classifier,
            action_log=action_log,
            config=provider.snapshot(),
        )

    supervisor = ObserverSupervisor(build_observer)
    observer = await supervisor.start_for_session(42)

    script = [
        ActionType.SESSION_STARTED,
        ActionType.FILE_OPEN,
        ActionType.BUFFER_SUMMARY,
        ActionType.BUFFER_SIGNIFICANT_CHANGE,
        ActionType.USER_EXPLAIN_REQUEST,
        ActionType.USER_EXPLAIN_REQUEST,
        ActionType.USER_EXPLAIN_REQUEST,
        ActionType.BUFFER_SUMMARY,
        ActionType.PHASE_COMPLETED,
    ]
    for action_type in script:
        bus.publish_nowait(make_action_event(42, action_type, {"demo": True}))
        # another session on the same bus is ignored by this observer
        bus.publish_nowait(make_action_event(7, action_type))
        await asyncio.sleep(0.1)

    bus.publish_raw({"sessionId": 42, "actionType": "not_a_real_action"})

    await asyncio.sleep(0.5)
    await supervisor.set_muted_from_payload({"muted": True})
    await supervisor.stop_active()

    logger.info(f"metrics: {observer.metrics}")
    logger.info(f"bus: {bus.stats()}")
    for record in action_log.records:
        logger.info(f"log {record.action_type.value}: {record.data}")


if __name__ == "__main__":
    setup_logging(level="DEBUG" if "--debug" in sys.argv else "INFO")

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
