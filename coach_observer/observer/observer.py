# coach_observer/observer/observer.py
# =========================
# Observer：单个教练 session 的活动监视器（订阅 → 触发 → 分类 → 抑制 → 投递）
# Observer: per-session activity monitor (subscribe → trigger → triage → suppress → deliver)
# =========================

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Protocol, Set

from loguru import logger

from ..action_bus import ActionBus, Subscription
from ..action_log import ActionLog, record_action
from ..delivery.hub import DeliveryHub
from ..delivery.messages import NudgeMessage, StatusMessage
from ..errors import DeliveryError
from ..schemas.action import ActionEvent, ActionType
from .config import ObserverConfig
from .flow_state import FlowStateTracker
from .metrics import ObserverMetrics
from .suppression import SuppressionGate
from .triage import TriageClassifier, TriageGateway, build_triage_context
from .trigger_policy import TriggerPolicy
from .types import ActivePhase, NudgeAction, TriageContext, TriageFailure, TriageResult


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class SessionSnapshot:
    active_phase: Optional[ActivePhase] = None
    open_files: List[str] = field(default_factory=list)


class SessionContextSource(Protocol):
    """Supplies the active phase and open files for a session."""

    async def snapshot(self, session_id: int) -> SessionSnapshot:
        ...


class Observer:
    """
    中文：
      一个 session 一个 Observer。状态（计数器、flow 窗口、last_nudge_time）
      只归本实例所有，不跨 session 共享。

    English:
      Owns the per-session state machine `stopped ⇄ running` with an
      orthogonal `muted` flag.

      Events arrive through a bus subscription and are consumed by a single
      task, so evaluations for one session never overlap. `handle_action`
      may also be called directly; the cooldown slot is claimed with no
      suspension point between check and set, so concurrent callers still
      deliver at most one nudge per cooldown window.

      A classifier result that resolves after `stop()` is dropped.
    """

    def __init__(
        self,
        session_id: int,
        *,
        bus: ActionBus,
        hub: DeliveryHub,
        classifier: Optional[TriageClassifier] = None,
        gateway: Optional[TriageGateway] = None,
        action_log: Optional[ActionLog] = None,
        config: Optional[ObserverConfig] = None,
        context_source: Optional[SessionContextSource] = None,
        clock: Callable[[], float] = monotonic_ms,
        metrics: Optional[ObserverMetrics] = None,
    ) -> None:
        if gateway is None and classifier is None:
            raise ValueError("Observer needs a classifier or a gateway")

        self.session_id = session_id
        self.config = config or ObserverConfig.default()
        self.metrics = metrics or ObserverMetrics()

        self._bus = bus
        self._hub = hub
        self._action_log = action_log
        self._context_source = context_source
        self._clock = clock
        self._gateway = gateway or TriageGateway(
            classifier,
            action_log=action_log,
            timeout_seconds=self.config.triage_timeout_seconds,
        )

        self._flow = FlowStateTracker(
            threshold=self.config.flow_state_threshold,
            window_ms=self.config.flow_state_window_ms,
        )
        self._policy = TriggerPolicy(
            buffer_update_trigger_count=self.config.buffer_update_trigger_count,
            explain_request_trigger_count=self.config.explain_request_trigger_count,
        )
        self._gate = SuppressionGate(
            confidence_threshold=self.config.confidence_threshold,
            cooldown_ms=self.config.cooldown_ms,
        )
        self._recent: Deque[ActionEvent] = deque(maxlen=self.config.recent_actions_limit)

        self._active = False
        self._muted = False
        self._last_nudge_time: Optional[float] = None
        # bumped on every start/stop; results from an older run are stale
        self._generation = 0

        self._subscription: Optional[Subscription] = None
        self._consumer_task: Optional[asyncio.Task] = None
        # consumers left to finish an in-flight evaluation after stop()
        self._draining: Set[asyncio.Task] = set()
        self._busy: Set[asyncio.Task] = set()
        self._log = logger.bind(session_id=session_id)

    # -------------------------
    # 状态 / state
    # -------------------------

    @property
    def active(self) -> bool:
        return self._active

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def last_nudge_time(self) -> Optional[float]:
        return self._last_nudge_time

    @property
    def buffer_update_count(self) -> int:
        return self._policy.buffer_update_count

    @property
    def explain_request_count(self) -> int:
        return self._policy.explain_request_count

    @property
    def flow_state_timestamps(self) -> List[float]:
        self._flow.prune(self._clock())
        return self._flow.timestamps

    def status(self) -> StatusMessage:
        return StatusMessage(active=self._active, muted=self._muted, session_id=self.session_id)

    # -------------------------
    # 生命周期 / lifecycle
    # -------------------------

    async def start(self) -> None:
        if self._active:
            return
        self._subscription = self._bus.subscribe(self.session_id)
        self._active = True
        self._generation += 1
        self._consumer_task = asyncio.create_task(
            self._consume(self._subscription),
            name=f"observer_{self.session_id}",
        )
        self._log.info("Observer started")
        await self._hub.broadcast_status(self.status())

    async def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self._generation += 1

        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

        task = self._consumer_task
        self._consumer_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            if task in self._busy:
                # classifier calls are never cancelled; the closed subscription
                # ends the loop once the current evaluation is logged and dropped
                self._draining.add(task)
                task.add_done_callback(self._draining.discard)
                self._log.debug("consumer busy with triage, letting it finish")
            else:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        self._log.info("Observer stopped")
        await self._hub.broadcast_status(self.status())

    async def set_muted(self, muted: bool) -> None:
        self._muted = bool(muted)
        self._log.info(f"Observer muted={self._muted}")
        await self._hub.broadcast_status(self.status())

    async def _consume(self, subscription: Subscription) -> None:
        """
        单 session 串行消费。handler 异常计数后继续；不要 swallow CancelledError。
        """
        me = asyncio.current_task()
        try:
            async for event in subscription:
                self._busy.add(me)
                try:
                    await self.handle_action(event)
                except Exception:
                    self.metrics.handler_errors += 1
                    self._log.exception(f"Observer failed handling {event.action_type.value} (continuing)")
                finally:
                    self._busy.discard(me)
        except asyncio.CancelledError:
            self._log.debug("Observer consumer cancelled")
            raise

    # -------------------------
    # 事件处理 / event handling
    # -------------------------

    async def handle_action(self, event: ActionEvent) -> None:
        if event.session_id != self.session_id:
            return
        if not self._active:
            self.metrics.ignored_total += 1
            return

        self.metrics.events_total += 1
        now = self._clock()
        self._recent.append(event)
        self._flow.record(event.action_type, now)
        in_window = self._flow.prune(now)

        if self._muted:
            self.metrics.muted_skips += 1
            return

        decision = self._policy.evaluate(event.action_type)
        if not decision.should_trigger:
            return

        if in_window > self._flow.threshold:
            self.metrics.flow_state_skips += 1
            self._log.debug(
                f"flow state active ({in_window} actions in window), skipping triage for {event.action_type.value}"
            )
            return
        self.metrics.inc_trigger(decision.kind.value)

        generation = self._generation
        context = await self._build_context()

        self.metrics.triage_calls += 1
        outcome = await self._gateway.evaluate(context)

        if not self._active or generation != self._generation:
            self.metrics.stale_results += 1
            self._log.debug("discarding triage result that resolved after stop")
            return

        if isinstance(outcome, TriageFailure):
            self.metrics.triage_failures += 1
            return

        await self._apply_verdict(outcome.result)

    async def _build_context(self) -> TriageContext:
        active_phase: Optional[ActivePhase] = None
        open_files: List[str] = []
        if self._context_source is not None:
            try:
                snap = await self._context_source.snapshot(self.session_id)
                active_phase = snap.active_phase
                open_files = list(snap.open_files)
            except Exception as e:
                self._log.warning(f"session context unavailable, continuing without it: {e}")
        return build_triage_context(
            self.session_id,
            list(self._recent),
            limit=self.config.recent_actions_limit,
            active_phase=active_phase,
            open_files=open_files,
        )

    async def _apply_verdict(self, result: TriageResult) -> None:
        now = self._clock()
        verdict = self._gate.decide(result, now=now, last_nudge_time=self._last_nudge_time)

        if verdict.action == NudgeAction.SKIP:
            return

        if verdict.action == NudgeAction.SUPPRESS:
            reason = verdict.reason.value
            self.metrics.inc_suppressed(reason)
            self._log.info(
                f"nudge suppressed reason={reason} confidence={result.confidence:.2f} signal={result.signal.value}"
            )
            await record_action(
                self._action_log,
                self.session_id,
                ActionType.NUDGE_SUPPRESSED,
                {"reason": reason, "confidence": result.confidence, "signal": result.signal.value},
            )
            return

        # claim the cooldown slot before the first await
        previous = self._last_nudge_time
        self._last_nudge_time = now

        message = NudgeMessage(
            session_id=self.session_id,
            signal=result.signal.value,
            confidence=result.confidence,
            context=result.reasoning,
        )
        try:
            await self._hub.deliver_nudge(message)
        except DeliveryError as e:
            if self._last_nudge_time == now:
                self._last_nudge_time = previous
            self.metrics.delivery_failures += 1
            self._log.warning(f"nudge delivery failed: {e}")
            return

        self.metrics.nudges_sent += 1
        self._log.info(f"nudge sent signal={result.signal.value} confidence={result.confidence:.2f}")
        await record_action(
            self._action_log,
            self.session_id,
            ActionType.NUDGE_SENT,
            {"signal": result.signal.value, "confidence": result.confidence},
        )
