"""LLMTriageClassifier：用小模型做 nudge / no-nudge 快速判定。"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, List, Mapping, Optional

from ..errors import TriageError
from ..llm import LLMProvider
from .config import MAX_RECENT_ACTIONS
from .types import TriageContext, TriageResult, TriageSignal

_FENCED_JSON_RE = re.compile(r"^\s*```(?:json)?\s*([\s\S]*?)\s*```\s*$", re.IGNORECASE)

TRIAGE_SYSTEM_PROMPT = (
    "You watch a junior developer's activity during a coached programming session "
    "and decide, quickly, whether the coach should step in with a short unsolicited nudge.\n"
    "Reply with a single JSON object and nothing else:\n"
    '{"should_nudge": bool, "confidence": number 0..1, "signal": string, "reasoning": string}\n'
    "signal must be one of: " + ", ".join(s.value for s in TriageSignal) + ".\n"
    "- stuck_on_implementation: working the same area with no visible progress\n"
    "- long_idle: no meaningful activity for a long stretch\n"
    "- excessive_hints: asking for help repeatedly instead of attempting the work\n"
    "- repeated_errors: hitting the same kind of error again and again\n"
    "Nudge only on a clear signal. Normal progress means should_nudge=false. "
    "Keep reasoning to one or two sentences."
)


def build_user_message(context: TriageContext) -> str:
    parts: List[str] = [f"Session ID: {context.session_id}"]

    if context.active_phase is not None:
        phase = context.active_phase
        parts.append(f"\nActive Phase: #{phase.number} {phase.title}")
        parts.append(f"Phase Description: {phase.description}")
    else:
        parts.append("\nActive Phase: None")

    if context.open_files:
        parts.append("\nOpen Files:\n" + "\n".join(f"  - {path}" for path in context.open_files))
    else:
        parts.append("\nOpen Files: None")

    actions = context.recent_actions[-MAX_RECENT_ACTIONS:]
    if actions:
        parts.append("\nRecent Actions (newest last):")
        for action in actions:
            data_str = ""
            if action.data is not None:
                data_str = f" | data: {json.dumps(action.data, ensure_ascii=False, default=str)}"
            parts.append(f"  [{action.created_at}] {action.action_type}{data_str}")
    else:
        parts.append("\nRecent Actions: None")

    return "\n".join(parts)


def parse_json_payload(raw_text: str) -> Mapping[str, Any]:
    text = (raw_text or "").strip()
    if not text:
        raise TriageError("empty classifier output")

    fence_match = _FENCED_JSON_RE.match(text)
    if fence_match:
        text = fence_match.group(1).strip()

    try:
        loaded = json.loads(text)
        if isinstance(loaded, Mapping):
            return loaded
    except json.JSONDecodeError:
        pass

    # 容错：提取第一个 JSON object 片段
    first = text.find("{")
    last = text.rfind("}")
    if first >= 0 and last > first:
        try:
            loaded = json.loads(text[first : last + 1])
        except json.JSONDecodeError as e:
            raise TriageError(f"classifier output is not valid json: {e}") from e
        if isinstance(loaded, Mapping):
            return loaded
    raise TriageError("classifier output is not a json object")


class LLMTriageClassifier:
    """调用 LLMProvider，解析并校验 TriageResult。"""

    def __init__(
        self,
        *,
        llm_provider: Optional[LLMProvider] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        config_path: str = "config/llm.yaml",
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._provider = llm_provider
        self._provider_init_error: Optional[str] = None
        self._provider_name = provider
        self._model_name = model
        self._config_path = config_path
        self._params: Dict[str, Any] = {"temperature": 0.0, "max_tokens": 512}
        self._params.update(params or {})

    async def classify(self, context: TriageContext) -> TriageResult:
        messages = [
            {"role": "system", "content": TRIAGE_SYSTEM_PROMPT},
            {"role": "user", "content": build_user_message(context)},
        ]
        provider = self._get_or_create_provider()
        text = await asyncio.to_thread(provider.call, messages, **self._params)
        return TriageResult.from_payload(parse_json_payload(text))

    def _get_or_create_provider(self) -> LLMProvider:
        if self._provider is not None:
            return self._provider
        if self._provider_init_error is not None:
            raise TriageError(self._provider_init_error)

        try:
            self._provider = LLMProvider.from_config(
                provider=self._provider_name,
                model=self._model_name,
                config_path=self._config_path,
            )
        except Exception as exc:
            self._provider_init_error = f"llm_provider_init_failed:{exc}"
            raise TriageError(self._provider_init_error) from exc
        return self._provider
