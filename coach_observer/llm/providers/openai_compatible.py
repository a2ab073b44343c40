"""
OpenAI 兼容 chat/completions Provider（OpenAI、百炼、vLLM 等）
"""
from __future__ import annotations

from typing import Any, Dict, List

from ..base import Message, ProviderSettings
from ._http import as_text, post_json

_PARAM_ALIASES = {
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "responseFormat": "response_format",
}


class OpenAICompatibleProvider:
    """Any endpoint speaking the OpenAI chat/completions protocol."""

    def __init__(self, settings: ProviderSettings) -> None:
        base = (settings.api_base or "https://api.openai.com/v1").rstrip("/")
        self._endpoint = f"{base}/chat/completions"
        self._api_key = settings.api_key
        self._timeout = settings.timeout_seconds
        self._label = settings.name

    def call(self, messages: List[Message], *, model: str, params: Dict[str, Any]) -> str:
        payload: Dict[str, Any] = {"model": model, "messages": messages}
        for key, value in (params or {}).items():
            payload[_PARAM_ALIASES.get(key, key)] = value

        reply = post_json(self._endpoint, payload, label=self._label, timeout=self._timeout, api_key=self._api_key)
        choices = reply.get("choices") or []
        if not choices:
            return ""
        return as_text((choices[0].get("message") or {}).get("content"))
