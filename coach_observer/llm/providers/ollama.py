"""
Ollama 本地 Provider（/api/chat，非流式）
"""
from __future__ import annotations

from typing import Any, Dict, List

from ..base import Message, ProviderSettings
from ._http import as_text, post_json


class OllamaProvider:
    """
    Local small models are the usual triage backend. With `json_mode: true`
    in the provider block, Ollama is asked to emit JSON only.
    """

    def __init__(self, settings: ProviderSettings) -> None:
        self._endpoint = (settings.api_base or "http://localhost:11434").rstrip("/") + "/api/chat"
        self._api_key = settings.api_key
        self._timeout = settings.timeout_seconds
        self._json_mode = bool((settings.extra or {}).get("json_mode", False))

    def call(self, messages: List[Message], *, model: str, params: Dict[str, Any]) -> str:
        options = dict(params or {})
        # ollama names the output cap num_predict
        if "max_tokens" in options:
            options["num_predict"] = options.pop("max_tokens")

        payload: Dict[str, Any] = {"model": model, "messages": messages, "stream": False}
        if self._json_mode:
            payload["format"] = "json"
        if options:
            payload["options"] = options

        reply = post_json(self._endpoint, payload, label="Ollama", timeout=self._timeout, api_key=self._api_key)
        return as_text((reply.get("message") or {}).get("content"))
