from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from ..llm import LLMProvider
from .messages import NudgeMessage

NUDGE_SYSTEM_PROMPT = (
    "You are a supportive coding coach for a junior developer. From the context given, "
    "write one to three encouraging sentences that help them take the next step. "
    "Be specific to what they are doing. Guide, never hand over the answer."
)


class LLMNudgeWriter:
    """
    Rewrites the classifier reasoning into a short coaching message.

    Returns None on any failure or empty output so the hub keeps the raw
    reasoning; a slow writer is cut off after `timeout_seconds`.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        *,
        timeout_seconds: float = 8.0,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._provider = llm_provider
        self._timeout_seconds = timeout_seconds
        self._params: Dict[str, Any] = {"temperature": 0.4, "max_tokens": 200}
        self._params.update(params or {})

    async def write(self, message: NudgeMessage) -> Optional[str]:
        prompt = (
            f"Signal: {message.signal}\n"
            f"Current context: {message.context}\n\n"
            "Write a brief coaching nudge to help them move forward."
        )
        messages = [
            {"role": "system", "content": NUDGE_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self._provider.call, messages, **self._params),
                timeout=self._timeout_seconds,
            )
        except Exception as e:
            logger.bind(session_id=message.session_id).debug(f"nudge writer unavailable: {e}")
            return None
        text = (text or "").strip()
        return text or None
