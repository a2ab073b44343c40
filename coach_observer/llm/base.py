"""
LLM 客户端协议与 provider / model 配置类型
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol


Message = Dict[str, str]


class LLMClient(Protocol):
    """Blocking chat call; async callers push it onto a worker thread."""

    def call(self, messages: List[Message], *, model: str, params: Dict[str, Any]) -> str:
        ...


@dataclass
class ProviderSettings:
    """
    One `providers.<name>` block of config/llm.yaml. Unknown keys (e.g.
    `kind`, `json_mode`) land in `extra`.
    """
    name: str
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelSettings:
    """Default call params for one model (temperature, max_tokens, ...)."""
    name: str
    params: Dict[str, Any] = field(default_factory=dict)
