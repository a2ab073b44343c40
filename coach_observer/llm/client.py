"""
统一 LLM 对外接口
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from .base import LLMClient, Message
from .config import LLMConfig
from .registry import create_provider


class LLMProvider:
    """统一对外接口：provider + model + params"""

    def __init__(
        self,
        provider: str,
        model: str,
        *,
        config: LLMConfig,
        default_params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.provider_name = provider
        self.model_name = model

        self._client: LLMClient = create_provider(provider, config.provider(provider))

        self._base_params: Dict[str, Any] = dict(config.model(provider, model).params)
        if default_params:
            self._base_params.update(default_params)

    @classmethod
    def from_config(
        cls,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        *,
        config_path: str = "config/llm.yaml",
        default_params: Optional[Dict[str, Any]] = None,
    ) -> "LLMProvider":
        config = LLMConfig.load(config_path)
        provider = provider or config.default_provider
        model = model or config.default_model
        if not provider or not model:
            raise ValueError(f"no provider/model given and no defaults in {config_path}")
        return cls(provider, model, config=config, default_params=default_params)

    def call(self, messages: List[Message], **params: Any) -> str:
        merged = dict(self._base_params)
        merged.update(params)
        return self._client.call(messages, model=self.model_name, params=merged)
