"""
LLM Provider 注册表
"""
from __future__ import annotations

from typing import Callable, Dict

from .base import LLMClient, ProviderSettings
from .providers import OllamaProvider, OpenAICompatibleProvider


ProviderFactory = Callable[[ProviderSettings], LLMClient]


PROVIDERS: Dict[str, ProviderFactory] = {
    "ollama": OllamaProvider,
    "openai": OpenAICompatibleProvider,
    "openai_compatible": OpenAICompatibleProvider,
}


def register_provider(name: str, factory: ProviderFactory) -> None:
    PROVIDERS[name] = factory


def create_provider(name: str, settings: ProviderSettings) -> LLMClient:
    kind = str(settings.extra.get("kind", name))
    if kind not in PROVIDERS:
        raise ValueError(f"Unknown provider: {kind}")
    return PROVIDERS[kind](settings)
