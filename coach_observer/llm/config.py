"""
LLM 配置加载（config/llm.yaml + .env）
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from ..errors import ConfigError
from .base import ModelSettings, ProviderSettings


_ENV_PLACEHOLDER_RE = re.compile(r"^<([A-Z0-9_]+)>$")
_RESOLVED_FIELDS = ("api_base", "api_key")


def resolve_env_placeholder(value: str, *, provider_name: str, field_name: str) -> str:
    """
    Resolve a `<ENV_VAR>` placeholder strictly.
    Only the full string form is a placeholder; anything else is returned as is.
    """
    match = _ENV_PLACEHOLDER_RE.match(value.strip())
    if not match:
        return value

    env_name = match.group(1)
    env_value = os.getenv(env_name)
    if not env_value:
        raise ConfigError(
            f"Environment variable '{env_name}' not set for provider '{provider_name}' field '{field_name}'"
        )
    return env_value


@dataclass
class LLMConfig:
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    models: Dict[str, Dict[str, ModelSettings]] = field(default_factory=dict)
    default_provider: Optional[str] = None
    default_model: Optional[str] = None

    @classmethod
    def load(cls, path: str | Path, *, load_env: bool = True) -> "LLMConfig":
        if load_env:
            load_dotenv()
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"cannot read llm config {path}: {e}") from e
        return cls.from_mapping(raw if isinstance(raw, dict) else {})

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "LLMConfig":
        providers: Dict[str, ProviderSettings] = {}
        models: Dict[str, Dict[str, ModelSettings]] = {}

        for name, conf in (data.get("providers", {}) or {}).items():
            conf = dict(conf or {})
            for field_name in _RESOLVED_FIELDS:
                value = conf.get(field_name)
                if isinstance(value, str):
                    conf[field_name] = resolve_env_placeholder(value, provider_name=name, field_name=field_name)

            providers[name] = ProviderSettings(
                name=name,
                api_base=conf.get("api_base"),
                api_key=conf.get("api_key"),
                timeout_seconds=float(conf.get("timeout_seconds", 30.0)),
                extra={
                    k: v
                    for k, v in conf.items()
                    if k not in ("api_base", "api_key", "timeout_seconds", "models")
                },
            )

            models[name] = {
                model_name: ModelSettings(name=model_name, params=dict(params or {}))
                for model_name, params in (conf.get("models", {}) or {}).items()
            }

        default_block = data.get("default", {}) or {}
        default_provider = default_block.get("provider")
        default_model = default_block.get("model")
        if default_provider is None and providers:
            default_provider = next(iter(providers))
        if default_model is None and default_provider in models and models[default_provider]:
            default_model = next(iter(models[default_provider]))

        return cls(
            providers=providers,
            models=models,
            default_provider=default_provider,
            default_model=default_model,
        )

    def provider(self, name: str) -> ProviderSettings:
        if name not in self.providers:
            raise ConfigError(f"Unknown provider: {name}")
        return self.providers[name]

    def model(self, provider: str, model: str) -> ModelSettings:
        if provider not in self.models:
            raise ConfigError(f"No models configured for provider: {provider}")
        if model not in self.models[provider]:
            raise ConfigError(f"Unknown model '{model}' for provider '{provider}'")
        return self.models[provider][model]
