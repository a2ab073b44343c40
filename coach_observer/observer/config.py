from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from ..errors import ConfigError

MAX_RECENT_ACTIONS = 20

# camelCase aliases accepted in YAML / dict configs
_ALIASES: Dict[str, str] = {
    "cooldownMs": "cooldown_ms",
    "flowStateThreshold": "flow_state_threshold",
    "flowStateWindowMs": "flow_state_window_ms",
    "confidenceThreshold": "confidence_threshold",
    "bufferUpdateTriggerCount": "buffer_update_trigger_count",
    "explainRequestTriggerCount": "explain_request_trigger_count",
    "recentActionsLimit": "recent_actions_limit",
    "triageTimeoutSeconds": "triage_timeout_seconds",
}


def _coerce_number(key: str, default: Any, value: Any) -> Any:
    # YAML gives real numbers; strings and bools are config mistakes
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"invalid value for {key}: {value!r}")
    if isinstance(default, int):
        if isinstance(value, float) and not value.is_integer():
            raise ConfigError(f"{key} must be a whole number, got {value!r}")
        return int(value)
    return float(value)


@dataclass(frozen=True)
class ObserverConfig:
    """
    Observer 实例配置（实例生命周期内不可变）
    Per-instance observer configuration, immutable once the observer exists.
    """

    cooldown_ms: float = 120_000.0
    flow_state_threshold: int = 10
    flow_state_window_ms: float = 60_000.0
    confidence_threshold: float = 0.7
    buffer_update_trigger_count: int = 5
    explain_request_trigger_count: int = 3

    # How many of the session's latest actions go into the triage context.
    # 1 = only the triggering event.
    recent_actions_limit: int = 1
    triage_timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.cooldown_ms < 0:
            raise ConfigError("cooldown_ms must be >= 0")
        if self.flow_state_threshold < 0:
            raise ConfigError("flow_state_threshold must be >= 0")
        if self.flow_state_window_ms <= 0:
            raise ConfigError("flow_state_window_ms must be > 0")
        if not (0.0 <= self.confidence_threshold <= 1.0):
            raise ConfigError("confidence_threshold must be in [0, 1]")
        if self.buffer_update_trigger_count < 1:
            raise ConfigError("buffer_update_trigger_count must be >= 1")
        if self.explain_request_trigger_count < 1:
            raise ConfigError("explain_request_trigger_count must be >= 1")
        if not (1 <= self.recent_actions_limit <= MAX_RECENT_ACTIONS):
            raise ConfigError(f"recent_actions_limit must be in [1, {MAX_RECENT_ACTIONS}]")
        if self.triage_timeout_seconds <= 0:
            raise ConfigError("triage_timeout_seconds must be > 0")

    def with_overrides(self, **kwargs: Any) -> "ObserverConfig":
        """Return a new config with the given (non-None) fields replaced."""
        names = {f.name for f in fields(self)}
        changes = {}
        for key, value in kwargs.items():
            key = _ALIASES.get(key, key)
            if key in names and value is not None:
                changes[key] = value
        if not changes:
            return self
        updated = replace(self, **changes)
        if updated == self:
            return self
        return updated

    @staticmethod
    def default() -> "ObserverConfig":
        return ObserverConfig()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ObserverConfig":
        base = cls()
        parsed: Dict[str, Any] = {}
        for f in fields(cls):
            parsed[f.name] = getattr(base, f.name)

        for raw_key, value in (data or {}).items():
            key = _ALIASES.get(raw_key, raw_key)
            if key not in parsed or value is None:
                continue
            parsed[key] = _coerce_number(key, parsed[key], value)

        return cls(**parsed)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ObserverConfig":
        data: Dict[str, Any] = {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"cannot read observer config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in observer config {path}: {e}") from e

        if isinstance(raw, dict):
            data = raw

        version = data.get("version", 1)
        if version != 1:
            raise ConfigError(f"Unsupported observer config version: {version}")

        section = data.get("observer", {}) or {}
        if not isinstance(section, dict):
            raise ConfigError("'observer' section must be a mapping")
        return cls.from_mapping(section)
