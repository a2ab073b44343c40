# action.py
# =========================
# 活动事件模型（ActionEvent）
# ActionEvent = the developer did something inside a coaching session
# =========================

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional


# ============================================================
# 枚举定义 / Enum definitions
# ============================================================

class ActionType(str, Enum):
    """
    活动类型（封闭集合）
    Action type (closed set)
    """
    # File operations
    FILE_OPEN = "file_open"
    FILE_SAVE = "file_save"
    FILE_CLOSE = "file_close"
    FILE_CREATE = "file_create"
    FILE_DELETE = "file_delete"
    # Editor actions
    EDITOR_TAB_SWITCH = "editor_tab_switch"
    EDITOR_SELECTION = "editor_selection"
    # Buffer updates
    BUFFER_SUMMARY = "buffer_summary"
    BUFFER_SIGNIFICANT_CHANGE = "buffer_significant_change"
    # Coaching actions
    COACHING_PIPELINE_RUN = "coaching_pipeline_run"
    COACHING_MESSAGE = "coaching_message"
    PHASE_STARTED = "phase_started"
    PHASE_COMPLETED = "phase_completed"
    HINTS_LEVEL_CHANGE = "hints_level_change"
    DECORATIONS_APPLIED = "decorations_applied"
    FILE_HINTS_APPLIED = "file_hints_applied"
    # User interactions
    USER_IDLE_START = "user_idle_start"
    USER_IDLE_END = "user_idle_end"
    USER_EXPLAIN_REQUEST = "user_explain_request"
    # Observer actions (written back by the observer itself)
    OBSERVER_TRIAGE = "observer_triage"
    NUDGE_SENT = "nudge_sent"
    NUDGE_SUPPRESSED = "nudge_suppressed"
    # MCP
    MCP_TOOL_CALL = "mcp_tool_call"
    # Practice
    PRACTICE_SOLUTION_SUBMITTED = "practice_solution_submitted"
    PRACTICE_SOLUTION_REVIEWED = "practice_solution_reviewed"
    # Dashboard
    DASHBOARD_LOADED = "dashboard_loaded"
    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"

    @classmethod
    def parse(cls, value: Any) -> "ActionType":
        if isinstance(value, ActionType):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"unknown action_type: {value!r}")


# ============================================================
# ActionEvent 核心定义
# Core ActionEvent definition
# ============================================================

@dataclass(frozen=True)
class ActionEvent:
    """
    One logged developer action, as published by the event source.

    Read-only for the observer; `data` is an opaque payload whose shape
    depends on `action_type`.
    """

    session_id: int
    action_type: ActionType
    data: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def validate(self) -> None:
        """
        最小校验（事件源边界）
        Minimal validation at the event-source boundary
        """
        if isinstance(self.session_id, bool) or not isinstance(self.session_id, int):
            raise ValueError(f"session_id must be an int, got {self.session_id!r}")

        if not isinstance(self.action_type, ActionType):
            raise ValueError(f"action_type must be an ActionType, got {self.action_type!r}")

        if self.data is not None and not isinstance(self.data, Mapping):
            raise ValueError("data must be a mapping or None")

        if not isinstance(self.created_at, datetime) or self.created_at.tzinfo is None:
            raise ValueError("created_at must be a timezone-aware datetime")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "action_type": self.action_type.value,
            "data": dict(self.data) if self.data is not None else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ActionEvent":
        """
        Build an event from a loosely-typed payload (camelCase or snake_case).

        Raises ValueError when the payload cannot describe a valid event.
        """
        if not isinstance(raw, Mapping):
            raise ValueError("action payload must be a mapping")

        session_raw = raw.get("session_id", raw.get("sessionId"))
        if session_raw is None:
            raise ValueError("action payload is missing session_id")
        if isinstance(session_raw, bool):
            raise ValueError(f"invalid session_id: {session_raw!r}")
        try:
            session_id = int(session_raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid session_id: {session_raw!r}") from e

        action_type = ActionType.parse(raw.get("action_type", raw.get("actionType")))

        data = raw.get("data")
        if data is not None and not isinstance(data, Mapping):
            raise ValueError("data must be a mapping or None")

        created_raw = raw.get("created_at", raw.get("createdAt"))
        created_at = _parse_timestamp(created_raw)

        event = cls(
            session_id=session_id,
            action_type=action_type,
            data=dict(data) if data is not None else None,
            created_at=created_at,
        )
        event.validate()
        return event


def _parse_timestamp(value: Any) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"invalid created_at: {value!r}") from e
    else:
        raise ValueError(f"invalid created_at: {value!r}")

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


# ============================================================
# 便捷构造函数 / Convenience constructors
# ============================================================

def make_action_event(
    session_id: int,
    action_type: ActionType | str,
    data: Optional[Dict[str, Any]] = None,
    *,
    created_at: Optional[datetime] = None,
) -> ActionEvent:
    """
    快速创建活动事件
    Create an ActionEvent easily
    """
    event = ActionEvent(
        session_id=session_id,
        action_type=ActionType.parse(action_type),
        data=data,
        created_at=created_at or datetime.now(timezone.utc),
    )
    event.validate()
    return event
