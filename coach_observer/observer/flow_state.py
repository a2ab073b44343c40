from __future__ import annotations

from collections import deque
from typing import Deque, FrozenSet

from ..schemas.action import ActionType

# Actions the developer initiates directly; these feed the flow-state window.
USER_INITIATED_ACTIONS: FrozenSet[ActionType] = frozenset({
    ActionType.BUFFER_SUMMARY,
    ActionType.BUFFER_SIGNIFICANT_CHANGE,
    ActionType.FILE_OPEN,
    ActionType.FILE_SAVE,
    ActionType.EDITOR_TAB_SWITCH,
})


class FlowStateTracker:
    """
    Rolling window of user-initiated activity timestamps (monotonic ms).

    The window is pruned lazily by `prune()` / `is_active()`; there is no
    timer. Flow state is active when more than `threshold` entries remain
    inside the trailing window.
    """

    def __init__(self, *, threshold: int, window_ms: float) -> None:
        self.threshold = threshold
        self.window_ms = window_ms
        self._timestamps: Deque[float] = deque()

    def __len__(self) -> int:
        return len(self._timestamps)

    @property
    def timestamps(self) -> list[float]:
        return list(self._timestamps)

    def record(self, action_type: ActionType, now: float) -> bool:
        """Append `now` if the action is user-initiated. Returns True if recorded."""
        if action_type not in USER_INITIATED_ACTIONS:
            return False
        self._timestamps.append(now)
        return True

    def prune(self, now: float) -> int:
        """Drop entries older than the window; returns how many remain."""
        cutoff = now - self.window_ms
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()
        return len(self._timestamps)

    def is_active(self, now: float) -> bool:
        return self.prune(now) > self.threshold
