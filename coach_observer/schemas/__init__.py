from .action import ActionEvent, ActionType, make_action_event

__all__ = [
    "ActionEvent",
    "ActionType",
    "make_action_event",
]
