from .base import NudgeWriter, OutputAdapter
from .console import ConsoleOutputAdapter
from .hub import DeliveryHub
from .messages import NudgeMessage, OutboundMessage, StatusMessage
from .nudge_writer import LLMNudgeWriter

__all__ = [
    "OutputAdapter",
    "NudgeWriter",
    "ConsoleOutputAdapter",
    "DeliveryHub",
    "LLMNudgeWriter",
    "NudgeMessage",
    "OutboundMessage",
    "StatusMessage",
]
