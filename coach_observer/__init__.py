from .action_bus import ActionBus, PublishResult, Subscription
from .action_log import ActionLog, InMemoryActionLog, SqlActionLog
from .config_provider import ObserverConfigProvider
from .errors import ConfigError, DeliveryError, ObserverError, TriageError
from .observer import Observer, ObserverConfig, ObserverMetrics, TriageResult, TriageSignal
from .schemas import ActionEvent, ActionType, make_action_event
from .supervisor import ObserverSupervisor

__all__ = [
    "ActionBus",
    "PublishResult",
    "Subscription",
    "ActionLog",
    "InMemoryActionLog",
    "SqlActionLog",
    "ObserverConfigProvider",
    "ConfigError",
    "DeliveryError",
    "ObserverError",
    "TriageError",
    "Observer",
    "ObserverConfig",
    "ObserverMetrics",
    "TriageResult",
    "TriageSignal",
    "ActionEvent",
    "ActionType",
    "make_action_event",
    "ObserverSupervisor",
]
