from .base import LLMClient, ModelSettings, ProviderSettings
from .client import LLMProvider
from .config import LLMConfig

__all__ = [
    "LLMClient",
    "ProviderSettings",
    "ModelSettings",
    "LLMConfig",
    "LLMProvider",
]
