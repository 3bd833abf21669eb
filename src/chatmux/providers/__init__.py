"""Provider adapters behind one send/list/validate interface."""

from .base import Provider, ProviderConfig, strip_models_prefix
from .registry import KNOWN_PROVIDERS, ProviderPool, build_provider, requires_credential

__all__ = [
    "KNOWN_PROVIDERS",
    "Provider",
    "ProviderConfig",
    "ProviderPool",
    "build_provider",
    "requires_credential",
    "strip_models_prefix",
]
