"""Per-pair donation forwarder."""

from .errors import (
    AlreadyInitialized,
    ApproveFailed,
    BridgeCallFailed,
    ForwarderError,
    InvalidRegistry,
    NotAuthorized,
    RegistryUnreachable,
    TokenTransferFailed,
)
from .forwarder import POISONED_REGISTRY, Forwarder
from .interfaces import Bridge, Registry, Token

__all__ = [
    "AlreadyInitialized",
    "ApproveFailed",
    "BridgeCallFailed",
    "ForwarderError",
    "InvalidRegistry",
    "NotAuthorized",
    "RegistryUnreachable",
    "TokenTransferFailed",
    "POISONED_REGISTRY",
    "Forwarder",
    "Bridge",
    "Registry",
    "Token",
]
