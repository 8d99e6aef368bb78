"""Forwarder domain exceptions.

Every error aborts the operation that raised it; the enclosing ledger
transaction rolls back. `code` is stable and used by the API and worker.
"""

from __future__ import annotations


class ForwarderError(RuntimeError):
    code = "forwarder_error"

    def __init__(self, message: str, *, forwarder: str | None = None) -> None:
        super().__init__(message)
        self.forwarder = forwarder


class AlreadyInitialized(ForwarderError):
    code = "already_initialized"


class InvalidRegistry(ForwarderError):
    code = "invalid_registry"


class RegistryUnreachable(ForwarderError):
    code = "registry_unreachable"


class BridgeCallFailed(ForwarderError):
    code = "bridge_call_failed"


class ApproveFailed(ForwarderError):
    code = "approve_failed"


class TokenTransferFailed(ForwarderError):
    code = "token_transfer_failed"


class NotAuthorized(ForwarderError):
    code = "not_authorized"
