from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from src.chain.ledger import NATIVE, LedgerError
from src.core.settings import load_settings
from src.forwarder.bootstrap import Environment, build_environment
from src.forwarder.errors import (
    AlreadyInitialized,
    ApproveFailed,
    BridgeCallFailed,
    ForwarderError,
    NotAuthorized,
    TokenTransferFailed,
)


# Error kind -> HTTP status. Unlisted forwarder errors are 422.
_STATUS = {
    NotAuthorized: 403,
    AlreadyInitialized: 409,
    BridgeCallFailed: 502,
    ApproveFailed: 502,
    TokenTransferFailed: 502,
}


class ForwardRequest(BaseModel):
    asset: str = NATIVE
    trace_id: Optional[str] = None


class EscapeHatchRequest(BaseModel):
    caller: str
    asset: str = NATIVE
    trace_id: Optional[str] = None


def _error(e: Exception) -> HTTPException:
    if isinstance(e, ForwarderError):
        status = _STATUS.get(type(e), 422)
        return HTTPException(status_code=status, detail={"error": e.code, "message": str(e)})
    return HTTPException(status_code=422, detail={"error": "ledger_error", "message": str(e)})


def create_app(env: Environment) -> FastAPI:
    app = FastAPI(title="Donation Forwarder API")

    def _get(address: str):
        fwd = env.forwarders.get(address)
        if fwd is None:
            raise HTTPException(status_code=404, detail={"error": "unknown_forwarder", "message": address})
        return fwd

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/forwarders/{address}")
    def get_forwarder(address: str) -> dict:
        fwd = _get(address)
        balances = {NATIVE: fwd.balance(NATIVE)}
        for token in env.tokens:
            balances[token] = fwd.balance(token)
        return {
            "address": fwd.address,
            "initialized": fwd.is_initialized,
            "giver_id": fwd.giver_id,
            "receiver_id": fwd.receiver_id,
            "balances": balances,
        }

    @app.post("/forwarders/{address}/forward")
    def forward(address: str, req: ForwardRequest) -> dict:
        fwd = _get(address)
        try:
            ev = fwd.forward(req.asset, trace_id=req.trace_id)
        except (ForwarderError, LedgerError) as e:
            raise _error(e) from e
        return ev.to_wire()

    @app.post("/forwarders/{address}/escape-hatch")
    def escape_hatch(address: str, req: EscapeHatchRequest) -> dict:
        fwd = _get(address)
        try:
            ev = fwd.escape_hatch(req.asset, caller=req.caller, trace_id=req.trace_id)
        except (ForwarderError, LedgerError) as e:
            raise _error(e) from e
        return ev.to_wire()

    return app


def main() -> None:
    env = build_environment(load_settings())
    uvicorn.run(create_app(env), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
