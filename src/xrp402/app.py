"""
FastAPI application exposing the facilitator.

Endpoints:
    GET  /           service identity
    GET  /supported  advertised networks, fees and MPTs
    POST /verify     verify a signed payment
    POST /settle     submit a verified payment and wait for finality

verify and settle are plain ``def`` handlers so FastAPI runs them in its
threadpool; a settle that is polling the ledger only blocks its own worker.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .config import FacilitatorConfig
from .facilitator import Facilitator
from .schemas import FacilitatorRequest
from .types import SettleResult, VerifyResult

logger = logging.getLogger(__name__)

SERVICE_NAME = "xrp402"
SERVICE_DESCRIPTION = "x402 facilitator for XRPL"


def create_app(facilitator: Optional[Facilitator] = None) -> FastAPI:
    """Build the app. Without a facilitator, one is built from the environment."""
    if facilitator is None:
        facilitator = Facilitator.from_config(FacilitatorConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "xrp402 facilitator serving %s", ", ".join(facilitator.config.supported_networks)
        )
        yield
        facilitator.close()

    app = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=lifespan)
    app.state.facilitator = facilitator

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "invalid_request", "details": details})

    @app.get("/")
    def root() -> dict:
        return {"name": SERVICE_NAME, "description": SERVICE_DESCRIPTION, "version": __version__}

    @app.get("/supported")
    def supported() -> dict:
        return facilitator.supported()

    @app.post("/verify")
    def verify_payment(body: FacilitatorRequest) -> dict:
        reason = body.envelope_error(facilitator.is_supported)
        if reason:
            return VerifyResult.invalid(reason).to_dict()
        payload, requirements = body.to_domain()
        result = facilitator.verify(payload, requirements)
        logger.info(
            "verify %s -> %s", payload.authorization.account, result.invalid_reason or "valid"
        )
        return result.to_dict()

    @app.post("/settle")
    def settle_payment(body: FacilitatorRequest) -> dict:
        reason = body.envelope_error(facilitator.is_supported)
        if reason:
            return SettleResult.failure(reason, network=body.payment_requirements.network).to_dict()
        payload, requirements = body.to_domain()
        result = facilitator.settle(payload, requirements)
        logger.info(
            "settle %s -> %s %s",
            payload.authorization.account,
            "success" if result.success else result.error_reason,
            result.transaction or "",
        )
        return result.to_dict()

    return app
