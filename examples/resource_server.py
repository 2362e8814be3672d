"""
Paid endpoint that uses an xrp402 facilitator.

GET /haiku answers 402 with the payment requirements until the client sends
an x402 payment payload (base64 JSON) in the ``Payment`` header. The payload
is then verified and settled through the facilitator's /verify and /settle.

    MERCHANT_ADDRESS=r... FACILITATOR_URL=http://127.0.0.1:3402 \\
        python examples/resource_server.py
"""

import base64
import json
import os
import random

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

FACILITATOR_URL_ENV = "FACILITATOR_URL"
MERCHANT_ADDRESS_ENV = "MERCHANT_ADDRESS"
PORT_ENV = "PORT"

DEFAULT_FACILITATOR_URL = "http://127.0.0.1:3402"
DEFAULT_PORT = 3401

NETWORK = "xrpl:1"
PRICE_DROPS = "1000000"  # 1 XRP

HAIKUS = [
    "Drops fall in silence,\nthe ledger closes its book,\nvalue rearranged.",
    "A hash and a nod,\nconsensus across the net,\ntrust without a face.",
    "Payment in transit,\nvalidators agree at once,\nsettled before tea.",
]


def encode_header(obj) -> str:
    return base64.b64encode(json.dumps(obj).encode()).decode()


def decode_header(value: str) -> dict:
    """Decode a base64 JSON header. Raises ValueError when malformed."""
    decoded = json.loads(base64.b64decode(value, validate=True).decode("utf-8"))
    if not isinstance(decoded, dict):
        raise ValueError("Header does not hold a JSON object")
    return decoded


def payment_requirements(merchant_address: str) -> dict:
    return {
        "scheme": "exact",
        "network": NETWORK,
        "payTo": merchant_address,
        "maxAmountRequired": PRICE_DROPS,
        "asset": "XRP",
        "description": "A haiku about XRPL",
        "mimeType": "application/json",
    }


def create_app(merchant_address: str, facilitator: httpx.Client) -> FastAPI:
    """Build the shop. ``facilitator`` is an httpx client based at the facilitator URL."""
    app = FastAPI()
    requirements = payment_requirements(merchant_address)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/haiku")
    def haiku(request: Request):
        header = request.headers.get("Payment")
        if not header:
            return JSONResponse(
                {"error": "Payment Required", "requirements": requirements},
                status_code=402,
                headers={"Payment-Required": encode_header(requirements)},
            )

        try:
            payment_payload = decode_header(header)
        except ValueError:
            return JSONResponse({"error": "Malformed Payment header"}, status_code=400)

        body = {"paymentPayload": payment_payload, "paymentRequirements": requirements}

        verified = facilitator.post("/verify", json=body).json()
        if not verified.get("isValid"):
            return JSONResponse(
                {
                    "error": "Payment verification failed",
                    "reason": verified.get("invalidReason") or verified.get("error"),
                },
                status_code=402,
            )

        settled = facilitator.post("/settle", json=body).json()
        if not settled.get("success"):
            return JSONResponse(
                {"error": "Payment settlement failed", "reason": settled.get("errorReason")},
                status_code=502,
            )

        return JSONResponse(
            {
                "haiku": random.choice(HAIKUS),
                "payment": {
                    "transaction": settled.get("transaction"),
                    "network": settled.get("network"),
                    "payer": settled.get("payer"),
                },
            },
            headers={
                "Payment-Response": encode_header(
                    {
                        "success": True,
                        "transaction": settled.get("transaction"),
                        "network": settled.get("network"),
                    }
                )
            },
        )

    return app


if __name__ == "__main__":
    merchant = os.getenv(MERCHANT_ADDRESS_ENV)
    if not merchant:
        raise SystemExit(f"{MERCHANT_ADDRESS_ENV} env var is required")

    facilitator_url = os.getenv(FACILITATOR_URL_ENV, DEFAULT_FACILITATOR_URL)
    # settle polls the ledger for finality, so allow for it
    with httpx.Client(base_url=facilitator_url, timeout=60.0) as facilitator:
        uvicorn.run(
            create_app(merchant, facilitator),
            host="127.0.0.1",
            port=int(os.getenv(PORT_ENV, str(DEFAULT_PORT))),
        )
