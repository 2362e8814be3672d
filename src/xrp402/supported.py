"""Capability advertisement for GET /supported."""

from __future__ import annotations

from .config import FacilitatorConfig
from .types import EXACT_SCHEME, X402_VERSION


def build_supported(config: FacilitatorConfig) -> dict:
    address = config.facilitator_address
    kinds = []
    for network in config.supported_networks:
        kinds.append(
            {
                "x402Version": X402_VERSION,
                "scheme": EXACT_SCHEME,
                "network": network,
                "extra": {
                    "facilitatorAddress": address,
                    "facilitatorFee": config.fee_schedule.to_dict(),
                    "supportedMpts": [
                        {
                            "issuanceId": mpt.issuance_id,
                            "name": mpt.name,
                            "issuer": mpt.issuer,
                            "asset": mpt.asset,
                        }
                        for mpt in config.mpt_allowlist.get(network, ())
                    ],
                },
            }
        )
    return {
        "kinds": kinds,
        "extensions": [],
        "signers": {"xrpl:*": [address] if address else []},
    }
