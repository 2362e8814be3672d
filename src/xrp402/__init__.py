"""
xrp402: x402 payment facilitator for the XRP Ledger.

Verifies pre-signed XRPL payments against a resource server's requirements
and settles them: submit once, poll to finality, collect any facilitator fee.
"""

__version__ = "0.1.0"

from .amount import IssuedAmount, NativeAmount, RestrictedAmount, parse_amount
from .config import FacilitatorConfig, FeeSchedule, MptConfig
from .facilitator import Facilitator
from .settle import SettlementEngine, settle
from .types import (
    Authorization,
    FeeAuthorization,
    PaymentPayload,
    PaymentRequirements,
    SettleResult,
    VerifyResult,
)
from .verify import verify

__all__ = [
    "NativeAmount", "IssuedAmount", "RestrictedAmount", "parse_amount",
    "FacilitatorConfig", "FeeSchedule", "MptConfig",
    "Facilitator", "SettlementEngine", "settle", "verify",
    "Authorization", "FeeAuthorization", "PaymentPayload", "PaymentRequirements",
    "SettleResult", "VerifyResult",
]
