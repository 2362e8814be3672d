"""x402 "exact" scheme types for XRPL: payloads, requirements and results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .amount import Amount


X402_VERSION = 2
EXACT_SCHEME = "exact"


@dataclass(frozen=True)
class Authorization:
    """Transaction facts the client claims its signed blob contains."""

    account: str
    destination: str
    amount: Amount
    fee: str
    sequence: int
    ticket_sequence: Optional[int] = None
    last_ledger_sequence: Optional[int] = None

    @property
    def uses_ticket(self) -> bool:
        return self.ticket_sequence is not None


@dataclass(frozen=True)
class FeeAuthorization:
    """Claimed fields of the facilitator-fee transaction (always XRP drops)."""

    account: str
    destination: str
    amount: str
    sequence: int
    ticket_sequence: Optional[int] = None


@dataclass(frozen=True)
class PaymentPayload:
    """Signed payment blob plus the claims made about it."""

    tx_blob: str
    authorization: Authorization
    fee_tx_blob: Optional[str] = None
    fee_authorization: Optional[FeeAuthorization] = None

    @property
    def has_fee_fields(self) -> bool:
        return bool(self.fee_tx_blob) and self.fee_authorization is not None


@dataclass(frozen=True)
class PaymentRequirements:
    """What the resource server demands for access."""

    network: str
    pay_to: str
    max_amount_required: str
    asset: str
    scheme: str = EXACT_SCHEME


@dataclass(frozen=True)
class VerifyResult:
    is_valid: bool
    invalid_reason: Optional[str] = None

    @classmethod
    def valid(cls) -> VerifyResult:
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, reason: str) -> VerifyResult:
        return cls(is_valid=False, invalid_reason=reason)

    def to_dict(self) -> dict:
        d: dict = {"isValid": self.is_valid}
        if self.invalid_reason is not None:
            d["invalidReason"] = self.invalid_reason
        return d


@dataclass(frozen=True)
class SettleResult:
    success: bool
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    error_reason: Optional[str] = None

    @classmethod
    def failure(
        cls,
        reason: str,
        transaction: Optional[str] = None,
        network: Optional[str] = None,
    ) -> SettleResult:
        return cls(success=False, error_reason=reason, transaction=transaction, network=network)

    def to_dict(self) -> dict:
        d: dict = {
            "success": self.success,
            "transaction": self.transaction or "",
            "network": self.network or "",
        }
        if self.payer is not None:
            d["payer"] = self.payer
        if self.error_reason is not None:
            d["errorReason"] = self.error_reason
        return d
