"""Request models for the HTTP boundary (x402 v2 JSON, camelCase on the wire)."""

from __future__ import annotations

from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .amount import IssuedAmount, NativeAmount, RestrictedAmount
from .types import (
    EXACT_SCHEME,
    X402_VERSION,
    Authorization,
    FeeAuthorization,
    PaymentPayload,
    PaymentRequirements,
)


class IssuedAmountModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    currency: str
    issuer: str
    value: str


class MptAmountModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mpt_issuance_id: str
    value: str


class AuthorizationModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account: str
    destination: str
    amount: Union[str, IssuedAmountModel, MptAmountModel]
    fee: str
    sequence: int
    ticket_sequence: Optional[int] = Field(default=None, alias="ticketSequence")
    last_ledger_sequence: Optional[int] = Field(default=None, alias="lastLedgerSequence")

    def to_domain(self) -> Authorization:
        if isinstance(self.amount, IssuedAmountModel):
            amount = IssuedAmount(self.amount.currency, self.amount.issuer, self.amount.value)
        elif isinstance(self.amount, MptAmountModel):
            amount = RestrictedAmount(self.amount.mpt_issuance_id, self.amount.value)
        else:
            amount = NativeAmount(self.amount)
        return Authorization(
            account=self.account,
            destination=self.destination,
            amount=amount,
            fee=self.fee,
            sequence=self.sequence,
            ticket_sequence=self.ticket_sequence,
            last_ledger_sequence=self.last_ledger_sequence,
        )


class FeeAuthorizationModel(BaseModel):
    """Fee instruction claims. The amount is always XRP drops."""

    model_config = ConfigDict(populate_by_name=True)

    account: str
    destination: str
    amount: str
    sequence: int
    ticket_sequence: Optional[int] = Field(default=None, alias="ticketSequence")

    def to_domain(self) -> FeeAuthorization:
        return FeeAuthorization(
            account=self.account,
            destination=self.destination,
            amount=self.amount,
            sequence=self.sequence,
            ticket_sequence=self.ticket_sequence,
        )


class ExactXrplPayloadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tx_blob: str = Field(alias="txBlob", min_length=1)
    authorization: AuthorizationModel
    fee_tx_blob: Optional[str] = Field(default=None, alias="feeTxBlob", min_length=1)
    fee_authorization: Optional[FeeAuthorizationModel] = Field(default=None, alias="feeAuthorization")


class PaymentPayloadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    x402_version: int = Field(alias="x402Version")
    scheme: str
    network: str
    payload: ExactXrplPayloadModel


class PaymentRequirementsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scheme: str
    network: str
    pay_to: str = Field(alias="payTo")
    max_amount_required: str = Field(alias="maxAmountRequired")
    asset: str
    extra: Optional[dict[str, Any]] = None
    description: Optional[str] = None
    resource: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    output_schema: Optional[Any] = Field(default=None, alias="outputSchema")


class FacilitatorRequest(BaseModel):
    """Body of POST /verify and POST /settle."""

    model_config = ConfigDict(populate_by_name=True)

    payment_payload: PaymentPayloadModel = Field(alias="paymentPayload")
    payment_requirements: PaymentRequirementsModel = Field(alias="paymentRequirements")

    def envelope_error(self, is_supported: Callable[[str], bool]) -> Optional[str]:
        """Return the reason the x402 envelope is unacceptable, or None."""
        payload = self.payment_payload
        requirements = self.payment_requirements
        if payload.x402_version != X402_VERSION:
            return "unsupported_x402_version"
        if payload.scheme != EXACT_SCHEME or requirements.scheme != EXACT_SCHEME:
            return "unsupported_scheme"
        if payload.network != requirements.network:
            return "network_mismatch"
        if not is_supported(requirements.network):
            return "unsupported_network"
        return None

    def to_domain(self) -> tuple[PaymentPayload, PaymentRequirements]:
        inner = self.payment_payload.payload
        fee_auth = inner.fee_authorization
        payload = PaymentPayload(
            tx_blob=inner.tx_blob,
            authorization=inner.authorization.to_domain(),
            fee_tx_blob=inner.fee_tx_blob,
            fee_authorization=fee_auth.to_domain() if fee_auth else None,
        )
        req = self.payment_requirements
        requirements = PaymentRequirements(
            network=req.network,
            pay_to=req.pay_to,
            max_amount_required=req.max_amount_required,
            asset=req.asset,
            scheme=req.scheme,
        )
        return payload, requirements
