"""
Facilitator fee: verification and two-phase settlement.

A paying client may include a second signed Payment (the fee blob) sending
XRP drops to the facilitator. It is checked during verification and only
submitted after the primary payment has succeeded. A failed fee submission
never changes the primary result; the facilitator absorbs the loss.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from .amount import drops_value
from .codec import TransactionCodec
from .config import fee_is_due
from .errors import AmountFormatError
from .types import PaymentPayload, SettleResult, VerifyResult

if TYPE_CHECKING:
    from .settle import SettlementEngine

logger = logging.getLogger(__name__)


def verify_fee_payload(
    payload: PaymentPayload,
    expected_fee: Optional[str],
    facilitator_address: Optional[str],
    codec: TransactionCodec,
) -> Optional[VerifyResult]:
    """Check the fee instruction against the advertised fee.

    A tier without a fee (None or zero) passes whatever the payload carries.
    """
    if not fee_is_due(expected_fee):
        return None
    if not facilitator_address:
        return VerifyResult.invalid("fee_facilitator_not_configured")
    if not payload.has_fee_fields:
        return VerifyResult.invalid("fee_payment_required")

    fee_auth = payload.fee_authorization
    try:
        fee_tx = codec.decode(payload.fee_tx_blob)
    except Exception:
        return VerifyResult.invalid("fee_invalid_tx_blob")

    try:
        if not codec.verify_signature(payload.fee_tx_blob):
            return VerifyResult.invalid("fee_invalid_signature")
    except Exception:
        return VerifyResult.invalid("fee_signature_verification_failed")

    if fee_tx.get("Account") != fee_auth.account:
        return VerifyResult.invalid("fee_authorization_mismatch_account")
    if fee_tx.get("Destination") != fee_auth.destination:
        return VerifyResult.invalid("fee_authorization_mismatch_destination")
    if fee_tx.get("Amount") != fee_auth.amount:
        return VerifyResult.invalid("fee_authorization_mismatch_amount")

    if fee_auth.destination != facilitator_address:
        return VerifyResult.invalid("fee_wrong_destination")
    if not _same_drops(fee_auth.amount, expected_fee):
        return VerifyResult.invalid("fee_wrong_amount")
    if fee_auth.account != payload.authorization.account:
        return VerifyResult.invalid("fee_payer_mismatch")
    return None


def _same_drops(left: Any, right: str) -> bool:
    try:
        return drops_value(left) == drops_value(right)
    except AmountFormatError:
        return False


def settle_fee(engine: SettlementEngine, primary: SettleResult, fee_tx_blob: str) -> SettleResult:
    """Submit the fee blob after a successful primary settlement.

    Always returns ``primary``.
    """
    if not primary.success:
        return primary

    try:
        fee_result = engine.submit_and_wait(fee_tx_blob)
    except Exception as e:
        logger.warning("Fee settlement error (primary tx %s): %s", primary.transaction, e)
        return primary

    if fee_result.success:
        logger.info("Fee collected in %s (primary tx %s)", fee_result.transaction, primary.transaction)
    else:
        logger.warning(
            "Fee settlement failed (primary tx %s): %s", primary.transaction, fee_result.error_reason
        )
    return primary
