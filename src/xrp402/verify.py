"""
Verification pipeline for XRPL x402 payments.

Every step is a plain function returning ``None`` when it passes or an
invalid VerifyResult naming the reason. ``verify`` runs them in a fixed order
and stops at the first failure:

    offline:  decode, structure, signature, cross-check, destination,
              amount, asset, partial-payment flag
    local:    MPT allowlist, facilitator fee instruction
    network:  balance/replay handle, expiry, trust line, MPT eligibility

Network steps only run when a ledger client is supplied, and each of them
passes when the ledger cannot be reached.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .amount import (
    AssetKind,
    IssuedAmount,
    NativeAmount,
    RestrictedAmount,
    amounts_equal,
    classify_asset,
    meets_minimum,
    parse_amount,
    MPT_ASSET_PREFIX,
)
from .codec import TransactionCodec, UnsupportedTransactionType, XrplCodec
from .config import PARTIAL_PAYMENT_FLAG, FacilitatorConfig
from .errors import AmountFormatError, AssetFormatError, SignatureError
from .fee import verify_fee_payload
from .ledger import LedgerClient
from .mpt_checks import (
    check_mpt_allowlist,
    check_mpt_destination,
    check_mpt_holder,
    check_mpt_issuance,
)
from .network_checks import check_account_balance, check_ledger_expiry, check_trust_line
from .types import Authorization, PaymentPayload, PaymentRequirements, VerifyResult

logger = logging.getLogger(__name__)


def decode_tx_blob(codec: TransactionCodec, tx_blob: str) -> tuple[Optional[dict], Optional[VerifyResult]]:
    try:
        return codec.decode(tx_blob), None
    except Exception as e:
        logger.debug("Blob decode failed: %s", e)
        return None, VerifyResult.invalid("invalid_tx_blob")


def validate_transaction(codec: TransactionCodec, tx: dict) -> Optional[VerifyResult]:
    try:
        codec.validate(tx)
    except UnsupportedTransactionType:
        return VerifyResult.invalid("unsupported_transaction_type")
    except Exception as e:
        logger.debug("Structural validation failed: %s", e)
        return VerifyResult.invalid("invalid_transaction_structure")
    return None


def verify_tx_signature(codec: TransactionCodec, tx_blob: str) -> Optional[VerifyResult]:
    try:
        valid = codec.verify_signature(tx_blob)
    except Exception as e:
        if not isinstance(e, SignatureError):
            logger.debug("Signature check raised %s: %s", type(e).__name__, e)
        return VerifyResult.invalid("signature_verification_failed")
    if not valid:
        return VerifyResult.invalid("invalid_signature")
    return None


def cross_check_authorization(tx: dict, auth: Authorization) -> Optional[VerifyResult]:
    """Compare the decoded transaction against the client's claims.

    The claims are only trusted after this step; later steps read the
    authorization, not the blob.
    """
    if tx.get("Account") != auth.account:
        return VerifyResult.invalid("authorization_mismatch_account")
    if tx.get("Destination") != auth.destination:
        return VerifyResult.invalid("authorization_mismatch_destination")
    if tx.get("Fee") != auth.fee:
        return VerifyResult.invalid("authorization_mismatch_fee")
    if not _decoded_amount_matches(tx.get("Amount"), auth):
        return VerifyResult.invalid("authorization_mismatch_amount")

    if auth.uses_ticket:
        if tx.get("Sequence") != 0 or tx.get("TicketSequence") != auth.ticket_sequence:
            return VerifyResult.invalid("authorization_mismatch_sequence")
    elif tx.get("Sequence") != auth.sequence or tx.get("TicketSequence") is not None:
        return VerifyResult.invalid("authorization_mismatch_sequence")

    if tx.get("LastLedgerSequence") != auth.last_ledger_sequence:
        return VerifyResult.invalid("authorization_mismatch_last_ledger_sequence")
    return None


def _decoded_amount_matches(raw: Any, auth: Authorization) -> bool:
    try:
        return amounts_equal(parse_amount(raw), auth.amount)
    except AmountFormatError:
        return False


def check_destination(auth: Authorization, requirements: PaymentRequirements) -> Optional[VerifyResult]:
    if auth.destination != requirements.pay_to:
        return VerifyResult.invalid("destination_mismatch")
    return None


def check_amount(auth: Authorization, requirements: PaymentRequirements) -> Optional[VerifyResult]:
    try:
        if not meets_minimum(auth.amount, requirements.max_amount_required):
            return VerifyResult.invalid("insufficient_amount")
    except AmountFormatError:
        return VerifyResult.invalid("invalid_amount_format")
    return None


def check_asset(auth: Authorization, requirements: PaymentRequirements) -> Optional[VerifyResult]:
    try:
        required = classify_asset(requirements.asset)
    except AssetFormatError:
        return VerifyResult.invalid("unsupported_asset_type")

    amount = auth.amount
    if required == AssetKind.XRP:
        if not isinstance(amount, NativeAmount):
            return VerifyResult.invalid("asset_mismatch")
    elif required == AssetKind.ISSUED:
        if not isinstance(amount, IssuedAmount):
            return VerifyResult.invalid("asset_mismatch")
        if amount.issuer != requirements.asset:
            return VerifyResult.invalid("asset_mismatch_issuer")
    else:
        if not isinstance(amount, RestrictedAmount):
            return VerifyResult.invalid("asset_mismatch")
        if amount.mpt_issuance_id != requirements.asset[len(MPT_ASSET_PREFIX):]:
            return VerifyResult.invalid("asset_mismatch_issuance_id")
    return None


def reject_partial_payment(tx: dict) -> Optional[VerifyResult]:
    flags = tx.get("Flags")
    if isinstance(flags, int) and flags & PARTIAL_PAYMENT_FLAG:
        return VerifyResult.invalid("partial_payment_not_allowed")
    return None


def run_offline_checks(
    payload: PaymentPayload,
    requirements: PaymentRequirements,
    codec: TransactionCodec,
) -> Optional[VerifyResult]:
    """Run steps that need neither configuration nor a ledger."""
    tx, failure = decode_tx_blob(codec, payload.tx_blob)
    if failure:
        return failure

    auth = payload.authorization
    checks = (
        lambda: validate_transaction(codec, tx),
        lambda: verify_tx_signature(codec, payload.tx_blob),
        lambda: cross_check_authorization(tx, auth),
        lambda: check_destination(auth, requirements),
        lambda: check_amount(auth, requirements),
        lambda: check_asset(auth, requirements),
        lambda: reject_partial_payment(tx),
    )
    for check in checks:
        failure = check()
        if failure:
            return failure
    return None


def run_network_checks(
    payload: PaymentPayload,
    ledger: LedgerClient,
    config: FacilitatorConfig,
) -> Optional[VerifyResult]:
    auth = payload.authorization
    failure = check_account_balance(ledger, auth, reserve_drops=config.base_reserve_drops)
    if failure:
        return failure

    failure = check_ledger_expiry(
        ledger, auth.last_ledger_sequence, buffer_ledgers=config.expiry_buffer_ledgers
    )
    if failure:
        return failure

    amount = auth.amount
    if isinstance(amount, IssuedAmount):
        return check_trust_line(ledger, auth.destination, amount)

    if isinstance(amount, RestrictedAmount):
        return (
            check_mpt_issuance(ledger, amount.mpt_issuance_id)
            or check_mpt_holder(ledger, auth.account, amount)
            or check_mpt_destination(ledger, auth.destination, amount.mpt_issuance_id)
        )
    return None


def verify(
    payload: PaymentPayload,
    requirements: PaymentRequirements,
    *,
    config: FacilitatorConfig,
    codec: Optional[TransactionCodec] = None,
    ledger: Optional[LedgerClient] = None,
) -> VerifyResult:
    """Verify a signed payment against the resource server's requirements.

    Without a ledger client only the offline and local steps run.
    """
    codec = codec or XrplCodec()

    failure = run_offline_checks(payload, requirements, codec)
    if failure:
        return failure

    amount = payload.authorization.amount
    if isinstance(amount, RestrictedAmount):
        failure = check_mpt_allowlist(config, requirements.network, amount)
        if failure:
            return failure

    failure = verify_fee_payload(
        payload,
        config.fee_schedule.fee_for(amount),
        config.facilitator_address,
        codec,
    )
    if failure:
        return failure

    if ledger is not None:
        failure = run_network_checks(payload, ledger, config)
        if failure:
            return failure

    return VerifyResult.valid()
