"""
Restricted-asset (MPT) eligibility checks.

The allowlist check is local and always enforced. The ledger checks soft-fail
like every other network step, except that "no such entry" is a definitive
answer from the ledger and rejects the payment.
"""

from __future__ import annotations

from typing import Optional

from .amount import RestrictedAmount, decimal_value
from .config import LSF_MPT_CAN_TRANSFER, LSF_MPT_LOCKED, FacilitatorConfig
from .ledger import LedgerClient
from .network_checks import soft_fail
from .types import VerifyResult


def check_mpt_allowlist(
    config: FacilitatorConfig,
    network: str,
    amount: RestrictedAmount,
) -> Optional[VerifyResult]:
    if config.mpt_config(network, amount.mpt_issuance_id) is None:
        return VerifyResult.invalid("mpt_not_allowlisted")
    return None


@soft_fail
def check_mpt_issuance(ledger: LedgerClient, issuance_id: str) -> Optional[VerifyResult]:
    # The facilitator submits on the payer's behalf, so the issuance must allow transfers.
    issuance = ledger.mpt_issuance(issuance_id)
    if issuance is None:
        return VerifyResult.invalid("mpt_issuance_not_found")
    if not issuance.flags & LSF_MPT_CAN_TRANSFER:
        return VerifyResult.invalid("mpt_not_transferable")
    return None


@soft_fail
def check_mpt_holder(
    ledger: LedgerClient,
    account: str,
    amount: RestrictedAmount,
) -> Optional[VerifyResult]:
    token = ledger.mptoken(amount.mpt_issuance_id, account)
    if token is None:
        return VerifyResult.invalid("mpt_holder_not_authorized")
    if token.flags & LSF_MPT_LOCKED:
        return VerifyResult.invalid("mpt_holder_locked")
    if decimal_value(token.amount) < decimal_value(amount.value):
        return VerifyResult.invalid("mpt_insufficient_balance")
    return None


@soft_fail
def check_mpt_destination(
    ledger: LedgerClient,
    destination: str,
    issuance_id: str,
) -> Optional[VerifyResult]:
    token = ledger.mptoken(issuance_id, destination)
    if token is None:
        return VerifyResult.invalid("mpt_destination_not_authorized")
    if token.flags & LSF_MPT_LOCKED:
        return VerifyResult.invalid("mpt_destination_locked")
    return None
