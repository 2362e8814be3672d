"""
Ledger-backed verification steps.

These checks never reject a payment because the ledger could not be asked.
Any exception from the ledger client (transport, timeout, RPC error, an
unexpected response shape) is logged and the check passes; settlement is the
authoritative gate.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, Optional, TypeVar

from .amount import IssuedAmount, NativeAmount, decimal_value, drops_to_xrp, drops_value
from .ledger import LedgerClient
from .types import Authorization, VerifyResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def soft_fail(check: Callable[..., Optional[T]]) -> Callable[..., Optional[T]]:
    """Turn any exception raised by ``check`` into a pass (``None``)."""

    @functools.wraps(check)
    def wrapper(*args, **kwargs) -> Optional[T]:
        try:
            return check(*args, **kwargs)
        except Exception as e:
            logger.warning("%s skipped, ledger unavailable: %s: %s", check.__name__, type(e).__name__, e)
            return None

    return wrapper


@soft_fail
def check_account_balance(
    ledger: LedgerClient,
    auth: Authorization,
    *,
    reserve_drops: int,
) -> Optional[VerifyResult]:
    """Check the payer can cover the payment and that its replay handle is live.

    Native payments need amount + fee + reserve in XRP; issued and MPT
    payments only need fee + reserve, since the asset itself is not XRP.
    """
    state = ledger.account_info(auth.account)
    fee_drops = drops_value(auth.fee)

    if isinstance(auth.amount, NativeAmount):
        required = drops_value(auth.amount.drops) + fee_drops + reserve_drops
        if state.balance_drops < required:
            logger.info(
                "Account %s holds %s XRP, needs %s XRP",
                auth.account,
                drops_to_xrp(state.balance_drops),
                drops_to_xrp(required),
            )
            return VerifyResult.invalid("insufficient_balance")
    elif state.balance_drops < fee_drops + reserve_drops:
        return VerifyResult.invalid("insufficient_balance_for_fees")

    if auth.uses_ticket:
        tickets = _account_tickets(ledger, auth.account)
        if tickets is not None and auth.ticket_sequence not in tickets:
            return VerifyResult.invalid("ticket_not_found")
    elif auth.sequence != state.sequence:
        return VerifyResult.invalid("invalid_sequence")

    return None


@soft_fail
def _account_tickets(ledger: LedgerClient, account: str) -> Optional[list[int]]:
    return ledger.account_tickets(account)


@soft_fail
def check_ledger_expiry(
    ledger: LedgerClient,
    last_ledger_sequence: Optional[int],
    *,
    buffer_ledgers: int,
) -> Optional[VerifyResult]:
    if last_ledger_sequence is None:
        return None
    current = ledger.validated_ledger_index()
    if last_ledger_sequence < current + buffer_ledgers:
        return VerifyResult.invalid("transaction_will_expire_too_soon")
    return None


@soft_fail
def check_trust_line(
    ledger: LedgerClient,
    destination: str,
    amount: IssuedAmount,
) -> Optional[VerifyResult]:
    lines = ledger.trust_lines(destination, amount.issuer)
    line = next((line for line in lines if line.currency == amount.currency), None)
    if line is None:
        return VerifyResult.invalid("no_trust_line")
    if decimal_value(line.limit) <= 0:
        return VerifyResult.invalid("trust_line_limit_zero")
    if line.freeze_peer:
        return VerifyResult.invalid("trust_line_frozen")
    return None
