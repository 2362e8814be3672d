"""
Settlement of verified payments.

Flow:
1. Re-verify the payload (network checks included)
2. Submit the signed blob exactly once
3. Classify the engine result; final codes return immediately
4. Poll the ledger until the transaction is validated or attempts run out
5. If a fee is due and the primary succeeded, settle the fee blob the same way

A ``settlement_timeout`` result is ambiguous: the transaction may still be
validated later. It is reported as a failure and not reconciled here.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional

from .codec import TransactionCodec
from .config import FacilitatorConfig, fee_is_due
from .fee import settle_fee
from .ledger import LedgerClient
from .types import PaymentPayload, PaymentRequirements, SettleResult
from .verify import verify

logger = logging.getLogger(__name__)

SUCCESS_CODE = "tesSUCCESS"

ENGINE_RESULT_REASONS = {
    "tecPATH_DRY": "destination_cannot_receive_asset",
    "tecUNFUNDED_PAYMENT": "insufficient_funds",
    "tecNO_DST": "destination_account_not_found",
    "tecNO_DST_INSUF_XRP": "destination_below_reserve",
    "tecFROZEN": "asset_frozen",
    "tefPAST_SEQ": "transaction_expired_sequence",
    "tefMAX_LEDGER": "transaction_expired_ledger",
    "tefALREADY": "transaction_already_applied",
    "temBAD_AMOUNT": "invalid_amount",
    "temBAD_FEE": "invalid_fee",
    "temDST_IS_SRC": "destination_is_source",
    "tecMPTOKEN_NOT_AUTHORIZED": "mpt_not_authorized",
    "tecMPT_NOT_ENABLED": "mpt_not_enabled",
    "tecMPT_LOCKED": "mpt_locked",
    "tecMPT_MAX_AMOUNT_EXCEEDED": "mpt_max_amount_exceeded",
}


class SettlementState(str, Enum):
    VERIFYING = "verifying"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    POLLING = "polling"
    RESOLVED = "resolved"


class ResultClass(str, Enum):
    PROVISIONAL = "provisional"  # tes*, ter*: wait for validation
    APPLIED_FAILURE = "applied_failure"  # tec*: in a ledger, fee charged
    PERMANENT_FAILURE = "permanent_failure"  # tef*, tem*, tel*, anything else


def map_engine_result(code: str) -> str:
    return ENGINE_RESULT_REASONS.get(code, f"settlement_failed: {code}")


def classify_engine_result(code: str) -> ResultClass:
    if code.startswith(("tes", "ter")):
        return ResultClass.PROVISIONAL
    if code.startswith("tec"):
        return ResultClass.APPLIED_FAILURE
    return ResultClass.PERMANENT_FAILURE


class SettlementEngine:
    """Submits one signed blob and waits for its final outcome."""

    def __init__(
        self,
        ledger: LedgerClient,
        max_attempts: int = 10,
        poll_interval_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ledger = ledger
        self.max_attempts = max_attempts
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, ledger: LedgerClient, config: FacilitatorConfig) -> SettlementEngine:
        return cls(
            ledger,
            max_attempts=config.poll_max_attempts,
            poll_interval_seconds=config.poll_interval_seconds,
        )

    def submit_and_wait(self, tx_blob: str) -> SettleResult:
        """Submit ``tx_blob`` and resolve it. Submission errors propagate."""
        _transition(SettlementState.SUBMITTING)
        submitted = self.ledger.submit(tx_blob)
        code = submitted.engine_result
        tx_hash = submitted.tx_hash
        _transition(SettlementState.SUBMITTED, code=code, tx_hash=tx_hash)
        logger.info("Submitted %s: %s", tx_hash or "<no hash>", code)

        if classify_engine_result(code) != ResultClass.PROVISIONAL:
            _transition(SettlementState.RESOLVED, code=code)
            return SettleResult.failure(map_engine_result(code), transaction=tx_hash)

        if not tx_hash:
            _transition(SettlementState.RESOLVED, code="no_transaction_hash")
            return SettleResult.failure("no_transaction_hash")

        _transition(SettlementState.POLLING, tx_hash=tx_hash)
        for attempt in range(self.max_attempts):
            if attempt:
                self._sleep(self.poll_interval_seconds)
            try:
                status = self.ledger.tx_status(tx_hash)
            except Exception as e:
                logger.debug("tx %s not available yet (attempt %d): %s", tx_hash, attempt + 1, e)
                continue
            if not status.validated:
                continue

            _transition(SettlementState.RESOLVED, code=status.result_code, tx_hash=tx_hash)
            if status.result_code == SUCCESS_CODE:
                logger.info("Validated %s", tx_hash)
                return SettleResult(success=True, transaction=tx_hash, payer=status.account)
            reason = map_engine_result(status.result_code) if status.result_code else "settlement_failed"
            logger.info("Validated %s with %s", tx_hash, status.result_code)
            return SettleResult.failure(reason, transaction=tx_hash)

        logger.warning("tx %s not validated after %d attempts", tx_hash, self.max_attempts)
        _transition(SettlementState.RESOLVED, code="settlement_timeout", tx_hash=tx_hash)
        return SettleResult.failure("settlement_timeout", transaction=tx_hash)


def _transition(state: SettlementState, **details) -> None:
    logger.debug("settlement -> %s %s", state.value, details)


def settle(
    payload: PaymentPayload,
    requirements: PaymentRequirements,
    *,
    config: FacilitatorConfig,
    ledger: LedgerClient,
    codec: Optional[TransactionCodec] = None,
    engine: Optional[SettlementEngine] = None,
) -> SettleResult:
    """Re-verify, submit, wait for finality, then collect any fee."""
    network = requirements.network
    _transition(SettlementState.VERIFYING, network=network)
    verdict = verify(payload, requirements, config=config, codec=codec, ledger=ledger)
    if not verdict.is_valid:
        return SettleResult.failure(verdict.invalid_reason or "verification_failed", network=network)

    engine = engine or SettlementEngine.from_config(ledger, config)
    try:
        primary = engine.submit_and_wait(payload.tx_blob)
    except Exception as e:
        logger.exception("Settlement of payment from %s failed", payload.authorization.account)
        return SettleResult.failure(f"settlement_error: {e}", network=network)

    primary = replace(primary, network=network)

    fee = config.fee_schedule.fee_for(payload.authorization.amount)
    if primary.success and fee_is_due(fee) and payload.has_fee_fields:
        return settle_fee(engine, primary, payload.fee_tx_blob)
    return primary
