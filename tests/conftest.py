"""Shared fixtures: an in-memory codec and ledger, plus payload builders."""

from __future__ import annotations

from typing import Optional

import pytest

from xrp402.amount import parse_amount
from xrp402.codec import UnsupportedTransactionType
from xrp402.config import FacilitatorConfig, FeeSchedule, MptConfig
from xrp402.errors import CodecError, LedgerConnectionError, SignatureError
from xrp402.ledger import AccountState, MptIssuance, MpToken, SubmitResult, TrustLine, TxStatus
from xrp402.types import Authorization, FeeAuthorization, PaymentPayload, PaymentRequirements


NETWORK = "xrpl:1"
PAYER = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"
MERCHANT = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
FACILITATOR = "rfkE1aSy9G8Upk4JssnwBxhEv5p4mn2KTy"
ISSUER = "rvYAfWj5gh67oV6fW32ZzP3Aw4Eubs59B"
MPT_ID = "00000001A407AF5856CCF3C42619DAA925813FC955C72983"

_REQUIRED_FIELDS = ("Account", "Destination", "Amount", "Fee", "Sequence")


class FakeCodec:
    """Blob strings map to pre-registered decoded transactions."""

    def __init__(self):
        self.txs: dict[str, dict] = {}
        self.bad_signatures: set[str] = set()
        self.signature_errors: set[str] = set()
        self._counter = 0

    def register(self, tx: dict) -> str:
        self._counter += 1
        blob = f"12000022{self._counter:08X}"
        self.txs[blob] = tx
        return blob

    def decode(self, tx_blob: str) -> dict:
        if tx_blob not in self.txs:
            raise CodecError(f"unknown blob {tx_blob!r}")
        return dict(self.txs[tx_blob])

    def validate(self, tx: dict) -> None:
        if tx.get("TransactionType") != "Payment":
            raise UnsupportedTransactionType(tx.get("TransactionType"))
        missing = [f for f in _REQUIRED_FIELDS if f not in tx]
        if missing:
            raise CodecError(f"missing {missing}")

    def verify_signature(self, tx_blob: str) -> bool:
        if tx_blob in self.signature_errors:
            raise SignatureError("no signing fields")
        self.decode(tx_blob)
        return tx_blob not in self.bad_signatures


class FakeLedger:
    """LedgerClient double recording every call.

    Method names listed in ``failing`` raise LedgerConnectionError. Queued
    submit results and tx statuses are consumed in order; a queued exception
    is raised instead of returned.
    """

    def __init__(self):
        self.balance_drops = 100_000_000
        self.sequence = 5
        self.tickets: list[int] = []
        self.ledger_index = 1000
        self.lines: dict[tuple[str, str], list[TrustLine]] = {}
        self.issuances: dict[str, MptIssuance] = {}
        self.tokens: dict[tuple[str, str], MpToken] = {}
        self.submit_results: list = []
        self.statuses: list = []
        self.failing: set[str] = set()
        self.calls: list[tuple[str, tuple]] = []
        self.closed = False

    def _call(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if name in self.failing:
            raise LedgerConnectionError(f"{name} unavailable")

    def called(self, name: str) -> list[tuple]:
        return [args for method, args in self.calls if method == name]

    @property
    def submitted(self) -> list[str]:
        return [args[0] for args in self.called("submit")]

    def account_info(self, account: str) -> AccountState:
        self._call("account_info", account)
        return AccountState(balance_drops=self.balance_drops, sequence=self.sequence)

    def account_tickets(self, account: str) -> list[int]:
        self._call("account_tickets", account)
        return list(self.tickets)

    def validated_ledger_index(self) -> int:
        self._call("validated_ledger_index")
        return self.ledger_index

    def trust_lines(self, account: str, peer: str) -> list[TrustLine]:
        self._call("trust_lines", account, peer)
        return list(self.lines.get((account, peer), []))

    def mpt_issuance(self, issuance_id: str) -> Optional[MptIssuance]:
        self._call("mpt_issuance", issuance_id)
        return self.issuances.get(issuance_id)

    def mptoken(self, issuance_id: str, account: str) -> Optional[MpToken]:
        self._call("mptoken", issuance_id, account)
        return self.tokens.get((issuance_id, account))

    def submit(self, tx_blob: str) -> SubmitResult:
        self._call("submit", tx_blob)
        if self.submit_results:
            result = self.submit_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return SubmitResult(engine_result="tesSUCCESS", tx_hash=f"HASH-{tx_blob}")

    def tx_status(self, tx_hash: str) -> TxStatus:
        self._call("tx_status", tx_hash)
        if self.statuses:
            status = self.statuses.pop(0)
            if isinstance(status, Exception):
                raise status
            return status
        return TxStatus(validated=True, result_code="tesSUCCESS", account=PAYER)

    def close(self) -> None:
        self.closed = True


class PaymentFactory:
    """Builds payloads whose blobs decode (via FakeCodec) to matching transactions."""

    def __init__(self, codec: FakeCodec):
        self.codec = codec

    def payment(
        self,
        amount="1000000",
        *,
        account: str = PAYER,
        destination: str = MERCHANT,
        fee: str = "12",
        sequence: int = 5,
        ticket_sequence: Optional[int] = None,
        last_ledger_sequence: Optional[int] = None,
        flags: int = 0,
        tx_overrides: Optional[dict] = None,
        fee_instruction: Optional[tuple[str, FeeAuthorization]] = None,
    ) -> PaymentPayload:
        auth = Authorization(
            account=account,
            destination=destination,
            amount=parse_amount(amount),
            fee=fee,
            sequence=sequence,
            ticket_sequence=ticket_sequence,
            last_ledger_sequence=last_ledger_sequence,
        )
        tx = self.tx_for(auth, flags=flags)
        tx.update(tx_overrides or {})
        tx = {k: v for k, v in tx.items() if v is not None}
        fee_blob, fee_auth = fee_instruction or (None, None)
        return PaymentPayload(
            tx_blob=self.codec.register(tx),
            authorization=auth,
            fee_tx_blob=fee_blob,
            fee_authorization=fee_auth,
        )

    def tx_for(self, auth: Authorization, flags: int = 0) -> dict:
        tx = {
            "TransactionType": "Payment",
            "Account": auth.account,
            "Destination": auth.destination,
            "Amount": auth.amount.to_xrpl(),
            "Fee": auth.fee,
            "Flags": flags,
            "Sequence": 0 if auth.uses_ticket else auth.sequence,
            "SigningPubKey": "ED" + "00" * 32,
            "TxnSignature": "AB" * 64,
        }
        if auth.uses_ticket:
            tx["TicketSequence"] = auth.ticket_sequence
        if auth.last_ledger_sequence is not None:
            tx["LastLedgerSequence"] = auth.last_ledger_sequence
        return tx

    def fee_instruction(
        self,
        amount: str = "1000",
        *,
        account: str = PAYER,
        destination: str = FACILITATOR,
        tx_overrides: Optional[dict] = None,
    ) -> tuple[str, FeeAuthorization]:
        fee_auth = FeeAuthorization(account=account, destination=destination, amount=amount, sequence=6)
        tx = {
            "TransactionType": "Payment",
            "Account": account,
            "Destination": destination,
            "Amount": amount,
            "Fee": "12",
            "Sequence": 6,
        }
        tx.update(tx_overrides or {})
        return self.codec.register(tx), fee_auth


def requirements(
    asset: str = "XRP",
    max_amount_required: str = "1000000",
    pay_to: str = MERCHANT,
    network: str = NETWORK,
) -> PaymentRequirements:
    return PaymentRequirements(
        network=network,
        pay_to=pay_to,
        max_amount_required=max_amount_required,
        asset=asset,
    )


def issued(value: str = "25.50", currency: str = "USD", issuer: str = ISSUER) -> dict:
    return {"currency": currency, "issuer": issuer, "value": value}


def mpt(value: str = "100", issuance_id: str = MPT_ID) -> dict:
    return {"mpt_issuance_id": issuance_id, "value": value}


@pytest.fixture
def codec():
    return FakeCodec()


@pytest.fixture
def ledger():
    fake = FakeLedger()
    fake.issuances[MPT_ID] = MptIssuance(flags=0x20)
    fake.tokens[(MPT_ID, PAYER)] = MpToken(flags=0, amount="1000")
    fake.tokens[(MPT_ID, MERCHANT)] = MpToken(flags=0, amount="0")
    fake.lines[(MERCHANT, ISSUER)] = [TrustLine(currency="USD", limit="1000000")]
    return fake


@pytest.fixture
def factory(codec):
    return PaymentFactory(codec)


@pytest.fixture
def config():
    return FacilitatorConfig(
        supported_networks=(NETWORK,),
        mpt_allowlist={NETWORK: [MptConfig(issuance_id=MPT_ID, name="Test MPT", issuer=ISSUER)]},
        poll_interval_seconds=0,
    )


@pytest.fixture
def fee_config():
    return FacilitatorConfig(
        supported_networks=(NETWORK,),
        mpt_allowlist={NETWORK: [MptConfig(issuance_id=MPT_ID, name="Test MPT", issuer=ISSUER)]},
        fee_schedule=FeeSchedule(standard="500", mpt="1000"),
        facilitator_address=FACILITATOR,
        poll_interval_seconds=0,
    )
