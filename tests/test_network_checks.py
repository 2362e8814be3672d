"""Tests for ledger-backed verification steps and their soft-fail behavior."""

import logging

import pytest

from conftest import ISSUER, MERCHANT, PAYER, issued, mpt, requirements
from xrp402.errors import LedgerRequestError
from xrp402.ledger import TrustLine
from xrp402.network_checks import check_account_balance, check_ledger_expiry, check_trust_line, soft_fail
from xrp402.amount import IssuedAmount
from xrp402.verify import verify

RESERVE = 10_000_000


def _reason(result):
    return None if result is None else result.invalid_reason


class TestSoftFail:
    def test_passes_through_any_return_type(self):
        @soft_fail
        def tickets():
            return [10, 11]

        assert tickets() == [10, 11]
        assert tickets.__name__ == "tickets"

    def test_exception_becomes_none(self, caplog):
        @soft_fail
        def tickets():
            raise LedgerRequestError("actNotFound")

        with caplog.at_level(logging.WARNING, logger="xrp402.network_checks"):
            assert tickets() is None
        assert "tickets skipped" in caplog.text


class TestAccountBalance:
    def test_native_covers_amount_fee_and_reserve(self, factory, ledger):
        ledger.balance_drops = 1_000_000 + 12 + RESERVE
        payload = factory.payment("1000000", fee="12")
        assert check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE) is None

    def test_native_one_drop_short(self, factory, ledger):
        ledger.balance_drops = 1_000_000 + 12 + RESERVE - 1
        payload = factory.payment("1000000", fee="12")
        result = check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE)
        assert _reason(result) == "insufficient_balance"

    def test_issued_needs_only_fee_and_reserve(self, factory, ledger):
        ledger.balance_drops = 12 + RESERVE
        payload = factory.payment(issued("1000000"), fee="12")
        assert check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE) is None

    def test_issued_below_fee_reserve(self, factory, ledger):
        ledger.balance_drops = RESERVE
        payload = factory.payment(issued(), fee="12")
        result = check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE)
        assert _reason(result) == "insufficient_balance_for_fees"

    def test_mpt_below_fee_reserve(self, factory, ledger):
        ledger.balance_drops = 0
        payload = factory.payment(mpt(), fee="12")
        result = check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE)
        assert _reason(result) == "insufficient_balance_for_fees"

    def test_sequence_must_match_account(self, factory, ledger):
        ledger.sequence = 7
        payload = factory.payment(sequence=5)
        result = check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE)
        assert _reason(result) == "invalid_sequence"

    def test_ticket_found(self, factory, ledger):
        ledger.tickets = [41, 42]
        ledger.sequence = 99
        payload = factory.payment(ticket_sequence=42)
        assert check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE) is None

    def test_ticket_missing(self, factory, ledger):
        ledger.tickets = [41]
        payload = factory.payment(ticket_sequence=42)
        result = check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE)
        assert _reason(result) == "ticket_not_found"

    def test_ticket_lookup_failure_passes(self, factory, ledger):
        ledger.failing.add("account_tickets")
        payload = factory.payment(ticket_sequence=42)
        assert check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE) is None

    def test_ticket_lookup_failure_still_checks_balance(self, factory, ledger):
        ledger.failing.add("account_tickets")
        ledger.balance_drops = 0
        payload = factory.payment(ticket_sequence=42)
        result = check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE)
        assert _reason(result) == "insufficient_balance"

    def test_ledger_down_passes(self, factory, ledger, caplog):
        ledger.failing.add("account_info")
        payload = factory.payment()
        with caplog.at_level(logging.WARNING, logger="xrp402.network_checks"):
            assert check_account_balance(ledger, payload.authorization, reserve_drops=RESERVE) is None
        assert "check_account_balance" in caplog.text


class TestLedgerExpiry:
    def test_absent_skips_lookup(self, ledger):
        assert check_ledger_expiry(ledger, None, buffer_ledgers=4) is None
        assert ledger.called("validated_ledger_index") == []

    def test_exactly_buffer_ahead(self, ledger):
        ledger.ledger_index = 1000
        assert check_ledger_expiry(ledger, 1004, buffer_ledgers=4) is None

    def test_too_soon(self, ledger):
        ledger.ledger_index = 1000
        result = check_ledger_expiry(ledger, 1003, buffer_ledgers=4)
        assert _reason(result) == "transaction_will_expire_too_soon"

    def test_rpc_error_passes(self, ledger, monkeypatch):
        def boom():
            raise LedgerRequestError("noNetwork", "not synced")

        monkeypatch.setattr(ledger, "validated_ledger_index", boom)
        assert check_ledger_expiry(ledger, 1003, buffer_ledgers=4) is None


class TestTrustLine:
    amount = IssuedAmount(currency="USD", issuer=ISSUER, value="1")

    def test_line_present(self, ledger):
        assert check_trust_line(ledger, MERCHANT, self.amount) is None

    def test_no_line(self, ledger):
        ledger.lines[(MERCHANT, ISSUER)] = [TrustLine(currency="EUR", limit="100")]
        assert _reason(check_trust_line(ledger, MERCHANT, self.amount)) == "no_trust_line"

    def test_zero_limit(self, ledger):
        ledger.lines[(MERCHANT, ISSUER)] = [TrustLine(currency="USD", limit="0")]
        assert _reason(check_trust_line(ledger, MERCHANT, self.amount)) == "trust_line_limit_zero"

    def test_frozen(self, ledger):
        ledger.lines[(MERCHANT, ISSUER)] = [TrustLine(currency="USD", limit="10", freeze_peer=True)]
        assert _reason(check_trust_line(ledger, MERCHANT, self.amount)) == "trust_line_frozen"

    def test_lookup_failure_passes(self, ledger):
        ledger.failing.add("trust_lines")
        assert check_trust_line(ledger, MERCHANT, self.amount) is None


class TestNetworkStageInPipeline:
    @pytest.mark.parametrize(
        "method",
        ["account_info", "validated_ledger_index", "trust_lines"],
    )
    def test_each_check_soft_fails(self, factory, codec, config, ledger, method):
        ledger.failing.add(method)
        payload = factory.payment(issued("5"), last_ledger_sequence=2000)
        result = verify(payload, requirements(ISSUER, "5"), config=config, codec=codec, ledger=ledger)
        assert result.is_valid

    def test_all_network_checks_down(self, factory, codec, config, ledger):
        ledger.failing.update({"account_info", "validated_ledger_index", "trust_lines"})
        payload = factory.payment(issued("5"), last_ledger_sequence=2000)
        result = verify(payload, requirements(ISSUER, "5"), config=config, codec=codec, ledger=ledger)
        assert result.is_valid

    def test_trust_line_only_for_issued(self, factory, codec, config, ledger):
        verify(factory.payment(), requirements(), config=config, codec=codec, ledger=ledger)
        assert ledger.called("trust_lines") == []

    def test_balance_runs_before_expiry(self, factory, codec, config, ledger):
        ledger.balance_drops = 0
        payload = factory.payment(last_ledger_sequence=1001)
        result = verify(payload, requirements(), config=config, codec=codec, ledger=ledger)
        assert result.invalid_reason == "insufficient_balance"

    def test_balance_checked_for_payer(self, factory, codec, config, ledger):
        verify(factory.payment(), requirements(), config=config, codec=codec, ledger=ledger)
        assert ledger.called("account_info") == [(PAYER,)]
