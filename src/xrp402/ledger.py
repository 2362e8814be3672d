"""
Ledger client capability and its JSON-RPC implementation.

The verification and settlement code only ever talk to the ledger through the
LedgerClient protocol. JsonRpcLedgerClient speaks rippled's JSON-RPC API over
httpx; tests substitute an in-memory fake.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from .errors import LedgerConnectionError, LedgerRequestError

logger = logging.getLogger(__name__)

ENTRY_NOT_FOUND = "entryNotFound"
_PAGE_LIMIT = 400


@dataclass(frozen=True)
class AccountState:
    balance_drops: int
    sequence: int


@dataclass(frozen=True)
class TrustLine:
    currency: str
    limit: str
    freeze_peer: bool = False


@dataclass(frozen=True)
class MptIssuance:
    flags: int


@dataclass(frozen=True)
class MpToken:
    flags: int
    amount: str = "0"


@dataclass(frozen=True)
class SubmitResult:
    engine_result: str
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class TxStatus:
    validated: bool
    result_code: Optional[str] = None
    account: Optional[str] = None


class LedgerClient(Protocol):
    """Ledger queries and submission used by verify and settle.

    Implementations raise LedgerError subclasses on failure. The MPT lookups
    return None when the ledger definitively reports no such entry.
    """

    def account_info(self, account: str) -> AccountState: ...

    def account_tickets(self, account: str) -> list[int]: ...

    def validated_ledger_index(self) -> int: ...

    def trust_lines(self, account: str, peer: str) -> list[TrustLine]: ...

    def mpt_issuance(self, issuance_id: str) -> Optional[MptIssuance]: ...

    def mptoken(self, issuance_id: str, account: str) -> Optional[MpToken]: ...

    def submit(self, tx_blob: str) -> SubmitResult: ...

    def tx_status(self, tx_hash: str) -> TxStatus: ...


class JsonRpcLedgerClient:
    """LedgerClient over rippled JSON-RPC."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self._http = httpx.Client(timeout=timeout_seconds, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> JsonRpcLedgerClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def request(self, method: str, params: Optional[dict] = None) -> dict:
        """Call a JSON-RPC method and return its ``result`` object.

        Raises LedgerConnectionError on transport failure and
        LedgerRequestError when rippled answers with an error.
        """
        body = {"method": method, "params": [params or {}]}
        try:
            response = self._http.post(self.url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise LedgerConnectionError(f"{method} failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise LedgerConnectionError(f"{method} returned a non-JSON body") from e

        result = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise LedgerConnectionError(f"{method} returned no result object")
        if result.get("status") == "error" or "error" in result:
            raise LedgerRequestError(
                str(result.get("error", "unknown")),
                str(result.get("error_message", "")),
            )
        return result

    def account_info(self, account: str) -> AccountState:
        result = self.request("account_info", {"account": account, "ledger_index": "current"})
        data = result["account_data"]
        return AccountState(balance_drops=int(data["Balance"]), sequence=int(data["Sequence"]))

    def account_tickets(self, account: str) -> list[int]:
        params: dict[str, Any] = {
            "account": account,
            "type": "ticket",
            "ledger_index": "current",
            "limit": _PAGE_LIMIT,
        }
        tickets: list[int] = []
        for page in self._paginate("account_objects", params):
            for obj in page.get("account_objects", []):
                if "TicketSequence" in obj:
                    tickets.append(int(obj["TicketSequence"]))
        return tickets

    def validated_ledger_index(self) -> int:
        result = self.request("ledger", {"ledger_index": "validated"})
        return int(result["ledger_index"])

    def trust_lines(self, account: str, peer: str) -> list[TrustLine]:
        params: dict[str, Any] = {
            "account": account,
            "peer": peer,
            "ledger_index": "current",
            "limit": _PAGE_LIMIT,
        }
        lines: list[TrustLine] = []
        for page in self._paginate("account_lines", params):
            for line in page.get("lines", []):
                lines.append(
                    TrustLine(
                        currency=line["currency"],
                        limit=str(line["limit"]),
                        freeze_peer=bool(line.get("freeze_peer", False)),
                    )
                )
        return lines

    def mpt_issuance(self, issuance_id: str) -> Optional[MptIssuance]:
        node = self._ledger_entry({"mpt_issuance": issuance_id})
        if node is None:
            return None
        return MptIssuance(flags=int(node.get("Flags", 0)))

    def mptoken(self, issuance_id: str, account: str) -> Optional[MpToken]:
        node = self._ledger_entry({"mptoken": {"mpt_issuance_id": issuance_id, "account": account}})
        if node is None:
            return None
        return MpToken(flags=int(node.get("Flags", 0)), amount=str(node.get("MPTAmount", "0")))

    def submit(self, tx_blob: str) -> SubmitResult:
        result = self.request("submit", {"tx_blob": tx_blob})
        tx_json = result.get("tx_json") or {}
        return SubmitResult(engine_result=str(result["engine_result"]), tx_hash=tx_json.get("hash"))

    def tx_status(self, tx_hash: str) -> TxStatus:
        result = self.request("tx", {"transaction": tx_hash})
        meta = result.get("meta") or {}
        # API v2 nests the transaction fields under tx_json
        tx_json = result.get("tx_json") or {}
        return TxStatus(
            validated=bool(result.get("validated", False)),
            result_code=meta.get("TransactionResult") if isinstance(meta, dict) else None,
            account=result.get("Account") or tx_json.get("Account"),
        )

    def _ledger_entry(self, params: dict) -> Optional[dict]:
        try:
            result = self.request("ledger_entry", {**params, "ledger_index": "current"})
        except LedgerRequestError as e:
            if e.error_code == ENTRY_NOT_FOUND:
                return None
            raise
        return result.get("node")

    def _paginate(self, method: str, params: dict):
        marker = None
        while True:
            page_params = dict(params)
            if marker is not None:
                page_params["marker"] = marker
            result = self.request(method, page_params)
            yield result
            marker = result.get("marker")
            if marker is None:
                break
