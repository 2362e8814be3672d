"""
Amount model for XRPL payments.

An XRPL amount takes one of three shapes on the wire:

    "1000000"                                          native XRP, in drops
    {"currency": "USD", "issuer": "r...", "value": "1.5"}  issued currency
    {"mpt_issuance_id": "0000...", "value": "100"}        MPT (restricted asset)

Drops are compared as integers. Issued and MPT values are compared as
``Decimal`` so the ledger's normalization of trailing zeros ("25.50" becomes
"25.5") does not register as a difference. Decimal keeps every digit the
client sent; the ledger itself stores issued values with 15 significant
digits, so two values that differ only past that precision are distinct
here but would be identical on-ledger.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

from .errors import AmountFormatError, AssetFormatError


DROPS_PER_XRP = 1_000_000
NATIVE_ASSET = "XRP"
MPT_ASSET_PREFIX = "mpt:"

_DROPS_RE = re.compile(r"^[0-9]+$")
_ISSUED_KEYS = frozenset({"currency", "issuer", "value"})
_MPT_KEYS = frozenset({"mpt_issuance_id", "value"})


class AssetKind(str, Enum):
    XRP = "xrp"
    ISSUED = "issued"
    MPT = "mpt"


@dataclass(frozen=True)
class NativeAmount:
    """XRP amount in drops."""

    drops: str

    @property
    def kind(self) -> AssetKind:
        return AssetKind.XRP

    def to_xrpl(self) -> str:
        return self.drops


@dataclass(frozen=True)
class IssuedAmount:
    """Issued-currency amount (e.g. RLUSD), identified by code and issuer."""

    currency: str
    issuer: str
    value: str

    @property
    def kind(self) -> AssetKind:
        return AssetKind.ISSUED

    def to_xrpl(self) -> dict:
        return {"currency": self.currency, "issuer": self.issuer, "value": self.value}


@dataclass(frozen=True)
class RestrictedAmount:
    """Multi-Purpose Token amount, identified by its issuance id."""

    mpt_issuance_id: str
    value: str

    @property
    def kind(self) -> AssetKind:
        return AssetKind.MPT

    def to_xrpl(self) -> dict:
        return {"mpt_issuance_id": self.mpt_issuance_id, "value": self.value}


Amount = Union[NativeAmount, IssuedAmount, RestrictedAmount]


def parse_amount(raw: Any) -> Amount:
    """Classify a wire amount into exactly one variant.

    A mapping must carry exactly the keys of one variant. Anything carrying
    fields of two variants is malformed rather than guessed at.
    """
    if isinstance(raw, (NativeAmount, IssuedAmount, RestrictedAmount)):
        return raw
    if isinstance(raw, str):
        return NativeAmount(drops=raw)
    if isinstance(raw, dict):
        keys = frozenset(raw)
        if keys == _ISSUED_KEYS:
            return IssuedAmount(
                currency=str(raw["currency"]),
                issuer=str(raw["issuer"]),
                value=str(raw["value"]),
            )
        if keys == _MPT_KEYS:
            return RestrictedAmount(
                mpt_issuance_id=str(raw["mpt_issuance_id"]),
                value=str(raw["value"]),
            )
        raise AmountFormatError(f"Unrecognized amount fields: {sorted(keys)}")
    raise AmountFormatError(f"Unsupported amount type: {type(raw).__name__}")


def drops_value(drops: str) -> int:
    """Parse a drops string as an exact integer (digits only)."""
    if not isinstance(drops, str) or not _DROPS_RE.match(drops):
        raise AmountFormatError(f"Invalid drops amount: {drops!r}")
    return int(drops)


def decimal_value(value: str) -> Decimal:
    """Parse an issued/MPT value string as a finite Decimal."""
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise AmountFormatError(f"Invalid decimal amount: {value!r}") from None
    if not dec.is_finite():
        raise AmountFormatError(f"Invalid decimal amount: {value!r}")
    return dec


def amounts_equal(left: Amount, right: Amount) -> bool:
    """Variant-aware equality: same variant, same identity, same magnitude."""
    if isinstance(left, NativeAmount) and isinstance(right, NativeAmount):
        return drops_value(left.drops) == drops_value(right.drops)
    if isinstance(left, IssuedAmount) and isinstance(right, IssuedAmount):
        return (
            left.currency == right.currency
            and left.issuer == right.issuer
            and decimal_value(left.value) == decimal_value(right.value)
        )
    if isinstance(left, RestrictedAmount) and isinstance(right, RestrictedAmount):
        return (
            left.mpt_issuance_id == right.mpt_issuance_id
            and decimal_value(left.value) == decimal_value(right.value)
        )
    return False


def meets_minimum(amount: Amount, required: str) -> bool:
    """Return True when ``amount`` covers the required minimum.

    ``required`` is read in the amount's own unit: drops for native amounts,
    a decimal value for issued and MPT amounts.
    """
    if isinstance(amount, NativeAmount):
        return drops_value(amount.drops) >= drops_value(required)
    return decimal_value(amount.value) >= decimal_value(required)


def classify_asset(asset: str) -> AssetKind:
    """Classify a requirements asset identifier."""
    if asset == NATIVE_ASSET:
        return AssetKind.XRP
    if asset.startswith(MPT_ASSET_PREFIX):
        return AssetKind.MPT
    if asset.startswith("r"):
        return AssetKind.ISSUED
    raise AssetFormatError(f"Unknown asset format: {asset}")


def mpt_asset_id(issuance_id: str) -> str:
    return f"{MPT_ASSET_PREFIX}{issuance_id}"


def drops_to_xrp(drops: int) -> Decimal:
    """Convert integer drops to Decimal XRP (for log messages)."""
    return Decimal(drops) / Decimal(DROPS_PER_XRP)
