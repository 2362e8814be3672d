"""
Facilitator configuration.

Provides:
1. Network constants (CAIP-2 ids, JSON-RPC endpoints, XRPL flag values)
2. Fee schedule and MPT allowlist types
3. FacilitatorConfig, loaded from environment variables

All values are read once at startup and never mutated afterwards.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .amount import AssetKind, Amount, drops_value, mpt_asset_id
from .errors import AmountFormatError, ConfigurationError


XRPL_MAINNET = "xrpl:0"
XRPL_TESTNET = "xrpl:1"
XRPL_DEVNET = "xrpl:2"

NETWORK_URLS: Mapping[str, str] = MappingProxyType({
    XRPL_MAINNET: "https://xrplcluster.com/",
    XRPL_TESTNET: "https://s.altnet.rippletest.net:51234/",
    XRPL_DEVNET: "https://s.devnet.rippletest.net:51234/",
})

DEFAULT_NETWORKS = (XRPL_TESTNET,)

# tfPartialPayment: hard reject any payment carrying it
PARTIAL_PAYMENT_FLAG = 0x00020000
LSF_MPT_LOCKED = 0x00000001
LSF_MPT_CAN_TRANSFER = 0x00000020

DEFAULT_BASE_RESERVE_DROPS = 10_000_000
DEFAULT_EXPIRY_BUFFER_LEDGERS = 4
DEFAULT_POLL_MAX_ATTEMPTS = 10
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_RPC_TIMEOUT_SECONDS = 10.0

XRP402_NETWORKS_ENV = "XRP402_NETWORKS"
XRP402_RPC_URLS_ENV = "XRP402_RPC_URLS"
FACILITATOR_ADDRESS_ENV = "FACILITATOR_ADDRESS"
XRP402_FEE_STANDARD_ENV = "XRP402_FEE_STANDARD"
XRP402_FEE_MPT_ENV = "XRP402_FEE_MPT"
XRP402_FEE_CROSS_CURRENCY_ENV = "XRP402_FEE_CROSS_CURRENCY"
XRP402_MPT_ALLOWLIST_ENV = "XRP402_MPT_ALLOWLIST"
XRP402_POLL_MAX_ATTEMPTS_ENV = "XRP402_POLL_MAX_ATTEMPTS"
XRP402_POLL_INTERVAL_ENV = "XRP402_POLL_INTERVAL_SECONDS"
XRP402_RPC_TIMEOUT_ENV = "XRP402_RPC_TIMEOUT_SECONDS"
XRP402_BASE_RESERVE_ENV = "XRP402_BASE_RESERVE_DROPS"
XRP402_EXPIRY_BUFFER_ENV = "XRP402_EXPIRY_BUFFER_LEDGERS"


@dataclass(frozen=True)
class MptConfig:
    """An MPT issuance the facilitator accepts on a given network."""

    issuance_id: str
    name: str
    issuer: str

    @property
    def asset(self) -> str:
        return mpt_asset_id(self.issuance_id)


@dataclass(frozen=True)
class FeeSchedule:
    """Facilitator fee per asset tier, in drops.

    ``None`` means the tier is free; ``"0"`` means the fee machinery runs but
    nobody is charged. Turning fees on is a matter of changing these values.
    """

    standard: Optional[str] = None
    mpt: Optional[str] = "0"
    cross_currency: Optional[str] = "0"

    def __post_init__(self):
        for name in ("standard", "mpt", "cross_currency"):
            value = getattr(self, name)
            if value is None:
                continue
            try:
                drops_value(value)
            except AmountFormatError:
                raise ConfigurationError(f"Fee for tier {name!r} must be drops, got {value!r}") from None

    def fee_for(self, amount: Amount) -> Optional[str]:
        if amount.kind == AssetKind.MPT:
            return self.mpt
        return self.standard

    def to_dict(self) -> dict:
        return {
            "standard": self.standard,
            "mpt": self.mpt,
            "crossCurrency": self.cross_currency,
        }


def fee_is_due(fee: Optional[str]) -> bool:
    return fee is not None and drops_value(fee) > 0


@dataclass(frozen=True)
class FacilitatorConfig:
    supported_networks: tuple[str, ...] = DEFAULT_NETWORKS
    rpc_urls: Mapping[str, str] = field(default_factory=lambda: dict(NETWORK_URLS))
    mpt_allowlist: Mapping[str, tuple[MptConfig, ...]] = field(default_factory=dict)
    fee_schedule: FeeSchedule = field(default_factory=FeeSchedule)
    facilitator_address: Optional[str] = None
    base_reserve_drops: int = DEFAULT_BASE_RESERVE_DROPS
    expiry_buffer_ledgers: int = DEFAULT_EXPIRY_BUFFER_LEDGERS
    poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    rpc_timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS

    def __post_init__(self):
        if not self.supported_networks:
            raise ConfigurationError("At least one network must be supported")
        if self.poll_max_attempts < 1:
            raise ConfigurationError("poll_max_attempts must be >= 1")
        if self.poll_interval_seconds < 0:
            raise ConfigurationError("poll_interval_seconds must be >= 0")
        if self.base_reserve_drops < 0 or self.expiry_buffer_ledgers < 0:
            raise ConfigurationError("Reserve and expiry buffer must be >= 0")
        # Freeze the mappings so shared config cannot drift between requests.
        object.__setattr__(self, "rpc_urls", MappingProxyType(dict(self.rpc_urls)))
        object.__setattr__(
            self,
            "mpt_allowlist",
            MappingProxyType({k: tuple(v) for k, v in self.mpt_allowlist.items()}),
        )

    def mpt_config(self, network: str, issuance_id: str) -> Optional[MptConfig]:
        for mpt in self.mpt_allowlist.get(network, ()):
            if mpt.issuance_id == issuance_id:
                return mpt
        return None

    def rpc_url(self, network: str) -> Optional[str]:
        return self.rpc_urls.get(network)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> FacilitatorConfig:
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ

        networks_raw = env.get(XRP402_NETWORKS_ENV, "")
        networks = tuple(n.strip() for n in networks_raw.split(",") if n.strip()) or DEFAULT_NETWORKS

        rpc_urls = dict(NETWORK_URLS)
        rpc_urls.update(_load_json_object(env, XRP402_RPC_URLS_ENV))

        fee_schedule = FeeSchedule(
            standard=_optional_drops(env.get(XRP402_FEE_STANDARD_ENV), default=None),
            mpt=_optional_drops(env.get(XRP402_FEE_MPT_ENV), default="0"),
            cross_currency=_optional_drops(env.get(XRP402_FEE_CROSS_CURRENCY_ENV), default="0"),
        )

        return cls(
            supported_networks=networks,
            rpc_urls=rpc_urls,
            mpt_allowlist=_parse_mpt_allowlist(_load_json_object(env, XRP402_MPT_ALLOWLIST_ENV)),
            fee_schedule=fee_schedule,
            facilitator_address=env.get(FACILITATOR_ADDRESS_ENV) or None,
            base_reserve_drops=_int_env(env, XRP402_BASE_RESERVE_ENV, DEFAULT_BASE_RESERVE_DROPS),
            expiry_buffer_ledgers=_int_env(env, XRP402_EXPIRY_BUFFER_ENV, DEFAULT_EXPIRY_BUFFER_LEDGERS),
            poll_max_attempts=_int_env(env, XRP402_POLL_MAX_ATTEMPTS_ENV, DEFAULT_POLL_MAX_ATTEMPTS),
            poll_interval_seconds=_float_env(env, XRP402_POLL_INTERVAL_ENV, DEFAULT_POLL_INTERVAL_SECONDS),
            rpc_timeout_seconds=_float_env(env, XRP402_RPC_TIMEOUT_ENV, DEFAULT_RPC_TIMEOUT_SECONDS),
        )


def _optional_drops(raw: Optional[str], default: Optional[str]) -> Optional[str]:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip()
    if value.lower() in {"none", "null"}:
        return None
    return value


def _int_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None


def _load_json_object(env: Mapping[str, str], key: str) -> dict[str, Any]:
    raw = env.get(key)
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{key} is not valid JSON: {e}") from None
    if not isinstance(value, dict):
        raise ConfigurationError(f"{key} must be a JSON object")
    return value


def _parse_mpt_allowlist(raw: dict[str, Any]) -> dict[str, tuple[MptConfig, ...]]:
    allowlist: dict[str, tuple[MptConfig, ...]] = {}
    for network, entries in raw.items():
        if not isinstance(entries, list):
            raise ConfigurationError(f"MPT allowlist for {network} must be a list")
        configs = []
        for entry in entries:
            try:
                configs.append(
                    MptConfig(
                        issuance_id=str(entry["issuanceId"]),
                        name=str(entry.get("name", "")),
                        issuer=str(entry.get("issuer", "")),
                    )
                )
            except (KeyError, TypeError, AttributeError):
                raise ConfigurationError(
                    f"MPT allowlist entry for {network} needs an issuanceId: {entry!r}"
                ) from None
        allowlist[network] = tuple(configs)
    return allowlist
