"""Facilitator: configuration, codec and one ledger client per network."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from .codec import TransactionCodec, XrplCodec
from .config import FacilitatorConfig
from .errors import ConfigurationError
from .ledger import JsonRpcLedgerClient, LedgerClient
from .settle import SettlementEngine, settle
from .supported import build_supported
from .types import PaymentPayload, PaymentRequirements, SettleResult, VerifyResult
from .verify import verify

logger = logging.getLogger(__name__)


class Facilitator:
    """Entry point for verify, settle and supported.

    Holds no per-request state; a single instance serves concurrent requests.
    """

    def __init__(
        self,
        config: FacilitatorConfig,
        codec: Optional[TransactionCodec] = None,
        ledgers: Optional[Mapping[str, LedgerClient]] = None,
    ):
        self.config = config
        self.codec = codec or XrplCodec()
        self._ledgers: dict[str, LedgerClient] = dict(ledgers or {})

    @classmethod
    def from_config(cls, config: FacilitatorConfig) -> Facilitator:
        """Build a facilitator with a JSON-RPC client for every supported network."""
        ledgers: dict[str, LedgerClient] = {}
        for network in config.supported_networks:
            url = config.rpc_url(network)
            if not url:
                raise ConfigurationError(f"No JSON-RPC URL configured for {network}")
            ledgers[network] = JsonRpcLedgerClient(url, timeout_seconds=config.rpc_timeout_seconds)
            logger.info("Using %s for %s", url, network)
        return cls(config, ledgers=ledgers)

    def ledger_for(self, network: str) -> Optional[LedgerClient]:
        return self._ledgers.get(network)

    def is_supported(self, network: str) -> bool:
        return network in self.config.supported_networks

    def verify(self, payload: PaymentPayload, requirements: PaymentRequirements) -> VerifyResult:
        return verify(
            payload,
            requirements,
            config=self.config,
            codec=self.codec,
            ledger=self.ledger_for(requirements.network),
        )

    def settle(self, payload: PaymentPayload, requirements: PaymentRequirements) -> SettleResult:
        ledger = self.ledger_for(requirements.network)
        if ledger is None:
            return SettleResult.failure("network_unavailable", network=requirements.network)
        return settle(
            payload,
            requirements,
            config=self.config,
            ledger=ledger,
            codec=self.codec,
            engine=SettlementEngine.from_config(ledger, self.config),
        )

    def supported(self) -> dict:
        return build_supported(self.config)

    def close(self) -> None:
        for ledger in self._ledgers.values():
            close = getattr(ledger, "close", None)
            if close is not None:
                close()

    def __enter__(self) -> Facilitator:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
