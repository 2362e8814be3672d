"""XRPL binary codec adapter: decode, structural validation, signature check."""

from __future__ import annotations

from typing import Any, Protocol

from xrpl.core.binarycodec import decode, encode_for_signing
from xrpl.core.keypairs import is_valid_message
from xrpl.models.exceptions import XRPLModelException
from xrpl.models.transactions.transaction import Transaction

from .errors import CodecError, SignatureError


PAYMENT_TRANSACTION_TYPE = "Payment"


class UnsupportedTransactionType(CodecError):
    """Blob decoded fine but is not a Payment."""

    def __init__(self, transaction_type: Any):
        self.transaction_type = transaction_type
        super().__init__(f"Unsupported transaction type: {transaction_type!r}")


class TransactionCodec(Protocol):
    def decode(self, tx_blob: str) -> dict: ...

    def validate(self, tx: dict) -> None: ...

    def verify_signature(self, tx_blob: str) -> bool: ...


class XrplCodec:
    """TransactionCodec backed by xrpl-py's binary codec and models."""

    def decode(self, tx_blob: str) -> dict:
        if not isinstance(tx_blob, str) or not tx_blob:
            raise CodecError("Transaction blob is empty")
        try:
            return decode(tx_blob)
        except Exception as e:
            raise CodecError(f"Cannot decode transaction blob: {e}") from e

    def validate(self, tx: dict) -> None:
        """Raise CodecError unless ``tx`` is a well-formed Payment.

        xrpl-py's model layer checks field presence and types for the
        declared TransactionType.
        """
        transaction_type = tx.get("TransactionType")
        if transaction_type != PAYMENT_TRANSACTION_TYPE:
            raise UnsupportedTransactionType(transaction_type)
        try:
            Transaction.from_xrpl(tx)
        except XRPLModelException as e:
            raise CodecError(f"Invalid transaction structure: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise CodecError(f"Invalid transaction structure: {e}") from e

    def verify_signature(self, tx_blob: str) -> bool:
        """Check the single-signature fields against the signing payload.

        Returns False for a well-formed but wrong signature. Raises
        SignatureError when the blob carries no single-signature fields
        (multi-signed or unsigned) or the fields cannot be parsed.
        """
        tx = self.decode(tx_blob)
        public_key = tx.get("SigningPubKey")
        signature = tx.get("TxnSignature")
        if not public_key or not signature:
            raise SignatureError("Transaction carries no single-signature fields")
        try:
            message = bytes.fromhex(encode_for_signing(tx))
            return is_valid_message(message, bytes.fromhex(signature), public_key)
        except ValueError as e:
            raise SignatureError(f"Signature check failed: {e}") from e
