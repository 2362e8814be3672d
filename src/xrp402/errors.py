"""
xrp402 error types.

Business-rule outcomes (a bad signature, an insufficient amount, a failed
settlement) are returned as result values, never raised. The exceptions here
cover malformed values, configuration invariants and ledger transport, so
callers can tell "cannot confirm" apart from "definitely wrong".
"""


class Xrp402Error(Exception):
    """Base error for all xrp402 operations."""
    pass


class ConfigurationError(Xrp402Error):
    """Facilitator configuration is missing or violates an invariant."""
    pass


# Amount errors
class AmountError(Xrp402Error):
    """Base error for amount handling."""
    pass


class AmountFormatError(AmountError):
    """Amount value cannot be classified or parsed."""
    pass


class AssetFormatError(AmountError):
    """Asset identifier is not XRP, an issuer address, or an mpt: id."""
    pass


# Codec errors
class CodecError(Xrp402Error):
    """Transaction blob could not be decoded or checked."""
    pass


class SignatureError(CodecError):
    """Signature fields are missing or cannot be verified."""
    pass


# Ledger errors
class LedgerError(Xrp402Error):
    """Base error for ledger client failures."""
    pass


class LedgerConnectionError(LedgerError):
    """Transport-level failure talking to the ledger (timeout, refused, 5xx)."""
    pass


class LedgerRequestError(LedgerError):
    """The ledger answered with an error response."""
    def __init__(self, error_code: str, message: str = ""):
        self.error_code = error_code
        detail = f": {message}" if message else ""
        super().__init__(f"Ledger request failed ({error_code}){detail}")
