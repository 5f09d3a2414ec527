"""
Error taxonomy for the swap flow.

Remote failures arrive as web3 exceptions, JSON-RPC error payloads or plain
strings from a wallet. `classify_error` maps them onto a closed set of kinds
that the CLI can show to a user. Structured signals (EIP-1193 / JSON-RPC
codes, ContractLogicError) are checked first; substring matching is the
fallback for providers that only hand back a message.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional, Tuple

log = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NO_LIQUIDITY = "no_liquidity"
    INVALID_INPUT = "invalid_input"
    TRANSACTION_REJECTED = "transaction_rejected"
    INSUFFICIENT_GAS = "insufficient_gas"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    UNSUPPORTED_TOKEN = "unsupported_token"
    CONTRACT_REVERTED = "contract_reverted"
    TRANSIENT = "transient"
    APPROVAL_TIMEOUT = "approval_timeout"
    UNKNOWN = "unknown"


USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NO_LIQUIDITY: "No liquidity available for this pair.",
    ErrorKind.INVALID_INPUT: "Enter a positive amount.",
    ErrorKind.TRANSACTION_REJECTED: "Transaction was rejected in the wallet.",
    ErrorKind.INSUFFICIENT_GAS: "Insufficient ETH to pay for gas.",
    ErrorKind.SLIPPAGE_EXCEEDED: "Price moved beyond your slippage tolerance. Try increasing slippage.",
    ErrorKind.UNSUPPORTED_TOKEN: "This token is not supported by the router.",
    ErrorKind.CONTRACT_REVERTED: "Transaction reverted.",
    ErrorKind.TRANSIENT: "Network is busy. Please try again.",
    ErrorKind.APPROVAL_TIMEOUT: "Approval was not observed on-chain in time.",
    ErrorKind.UNKNOWN: "Swap failed. Please try again.",
}


class SwapFlowError(Exception):
    """Base class for errors raised by the swap engine."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: Optional[str] = None, raw: Optional[str] = None) -> None:
        self.message = message or USER_MESSAGES[self.kind]
        self.raw = raw
        super().__init__(self.message)


class QuoteError(SwapFlowError):
    kind = ErrorKind.TRANSIENT


class NoLiquidityError(QuoteError):
    kind = ErrorKind.NO_LIQUIDITY


class SwapError(SwapFlowError):
    """A classified, terminal swap failure."""

    def __init__(self, kind: ErrorKind, message: Optional[str] = None, raw: Optional[str] = None) -> None:
        self.kind = kind
        super().__init__(message or USER_MESSAGES[kind], raw)

    @property
    def user_message(self) -> str:
        return self.message


class TransactionRejectedError(SwapError):
    def __init__(self, raw: Optional[str] = None) -> None:
        super().__init__(ErrorKind.TRANSACTION_REJECTED, raw=raw)


class ApprovalTimeoutError(SwapError):
    def __init__(self, raw: Optional[str] = None) -> None:
        super().__init__(ErrorKind.APPROVAL_TIMEOUT, raw=raw)


class SwapInProgressError(RuntimeError):
    """Raised when a second swap is started while one is still pending."""


# Substring heuristics, checked in order after structured codes.
REJECTED_PATTERNS = ("user rejected", "user denied", "rejected the request")
GAS_PATTERNS = ("insufficient funds", "gas required exceeds", "intrinsic gas too low")
SLIPPAGE_PATTERNS = (
    "too little received",
    "insufficient output amount",
    "insufficient_output_amount",
    "slippage",
)
UNSUPPORTED_PATTERNS = ("token not supported", "unsupported token")
REVERT_PATTERNS = ("execution reverted", "revert")

NETWORK_ERROR_KEYWORDS = (
    "connection",
    "timeout",
    "network",
    "unreachable",
    "refused",
    "reset",
    "broken pipe",
    "connect to rpc",
    "failed to connect",
    "unavailable",
    "service unavailable",
    "bad gateway",
)
RATE_LIMIT_KEYWORDS = ("429", "too many requests", "rate limit", "timed out")

REJECTED_CODES = {4001}
RATE_LIMIT_CODES = {429, -32005}
GAS_CODES = {-32003}


def _error_payload(exc: BaseException) -> Tuple[Optional[int], str]:
    """Pull a JSON-RPC style (code, message) out of an exception if one is attached."""
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None)
    if not isinstance(message, str) or not message:
        message = str(exc)
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict):
            code = arg.get("code", code)
            message = str(arg.get("message", message))
            break
    try:
        code = int(code) if code is not None else None
    except (TypeError, ValueError):
        code = None
    return code, message


def extract_revert_reason(message: str) -> Optional[str]:
    """Return the human readable part of an 'execution reverted: <reason>' message."""
    lowered = message.lower()
    idx = lowered.find("execution reverted")
    if idx < 0:
        return None
    rest = message[idx + len("execution reverted"):].lstrip()
    if rest.startswith(":"):
        reason = rest[1:].strip().strip("'\"")
        return reason or None
    return None


def is_transient_message(message: str) -> bool:
    lowered = message.lower()
    return any(k in lowered for k in NETWORK_ERROR_KEYWORDS + RATE_LIMIT_KEYWORDS)


def _classify_message(message: str) -> Tuple[ErrorKind, Optional[str]]:
    lowered = message.lower()
    if any(p in lowered for p in REJECTED_PATTERNS):
        return ErrorKind.TRANSACTION_REJECTED, None
    if any(p in lowered for p in GAS_PATTERNS):
        return ErrorKind.INSUFFICIENT_GAS, None
    if any(p in lowered for p in SLIPPAGE_PATTERNS):
        return ErrorKind.SLIPPAGE_EXCEEDED, None
    if any(p in lowered for p in UNSUPPORTED_PATTERNS):
        return ErrorKind.UNSUPPORTED_TOKEN, None
    if any(p in lowered for p in REVERT_PATTERNS):
        return ErrorKind.CONTRACT_REVERTED, extract_revert_reason(message)
    if is_transient_message(message):
        return ErrorKind.TRANSIENT, None
    return ErrorKind.UNKNOWN, None


def classify_error(exc: Any) -> SwapError:
    """
    Map a raw failure (exception or message) to a SwapError.

    Unclassified failures become ErrorKind.UNKNOWN with a generic message;
    the raw diagnostic is only kept on `.raw` and written to the log.
    """
    if isinstance(exc, SwapError):
        return exc
    if isinstance(exc, BaseException):
        code, message = _error_payload(exc)
    else:
        code, message = None, str(exc)

    kind: Optional[ErrorKind] = None
    reason: Optional[str] = None
    if code in REJECTED_CODES:
        kind = ErrorKind.TRANSACTION_REJECTED
    elif code in RATE_LIMIT_CODES:
        kind = ErrorKind.TRANSIENT
    elif code in GAS_CODES:
        kind = ErrorKind.INSUFFICIENT_GAS
    elif _is_contract_logic_error(exc):
        # The revert reason may still name a more specific kind
        kind, reason = _classify_message(message)
        if kind in (ErrorKind.UNKNOWN, ErrorKind.TRANSIENT):
            kind = ErrorKind.CONTRACT_REVERTED
            reason = extract_revert_reason(message) or _strip_revert_prefix(message)
    elif _is_timeout(exc):
        kind = ErrorKind.TRANSIENT

    if kind is None:
        kind, reason = _classify_message(message)

    if kind is ErrorKind.UNKNOWN:
        log.warning("Unclassified swap failure: %s", message)

    if kind is ErrorKind.TRANSACTION_REJECTED:
        return TransactionRejectedError(raw=message)
    user_message = USER_MESSAGES[kind]
    if kind is ErrorKind.CONTRACT_REVERTED and reason:
        user_message = f"Transaction reverted: {reason}"
    return SwapError(kind, user_message, raw=message)


def _is_contract_logic_error(exc: Any) -> bool:
    from web3.exceptions import ContractLogicError

    return isinstance(exc, ContractLogicError)


def _is_timeout(exc: Any) -> bool:
    from web3.exceptions import TimeExhausted

    return isinstance(exc, (TimeExhausted, TimeoutError))


def _strip_revert_prefix(message: str) -> Optional[str]:
    text = message.strip()
    return text or None
