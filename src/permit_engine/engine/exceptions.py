"""
Exception and Error Definitions Module

Defines the custom exception hierarchy for permit construction, nonce
resolution, signing and payload encoding. All exceptions inherit from
BaseException for unified exception handling.

Inside ``EVMPermitAdapter.sign`` and ``sign_gasless_intent`` these are caught
and reported as ``{status, code}`` results. Programmer errors (a witness
without its hashes, an intent variant without its fields, an encoder asked
for a mode it has no layout for) are raised to the caller directly.

Exception Hierarchy:
    BaseException (root)
    ├── UserRejectedError
    ├── SignerError
    ├── CapabilityProbeError
    ├── NonceResolutionError
    ├── InvalidWitnessDataError
    ├── UnsupportedPermitTypeError
    ├── EncodingError
    └── ConfigurationError
"""

from typing import Optional, Tuple

from web3.exceptions import ProviderConnectionError

from ..schemas.bases import StatusCode, TxnStatus


class BaseException(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions should inherit from this class to enable
    unified exception handling and centralized error processing.

    Attributes:
        code: Optional numeric code carried from the failing collaborator
              (e.g. an EIP-1193 provider error code).
    """

    def __init__(self, message: str = "", *, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class UserRejectedError(BaseException):
    """
    Raised when the wallet declines a signing request.

    This includes scenarios such as:
    - The user dismissing the wallet prompt
    - A wallet policy refusing to sign the typed data
    """

    def __init__(self, message: str = "User rejected the request", *, code: Optional[int] = 4001):
        super().__init__(message, code=code)


class SignerError(BaseException):
    """
    Raised when a signer object cannot be used.

    This includes scenarios such as:
    - An object that exposes neither supported signing shape
    - A wallet client returning something that is not a signature
    """
    pass


class CapabilityProbeError(BaseException):
    """
    Raised when the EIP-2612 capability probe cannot complete.

    The prober treats this as "unsupported" and the engine falls back to
    Permit2, so it never reaches the caller of ``sign``.
    """
    pass


class NonceResolutionError(BaseException):
    """
    Raised when a nonce cannot be obtained or derived.

    This includes scenarios such as:
    - A witness-transfer token at index > 0 with no resolved first nonce
    - The Permit2 nonce bitmap scan exhausting its word budget
    - The allowance or nonce read failing on-chain
    """
    pass


class InvalidWitnessDataError(BaseException):
    """
    Raised when a witness or gasless intent is missing required fields.

    This includes scenarios such as:
    - A gasless swap intent without ``swapDataHash``
    - A gasless bridge intent without ``adapterDataHash``
    - A Permit2 bridge witness requested without a swap leg hash
    """
    pass


class UnsupportedPermitTypeError(BaseException):
    """
    Raised when a permit mode is invalid for the requested operation.

    This includes scenarios such as:
    - ``AutoPermit`` reaching the encoder without being resolved
    - ``PermitSingle`` requested for a gasless intent
    - A single witness transfer requested for several gasless tokens
    """
    pass


class EncodingError(BaseException):
    """
    Raised when ABI encoding or decoding of a permit payload fails.

    This includes scenarios such as:
    - A signature that is neither 64 nor 65 bytes
    - Values outside the range of their ABI type
    - A payload whose mode byte is unknown
    """
    pass


class ConfigurationError(BaseException):
    """
    Raised when engine configuration is invalid.

    This includes scenarios such as:
    - No RPC URL configured for a chain that needs an on-chain read
    - Malformed environment values
    """
    pass


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

def get_error_code(error: Exception) -> Optional[int]:
    """
    Extract a numeric error code from ``error`` or its cause chain.

    Wallet and RPC libraries report codes as a ``code`` attribute, as a
    ``{"code": ...}`` dict in ``args[0]``, or on a wrapped ``cause``.
    """
    seen = set()
    current: Optional[Exception] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        code = getattr(current, "code", None)
        if isinstance(code, int):
            return code
        if current.args and isinstance(current.args[0], dict):
            code = current.args[0].get("code")
            if isinstance(code, int):
                return code
        current = getattr(current, "cause", None) or current.__cause__
    return None


def parse_error(error: Exception) -> Tuple[TxnStatus, StatusCode, str]:
    """
    Map an exception raised while signing to ``(status, code, message)``.

    * code 4001 anywhere in the chain -> ``rejected`` / ``USER_REJECTED_REQUEST``
    * code 429 or an unreachable RPC  -> ``error`` / ``WALLET_RPC_FAILURE``
    * ``NonceResolutionError``        -> ``error`` / ``NOT_FOUND``
    * ``UnsupportedPermitTypeError``  -> ``error`` / ``UNSUPPORTED``
    * anything else                   -> ``error`` / ``ERROR``
    """
    code = get_error_code(error)
    message = str(error) or type(error).__name__
    if code == StatusCode.USER_REJECTED_REQUEST:
        return TxnStatus.REJECTED, StatusCode.USER_REJECTED_REQUEST, message
    if code == StatusCode.WALLET_RPC_FAILURE or isinstance(error, (ConnectionError, ProviderConnectionError)):
        return TxnStatus.ERROR, StatusCode.WALLET_RPC_FAILURE, message
    if isinstance(error, NonceResolutionError):
        return TxnStatus.ERROR, StatusCode.NOT_FOUND, message
    if isinstance(error, UnsupportedPermitTypeError):
        return TxnStatus.ERROR, StatusCode.UNSUPPORTED, message
    return TxnStatus.ERROR, StatusCode.ERROR, message
