"""
EVM Permit Schema Models

Pydantic models for the inputs and outputs of the permit engine.  All classes
inherit from the base schema hierarchy in ``schemas.bases``.

Input classes:
    - PermitHint: Caller-declared EIP-2612 support and optional custom domain.
    - TokenPermitInput: One token to authorize (address, amount, index, hint).
    - PermitIntent variants: StandardIntent, GaslessSwapIntent,
      GaslessBridgeIntent, GaslessSwapBridgeIntent.  Each variant only carries
      the fields valid for it; ``build_gasless_intent`` derives the variant
      from a ``txType`` and the supplied hashes.

Result classes:
    - PermitResult: ``{status, code, permitData, nonce, mode}`` for one signature.
    - SignedToken: One token of a per-token response.
    - SignPermitResponse: Aggregated response of ``EVMPermitAdapter.sign``.
    - CustomTypedDataResult: Signature over caller-supplied typed data.
    - Eip2612PermitData: Full capability probe result.

Callback payloads:
    - TokenSignaturePayload: Sent after each signed non-native token.
    - BatchSignaturePayload: Sent once after a batch signature.

Validation:
    - PermitValidationStatus / PermitValidationResult: Outcome of
      ``verifies.validate_permit_data``.
"""

import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, ValidationError, field_validator

from ...engine.exceptions import InvalidWitnessDataError
from ...schemas.bases import BaseSignResult, CanonicalModel, PermitMode, StatusCode, TxnStatus
from ...schemas.versions import GaslessTxType
from .constants import is_native_token
from .standards import BridgeWitness, SwapWitness, TransferWitness, WitnessData

_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def _check_bytes32(value: Optional[str]) -> Optional[str]:
    if value is not None and not _BYTES32_RE.match(value):
        raise ValueError(f"expected 0x-prefixed 32-byte hex string, got {value!r}")
    return value


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class PermitHint(CanonicalModel):
    """
    Caller knowledge about a token's EIP-2612 support.

    ``supported`` short-circuits capability probing; ``domain`` replaces the
    derived ``{name, version, chainId, verifyingContract}`` for tokens with a
    nonstandard separator.
    """
    supported: Optional[bool] = Field(default=None, description="Declared EIP-2612 support")
    domain: Optional[Dict[str, Any]] = Field(default=None, description="Custom EIP-712 domain")


class TokenPermitInput(CanonicalModel):
    """
    One token to authorize.

    Attributes:
        address: Token contract address (native-currency sentinel allowed).
        amount: Amount in the token's smallest unit; ``None`` means unlimited.
        index: Position of the token in the request.
        permit_hint: Optional ``PermitHint``.
    """
    address: str = Field(..., description="Token contract address")
    amount: Optional[int] = Field(default=None, ge=0, description="Amount in smallest unit")
    index: int = Field(default=0, ge=0, description="Position in the request")
    permit_hint: Optional[PermitHint] = Field(default=None, description="EIP-2612 support hint")

    @property
    def is_native(self) -> bool:
        return is_native_token(self.address)


class StandardIntent(CanonicalModel):
    """Non-gasless permit; the Permit2 witness binds owner to spender."""
    kind: Literal["standard"] = "standard"

    def to_witness(self, *, owner: str, spender: str) -> WitnessData:
        return TransferWitness(owner=owner, recipient=spender)


class _GaslessIntent(CanonicalModel):
    tx_id: str = Field(..., description="Pending transaction id (bytes32)")
    executor_fees_hash: str = Field(..., description="Relayer fee commitment (bytes32)")

    @field_validator("tx_id", "executor_fees_hash")
    @classmethod
    def _bytes32(cls, value):
        return _check_bytes32(value)

    def leg_hashes(self) -> Dict[str, Optional[str]]:
        return {
            "swap_data_hash": getattr(self, "swap_data_hash", None),
            "adapter_data_hash": getattr(self, "adapter_data_hash", None),
        }


class GaslessSwapIntent(_GaslessIntent):
    kind: Literal["gasless_swap"] = "gasless_swap"
    swap_data_hash: str = Field(..., description="Swap leg commitment (bytes32)")

    @field_validator("swap_data_hash")
    @classmethod
    def _swap_hash(cls, value):
        return _check_bytes32(value)

    def to_witness(self, *, owner: str, spender: str) -> WitnessData:
        return SwapWitness(
            tx_id=self.tx_id,
            user=owner,
            executor_fees_hash=self.executor_fees_hash,
            swap_data_hash=self.swap_data_hash,
        )


class GaslessBridgeIntent(_GaslessIntent):
    kind: Literal["gasless_bridge"] = "gasless_bridge"
    adapter_data_hash: str = Field(..., description="Bridge leg commitment (bytes32)")

    @field_validator("adapter_data_hash")
    @classmethod
    def _adapter_hash(cls, value):
        return _check_bytes32(value)

    def to_witness(self, *, owner: str, spender: str) -> WitnessData:
        # DZapBridgeWitness always commits to a swap leg.
        raise InvalidWitnessDataError(
            "Permit2 bridge witness requires swapDataHash; sign bridge-only intents with EIP2612Permit mode"
        )


class GaslessSwapBridgeIntent(_GaslessIntent):
    kind: Literal["gasless_swap_bridge"] = "gasless_swap_bridge"
    swap_data_hash: str = Field(..., description="Swap leg commitment (bytes32)")
    adapter_data_hash: str = Field(..., description="Bridge leg commitment (bytes32)")

    @field_validator("swap_data_hash", "adapter_data_hash")
    @classmethod
    def _leg_hashes(cls, value):
        return _check_bytes32(value)

    def to_witness(self, *, owner: str, spender: str) -> WitnessData:
        return BridgeWitness(
            tx_id=self.tx_id,
            user=owner,
            executor_fees_hash=self.executor_fees_hash,
            swap_data_hash=self.swap_data_hash,
            adapter_data_hash=self.adapter_data_hash,
        )


PermitIntent = Annotated[
    Union[StandardIntent, GaslessSwapIntent, GaslessBridgeIntent, GaslessSwapBridgeIntent],
    Field(discriminator="kind"),
]

GaslessIntent = Union[GaslessSwapIntent, GaslessBridgeIntent, GaslessSwapBridgeIntent]


def build_gasless_intent(
    *,
    tx_type: Union[GaslessTxType, str],
    tx_id: str,
    executor_fees_hash: str,
    swap_data_hash: Optional[str] = None,
    adapter_data_hash: Optional[str] = None,
) -> GaslessIntent:
    """
    Pick the gasless intent variant for ``tx_type`` and the supplied hashes.

    * ``swap``                      -> ``GaslessSwapIntent`` (needs ``swap_data_hash``)
    * ``bridge`` with a swap hash   -> ``GaslessSwapBridgeIntent``
    * ``bridge`` without one        -> ``GaslessBridgeIntent`` (needs ``adapter_data_hash``)

    Raises:
        InvalidWitnessDataError: If a required hash is missing or malformed.
    """
    try:
        tx_type = GaslessTxType(tx_type)
        if tx_type == GaslessTxType.SWAP:
            return GaslessSwapIntent(
                tx_id=tx_id, executor_fees_hash=executor_fees_hash, swap_data_hash=swap_data_hash
            )
        if swap_data_hash:
            return GaslessSwapBridgeIntent(
                tx_id=tx_id,
                executor_fees_hash=executor_fees_hash,
                swap_data_hash=swap_data_hash,
                adapter_data_hash=adapter_data_hash,
            )
        return GaslessBridgeIntent(
            tx_id=tx_id, executor_fees_hash=executor_fees_hash, adapter_data_hash=adapter_data_hash
        )
    except (ValidationError, ValueError) as e:
        raise InvalidWitnessDataError(f"Invalid gasless {tx_type} intent: {e}") from e


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class PermitResult(BaseSignResult):
    """
    Result of one signature (a token, a batch or a gasless intent).

    ``permit_data`` is the hex payload to pass verbatim as the router's
    ``permit`` argument; it is ``None`` only on failure.
    """
    mode: Optional[PermitMode] = Field(default=None, description="Effective permit mode")
    permit_data: Optional[str] = Field(default=None, description="Hex-encoded permit payload")
    nonce: Optional[int] = Field(default=None, description="Nonce committed to the signature")
    deadline: Optional[int] = Field(default=None, description="Signature deadline")

    @classmethod
    def failure(
        cls,
        status: TxnStatus,
        code: StatusCode,
        message: str = "",
        mode: Optional[PermitMode] = None,
    ) -> "PermitResult":
        return cls(status=status, code=code, message=message, mode=mode)


class SignedToken(CanonicalModel):
    address: str
    amount: Optional[int] = None
    index: int = 0
    permit_data: str
    nonce: int
    mode: PermitMode


class SignPermitResponse(BaseSignResult):
    """
    Aggregated result of ``EVMPermitAdapter.sign``.

    Per-token signing fills ``tokens``; batch signing fills
    ``batch_permit_data``, ``nonce`` and ``deadline``.
    """
    mode: Optional[PermitMode] = Field(default=None, description="Mode reported for the request")
    tokens: List[SignedToken] = Field(default_factory=list, description="Per-token permit payloads")
    batch_permit_data: Optional[str] = Field(default=None, description="Batch permit payload")
    nonce: Optional[int] = Field(default=None, description="Batch nonce")
    deadline: Optional[int] = Field(default=None, description="Batch deadline")


class CustomTypedDataResult(BaseSignResult):
    """Signature over caller-supplied typed data, echoed with the signed message."""
    signature: Optional[str] = Field(default=None, description="Hex signature; None on failure")
    typed_message: Optional[Dict[str, Any]] = Field(default=None, description="Message that was signed")


class Eip2612PermitData(CanonicalModel):
    """Full capability probe result used right before EIP-2612 signing."""
    supported: bool
    name: Optional[str] = None
    version: Optional[str] = None
    nonce: Optional[int] = None
    domain: Optional[Dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Callback payloads
# ---------------------------------------------------------------------------

class TokenSignaturePayload(CanonicalModel):
    permit_data: str
    src_token: str
    amount: int
    mode: PermitMode


class BatchSignaturePayload(CanonicalModel):
    batch_permit_data: str
    tokens: List[TokenPermitInput]
    mode: PermitMode


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class PermitValidationStatus(str, Enum):
    """
    Outcome of ``validate_permit_data``.

    Attributes:
        VALID: Payload is well formed, unexpired and its nonce is still live.
        PLACEHOLDER: Default payload without a signature; nothing to check.
        MALFORMED: Payload bytes do not decode for the router version.
        EXPIRED: Deadline (or PermitSingle expiration) has passed.
        NONCE_MISMATCH: On-chain nonce differs from the signed one.
        NONCE_USED: Permit2 bitmap nonce already consumed.
        BLOCKCHAIN_ERROR: A required on-chain read failed.
    """
    VALID = "valid"
    PLACEHOLDER = "placeholder"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    NONCE_MISMATCH = "nonce_mismatch"
    NONCE_USED = "nonce_used"
    BLOCKCHAIN_ERROR = "blockchain_error"


class PermitValidationResult(CanonicalModel):
    status: PermitValidationStatus
    mode: Optional[PermitMode] = Field(default=None, description="Decoded permit mode")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Decoded payload fields")
    on_chain_nonce: Optional[int] = Field(default=None, description="Nonce read from chain, when checked")
    message: str = ""

    @property
    def is_valid(self) -> bool:
        return self.status in (PermitValidationStatus.VALID, PermitValidationStatus.PLACEHOLDER)
