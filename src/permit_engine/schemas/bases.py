"""
Base Schema Models for the Permit Engine

This module defines the fundamental base classes and enumerations that all
other schema models inherit from. It provides the foundation for type safety,
validation, and consistent behavior across the signing pipeline.

Core Classes:
    - CanonicalModel: RFC8785-compliant Pydantic base model for deterministic output
    - TxnStatus: Terminal outcome of a signing request (success / rejected / error)
    - StatusCode: Numeric status codes reported next to ``TxnStatus``
    - PermitMode: Authorization mechanism requested by the caller or chosen by the engine
    - BaseSignResult: Abstract ``{status, code}`` result shared by all responses

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from abc import ABC
from enum import Enum, IntEnum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    RFC8785-compliant Pydantic base model with canonical JSON serialization.

    This model ensures consistent, deterministic JSON representation suitable
    for logging, hashing and comparing signing payloads.

    Features:
        - Automatic conversion of Pydantic objects and enums to standard types
        - Deterministic key sorting in JSON output
        - No extra whitespace for consistent hashing

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    def to_canonical_json(self) -> str:
        """
        Convert model to RFC8785-compliant canonical JSON string.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class TxnStatus(str, Enum):
    """
    Terminal outcome of a signing request.

    Attributes:
        SUCCESS: Every required signature was produced
        REJECTED: The wallet (usually the human behind it) declined to sign
        ERROR: Any other failure (RPC, nonce resolution, encoding, ...)
    """
    SUCCESS = "success"
    REJECTED = "rejected"
    ERROR = "error"


class StatusCode(IntEnum):
    """
    Numeric code reported next to ``TxnStatus``.

    ``USER_REJECTED_REQUEST`` matches the EIP-1193 provider error code so
    wallet errors can be mapped without translation.
    """
    SUCCESS = 200
    USER_REJECTED_REQUEST = 4001
    ERROR = 500
    WALLET_RPC_FAILURE = 429
    CONTRACT_EXECUTION_ERROR = -500
    NOT_FOUND = 404
    UNSUPPORTED = 422


class PermitMode(str, Enum):
    """
    Authorization mechanism for a token.

    Attributes:
        DEFAULT: Plain ERC-20 ``approve``; no signature is produced
        EIP2612_PERMIT: Token-native ``permit`` (EIP-2612)
        PERMIT_SINGLE: Permit2 allowance-style permit (legacy v1 routers)
        PERMIT_WITNESS_TRANSFER_FROM: Permit2 single-token signature transfer with witness
        PERMIT_BATCH_WITNESS_TRANSFER_FROM: Permit2 multi-token signature transfer with witness
        AUTO_PERMIT: Let the engine pick per token
    """
    DEFAULT = "Default"
    EIP2612_PERMIT = "EIP2612Permit"
    PERMIT_SINGLE = "PermitSingle"
    PERMIT_WITNESS_TRANSFER_FROM = "PermitWitnessTransferFrom"
    PERMIT_BATCH_WITNESS_TRANSFER_FROM = "PermitBatchWitnessTransferFrom"
    AUTO_PERMIT = "AutoPermit"

    @property
    def is_permit2(self) -> bool:
        return self in (
            PermitMode.PERMIT_SINGLE,
            PermitMode.PERMIT_WITNESS_TRANSFER_FROM,
            PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM,
        )


class BaseSignResult(CanonicalModel, ABC):
    """
    Abstract base class for every result handed back to callers.

    Failures are reported through ``status``/``code`` instead of being raised,
    so a caller can branch on the outcome without a try/except around the
    wallet prompt.

    Attributes:
        status: Terminal outcome (``TxnStatus``)
        code: Numeric status code (``StatusCode``)
        message: Optional human-readable reason for a failure

    Methods:
        is_success: Check if the request succeeded
        get_error_message: Get formatted error message
    """

    status: TxnStatus = Field(..., description="Terminal outcome of the request")
    code: StatusCode = Field(..., description="Numeric status code")
    message: str = Field(default="", description="Human-readable failure reason")

    def is_success(self) -> bool:
        return self.status == TxnStatus.SUCCESS

    def get_error_message(self) -> str:
        """
        Get formatted error message.

        Returns:
            str: Empty string on success, otherwise ``"<status> (<code>): <message>"``.
        """
        if self.is_success():
            return ""
        head = f"{self.status.value} ({int(self.code)})"
        return f"{head}: {self.message}" if self.message else head
