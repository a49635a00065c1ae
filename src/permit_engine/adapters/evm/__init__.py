from .adapter import EVMPermitAdapter
from .cache import TTLCache
from .capabilities import CapabilityProber
from .constants import EngineConfig, get_permit2_address, is_native_token
from .encoders import decode_permit_data, encode_permit_payload, get_permit_mode_byte, split_signature
from .nonces import NonceSequencer
from .readers import CallResult, ContractCall, ContractReader, Web3ContractReader
from .schemas import (
    PermitHint,
    TokenPermitInput,
    StandardIntent,
    GaslessSwapIntent,
    GaslessBridgeIntent,
    GaslessSwapBridgeIntent,
    PermitResult,
    SignedToken,
    SignPermitResponse,
    CustomTypedDataResult,
    PermitValidationResult,
    PermitValidationStatus,
)
from .signers import LocalAccountSigner, TypedDataSigner, WalletClientSigner, as_typed_data_signer
from .strategy import resolve_token_mode, select_strategy
from .verifies import recover_typed_data_signer, validate_permit_data, verify_typed_data_signature

__all__ = [
    "EVMPermitAdapter",
    "TTLCache",
    "CapabilityProber",
    "EngineConfig",
    "get_permit2_address",
    "is_native_token",
    "decode_permit_data",
    "encode_permit_payload",
    "get_permit_mode_byte",
    "split_signature",
    "NonceSequencer",
    "CallResult",
    "ContractCall",
    "ContractReader",
    "Web3ContractReader",
    "PermitHint",
    "TokenPermitInput",
    "StandardIntent",
    "GaslessSwapIntent",
    "GaslessBridgeIntent",
    "GaslessSwapBridgeIntent",
    "PermitResult",
    "SignedToken",
    "SignPermitResponse",
    "CustomTypedDataResult",
    "PermitValidationResult",
    "PermitValidationStatus",
    "LocalAccountSigner",
    "TypedDataSigner",
    "WalletClientSigner",
    "as_typed_data_signer",
    "resolve_token_mode",
    "select_strategy",
    "recover_typed_data_signer",
    "validate_permit_data",
    "verify_typed_data_signature",
]
