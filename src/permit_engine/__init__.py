from .adapters import EVMPermitAdapter, PermitAdapterFactory
from .adapters.evm import (
    EngineConfig,
    PermitHint,
    PermitResult,
    SignPermitResponse,
    TokenPermitInput,
)
from .schemas import ContractVersion, DZapService, GaslessTxType, PermitMode, StatusCode, TxnStatus

__all__ = [
    "EVMPermitAdapter",
    "PermitAdapterFactory",
    "EngineConfig",
    "PermitHint",
    "PermitResult",
    "SignPermitResponse",
    "TokenPermitInput",
    "ContractVersion",
    "DZapService",
    "GaslessTxType",
    "PermitMode",
    "StatusCode",
    "TxnStatus",
]
