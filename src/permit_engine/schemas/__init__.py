from .bases import (
    CanonicalModel,
    TxnStatus,
    StatusCode,
    PermitMode,
    BaseSignResult,
)
from .versions import ContractVersion, DZapService, GaslessTxType, uses_v1_permit_layout

__all__ = [
    "CanonicalModel",
    "TxnStatus",
    "StatusCode",
    "PermitMode",
    "BaseSignResult",
    "ContractVersion",
    "DZapService",
    "GaslessTxType",
    "uses_v1_permit_layout",
]
