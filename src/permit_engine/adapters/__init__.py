from .bases import PermitAdapterFactory
from .evm import (
    EVMPermitAdapter,
    PermitResult,
    SignPermitResponse,
    TokenPermitInput,
)

__all__ = [
    "PermitAdapterFactory",
    "EVMPermitAdapter",
    "PermitResult",
    "SignPermitResponse",
    "TokenPermitInput",
]
