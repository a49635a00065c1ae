from enum import Enum


class ContractVersion(str, Enum):
    """Router contract generation the permit payload is encoded for."""
    V1 = "v1"
    V2 = "v2"


class DZapService(str, Enum):
    TRADE = "trade"
    SWAP = "swap"
    BRIDGE = "bridge"
    ZAP = "zap"
    DCA = "dca"


class GaslessTxType(str, Enum):
    SWAP = "swap"
    BRIDGE = "bridge"


def uses_v1_permit_layout(contract_version: ContractVersion, service: DZapService) -> bool:
    """
    Legacy v1 routers outside the zap service only understand the v1 layouts
    (``PermitSingle`` and long-form EIP-2612).
    """
    return ContractVersion(contract_version) == ContractVersion.V1 and DZapService(service) != DZapService.ZAP
