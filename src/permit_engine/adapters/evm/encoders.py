"""
Permit payload encoding.

The router's ``permit`` argument is ``abi.encode(uint8 mode, bytes data)``.
``data`` depends on the permit mode and on whether the target is a legacy v1
trade router (v1 outside the zap service):

====================================  =========  =================================================
mode                                  v1 layout  inner ``data``
====================================  =========  =================================================
PermitBatchWitnessTransferFrom        any        ``((address,uint256)[] permitted, uint256 nonce,
                                                 uint256 deadline) permit, bytes signature``
PermitWitnessTransferFrom             any        ``uint256 nonce, uint256 deadline, bytes signature``
PermitSingle                          yes        ``uint160 amount, uint48 nonce, uint48 expiration,
                                                 uint256 sigDeadline, bytes signature``
PermitSingle                          no         ``uint48 nonce, uint48 expiration,
                                                 uint256 sigDeadline, bytes signature``
EIP2612Permit                         yes        ``address owner, address spender, uint256 amount,
                                                 uint256 deadline, uint8 v, bytes32 r, bytes32 s``
EIP2612Permit                         no         ``uint256 deadline, uint8 v, bytes32 r, bytes32 s``
====================================  =========  =================================================

``decode_permit_data`` reverses the table for inspection and validation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError
from eth_utils import to_bytes, to_checksum_address, to_hex

from ...engine.exceptions import EncodingError, UnsupportedPermitTypeError
from ...schemas.bases import PermitMode
from ...schemas.versions import ContractVersion, DZapService, uses_v1_permit_layout
from .constants import DZapPermitMode, DZapV1PermitMode

HexLike = Union[str, bytes]

_BATCH_PERMIT_TYPE = "((address,uint256)[],uint256,uint256)"

_V2_MODE_BYTES = {
    PermitMode.DEFAULT: DZapPermitMode.PERMIT,
    PermitMode.EIP2612_PERMIT: DZapPermitMode.PERMIT,
    PermitMode.PERMIT_SINGLE: DZapPermitMode.PERMIT2_APPROVE,
    PermitMode.PERMIT_WITNESS_TRANSFER_FROM: DZapPermitMode.PERMIT2_WITNESS_TRANSFER,
    PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM: DZapPermitMode.BATCH_PERMIT2_WITNESS_TRANSFER,
}


# ---------------------------------------------------------------------------
# Signature helpers
# ---------------------------------------------------------------------------

@dataclass
class SplitSignature:
    v: int
    r: bytes
    s: bytes


def _as_bytes(value: HexLike) -> bytes:
    return bytes(value) if isinstance(value, (bytes, bytearray)) else to_bytes(hexstr=value)


def split_signature(signature: HexLike) -> SplitSignature:
    """
    Split a 65-byte ``r || s || v`` or 64-byte EIP-2098 compact signature.

    ``v`` is normalised to 27/28.

    Raises:
        EncodingError: For any other length.
    """
    raw = _as_bytes(signature)
    if len(raw) == 65:
        r, s, v = raw[:32], raw[32:64], raw[64]
        if v < 27:
            v += 27
    elif len(raw) == 64:
        r, vs = raw[:32], int.from_bytes(raw[32:], "big")
        v = 27 + (vs >> 255)
        s = (vs & ((1 << 255) - 1)).to_bytes(32, "big")
    else:
        raise EncodingError(f"Invalid signature length: {len(raw)} bytes")
    if v not in (27, 28):
        raise EncodingError(f"Invalid recovery ID: {v}")
    return SplitSignature(v=v, r=r, s=s)


# ---------------------------------------------------------------------------
# Mode byte
# ---------------------------------------------------------------------------

def get_permit_mode_byte(
    mode: PermitMode,
    contract_version: ContractVersion,
    service: DZapService,
) -> int:
    """
    On-chain dispatch discriminator for ``mode``.

    Legacy v1 trade routers only know Permit2 approvals, so every Permit2
    shape maps to their ``PERMIT2_APPROVE``.

    Raises:
        UnsupportedPermitTypeError: For ``AutoPermit`` (must be resolved first).
    """
    mode = PermitMode(mode)
    if mode == PermitMode.AUTO_PERMIT:
        raise UnsupportedPermitTypeError("AutoPermit must be resolved before encoding")
    if uses_v1_permit_layout(contract_version, service):
        if mode.is_permit2:
            return int(DZapV1PermitMode.PERMIT2_APPROVE)
        return int(DZapV1PermitMode.PERMIT)
    return int(_V2_MODE_BYTES[mode])


def wrap_permit_data(mode_byte: int, inner: bytes) -> str:
    return to_hex(encode(["uint8", "bytes"], [mode_byte, inner]))


# ---------------------------------------------------------------------------
# Encoder
# ---------------------------------------------------------------------------

def encode_permit_payload(
    *,
    mode: PermitMode,
    contract_version: ContractVersion,
    service: DZapService,
    signature: HexLike,
    deadline: int,
    nonce: int = 0,
    expiration: Optional[int] = None,
    amount: Optional[int] = None,
    owner: Optional[str] = None,
    spender: Optional[str] = None,
    permitted: Optional[Sequence[Tuple[str, int]]] = None,
) -> str:
    """
    ABI-encode a signed permit into the router's ``permit`` bytes.

    Args:
        mode:             Resolved permit mode (not ``AutoPermit``/``Default``).
        contract_version: Target router version.
        service:          Target DZap service.
        signature:        Hex or raw signature bytes.
        deadline:         Signature deadline (``sigDeadline`` for PermitSingle).
        nonce:            Nonce committed to the signature.
        expiration:       PermitSingle allowance expiration.
        amount:           Signed amount (PermitSingle v1, EIP-2612 v1).
        owner:            Token owner (EIP-2612 v1).
        spender:          Router address (EIP-2612 v1).
        permitted:        ``(token, amount)`` pairs for batch permits.

    Returns:
        0x-prefixed hex of ``abi.encode(uint8 mode, bytes data)``.

    Raises:
        UnsupportedPermitTypeError: For modes without a signed layout.
        EncodingError: When a required value is missing or out of range.
    """
    mode = PermitMode(mode)
    v1_layout = uses_v1_permit_layout(contract_version, service)
    if v1_layout and mode in (PermitMode.PERMIT_WITNESS_TRANSFER_FROM, PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM):
        raise UnsupportedPermitTypeError(f"{mode.value} is not supported by v1 {DZapService(service).value} routers")
    try:
        sig = _as_bytes(signature)
        if mode == PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM:
            if not permitted:
                raise EncodingError("Batch permit requires permitted tokens")
            inner = encode(
                [_BATCH_PERMIT_TYPE, "bytes"],
                [([(to_checksum_address(t), int(a)) for t, a in permitted], nonce, deadline), sig],
            )
        elif mode == PermitMode.PERMIT_WITNESS_TRANSFER_FROM:
            inner = encode(["uint256", "uint256", "bytes"], [nonce, deadline, sig])
        elif mode == PermitMode.PERMIT_SINGLE:
            if expiration is None:
                raise EncodingError("PermitSingle requires expiration")
            if v1_layout:
                if amount is None:
                    raise EncodingError("v1 PermitSingle requires amount")
                inner = encode(
                    ["uint160", "uint48", "uint48", "uint256", "bytes"],
                    [amount, nonce, expiration, deadline, sig],
                )
            else:
                inner = encode(["uint48", "uint48", "uint256", "bytes"], [nonce, expiration, deadline, sig])
        elif mode == PermitMode.EIP2612_PERMIT:
            split = split_signature(sig)
            if v1_layout:
                if owner is None or spender is None or amount is None:
                    raise EncodingError("v1 EIP-2612 permit requires owner, spender and amount")
                inner = encode(
                    ["address", "address", "uint256", "uint256", "uint8", "bytes32", "bytes32"],
                    [to_checksum_address(owner), to_checksum_address(spender), amount, deadline,
                     split.v, split.r, split.s],
                )
            else:
                inner = encode(["uint256", "uint8", "bytes32", "bytes32"], [deadline, split.v, split.r, split.s])
        else:
            raise UnsupportedPermitTypeError(f"No signed payload layout for {mode.value}")
    except (AbiEncodingError, TypeError, ValueError) as e:
        raise EncodingError(f"Failed to encode {mode.value} permit: {e}") from e

    return wrap_permit_data(get_permit_mode_byte(mode, contract_version, service), inner)


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

@dataclass
class DecodedPermitData:
    mode_byte: int
    mode: Optional[PermitMode]
    fields: Dict[str, Any]

    @property
    def is_placeholder(self) -> bool:
        return not self.fields


def _decode_inner(mode: PermitMode, inner: bytes, v1_layout: bool) -> Dict[str, Any]:
    if mode == PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM:
        (permitted, nonce, deadline), sig = decode([_BATCH_PERMIT_TYPE, "bytes"], inner)
        return {
            "permitted": [(to_checksum_address(t), a) for t, a in permitted],
            "nonce": nonce,
            "deadline": deadline,
            "signature": to_hex(sig),
        }
    if mode == PermitMode.PERMIT_WITNESS_TRANSFER_FROM:
        nonce, deadline, sig = decode(["uint256", "uint256", "bytes"], inner)
        return {"nonce": nonce, "deadline": deadline, "signature": to_hex(sig)}
    if mode == PermitMode.PERMIT_SINGLE:
        if v1_layout:
            amount, nonce, expiration, deadline, sig = decode(
                ["uint160", "uint48", "uint48", "uint256", "bytes"], inner
            )
            return {"amount": amount, "nonce": nonce, "expiration": expiration,
                    "deadline": deadline, "signature": to_hex(sig)}
        nonce, expiration, deadline, sig = decode(["uint48", "uint48", "uint256", "bytes"], inner)
        return {"nonce": nonce, "expiration": expiration, "deadline": deadline, "signature": to_hex(sig)}
    if v1_layout:
        owner, spender, amount, deadline, v, r, s = decode(
            ["address", "address", "uint256", "uint256", "uint8", "bytes32", "bytes32"], inner
        )
        return {"owner": to_checksum_address(owner), "spender": to_checksum_address(spender),
                "amount": amount, "deadline": deadline, "v": v, "r": to_hex(r), "s": to_hex(s)}
    deadline, v, r, s = decode(["uint256", "uint8", "bytes32", "bytes32"], inner)
    return {"deadline": deadline, "v": v, "r": to_hex(r), "s": to_hex(s)}


def decode_permit_data(
    permit_data: HexLike,
    *,
    contract_version: ContractVersion = ContractVersion.V2,
    service: DZapService = DZapService.TRADE,
) -> DecodedPermitData:
    """
    Decode router ``permit`` bytes back into their mode and fields.

    Placeholder payloads (empty inner bytes) decode to ``fields == {}``.

    Raises:
        EncodingError: On malformed bytes or an unknown mode byte.
    """
    v1_layout = uses_v1_permit_layout(contract_version, service)
    try:
        mode_byte, inner = decode(["uint8", "bytes"], _as_bytes(permit_data))
    except (DecodingError, ValueError) as e:
        raise EncodingError(f"Malformed permit data: {e}") from e

    if v1_layout:
        by_byte: Dict[int, PermitMode] = {
            int(DZapV1PermitMode.PERMIT): PermitMode.EIP2612_PERMIT,
            int(DZapV1PermitMode.PERMIT2_APPROVE): PermitMode.PERMIT_SINGLE,
        }
    else:
        by_byte = {
            int(DZapPermitMode.PERMIT): PermitMode.EIP2612_PERMIT,
            int(DZapPermitMode.PERMIT2_APPROVE): PermitMode.PERMIT_SINGLE,
            int(DZapPermitMode.PERMIT2_WITNESS_TRANSFER): PermitMode.PERMIT_WITNESS_TRANSFER_FROM,
            int(DZapPermitMode.BATCH_PERMIT2_WITNESS_TRANSFER): PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM,
        }

    mode = by_byte.get(mode_byte)
    if mode is None:
        raise EncodingError(f"Unknown permit mode byte: {mode_byte}")
    if not inner:
        return DecodedPermitData(mode_byte=mode_byte, mode=mode, fields={})
    try:
        fields = _decode_inner(mode, inner, v1_layout)
    except (DecodingError, ValueError) as e:
        raise EncodingError(f"Malformed {mode.value} permit payload: {e}") from e
    return DecodedPermitData(mode_byte=mode_byte, mode=mode, fields=fields)
