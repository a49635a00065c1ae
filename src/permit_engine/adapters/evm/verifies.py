"""
EVM Permit Verification Helpers

Off-chain checks for payloads produced by the engine, useful to a relayer or
router backend before submitting a transaction.

Current coverage
----------------
recover_typed_data_signer
    Recover the address that signed any typed-data container from
    ``standards`` (EIP-2612, Permit2 shapes, DZapVerifier intents).

verify_typed_data_signature
    ``recover_typed_data_signer`` compared case-insensitively to an expected
    owner; ``False`` on any recovery failure.

validate_permit_data
    Decode router ``permit`` bytes, then check the deadline and the on-chain
    nonce the payload depends on:

    * EIP-2612:           ``nonces(owner)`` on the token equals ``expected_nonce``
    * PermitSingle:       Permit2 ``allowance(owner, token, spender)`` nonce equals
                          the signed nonce and the expiration is in the future
    * Witness / batch:    the signed bit of Permit2's ``nonceBitmap`` is unset
"""

import time
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_typed_data

from ...engine.exceptions import EncodingError
from ...schemas.bases import PermitMode
from ...schemas.versions import ContractVersion, DZapService
from ...utils import logger
from .constants import MAX_UINT48, get_permit2_address
from .encoders import HexLike, decode_permit_data
from .ERC20_ABI import get_eip2612_probe_abi, get_permit2_abi
from .readers import ContractCall, ContractReader
from .schemas import PermitValidationResult, PermitValidationStatus


def recover_typed_data_signer(typed_data, signature: HexLike) -> str:
    """
    Recover the signer of a typed-data container.

    The payload is hashed from the same ``domain`` / ``message_types`` /
    ``message`` triple the signer adapters sign, so the recovered address
    matches what ``LocalAccount.sign_typed_data`` produced.

    Args:
        typed_data: Any container from ``standards``.
        signature:  65-byte signature (hex or bytes).

    Returns:
        Checksummed signer address.
    """
    signable = encode_typed_data(
        domain_data=typed_data.domain().to_dict(),
        message_types=typed_data.message_types(),
        message_data=typed_data.message(),
    )
    return Account.recover_message(signable, signature=signature)


def verify_typed_data_signature(typed_data, signature: HexLike, owner: str) -> bool:
    try:
        recovered = recover_typed_data_signer(typed_data, signature)
    except Exception as e:
        logger.debug(f"Typed data signature recovery failed: {e}")
        return False
    return recovered.lower() == owner.lower()


async def validate_permit_data(
    *,
    permit_data: HexLike,
    reader: ContractReader,
    chain_id: int,
    token: str,
    owner: str,
    spender: str,
    contract_version: ContractVersion = ContractVersion.V2,
    service: DZapService = DZapService.TRADE,
    expected_nonce: Optional[int] = None,
    current_time: Optional[int] = None,
) -> PermitValidationResult:
    """
    Check that a router ``permit`` payload can still be consumed.

    Args:
        permit_data:      Hex payload returned by ``EVMPermitAdapter.sign``.
        reader:           ``ContractReader`` for the on-chain nonce reads.
        chain_id:         Chain of the router.
        token:            Token the payload authorizes.
        owner:            Token owner that signed.
        spender:          Router address.
        contract_version: Router generation used to pick the layout.
        service:          Router service used to pick the layout.
        expected_nonce:   EIP-2612 nonce committed to the signature.  The v2
                          EIP-2612 layout carries no nonce, so without it the
                          on-chain nonce is only reported.
        current_time:     Unix timestamp; defaults to ``int(time.time())``.

    Returns:
        ``PermitValidationResult``; ``is_valid`` is true for ``VALID`` and
        ``PLACEHOLDER``.
    """
    now = int(time.time()) if current_time is None else current_time
    try:
        decoded = decode_permit_data(permit_data, contract_version=contract_version, service=service)
    except EncodingError as e:
        return PermitValidationResult(status=PermitValidationStatus.MALFORMED, message=str(e))

    mode, fields = decoded.mode, decoded.fields
    if decoded.is_placeholder:
        return PermitValidationResult(status=PermitValidationStatus.PLACEHOLDER, mode=mode)

    def result(status: PermitValidationStatus, message: str = "", on_chain_nonce: Optional[int] = None):
        return PermitValidationResult(
            status=status, mode=mode, fields=fields, on_chain_nonce=on_chain_nonce, message=message
        )

    if fields["deadline"] < now:
        return result(PermitValidationStatus.EXPIRED, f"Deadline {fields['deadline']} is before {now}")

    permit2_address = get_permit2_address(chain_id)

    if mode == PermitMode.EIP2612_PERMIT:
        res = await reader.read_one(chain_id, ContractCall(token, get_eip2612_probe_abi(), "nonces", (owner,)))
        if not res.status:
            return result(PermitValidationStatus.BLOCKCHAIN_ERROR, f"nonces(owner) failed: {res.error}")
        on_chain = int(res.result)
        if expected_nonce is not None and on_chain != expected_nonce:
            return result(
                PermitValidationStatus.NONCE_MISMATCH,
                f"Token nonce is {on_chain}, permit signed for {expected_nonce}",
                on_chain,
            )
        return result(PermitValidationStatus.VALID, on_chain_nonce=on_chain)

    if mode == PermitMode.PERMIT_SINGLE:
        expiration = fields["expiration"]
        if expiration != MAX_UINT48 and expiration < now:
            return result(PermitValidationStatus.EXPIRED, f"Allowance expiration {expiration} is before {now}")
        res = await reader.read_one(
            chain_id, ContractCall(permit2_address, get_permit2_abi(), "allowance", (owner, token, spender))
        )
        if not res.status:
            return result(PermitValidationStatus.BLOCKCHAIN_ERROR, f"Permit2 allowance failed: {res.error}")
        on_chain = int(res.result[2])
        if on_chain != fields["nonce"]:
            return result(
                PermitValidationStatus.NONCE_MISMATCH,
                f"Permit2 allowance nonce is {on_chain}, permit signed for {fields['nonce']}",
                on_chain,
            )
        return result(PermitValidationStatus.VALID, on_chain_nonce=on_chain)

    nonce = fields["nonce"]
    word, bit = nonce >> 8, nonce & 0xFF
    res = await reader.read_one(
        chain_id, ContractCall(permit2_address, get_permit2_abi(), "nonceBitmap", (owner, word))
    )
    if not res.status:
        return result(PermitValidationStatus.BLOCKCHAIN_ERROR, f"nonceBitmap failed: {res.error}")
    if int(res.result) >> bit & 1:
        return result(PermitValidationStatus.NONCE_USED, f"Permit2 nonce {nonce} already used")
    return result(PermitValidationStatus.VALID)
