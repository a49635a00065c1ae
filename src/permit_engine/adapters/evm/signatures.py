"""
EVM Permit Signing Helpers

Build the EIP-712 payload for one permit shape, sign it through a
``TypedDataSigner`` and encode the router ``permit`` bytes.  Nonces are
resolved by the caller (``NonceSequencer`` / ``CapabilityProber``); these
helpers make no RPC calls of their own.

Exported helpers
----------------
sign_typed
    Sign any typed-data container from ``standards`` with a ``TypedDataSigner``.

sign_eip2612_permit
    Token-native ``permit`` under the token's (or a custom) domain.

sign_permit2_single / sign_permit2_witness_transfer / sign_permit2_batch
    The three Permit2 shapes, each returning a ``PermitResult``.

build_gasless_intent_typed_data / sign_gasless_intent_typed_data
    DZapVerifier intents for relayed execution.
"""

from typing import Sequence

from ...schemas.bases import PermitMode, StatusCode, TxnStatus
from ...schemas.versions import ContractVersion, DZapService
from ...utils import logger
from .constants import (
    GASLESS_DOMAIN_NAME,
    GASLESS_DOMAIN_SALT,
    GASLESS_DOMAIN_VERSION,
    MAX_UINT160,
    get_permit2_address,
)
from .encoders import encode_permit_payload
from .schemas import Eip2612PermitData, GaslessIntent, PermitResult
from .signers import TypedDataSigner
from .standards import (
    EIP2612PermitTypedData,
    EIP712Domain,
    GaslessIntentTypedData,
    Permit2BatchWitnessTransferTypedData,
    Permit2PermitSingleTypedData,
    Permit2WitnessTransferTypedData,
    TokenPermission,
    WitnessData,
)


async def sign_typed(signer: TypedDataSigner, account: str, typed_data) -> str:
    """
    Sign a typed-data container.

    Args:
        signer:     Adapter returned by ``as_typed_data_signer``.
        account:    Address expected to sign.
        typed_data: Any container from ``standards``.

    Returns:
        0x-prefixed hex signature.
    """
    return await signer.sign_typed_data(
        domain=typed_data.domain().to_dict(),
        types=typed_data.message_types(),
        message=typed_data.message(),
        account=account,
        primary_type=typed_data.primary_type,
    )


def _success(mode: PermitMode, permit_data: str, nonce: int, deadline: int) -> PermitResult:
    return PermitResult(
        status=TxnStatus.SUCCESS,
        code=StatusCode.SUCCESS,
        mode=mode,
        permit_data=permit_data,
        nonce=nonce,
        deadline=deadline,
    )


# ---------------------------------------------------------------------------
# EIP-2612
# ---------------------------------------------------------------------------

def build_eip2612_typed_data(
    *,
    chain_id: int,
    token: str,
    owner: str,
    spender: str,
    amount: int,
    deadline: int,
    permit_data: Eip2612PermitData,
) -> EIP2612PermitTypedData:
    if permit_data.domain:
        domain = EIP712Domain.from_dict(permit_data.domain)
    else:
        domain = EIP712Domain(
            name=permit_data.name,
            version=permit_data.version,
            chainId=chain_id,
            verifyingContract=token,
        )
    return EIP2612PermitTypedData(
        eip712_domain=domain,
        owner=owner,
        spender=spender,
        value=amount,
        nonce=permit_data.nonce,
        deadline=deadline,
    )


async def sign_eip2612_permit(
    *,
    signer: TypedDataSigner,
    account: str,
    chain_id: int,
    token: str,
    spender: str,
    amount: int,
    deadline: int,
    permit_data: Eip2612PermitData,
    contract_version: ContractVersion,
    service: DZapService,
) -> PermitResult:
    """
    Sign an EIP-2612 ``permit`` and encode it for the router.

    The reported nonce is the token's ``nonces(owner)`` value committed to the
    signature.
    """
    typed_data = build_eip2612_typed_data(
        chain_id=chain_id,
        token=token,
        owner=account,
        spender=spender,
        amount=amount,
        deadline=deadline,
        permit_data=permit_data,
    )
    signature = await sign_typed(signer, account, typed_data)
    encoded = encode_permit_payload(
        mode=PermitMode.EIP2612_PERMIT,
        contract_version=contract_version,
        service=service,
        signature=signature,
        deadline=deadline,
        amount=amount,
        owner=account,
        spender=spender,
    )
    return _success(PermitMode.EIP2612_PERMIT, encoded, permit_data.nonce, deadline)


# ---------------------------------------------------------------------------
# Permit2
# ---------------------------------------------------------------------------

async def sign_permit2_single(
    *,
    signer: TypedDataSigner,
    account: str,
    chain_id: int,
    token: str,
    spender: str,
    amount: int,
    nonce: int,
    deadline: int,
    expiration: int,
    contract_version: ContractVersion,
    service: DZapService,
) -> PermitResult:
    """
    Sign a Permit2 ``PermitSingle`` allowance.

    ``amount`` is capped at ``uint160``, the width of a Permit2 allowance.
    """
    amount = min(amount, MAX_UINT160)
    typed_data = Permit2PermitSingleTypedData(
        chain_id=chain_id,
        verifying_contract=get_permit2_address(chain_id),
        spender=spender,
        token=token,
        amount=amount,
        expiration=expiration,
        nonce=nonce,
        sig_deadline=deadline,
    )
    signature = await sign_typed(signer, account, typed_data)
    encoded = encode_permit_payload(
        mode=PermitMode.PERMIT_SINGLE,
        contract_version=contract_version,
        service=service,
        signature=signature,
        deadline=deadline,
        nonce=nonce,
        expiration=expiration,
        amount=amount,
    )
    return _success(PermitMode.PERMIT_SINGLE, encoded, nonce, deadline)


async def sign_permit2_witness_transfer(
    *,
    signer: TypedDataSigner,
    account: str,
    chain_id: int,
    token: str,
    spender: str,
    amount: int,
    nonce: int,
    deadline: int,
    witness: WitnessData,
    contract_version: ContractVersion,
    service: DZapService,
) -> PermitResult:
    typed_data = Permit2WitnessTransferTypedData(
        chain_id=chain_id,
        verifying_contract=get_permit2_address(chain_id),
        spender=spender,
        token=token,
        amount=amount,
        nonce=nonce,
        deadline=deadline,
        witness=witness,
    )
    signature = await sign_typed(signer, account, typed_data)
    encoded = encode_permit_payload(
        mode=PermitMode.PERMIT_WITNESS_TRANSFER_FROM,
        contract_version=contract_version,
        service=service,
        signature=signature,
        deadline=deadline,
        nonce=nonce,
    )
    return _success(PermitMode.PERMIT_WITNESS_TRANSFER_FROM, encoded, nonce, deadline)


async def sign_permit2_batch(
    *,
    signer: TypedDataSigner,
    account: str,
    chain_id: int,
    spender: str,
    permitted: Sequence[TokenPermission],
    nonce: int,
    deadline: int,
    witness: WitnessData,
    contract_version: ContractVersion,
    service: DZapService,
) -> PermitResult:
    """One signature and one nonce covering every token in ``permitted``."""
    typed_data = Permit2BatchWitnessTransferTypedData(
        chain_id=chain_id,
        verifying_contract=get_permit2_address(chain_id),
        spender=spender,
        permitted=list(permitted),
        nonce=nonce,
        deadline=deadline,
        witness=witness,
    )
    signature = await sign_typed(signer, account, typed_data)
    encoded = encode_permit_payload(
        mode=PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM,
        contract_version=contract_version,
        service=service,
        signature=signature,
        deadline=deadline,
        nonce=nonce,
        permitted=[(p.token, p.amount) for p in permitted],
    )
    logger.debug(f"Signed Permit2 batch of {len(permitted)} tokens with nonce {nonce}")
    return _success(PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM, encoded, nonce, deadline)


# ---------------------------------------------------------------------------
# Gasless intents (DZapVerifier)
# ---------------------------------------------------------------------------

def gasless_domain(chain_id: int, verifying_contract: str) -> EIP712Domain:
    return EIP712Domain(
        name=GASLESS_DOMAIN_NAME,
        version=GASLESS_DOMAIN_VERSION,
        chainId=chain_id,
        verifyingContract=verifying_contract,
        salt=GASLESS_DOMAIN_SALT,
    )


def build_gasless_intent_typed_data(
    *,
    chain_id: int,
    verifier: str,
    user: str,
    nonce: int,
    deadline: int,
    intent: GaslessIntent,
) -> GaslessIntentTypedData:
    return GaslessIntentTypedData(
        eip712_domain=gasless_domain(chain_id, verifier),
        tx_id=intent.tx_id,
        user=user,
        nonce=nonce,
        deadline=deadline,
        executor_fees_hash=intent.executor_fees_hash,
        **intent.leg_hashes(),
    )


async def sign_gasless_intent_typed_data(
    *,
    signer: TypedDataSigner,
    account: str,
    chain_id: int,
    verifier: str,
    nonce: int,
    deadline: int,
    intent: GaslessIntent,
) -> PermitResult:
    """
    Sign a gasless intent under the router's DZapVerifier domain.

    ``permit_data`` carries the raw signature: the relayer submits it next to
    the intent fields rather than as a router ``permit`` argument.
    """
    typed_data = build_gasless_intent_typed_data(
        chain_id=chain_id,
        verifier=verifier,
        user=account,
        nonce=nonce,
        deadline=deadline,
        intent=intent,
    )
    signature = await sign_typed(signer, account, typed_data)
    return _success(PermitMode.EIP2612_PERMIT, signature, nonce, deadline)
