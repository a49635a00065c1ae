"""
EVM Permit Adapter

Orchestrates the whole signing pipeline for EVM routers:

    strategy selection -> nonce resolution -> typed data -> signer -> encoder

``EVMPermitAdapter.sign`` handles standard (non-gasless) permits, either as a
single Permit2 batch or token by token.  ``sign_gasless_intent`` binds the
authorization to a pending transaction id for relayed execution.
``sign_custom_typed_data`` signs caller-built typed data through the same
signer adapters and error mapping.

Per-token signing is strictly sequential: a witness-transfer token at
position ``i > 0`` derives its nonce from the nonce resolved at position 0,
so the loop threads that value through an explicit ``_PermitLoopState``.
"""

import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ...engine.exceptions import (
    InvalidWitnessDataError,
    UnsupportedPermitTypeError,
    parse_error,
)
from ...schemas.bases import PermitMode, StatusCode, TxnStatus
from ...schemas.versions import ContractVersion, DZapService, GaslessTxType
from ...utils import logger
from ..bases import PermitAdapterFactory
from .cache import TTLCache
from .capabilities import CapabilityProber
from .constants import (
    DEFAULT_PERMIT2_DATA,
    DEFAULT_PERMIT_DATA,
    MAX_UINT256,
    MAX_UINT48,
    EngineConfig,
    get_default_deadline,
)
from .nonces import NonceSequencer
from .readers import ContractReader, Web3ContractReader
from .schemas import (
    BatchSignaturePayload,
    CustomTypedDataResult,
    GaslessIntent,
    PermitHint,
    PermitResult,
    SignedToken,
    SignPermitResponse,
    StandardIntent,
    TokenPermitInput,
    TokenSignaturePayload,
    build_gasless_intent,
)
from .signatures import (
    sign_eip2612_permit,
    sign_gasless_intent_typed_data,
    sign_permit2_batch,
    sign_permit2_single,
    sign_permit2_witness_transfer,
)
from .signers import TypedDataSigner, as_typed_data_signer, resolve_account
from .standards import TokenPermission
from .strategy import PermitStrategy, resolve_token_mode, select_strategy

TokenLike = Union[TokenPermitInput, Dict[str, Any]]
SignatureCallback = Callable[[TokenSignaturePayload], Union[Any, Awaitable[Any]]]
BatchSignatureCallback = Callable[[BatchSignaturePayload], Union[Any, Awaitable[Any]]]


@dataclass
class _PermitLoopState:
    """Values carried from token 0 to the tokens after it."""
    first_token_nonce: Optional[int] = None
    first_token_mode: Optional[PermitMode] = None


def _placeholder(mode: PermitMode) -> PermitResult:
    permit_data = DEFAULT_PERMIT2_DATA if mode.is_permit2 else DEFAULT_PERMIT_DATA
    return PermitResult(
        status=TxnStatus.SUCCESS,
        code=StatusCode.SUCCESS,
        mode=mode,
        permit_data=permit_data,
        nonce=0,
    )


def _amount_or_max(amount: Optional[int]) -> int:
    return MAX_UINT256 if amount is None else amount


def _total_amount(tokens: Sequence[TokenPermitInput]) -> int:
    if any(token.amount is None for token in tokens):
        return MAX_UINT256
    return sum(token.amount for token in tokens)


async def _notify(callback: Optional[Callable], payload: Any) -> Optional[PermitResult]:
    """
    Run a progress callback.

    Returns a failure result when the callback reports a non-success status
    (as an object with ``status``/``code`` or a dict with those keys).
    """
    if callback is None:
        return None
    outcome = callback(payload)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    if outcome is None:
        return None
    if isinstance(outcome, dict):
        status, code = outcome.get("status"), outcome.get("code")
    else:
        status, code = getattr(outcome, "status", None), getattr(outcome, "code", None)
    if status is None or TxnStatus(status) == TxnStatus.SUCCESS:
        return None
    return PermitResult.failure(
        TxnStatus(status),
        StatusCode(code) if code is not None else StatusCode.ERROR,
        "Signature callback aborted the request",
    )


class EVMPermitAdapter(PermitAdapterFactory):
    """
    EVM permit adapter.

    Collaborators are injectable so tests can run without a node:

    Attributes:
        config:  ``EngineConfig`` (defaults to ``EngineConfig.from_env()``)
        reader:  ``ContractReader`` for every on-chain view
        prober:  ``CapabilityProber`` sharing ``cache``
        nonces:  ``NonceSequencer``

    Example:
        adapter = EVMPermitAdapter()
        response = await adapter.sign(
            tokens=[{"address": USDC, "amount": 1_000_000}],
            chain_id=1,
            spender=ROUTER,
            service=DZapService.TRADE,
            contract_version=ContractVersion.V2,
            signer=Account.from_key(private_key),
        )
        if response.is_success():
            permit = response.tokens[0].permit_data
    """

    def __init__(
        self,
        reader: Optional[ContractReader] = None,
        *,
        config: Optional[EngineConfig] = None,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config if config is not None else EngineConfig.from_env()
        self.reader = reader if reader is not None else Web3ContractReader(self.config)
        self._clock = clock
        self.prober = CapabilityProber(self.reader, config=self.config, cache=cache, clock=clock)
        self.nonces = NonceSequencer(self.reader)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check_eip2612_support(
        self,
        *,
        chain_id: int,
        token: str,
        permit_hint: Optional[PermitHint] = None,
    ) -> bool:
        """Light capability probe, for callers choosing between allowance modes."""
        return await self.prober.check_support(chain_id=chain_id, token=token, permit_hint=permit_hint)

    async def sign(
        self,
        *,
        tokens: Sequence[TokenLike],
        chain_id: int,
        spender: str,
        service: DZapService,
        contract_version: ContractVersion,
        signer: Any,
        mode: PermitMode = PermitMode.AUTO_PERMIT,
        deadline: Optional[int] = None,
        account: Optional[str] = None,
        batch_allowed: Optional[bool] = None,
        signature_callback: Optional[SignatureCallback] = None,
        batch_signature_callback: Optional[BatchSignatureCallback] = None,
    ) -> SignPermitResponse:
        """
        Produce router ``permit`` payloads for ``tokens``.

        Args:
            tokens: ``TokenPermitInput`` objects or dicts with ``address``,
                    ``amount`` and optional ``permit_hint``.  ``index`` is
                    set from the list position.
            chain_id: Chain the router lives on.
            spender: Router address.
            service: Router service (``zap`` keeps v2 layouts on v1 routers).
            contract_version: Router generation.
            signer: ``LocalAccount``, wallet client or ``TypedDataSigner``.
            mode: Requested mode; ``AutoPermit`` lets the engine choose.
            deadline: Signature deadline; defaults to now + configured expiry.
            account: Signing address; defaults to the signer's address.
            batch_allowed: Overrides ``EngineConfig.batch_allowed``.
            signature_callback: Called after each non-native token.
            batch_signature_callback: Called once after a batch signature.

        Returns:
            SignPermitResponse: ``rejected``/``error`` responses carry no
            payloads; the first failure stops the loop.

        Raises:
            SignerError: If ``signer`` matches no supported shape.
        """
        token_inputs = self._coerce_tokens(tokens)
        mode = PermitMode(mode)
        if not token_inputs:
            return SignPermitResponse(status=TxnStatus.SUCCESS, code=StatusCode.SUCCESS, mode=mode)

        typed_signer = as_typed_data_signer(signer)
        strategy = select_strategy(
            tokens=token_inputs,
            mode=mode,
            contract_version=contract_version,
            service=service,
            batch_allowed=self.config.batch_allowed if batch_allowed is None else batch_allowed,
        )
        logger.info(
            f"Permit strategy on chain {chain_id}: batch={strategy.use_batch} "
            f"one_to_many={strategy.one_to_many} mode={strategy.token_mode.value}"
        )
        deadline = deadline or get_default_deadline(self.config.signature_expiry_secs, self._clock)

        try:
            owner = await resolve_account(typed_signer, account)
            if strategy.use_batch:
                return await self._sign_batch(
                    tokens=token_inputs,
                    chain_id=chain_id,
                    spender=spender,
                    service=service,
                    contract_version=contract_version,
                    signer=typed_signer,
                    owner=owner,
                    deadline=deadline,
                    intent=StandardIntent(),
                    callback=batch_signature_callback,
                )
            return await self._sign_individual(
                tokens=token_inputs,
                chain_id=chain_id,
                spender=spender,
                service=service,
                contract_version=contract_version,
                signer=typed_signer,
                owner=owner,
                deadline=deadline,
                strategy=strategy,
                callback=signature_callback,
            )
        except InvalidWitnessDataError:
            raise
        except Exception as e:
            status, code, message = parse_error(e)
            logger.error(f"Permit signing failed on chain {chain_id}: {message}")
            return SignPermitResponse(status=status, code=code, message=message, mode=strategy.token_mode)

    async def sign_gasless_intent(
        self,
        *,
        tokens: Sequence[TokenLike],
        chain_id: int,
        spender: str,
        service: DZapService,
        contract_version: ContractVersion,
        signer: Any,
        tx_id: str,
        executor_fees_hash: str,
        tx_type: GaslessTxType,
        swap_data_hash: Optional[str] = None,
        adapter_data_hash: Optional[str] = None,
        mode: PermitMode = PermitMode.AUTO_PERMIT,
        deadline: Optional[int] = None,
        account: Optional[str] = None,
    ) -> PermitResult:
        """
        Sign a gasless intent for a pending transaction.

        ``mode`` selects the mechanism:

        * ``EIP2612Permit``: DZapVerifier intent signed over the router's own
          domain; ``permit_data`` holds the raw signature and ``nonce`` the
          router's ``getNonce(user)``.
        * ``PermitBatchWitnessTransferFrom`` (also for ``AutoPermit``) or
          ``PermitWitnessTransferFrom``: Permit2 transfer whose witness commits
          to the intent.

        Raises:
            InvalidWitnessDataError: When the hashes required by ``tx_type``
                                     are missing or malformed.
            SignerError: If ``signer`` matches no supported shape.
        """
        intent = build_gasless_intent(
            tx_type=tx_type,
            tx_id=tx_id,
            executor_fees_hash=executor_fees_hash,
            swap_data_hash=swap_data_hash,
            adapter_data_hash=adapter_data_hash,
        )
        token_inputs = self._coerce_tokens(tokens)
        mode = PermitMode(mode)
        if mode == PermitMode.AUTO_PERMIT:
            mode = PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM

        typed_signer = as_typed_data_signer(signer)
        deadline = deadline or get_default_deadline(self.config.signature_expiry_secs, self._clock)
        logger.info(f"Gasless {intent.kind} intent on chain {chain_id} via {mode.value}")

        try:
            owner = await resolve_account(typed_signer, account)
            if mode == PermitMode.EIP2612_PERMIT:
                nonce = await self.nonces.gasless_nonce(chain_id=chain_id, verifier=spender, user=owner)
                return await sign_gasless_intent_typed_data(
                    signer=typed_signer,
                    account=owner,
                    chain_id=chain_id,
                    verifier=spender,
                    nonce=nonce,
                    deadline=deadline,
                    intent=intent,
                )
            if mode == PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM:
                response = await self._sign_batch(
                    tokens=token_inputs,
                    chain_id=chain_id,
                    spender=spender,
                    service=service,
                    contract_version=contract_version,
                    signer=typed_signer,
                    owner=owner,
                    deadline=deadline,
                    intent=intent,
                    callback=None,
                )
                return PermitResult(
                    status=response.status,
                    code=response.code,
                    message=response.message,
                    mode=response.mode,
                    permit_data=response.batch_permit_data,
                    nonce=response.nonce,
                    deadline=response.deadline,
                )
            if mode == PermitMode.PERMIT_WITNESS_TRANSFER_FROM:
                return await self._sign_gasless_witness_transfer(
                    tokens=token_inputs,
                    chain_id=chain_id,
                    spender=spender,
                    service=service,
                    contract_version=contract_version,
                    signer=typed_signer,
                    owner=owner,
                    deadline=deadline,
                    intent=intent,
                )
            raise UnsupportedPermitTypeError(f"{mode.value} cannot carry a gasless intent")
        except InvalidWitnessDataError:
            raise
        except Exception as e:
            status, code, message = parse_error(e)
            logger.error(f"Gasless intent signing failed on chain {chain_id}: {message}")
            return PermitResult.failure(status, code, message, mode=mode)

    async def sign_custom_typed_data(
        self,
        *,
        signer: Any,
        domain: Dict[str, Any],
        types: Dict[str, Any],
        primary_type: str,
        message: Dict[str, Any],
        account: Optional[str] = None,
    ) -> CustomTypedDataResult:
        """
        Sign caller-built EIP-712 typed data through the same signer adapters.

        ``types`` may include ``EIP712Domain``; it is dropped before signing
        because the domain type is derived from ``domain``.

        Raises:
            SignerError: If ``signer`` matches no supported shape.
        """
        typed_signer = as_typed_data_signer(signer)
        message_types = {name: fields for name, fields in types.items() if name != "EIP712Domain"}
        try:
            owner = await resolve_account(typed_signer, account)
            signature = await typed_signer.sign_typed_data(
                domain=domain,
                types=message_types,
                message=message,
                account=owner,
                primary_type=primary_type,
            )
        except Exception as e:
            status, code, reason = parse_error(e)
            logger.error(f"Custom {primary_type} signing failed: {reason}")
            return CustomTypedDataResult(status=status, code=code, message=reason)
        return CustomTypedDataResult(
            status=TxnStatus.SUCCESS,
            code=StatusCode.SUCCESS,
            signature=signature,
            typed_message=message,
        )

    # ------------------------------------------------------------------
    # Batch path
    # ------------------------------------------------------------------

    async def _sign_batch(
        self,
        *,
        tokens: List[TokenPermitInput],
        chain_id: int,
        spender: str,
        service: DZapService,
        contract_version: ContractVersion,
        signer: TypedDataSigner,
        owner: str,
        deadline: int,
        intent: Union[StandardIntent, GaslessIntent],
        callback: Optional[BatchSignatureCallback],
    ) -> SignPermitResponse:
        mode = PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM
        permitted = [
            TokenPermission(token=token.address, amount=_amount_or_max(token.amount))
            for token in tokens
            if not token.is_native
        ]
        if not permitted:
            logger.debug("Batch request holds only native tokens; nothing to sign")
            return SignPermitResponse(
                status=TxnStatus.SUCCESS,
                code=StatusCode.SUCCESS,
                mode=PermitMode.DEFAULT,
                batch_permit_data=DEFAULT_PERMIT_DATA,
                nonce=0,
                deadline=deadline,
            )

        witness = intent.to_witness(owner=owner, spender=spender)
        nonce = await self.nonces.next_bitmap_nonce(chain_id=chain_id, owner=owner)
        result = await sign_permit2_batch(
            signer=signer,
            account=owner,
            chain_id=chain_id,
            spender=spender,
            permitted=permitted,
            nonce=nonce,
            deadline=deadline,
            witness=witness,
            contract_version=contract_version,
            service=service,
        )

        aborted = await _notify(
            callback,
            BatchSignaturePayload(batch_permit_data=result.permit_data, tokens=tokens, mode=mode),
        )
        if aborted is not None:
            return SignPermitResponse(status=aborted.status, code=aborted.code, message=aborted.message, mode=mode)

        return SignPermitResponse(
            status=TxnStatus.SUCCESS,
            code=StatusCode.SUCCESS,
            mode=mode,
            batch_permit_data=result.permit_data,
            nonce=nonce,
            deadline=deadline,
        )

    # ------------------------------------------------------------------
    # Per-token path
    # ------------------------------------------------------------------

    async def _sign_individual(
        self,
        *,
        tokens: List[TokenPermitInput],
        chain_id: int,
        spender: str,
        service: DZapService,
        contract_version: ContractVersion,
        signer: TypedDataSigner,
        owner: str,
        deadline: int,
        strategy: PermitStrategy,
        callback: Optional[SignatureCallback],
    ) -> SignPermitResponse:
        total_amount = _total_amount(tokens)
        state = _PermitLoopState()
        signed: List[SignedToken] = []
        reported_mode = PermitMode.DEFAULT

        for position, token in enumerate(tokens):
            if strategy.one_to_many and position == 0:
                amount = total_amount
            else:
                amount = _amount_or_max(token.amount)

            result = await self._sign_token(
                token=token,
                position=position,
                amount=amount,
                chain_id=chain_id,
                spender=spender,
                service=service,
                contract_version=contract_version,
                signer=signer,
                owner=owner,
                deadline=deadline,
                strategy=strategy,
                state=state,
            )
            if not result.is_success():
                logger.error(f"Permit for {token.address} failed: {result.get_error_message()}")
                return SignPermitResponse(status=result.status, code=result.code, message=result.message, mode=result.mode)

            if position == 0:
                state.first_token_mode = result.mode
                if result.mode == PermitMode.PERMIT_WITNESS_TRANSFER_FROM:
                    state.first_token_nonce = result.nonce
            if result.mode != PermitMode.DEFAULT:
                reported_mode = result.mode

            signed.append(SignedToken(
                address=token.address,
                amount=token.amount,
                index=token.index,
                permit_data=result.permit_data,
                nonce=result.nonce,
                mode=result.mode,
            ))

            if not token.is_native:
                aborted = await _notify(callback, TokenSignaturePayload(
                    permit_data=result.permit_data,
                    src_token=token.address,
                    amount=amount,
                    mode=result.mode,
                ))
                if aborted is not None:
                    return SignPermitResponse(
                        status=aborted.status, code=aborted.code, message=aborted.message, mode=result.mode
                    )

        return SignPermitResponse(
            status=TxnStatus.SUCCESS,
            code=StatusCode.SUCCESS,
            mode=reported_mode,
            tokens=signed,
        )

    async def _sign_token(
        self,
        *,
        token: TokenPermitInput,
        position: int,
        amount: int,
        chain_id: int,
        spender: str,
        service: DZapService,
        contract_version: ContractVersion,
        signer: TypedDataSigner,
        owner: str,
        deadline: int,
        strategy: PermitStrategy,
        state: _PermitLoopState,
    ) -> PermitResult:
        if token.is_native or strategy.token_mode == PermitMode.DEFAULT:
            return _placeholder(PermitMode.DEFAULT)

        # One-to-many followers are covered by the permit of token 0.
        if strategy.one_to_many and position > 0:
            return _placeholder(state.first_token_mode or strategy.token_mode)

        permit_data = None
        if strategy.token_mode in (PermitMode.AUTO_PERMIT, PermitMode.EIP2612_PERMIT):
            permit_data = await self.prober.get_permit_data(
                chain_id=chain_id, token=token.address, owner=owner, permit_hint=token.permit_hint
            )
            effective = resolve_token_mode(
                requested=strategy.token_mode, token=token, supports_eip2612=permit_data.supported
            )
        else:
            effective = resolve_token_mode(requested=strategy.token_mode, token=token, supports_eip2612=False)

        if effective == PermitMode.EIP2612_PERMIT:
            if not permit_data.supported:
                return PermitResult.failure(
                    TxnStatus.ERROR,
                    StatusCode.ERROR,
                    f"Token {token.address} does not support EIP-2612 permit",
                    mode=effective,
                )
            return await sign_eip2612_permit(
                signer=signer,
                account=owner,
                chain_id=chain_id,
                token=token.address,
                spender=spender,
                amount=amount,
                deadline=deadline,
                permit_data=permit_data,
                contract_version=contract_version,
                service=service,
            )

        if effective == PermitMode.PERMIT_SINGLE:
            nonce = await self.nonces.allowance_nonce(
                chain_id=chain_id, owner=owner, token=token.address, spender=spender
            )
            return await sign_permit2_single(
                signer=signer,
                account=owner,
                chain_id=chain_id,
                token=token.address,
                spender=spender,
                amount=amount,
                nonce=nonce,
                deadline=deadline,
                expiration=MAX_UINT48,
                contract_version=contract_version,
                service=service,
            )

        if effective == PermitMode.PERMIT_WITNESS_TRANSFER_FROM:
            if position > 0 and state.first_token_nonce is None:
                first_mode = (state.first_token_mode or PermitMode.DEFAULT).value
                raise UnsupportedPermitTypeError(
                    f"PermitWitnessTransferFrom at index {position} needs a witness-transfer first token, "
                    f"got {first_mode}; sign these tokens as a batch or in separate requests"
                )
            nonce = await self.nonces.witness_nonce(
                chain_id=chain_id,
                owner=owner,
                token=token.address,
                index=position,
                first_token_nonce=state.first_token_nonce,
            )
            return await sign_permit2_witness_transfer(
                signer=signer,
                account=owner,
                chain_id=chain_id,
                token=token.address,
                spender=spender,
                amount=amount,
                nonce=nonce,
                deadline=deadline,
                witness=StandardIntent().to_witness(owner=owner, spender=spender),
                contract_version=contract_version,
                service=service,
            )

        raise UnsupportedPermitTypeError(f"Cannot sign {effective.value} for a single token")

    # ------------------------------------------------------------------
    # Gasless single witness transfer
    # ------------------------------------------------------------------

    async def _sign_gasless_witness_transfer(
        self,
        *,
        tokens: List[TokenPermitInput],
        chain_id: int,
        spender: str,
        service: DZapService,
        contract_version: ContractVersion,
        signer: TypedDataSigner,
        owner: str,
        deadline: int,
        intent: GaslessIntent,
    ) -> PermitResult:
        erc20 = [token for token in tokens if not token.is_native]
        if len(erc20) != 1:
            raise UnsupportedPermitTypeError(
                f"PermitWitnessTransferFrom intent needs exactly one ERC-20 token, got {len(erc20)}"
            )
        token = erc20[0]
        witness = intent.to_witness(owner=owner, spender=spender)
        nonce = await self.nonces.next_bitmap_nonce(chain_id=chain_id, owner=owner)
        return await sign_permit2_witness_transfer(
            signer=signer,
            account=owner,
            chain_id=chain_id,
            token=token.address,
            spender=spender,
            amount=_amount_or_max(token.amount),
            nonce=nonce,
            deadline=deadline,
            witness=witness,
            contract_version=contract_version,
            service=service,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_tokens(tokens: Sequence[TokenLike]) -> List[TokenPermitInput]:
        coerced = []
        for position, token in enumerate(tokens):
            if isinstance(token, TokenPermitInput):
                coerced.append(token.model_copy(update={"index": position}))
            else:
                coerced.append(TokenPermitInput(**{**token, "index": position}))
        return coerced
