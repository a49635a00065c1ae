"""
Gasless Intent Test Suite

Tests for ``EVMPermitAdapter.sign_gasless_intent``:

- DZapVerifier intents (EIP2612Permit mode) for swap, bridge and swap-bridge
- Permit2 batch / single witness transfers bound to the intent
- Unsupported modes, invalid hashes, nonce failures and rejections
"""

import pytest

from test_mocks import (
    MOCK_ADAPTER_DATA_HASH,
    MOCK_CHAIN_ID,
    MOCK_DAI,
    MOCK_EXECUTOR_FEES_HASH,
    MOCK_NATIVE,
    MOCK_NOW,
    MOCK_OWNER_ACCOUNT,
    MOCK_OWNER_ADDRESS,
    MOCK_ROUTER_ADDRESS,
    MOCK_SWAP_DATA_HASH,
    MOCK_TX_ID,
    MOCK_USDC,
    FakeContractReader,
    FakeWalletClient,
    create_mock_adapter,
    create_mock_token,
)

from permit_engine.adapters.evm.constants import DEFAULT_PERMIT_DATA, GASLESS_DOMAIN_SALT
from permit_engine.adapters.evm.encoders import decode_permit_data
from permit_engine.adapters.evm.schemas import build_gasless_intent
from permit_engine.adapters.evm.signatures import build_gasless_intent_typed_data
from permit_engine.adapters.evm.verifies import recover_typed_data_signer
from permit_engine.engine.exceptions import InvalidWitnessDataError
from permit_engine.schemas.bases import PermitMode, StatusCode, TxnStatus
from permit_engine.schemas.versions import ContractVersion, DZapService, GaslessTxType


async def _sign_intent(adapter, tokens=None, signer=MOCK_OWNER_ACCOUNT, **kwargs):
    params = dict(
        tokens=tokens if tokens is not None else [create_mock_token(MOCK_USDC, 1)],
        chain_id=MOCK_CHAIN_ID,
        spender=MOCK_ROUTER_ADDRESS,
        service=DZapService.TRADE,
        contract_version=ContractVersion.V2,
        signer=signer,
        tx_id=MOCK_TX_ID,
        executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
        tx_type=GaslessTxType.SWAP,
        swap_data_hash=MOCK_SWAP_DATA_HASH,
    )
    params.update(kwargs)
    return await adapter.sign_gasless_intent(**params)


@pytest.fixture
def reader():
    return FakeContractReader().set(MOCK_ROUTER_ADDRESS, "getNonce", lambda user: 4).set_bitmaps([0b1])


@pytest.fixture
def adapter(reader):
    return create_mock_adapter(reader)


@pytest.fixture
def wallet():
    return FakeWalletClient()


class TestVerifierIntent:
    @pytest.mark.asyncio
    async def test_swap_intent_signature(self, adapter):
        result = await _sign_intent(adapter, mode=PermitMode.EIP2612_PERMIT)

        assert result.is_success()
        assert result.mode == PermitMode.EIP2612_PERMIT
        assert result.nonce == 4
        assert result.deadline == MOCK_NOW + 1800
        assert len(result.permit_data) == 132

        intent = build_gasless_intent(
            tx_type=GaslessTxType.SWAP,
            tx_id=MOCK_TX_ID,
            executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
            swap_data_hash=MOCK_SWAP_DATA_HASH,
        )
        typed = build_gasless_intent_typed_data(
            chain_id=MOCK_CHAIN_ID,
            verifier=MOCK_ROUTER_ADDRESS,
            user=MOCK_OWNER_ADDRESS,
            nonce=4,
            deadline=result.deadline,
            intent=intent,
        )
        assert recover_typed_data_signer(typed, result.permit_data) == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_bridge_only_intent(self, adapter, wallet):
        result = await _sign_intent(
            adapter,
            signer=wallet,
            mode=PermitMode.EIP2612_PERMIT,
            tx_type=GaslessTxType.BRIDGE,
            swap_data_hash=None,
            adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
        )

        assert result.is_success()
        [request] = wallet.requests
        assert request["primary_type"] == "SignedGasLessBridgeData"
        assert request["domain"]["name"] == "DZapVerifier"
        assert request["domain"]["salt"] == GASLESS_DOMAIN_SALT
        assert request["domain"]["verifyingContract"] == MOCK_ROUTER_ADDRESS
        assert "swapDataHash" not in request["message"]
        assert request["message"]["nonce"] == 4

    @pytest.mark.asyncio
    async def test_swap_bridge_intent(self, adapter, wallet):
        await _sign_intent(
            adapter,
            signer=wallet,
            mode=PermitMode.EIP2612_PERMIT,
            tx_type=GaslessTxType.BRIDGE,
            adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
        )
        assert wallet.requests[0]["primary_type"] == "SignedGasLessSwapBridgeData"

    @pytest.mark.asyncio
    async def test_nonce_failure(self, wallet):
        adapter = create_mock_adapter(FakeContractReader())
        result = await _sign_intent(adapter, signer=wallet, mode=PermitMode.EIP2612_PERMIT)
        assert result.status == TxnStatus.ERROR
        assert result.code == StatusCode.NOT_FOUND
        assert result.permit_data is None
        assert wallet.requests == []


class TestPermit2Intent:
    @pytest.mark.asyncio
    async def test_auto_resolves_to_batch(self, adapter, wallet):
        result = await _sign_intent(
            adapter,
            tokens=[create_mock_token(MOCK_USDC, 1), create_mock_token(MOCK_NATIVE, 5)],
            signer=wallet,
        )

        assert result.is_success()
        assert result.mode == PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM
        assert result.nonce == 1
        [request] = wallet.requests
        assert request["primary_type"] == "PermitBatchWitnessTransferFrom"
        assert request["message"]["witness"] == {
            "txId": MOCK_TX_ID,
            "user": MOCK_OWNER_ADDRESS,
            "executorFeesHash": MOCK_EXECUTOR_FEES_HASH,
            "swapDataHash": MOCK_SWAP_DATA_HASH,
        }
        assert "DZapSwapWitness" in request["types"]
        decoded = decode_permit_data(result.permit_data)
        assert decoded.fields["permitted"] == [(MOCK_USDC, 1)]

    @pytest.mark.asyncio
    async def test_native_only_batch_returns_placeholder(self, adapter, wallet):
        result = await _sign_intent(adapter, tokens=[create_mock_token(MOCK_NATIVE, 5)], signer=wallet)

        assert result.is_success()
        assert result.mode == PermitMode.DEFAULT
        assert result.permit_data == DEFAULT_PERMIT_DATA
        assert result.nonce == 0
        assert result.deadline == MOCK_NOW + 1800
        assert wallet.requests == []

    @pytest.mark.asyncio
    async def test_single_witness_with_bridge_witness(self, adapter, wallet):
        result = await _sign_intent(
            adapter,
            signer=wallet,
            mode=PermitMode.PERMIT_WITNESS_TRANSFER_FROM,
            tx_type=GaslessTxType.BRIDGE,
            adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
        )

        assert result.is_success()
        assert result.mode == PermitMode.PERMIT_WITNESS_TRANSFER_FROM
        request = wallet.requests[0]
        assert request["types"]["PermitWitnessTransferFrom"][-1]["type"] == "DZapBridgeWitness"
        assert request["message"]["witness"]["adapterDataHash"] == MOCK_ADAPTER_DATA_HASH

    @pytest.mark.asyncio
    async def test_single_witness_needs_one_token(self, adapter, wallet):
        result = await _sign_intent(
            adapter,
            tokens=[create_mock_token(MOCK_USDC, 1), create_mock_token(MOCK_DAI, 2)],
            signer=wallet,
            mode=PermitMode.PERMIT_WITNESS_TRANSFER_FROM,
        )
        assert result.code == StatusCode.UNSUPPORTED
        assert wallet.requests == []

    @pytest.mark.asyncio
    async def test_bridge_only_under_permit2_raises(self, adapter, wallet):
        with pytest.raises(InvalidWitnessDataError, match="EIP2612Permit"):
            await _sign_intent(
                adapter,
                signer=wallet,
                tx_type=GaslessTxType.BRIDGE,
                swap_data_hash=None,
                adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
            )
        assert wallet.requests == []


class TestRejectedIntents:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", [PermitMode.PERMIT_SINGLE, PermitMode.DEFAULT])
    async def test_unsupported_modes(self, adapter, wallet, mode):
        result = await _sign_intent(adapter, signer=wallet, mode=mode)
        assert result.status == TxnStatus.ERROR
        assert result.code == StatusCode.UNSUPPORTED
        assert wallet.requests == []

    @pytest.mark.asyncio
    async def test_missing_hash_raises(self, adapter):
        with pytest.raises(InvalidWitnessDataError):
            await _sign_intent(adapter, swap_data_hash=None)

    @pytest.mark.asyncio
    async def test_wallet_rejection(self, adapter):
        result = await _sign_intent(adapter, signer=FakeWalletClient(reject=True), mode=PermitMode.EIP2612_PERMIT)
        assert result.status == TxnStatus.REJECTED
        assert result.code == StatusCode.USER_REJECTED_REQUEST


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
