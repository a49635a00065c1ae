"""
EIP-712 Typed Data and Intent Test Suite

Tests:
    - Domain serialisation (Permit2 without version, verifier with salt)
    - Witness sub-types merged into Permit2 payloads
    - Gasless intent primary type selection
    - Intent variants built from a transaction type and hashes
"""

import pytest
from eth_utils import keccak, to_hex

from test_mocks import (
    MOCK_ADAPTER_DATA_HASH,
    MOCK_CHAIN_ID,
    MOCK_DAI,
    MOCK_EXECUTOR_FEES_HASH,
    MOCK_OWNER_ADDRESS,
    MOCK_PERMIT2_ADDRESS,
    MOCK_ROUTER_ADDRESS,
    MOCK_SWAP_DATA_HASH,
    MOCK_TX_ID,
    MOCK_USDC,
)

from permit_engine.adapters.evm.constants import GASLESS_DOMAIN_SALT
from permit_engine.adapters.evm.schemas import (
    GaslessBridgeIntent,
    GaslessSwapBridgeIntent,
    GaslessSwapIntent,
    StandardIntent,
    build_gasless_intent,
)
from permit_engine.adapters.evm.signatures import build_gasless_intent_typed_data, gasless_domain
from permit_engine.adapters.evm.standards import (
    BridgeWitness,
    EIP712Domain,
    Permit2BatchWitnessTransferTypedData,
    Permit2PermitSingleTypedData,
    Permit2WitnessTransferTypedData,
    SwapWitness,
    TokenPermission,
    TransferWitness,
)
from permit_engine.engine.exceptions import InvalidWitnessDataError
from permit_engine.schemas.versions import GaslessTxType


class TestDomains:
    def test_permit2_domain_has_no_version(self):
        typed = Permit2PermitSingleTypedData(
            chain_id=MOCK_CHAIN_ID,
            verifying_contract=MOCK_PERMIT2_ADDRESS,
            spender=MOCK_ROUTER_ADDRESS,
            token=MOCK_USDC,
            amount=1,
            expiration=2,
            nonce=3,
            sig_deadline=4,
        ).to_dict()
        assert typed["domain"] == {"name": "Permit2", "chainId": MOCK_CHAIN_ID, "verifyingContract": MOCK_PERMIT2_ADDRESS}
        assert [f["name"] for f in typed["types"]["EIP712Domain"]] == ["name", "chainId", "verifyingContract"]
        assert typed["message"]["details"] == {"token": MOCK_USDC, "amount": 1, "expiration": 2, "nonce": 3}

    def test_verifier_domain_salt(self):
        domain = gasless_domain(MOCK_CHAIN_ID, MOCK_ROUTER_ADDRESS)
        assert domain.salt == GASLESS_DOMAIN_SALT == to_hex(keccak(text="DZap-v0.1"))
        assert [f["name"] for f in domain.type_fields()] == ["name", "version", "chainId", "verifyingContract", "salt"]

    def test_from_dict(self):
        domain = EIP712Domain.from_dict(
            {"name": "T", "version": "1", "chainId": "5", "verifyingContract": MOCK_USDC}
        )
        assert domain.chainId == 5
        assert domain.salt is None


class TestPermit2Witness:
    def test_single_transfer_merges_witness_type(self):
        typed = Permit2WitnessTransferTypedData(
            chain_id=MOCK_CHAIN_ID,
            verifying_contract=MOCK_PERMIT2_ADDRESS,
            spender=MOCK_ROUTER_ADDRESS,
            token=MOCK_USDC,
            amount=10,
            nonce=1,
            deadline=2,
            witness=TransferWitness(owner=MOCK_OWNER_ADDRESS, recipient=MOCK_ROUTER_ADDRESS),
        )
        types = typed.message_types()
        assert types["PermitWitnessTransferFrom"][-1] == {"name": "witness", "type": "DZapTransferWitness"}
        assert "DZapTransferWitness" in types
        assert typed.message()["witness"] == {"owner": MOCK_OWNER_ADDRESS, "recipient": MOCK_ROUTER_ADDRESS}

    def test_batch_permitted_list(self):
        witness = SwapWitness(
            tx_id=MOCK_TX_ID,
            user=MOCK_OWNER_ADDRESS,
            executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
            swap_data_hash=MOCK_SWAP_DATA_HASH,
        )
        typed = Permit2BatchWitnessTransferTypedData(
            chain_id=MOCK_CHAIN_ID,
            verifying_contract=MOCK_PERMIT2_ADDRESS,
            spender=MOCK_ROUTER_ADDRESS,
            permitted=[TokenPermission(MOCK_USDC, 1), TokenPermission(MOCK_DAI, 2)],
            nonce=5,
            deadline=6,
            witness=witness,
        )
        assert typed.primary_type == "PermitBatchWitnessTransferFrom"
        assert typed.message()["permitted"] == [
            {"token": MOCK_USDC, "amount": 1},
            {"token": MOCK_DAI, "amount": 2},
        ]
        assert "DZapSwapWitness" in typed.message_types()

    def test_transfer_witness_with_owner_field(self):
        witness = TransferWitness(owner=MOCK_OWNER_ADDRESS, recipient=MOCK_ROUTER_ADDRESS)
        assert witness.to_dict() == {"owner": MOCK_OWNER_ADDRESS, "recipient": MOCK_ROUTER_ADDRESS}

    @pytest.mark.parametrize("owner, recipient, missing", [
        (MOCK_OWNER_ADDRESS, None, "recipient"),
        ("", MOCK_ROUTER_ADDRESS, "owner"),
    ])
    def test_transfer_witness_requires_both_addresses(self, owner, recipient, missing):
        with pytest.raises(InvalidWitnessDataError, match=f"DZapTransferWitness requires {missing}"):
            TransferWitness(owner=owner, recipient=recipient)

    def test_bridge_witness_requires_swap_hash(self):
        with pytest.raises(InvalidWitnessDataError, match="swapDataHash"):
            BridgeWitness(
                tx_id=MOCK_TX_ID,
                user=MOCK_OWNER_ADDRESS,
                executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
                swap_data_hash=None,
                adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
            )


class TestGaslessTypedData:
    def _typed(self, intent):
        return build_gasless_intent_typed_data(
            chain_id=MOCK_CHAIN_ID,
            verifier=MOCK_ROUTER_ADDRESS,
            user=MOCK_OWNER_ADDRESS,
            nonce=3,
            deadline=4,
            intent=intent,
        )

    def test_swap_message_omits_adapter_hash(self):
        typed = self._typed(build_gasless_intent(
            tx_type=GaslessTxType.SWAP,
            tx_id=MOCK_TX_ID,
            executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
            swap_data_hash=MOCK_SWAP_DATA_HASH,
        ))
        assert typed.primary_type == "SignedGasLessSwapData"
        assert "adapterDataHash" not in typed.message()
        assert typed.message()["swapDataHash"] == MOCK_SWAP_DATA_HASH

    def test_bridge_message_omits_swap_hash(self):
        typed = self._typed(build_gasless_intent(
            tx_type=GaslessTxType.BRIDGE,
            tx_id=MOCK_TX_ID,
            executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
            adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
        ))
        assert typed.primary_type == "SignedGasLessBridgeData"
        assert "swapDataHash" not in typed.message()

    def test_swap_bridge_message_has_both(self):
        typed = self._typed(build_gasless_intent(
            tx_type=GaslessTxType.BRIDGE,
            tx_id=MOCK_TX_ID,
            executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
            swap_data_hash=MOCK_SWAP_DATA_HASH,
            adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
        ))
        assert typed.primary_type == "SignedGasLessSwapBridgeData"
        fields = [f["name"] for f in typed.message_types()["SignedGasLessSwapBridgeData"]]
        assert fields == ["txId", "user", "nonce", "deadline", "executorFeesHash", "swapDataHash", "adapterDataHash"]


class TestIntentVariants:
    def test_variant_selection(self):
        common = dict(tx_id=MOCK_TX_ID, executor_fees_hash=MOCK_EXECUTOR_FEES_HASH)
        assert isinstance(
            build_gasless_intent(tx_type="swap", swap_data_hash=MOCK_SWAP_DATA_HASH, **common), GaslessSwapIntent
        )
        assert isinstance(
            build_gasless_intent(tx_type="bridge", adapter_data_hash=MOCK_ADAPTER_DATA_HASH, **common),
            GaslessBridgeIntent,
        )
        assert isinstance(
            build_gasless_intent(
                tx_type="bridge",
                swap_data_hash=MOCK_SWAP_DATA_HASH,
                adapter_data_hash=MOCK_ADAPTER_DATA_HASH,
                **common,
            ),
            GaslessSwapBridgeIntent,
        )

    def test_swap_without_hash(self):
        with pytest.raises(InvalidWitnessDataError):
            build_gasless_intent(tx_type="swap", tx_id=MOCK_TX_ID, executor_fees_hash=MOCK_EXECUTOR_FEES_HASH)

    def test_bridge_without_any_hash(self):
        with pytest.raises(InvalidWitnessDataError):
            build_gasless_intent(tx_type="bridge", tx_id=MOCK_TX_ID, executor_fees_hash=MOCK_EXECUTOR_FEES_HASH)

    def test_malformed_tx_id(self):
        with pytest.raises(InvalidWitnessDataError):
            build_gasless_intent(
                tx_type="swap", tx_id="0x1234", executor_fees_hash=MOCK_EXECUTOR_FEES_HASH,
                swap_data_hash=MOCK_SWAP_DATA_HASH,
            )

    def test_witness_per_variant(self):
        common = dict(tx_id=MOCK_TX_ID, executor_fees_hash=MOCK_EXECUTOR_FEES_HASH)
        standard = StandardIntent().to_witness(owner=MOCK_OWNER_ADDRESS, spender=MOCK_ROUTER_ADDRESS)
        assert isinstance(standard, TransferWitness)

        swap = GaslessSwapIntent(swap_data_hash=MOCK_SWAP_DATA_HASH, **common)
        assert isinstance(swap.to_witness(owner=MOCK_OWNER_ADDRESS, spender=MOCK_ROUTER_ADDRESS), SwapWitness)

        both = GaslessSwapBridgeIntent(
            swap_data_hash=MOCK_SWAP_DATA_HASH, adapter_data_hash=MOCK_ADAPTER_DATA_HASH, **common
        )
        assert isinstance(both.to_witness(owner=MOCK_OWNER_ADDRESS, spender=MOCK_ROUTER_ADDRESS), BridgeWitness)

        bridge = GaslessBridgeIntent(adapter_data_hash=MOCK_ADAPTER_DATA_HASH, **common)
        with pytest.raises(InvalidWitnessDataError, match="EIP2612Permit"):
            bridge.to_witness(owner=MOCK_OWNER_ADDRESS, spender=MOCK_ROUTER_ADDRESS)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
