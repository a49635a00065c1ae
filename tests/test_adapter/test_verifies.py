"""
Permit Verification Test Suite

Tests:
    - Signature recovery for an EIP-2612 permit rebuilt from router bytes
    - verify_typed_data_signature against the owner and another account
    - validate_permit_data for every status it reports
"""

import pytest

from test_mocks import (
    MOCK_CHAIN_ID,
    MOCK_DAI,
    MOCK_NOW,
    MOCK_OTHER_ACCOUNT,
    MOCK_OWNER_ACCOUNT,
    MOCK_OWNER_ADDRESS,
    MOCK_ROUTER_ADDRESS,
    MOCK_USDC,
    FakeContractReader,
    create_mock_adapter,
    create_mock_token,
)

from permit_engine.adapters.evm.constants import DEFAULT_PERMIT2_DATA, DEFAULT_PERMIT_DATA, MAX_UINT48
from permit_engine.adapters.evm.encoders import decode_permit_data, encode_permit_payload
from permit_engine.adapters.evm.schemas import Eip2612PermitData, PermitValidationStatus
from permit_engine.adapters.evm.signatures import build_eip2612_typed_data
from permit_engine.adapters.evm.verifies import (
    recover_typed_data_signer,
    validate_permit_data,
    verify_typed_data_signature,
)
from permit_engine.schemas.bases import PermitMode
from permit_engine.schemas.versions import ContractVersion, DZapService

FAKE_SIGNATURE = "0x" + "ab" * 65


async def _sign(reader, tokens, **kwargs):
    adapter = create_mock_adapter(reader)
    response = await adapter.sign(
        tokens=tokens,
        chain_id=MOCK_CHAIN_ID,
        spender=MOCK_ROUTER_ADDRESS,
        service=DZapService.TRADE,
        contract_version=ContractVersion.V2,
        signer=MOCK_OWNER_ACCOUNT,
        **kwargs,
    )
    assert response.is_success()
    return response


async def _validate(permit_data, reader, token=MOCK_USDC, **kwargs):
    kwargs.setdefault("current_time", MOCK_NOW)
    return await validate_permit_data(
        permit_data=permit_data,
        reader=reader,
        chain_id=MOCK_CHAIN_ID,
        token=token,
        owner=MOCK_OWNER_ADDRESS,
        spender=MOCK_ROUTER_ADDRESS,
        **kwargs,
    )


def _permit_single(nonce=2, expiration=MAX_UINT48, deadline=MOCK_NOW + 1800):
    return encode_permit_payload(
        mode=PermitMode.PERMIT_SINGLE,
        contract_version=ContractVersion.V2,
        service=DZapService.TRADE,
        signature=FAKE_SIGNATURE,
        deadline=deadline,
        nonce=nonce,
        expiration=expiration,
    )


@pytest.fixture
def usdc_reader():
    return FakeContractReader().set_eip2612_token(MOCK_USDC, nonce=7)


class TestSignatureRecovery:
    @pytest.mark.asyncio
    async def test_eip2612_permit_recovers_owner(self, usdc_reader):
        response = await _sign(usdc_reader, [create_mock_token(MOCK_USDC, 5)])
        fields = decode_permit_data(response.tokens[0].permit_data).fields
        signature = bytes.fromhex(fields["r"][2:]) + bytes.fromhex(fields["s"][2:]) + bytes([fields["v"]])

        typed = build_eip2612_typed_data(
            chain_id=MOCK_CHAIN_ID,
            token=MOCK_USDC,
            owner=MOCK_OWNER_ADDRESS,
            spender=MOCK_ROUTER_ADDRESS,
            amount=5,
            deadline=fields["deadline"],
            permit_data=Eip2612PermitData(supported=True, name="USD Coin", version="2", nonce=7),
        )
        assert recover_typed_data_signer(typed, signature) == MOCK_OWNER_ADDRESS
        assert verify_typed_data_signature(typed, signature, MOCK_OWNER_ADDRESS.lower())
        assert not verify_typed_data_signature(typed, signature, MOCK_OTHER_ACCOUNT.address)

    def test_garbage_signature_is_not_valid(self):
        typed = build_eip2612_typed_data(
            chain_id=MOCK_CHAIN_ID,
            token=MOCK_USDC,
            owner=MOCK_OWNER_ADDRESS,
            spender=MOCK_ROUTER_ADDRESS,
            amount=5,
            deadline=MOCK_NOW,
            permit_data=Eip2612PermitData(supported=True, name="USD Coin", version="2", nonce=0),
        )
        assert verify_typed_data_signature(typed, "0x1234", MOCK_OWNER_ADDRESS) is False


class TestValidateEIP2612:
    @pytest.mark.asyncio
    async def test_valid(self, usdc_reader):
        response = await _sign(usdc_reader, [create_mock_token(MOCK_USDC, 5)])
        result = await _validate(response.tokens[0].permit_data, usdc_reader, expected_nonce=7)
        assert result.status == PermitValidationStatus.VALID
        assert result.is_valid
        assert result.on_chain_nonce == 7
        assert result.mode == PermitMode.EIP2612_PERMIT

    @pytest.mark.asyncio
    async def test_nonce_consumed(self, usdc_reader):
        response = await _sign(usdc_reader, [create_mock_token(MOCK_USDC, 5)])
        usdc_reader.set(MOCK_USDC, "nonces", lambda owner: 8)
        result = await _validate(response.tokens[0].permit_data, usdc_reader, expected_nonce=7)
        assert result.status == PermitValidationStatus.NONCE_MISMATCH
        assert result.on_chain_nonce == 8
        assert not result.is_valid

    @pytest.mark.asyncio
    async def test_expired(self, usdc_reader):
        response = await _sign(usdc_reader, [create_mock_token(MOCK_USDC, 5)])
        result = await _validate(response.tokens[0].permit_data, usdc_reader, current_time=MOCK_NOW + 1801)
        assert result.status == PermitValidationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_failed_read(self, usdc_reader):
        response = await _sign(usdc_reader, [create_mock_token(MOCK_USDC, 5)])
        result = await _validate(response.tokens[0].permit_data, FakeContractReader())
        assert result.status == PermitValidationStatus.BLOCKCHAIN_ERROR


class TestValidatePermit2:
    @pytest.mark.asyncio
    async def test_witness_nonce_unused(self):
        reader = FakeContractReader().set_bitmaps([0b1])
        response = await _sign(reader, [create_mock_token(MOCK_DAI, 1)], mode=PermitMode.PERMIT_WITNESS_TRANSFER_FROM)
        result = await _validate(response.tokens[0].permit_data, reader, token=MOCK_DAI)
        assert result.status == PermitValidationStatus.VALID
        assert result.fields["nonce"] == 1

    @pytest.mark.asyncio
    async def test_witness_nonce_used(self):
        reader = FakeContractReader().set_bitmaps([0b1])
        response = await _sign(reader, [create_mock_token(MOCK_DAI, 1)], mode=PermitMode.PERMIT_WITNESS_TRANSFER_FROM)
        reader.set_bitmaps([0b11])
        result = await _validate(response.tokens[0].permit_data, reader, token=MOCK_DAI)
        assert result.status == PermitValidationStatus.NONCE_USED

    @pytest.mark.asyncio
    async def test_batch_nonce_in_later_word(self):
        reader = FakeContractReader().set_bitmaps([(1 << 256) - 1, 0b1])
        response = await _sign(reader, [create_mock_token(MOCK_USDC, 1), create_mock_token(MOCK_DAI, 2)])
        assert response.nonce == (1 << 8) | 1
        result = await _validate(response.batch_permit_data, reader)
        assert result.status == PermitValidationStatus.VALID

    @pytest.mark.asyncio
    async def test_permit_single_matching_nonce(self):
        reader = FakeContractReader().set_allowance(2)
        result = await _validate(_permit_single(nonce=2), reader)
        assert result.status == PermitValidationStatus.VALID
        assert result.on_chain_nonce == 2

    @pytest.mark.asyncio
    async def test_permit_single_nonce_moved_on(self):
        reader = FakeContractReader().set_allowance(3)
        result = await _validate(_permit_single(nonce=2), reader)
        assert result.status == PermitValidationStatus.NONCE_MISMATCH

    @pytest.mark.asyncio
    async def test_permit_single_expired_allowance(self):
        reader = FakeContractReader().set_allowance(2)
        result = await _validate(_permit_single(expiration=MOCK_NOW - 1), reader)
        assert result.status == PermitValidationStatus.EXPIRED
        assert reader.calls == []

    @pytest.mark.asyncio
    async def test_bitmap_read_failure(self):
        reader = FakeContractReader().set_bitmaps([0])
        response = await _sign(reader, [create_mock_token(MOCK_DAI, 1)], mode=PermitMode.PERMIT_WITNESS_TRANSFER_FROM)
        result = await _validate(response.tokens[0].permit_data, FakeContractReader(), token=MOCK_DAI)
        assert result.status == PermitValidationStatus.BLOCKCHAIN_ERROR


class TestValidateShape:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [DEFAULT_PERMIT_DATA, DEFAULT_PERMIT2_DATA])
    async def test_placeholder(self, payload):
        reader = FakeContractReader()
        result = await _validate(payload, reader)
        assert result.status == PermitValidationStatus.PLACEHOLDER
        assert result.is_valid
        assert reader.calls == []

    @pytest.mark.asyncio
    async def test_malformed(self):
        result = await _validate("0x1234", FakeContractReader())
        assert result.status == PermitValidationStatus.MALFORMED
        assert not result.is_valid


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
