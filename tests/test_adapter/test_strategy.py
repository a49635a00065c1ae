"""
Permit Strategy Test Suite

Tests: 1) one-to-many detection 2) batch selection 3) legacy v1 forcing
4) per-token mode resolution
"""

import pytest

from test_mocks import MOCK_DAI, MOCK_NATIVE, MOCK_USDC, MOCK_WETH

from permit_engine.adapters.evm.schemas import TokenPermitInput
from permit_engine.adapters.evm.strategy import is_one_to_many, resolve_token_mode, select_strategy
from permit_engine.schemas.bases import PermitMode
from permit_engine.schemas.versions import ContractVersion, DZapService


def _tokens(*addresses):
    return [TokenPermitInput(address=address, amount=1, index=i) for i, address in enumerate(addresses)]


def _select(tokens, mode=PermitMode.AUTO_PERMIT, version=ContractVersion.V2, service=DZapService.TRADE, **kwargs):
    return select_strategy(tokens=tokens, mode=mode, contract_version=version, service=service, **kwargs)


class TestOneToMany:
    def test_same_first_two_addresses(self):
        assert is_one_to_many(_tokens(MOCK_USDC, MOCK_USDC.lower(), MOCK_DAI))

    def test_single_token_is_not_one_to_many(self):
        assert not is_one_to_many(_tokens(MOCK_USDC))

    def test_distinct_tokens(self):
        assert not is_one_to_many(_tokens(MOCK_USDC, MOCK_DAI, MOCK_USDC))


class TestSelectStrategy:
    def test_auto_with_several_tokens_batches(self):
        strategy = _select(_tokens(MOCK_USDC, MOCK_DAI))
        assert strategy.use_batch
        assert strategy.token_mode == PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM

    def test_auto_with_single_token_goes_per_token(self):
        strategy = _select(_tokens(MOCK_USDC))
        assert not strategy.use_batch
        assert strategy.token_mode == PermitMode.AUTO_PERMIT

    def test_one_to_many_never_batches(self):
        strategy = _select(_tokens(MOCK_USDC, MOCK_USDC))
        assert strategy.one_to_many
        assert not strategy.use_batch

    def test_explicit_batch_with_single_token_goes_per_token(self):
        strategy = _select(_tokens(MOCK_USDC), mode=PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM)
        assert not strategy.use_batch
        assert strategy.token_mode == PermitMode.PERMIT_WITNESS_TRANSFER_FROM

    def test_explicit_batch_with_several_tokens(self):
        strategy = _select(_tokens(MOCK_USDC, MOCK_DAI), mode=PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM)
        assert strategy.use_batch

    def test_batch_disallowed_falls_back_to_witness(self):
        strategy = _select(
            _tokens(MOCK_USDC, MOCK_DAI),
            mode=PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM,
            batch_allowed=False,
        )
        assert not strategy.use_batch
        assert strategy.token_mode == PermitMode.PERMIT_WITNESS_TRANSFER_FROM

    def test_v1_trade_forces_permit_single(self):
        strategy = _select(
            _tokens(MOCK_USDC, MOCK_DAI),
            mode=PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM,
            version=ContractVersion.V1,
        )
        assert strategy.v1_layout
        assert not strategy.use_batch
        assert strategy.token_mode == PermitMode.PERMIT_SINGLE

    def test_v1_trade_keeps_default(self):
        strategy = _select(_tokens(MOCK_USDC), mode=PermitMode.DEFAULT, version=ContractVersion.V1)
        assert strategy.token_mode == PermitMode.DEFAULT

    def test_v1_zap_uses_v2_rules(self):
        strategy = _select(_tokens(MOCK_USDC, MOCK_WETH), version=ContractVersion.V1, service=DZapService.ZAP)
        assert not strategy.v1_layout
        assert strategy.use_batch


class TestResolveTokenMode:
    @pytest.mark.parametrize("supports, expected", [
        (True, PermitMode.EIP2612_PERMIT),
        (False, PermitMode.PERMIT_WITNESS_TRANSFER_FROM),
    ])
    def test_auto(self, supports, expected):
        token = TokenPermitInput(address=MOCK_USDC)
        assert resolve_token_mode(requested=PermitMode.AUTO_PERMIT, token=token, supports_eip2612=supports) == expected

    def test_native_token_is_default(self):
        token = TokenPermitInput(address=MOCK_NATIVE)
        assert resolve_token_mode(
            requested=PermitMode.PERMIT_SINGLE, token=token, supports_eip2612=False
        ) == PermitMode.DEFAULT

    def test_explicit_mode_kept(self):
        token = TokenPermitInput(address=MOCK_USDC)
        assert resolve_token_mode(
            requested=PermitMode.PERMIT_SINGLE, token=token, supports_eip2612=True
        ) == PermitMode.PERMIT_SINGLE


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
