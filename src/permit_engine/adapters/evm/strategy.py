"""
Permit strategy selection.

``select_strategy`` decides, once per request, whether the whole token set is
signed as one Permit2 batch or token by token, and which mode the per-token
loop starts from.  ``resolve_token_mode`` then settles each token.

Decision order:

1. ``one_to_many``: more than one token and the first two share an address.
2. Batch applies when the caller allows it, the router understands Permit2
   witness payloads (v2, or the zap service on any version) and
   the request holds more than one token and either a batch was requested
   explicitly or ``AutoPermit`` covers distinct tokens.  A single token
   requested as a batch is signed as a ``PermitWitnessTransferFrom``.
3. Otherwise tokens are signed one by one.  Legacy v1 trade routers are
   forced onto ``PermitSingle`` whatever was requested.
"""

from dataclasses import dataclass
from typing import Sequence

from ...schemas.bases import PermitMode
from ...schemas.versions import ContractVersion, DZapService, uses_v1_permit_layout
from ...utils import is_same_address
from .schemas import TokenPermitInput


@dataclass
class PermitStrategy:
    one_to_many: bool
    use_batch: bool
    v1_layout: bool
    token_mode: PermitMode


def is_one_to_many(tokens: Sequence[TokenPermitInput]) -> bool:
    return len(tokens) > 1 and is_same_address(tokens[0].address, tokens[1].address)


def select_strategy(
    *,
    tokens: Sequence[TokenPermitInput],
    mode: PermitMode,
    contract_version: ContractVersion,
    service: DZapService,
    batch_allowed: bool = True,
) -> PermitStrategy:
    mode = PermitMode(mode)
    one_to_many = is_one_to_many(tokens)
    v1_layout = uses_v1_permit_layout(contract_version, service)

    batch_requested = len(tokens) > 1 and (
        mode == PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM
        or (mode == PermitMode.AUTO_PERMIT and not one_to_many)
    )
    use_batch = batch_allowed and batch_requested and not v1_layout

    if use_batch:
        token_mode = PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM
    elif v1_layout and mode != PermitMode.DEFAULT:
        # TODO: confirm with product whether an explicit witness request on v1 should fail instead.
        token_mode = PermitMode.PERMIT_SINGLE
    elif mode == PermitMode.PERMIT_BATCH_WITNESS_TRANSFER_FROM:
        token_mode = PermitMode.PERMIT_WITNESS_TRANSFER_FROM
    else:
        token_mode = mode

    return PermitStrategy(one_to_many=one_to_many, use_batch=use_batch, v1_layout=v1_layout, token_mode=token_mode)


def resolve_token_mode(*, requested: PermitMode, token: TokenPermitInput, supports_eip2612: bool) -> PermitMode:
    """
    Effective mode for one token in the per-token loop.

    ``AutoPermit`` prefers EIP-2612 when the token supports it and falls back
    to a Permit2 witness transfer.  Native-currency tokens never need a
    signature.
    """
    requested = PermitMode(requested)
    if token.is_native or requested == PermitMode.DEFAULT:
        return PermitMode.DEFAULT
    if requested == PermitMode.AUTO_PERMIT:
        return PermitMode.EIP2612_PERMIT if supports_eip2612 else PermitMode.PERMIT_WITNESS_TRANSFER_FROM
    return requested
