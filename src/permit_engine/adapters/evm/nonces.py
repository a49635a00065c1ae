"""
Nonce resolution for every permit shape.

* ``allowance_nonce``    Permit2 ``PermitSingle``: nonce of the live allowance
                         record ``allowance(owner, token, spender)``.
* ``next_bitmap_nonce``  Permit2 signature transfers: first unused bit of the
                         owner's unordered nonce bitmap, ``(word << 8) | bit``.
* ``witness_nonce``      Per-token witness transfers: index 0 reads the bitmap,
                         index ``i`` derives ``first_token_nonce + i``.
* ``gasless_nonce``      DZap verifier intents: router ``getNonce(user)``.

EIP-2612 nonces come from ``CapabilityProber.get_permit_data``.
"""

from typing import Optional

from ...engine.exceptions import NonceResolutionError
from ...utils import logger
from .constants import MAX_UINT256, MAX_WORD_ITERATIONS, get_permit2_address
from .ERC20_ABI import get_dzap_nonce_abi, get_permit2_abi
from .readers import ContractCall, ContractReader


def first_unset_bit(bitmap: int) -> Optional[int]:
    """Position of the lowest zero bit of a 256-bit word, ``None`` when full."""
    if bitmap >= MAX_UINT256:
        return None
    inverted = ~bitmap & MAX_UINT256
    return (inverted & -inverted).bit_length() - 1


class NonceSequencer:
    def __init__(self, reader: ContractReader, *, max_word_iterations: int = MAX_WORD_ITERATIONS):
        self.reader = reader
        self.max_word_iterations = max_word_iterations

    async def next_bitmap_nonce(self, *, chain_id: int, owner: str, permit2_address: Optional[str] = None) -> int:
        """
        Scan Permit2's ``nonceBitmap(owner, word)`` from word 0 for a free nonce.

        Raises:
            NonceResolutionError: On a failed read or when no free bit exists
                                  within ``max_word_iterations`` words.
        """
        permit2_address = permit2_address or get_permit2_address(chain_id)
        abi = get_permit2_abi()

        for word in range(self.max_word_iterations):
            res = await self.reader.read_one(
                chain_id, ContractCall(permit2_address, abi, "nonceBitmap", (owner, word))
            )
            if not res.status:
                raise NonceResolutionError(f"nonceBitmap({owner}, {word}) failed: {res.error}")
            bit = first_unset_bit(int(res.result))
            if bit is not None:
                nonce = (word << 8) | bit
                logger.debug(f"Permit2 bitmap nonce for {owner} on {chain_id}: {nonce}")
                return nonce

        raise NonceResolutionError(
            f"No unused Permit2 nonce for {owner} within {self.max_word_iterations} words"
        )

    async def allowance_nonce(self, *, chain_id: int, owner: str, token: str, spender: str) -> int:
        """
        Nonce of the Permit2 allowance record for ``(owner, token, spender)``.

        Raises:
            NonceResolutionError: If the allowance read fails.
        """
        res = await self.reader.read_one(
            chain_id,
            ContractCall(get_permit2_address(chain_id), get_permit2_abi(), "allowance", (owner, token, spender)),
        )
        if not res.status:
            raise NonceResolutionError(f"Permit2 allowance read failed for {token}: {res.error}")
        _amount, _expiration, nonce = res.result
        return int(nonce)

    async def witness_nonce(
        self,
        *,
        chain_id: int,
        owner: str,
        token: str,
        index: int,
        first_token_nonce: Optional[int],
    ) -> int:
        """
        Nonce for a single-token witness transfer at position ``index``.

        Raises:
            NonceResolutionError: If ``index > 0`` and ``first_token_nonce``
                                  has not been resolved.
        """
        if index == 0:
            return await self.next_bitmap_nonce(chain_id=chain_id, owner=owner)
        if first_token_nonce is None:
            raise NonceResolutionError(
                f"Unable to find nonce for token:{token} for PermitWitnessTransferFrom"
            )
        return first_token_nonce + index

    async def gasless_nonce(self, *, chain_id: int, verifier: str, user: str) -> int:
        """
        Raises:
            NonceResolutionError: If ``getNonce(user)`` fails.
        """
        res = await self.reader.read_one(
            chain_id, ContractCall(verifier, get_dzap_nonce_abi(), "getNonce", (user,))
        )
        if not res.status:
            raise NonceResolutionError(f"getNonce({user}) failed on {verifier}: {res.error}")
        return int(res.result)
