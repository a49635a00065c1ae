"""
Abstract Base Class for Permit Adapters

Defines the interface a chain-family adapter must implement to produce
off-chain token authorizations for a router contract.

Core Classes:
    - PermitAdapterFactory: sign (standard permits), sign_gasless_intent
      (relayed execution) and sign_custom_typed_data (caller-built payloads)

Different chain families plug in their own concrete adapter; the EVM
implementation is ``adapters.evm.adapter.EVMPermitAdapter``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from ..schemas.bases import BaseSignResult, PermitMode
from ..schemas.versions import ContractVersion, DZapService, GaslessTxType


class PermitAdapterFactory(ABC):
    """
    Abstract Base Class for permit adapters.

    Key Responsibilities:
    1. sign: choose the authorization mechanism per token or per batch, resolve
       nonces, drive the signer and return router-ready ``permit`` bytes
    2. sign_gasless_intent: bind a permit (or a verifier intent) to a pending
       transaction id and fee commitment
    3. sign_custom_typed_data: sign arbitrary EIP-712 data with the same
       signer handling and status mapping

    No method submits transactions or persists signatures. Runtime
    failures are reported through the result's ``status`` and ``code``.
    """

    @abstractmethod
    async def sign(
        self,
        *,
        tokens: Sequence[Any],
        chain_id: int,
        spender: str,
        service: DZapService,
        contract_version: ContractVersion,
        signer: Any,
        mode: PermitMode = PermitMode.AUTO_PERMIT,
        deadline: Optional[int] = None,
        **kwargs,
    ) -> BaseSignResult:
        """
        Produce permit payloads for ``tokens``.

        Args:
            tokens: Token inputs (address, amount, optional hint).
            chain_id: Chain the router lives on.
            spender: Router address receiving the authorization.
            service: Router service the payload targets.
            contract_version: Router generation.
            signer: Caller-supplied signer object.
            mode: Requested permit mode; ``AutoPermit`` lets the adapter choose.
            deadline: Optional signature deadline (unix seconds).

        Returns:
            BaseSignResult: Aggregated status plus permit payloads.
        """
        pass

    @abstractmethod
    async def sign_gasless_intent(
        self,
        *,
        tokens: Sequence[Any],
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
        **kwargs,
    ) -> BaseSignResult:
        """
        Produce a gasless intent signature for a pending transaction.

        Raises:
            InvalidWitnessDataError: When the hashes required by ``tx_type``
                                     are missing.
        """
        pass

    @abstractmethod
    async def sign_custom_typed_data(
        self,
        *,
        signer: Any,
        domain: Dict[str, Any],
        types: Dict[str, Any],
        primary_type: str,
        message: Dict[str, Any],
        account: Optional[str] = None,
    ) -> BaseSignResult:
        """Sign caller-supplied typed data; failures come back as a status."""
        pass
