"""
Read-only contract access for the permit engine.

The engine never writes to chain; every on-chain dependency (EIP-2612 probe,
Permit2 nonce bitmap, Permit2 allowance, DZap verifier nonce) is a view call
issued through a ``ContractReader``.  ``read`` behaves like a multicall with
``allowFailure``: one ``CallResult(status, result)`` per call, in order, and
a failing call never aborts its neighbours.

``Web3ContractReader`` issues the calls concurrently through ``AsyncWeb3`` and
walks the configured RPC list when an endpoint cannot be reached.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from web3 import AsyncWeb3
from web3.exceptions import ProviderConnectionError, Web3Exception

from ...utils import logger
from .constants import EngineConfig


@dataclass
class ContractCall:
    """One view call: ``address.function_name(*args)`` decoded with ``abi``."""
    address: str
    abi: List[Dict[str, Any]]
    function_name: str
    args: Tuple[Any, ...] = ()


@dataclass
class CallResult:
    status: bool
    result: Any = None
    error: Optional[str] = None


class ContractReader(ABC):
    """Multicall-style read interface."""

    @abstractmethod
    async def read(self, chain_id: int, calls: Sequence[ContractCall]) -> List[CallResult]:
        """
        Execute ``calls`` on ``chain_id``.

        Returns:
            One ``CallResult`` per call, in the same order.  Failures are
            reported with ``status=False`` instead of raising.
        """

    async def read_one(self, chain_id: int, call: ContractCall) -> CallResult:
        return (await self.read(chain_id, [call]))[0]


_CONNECTION_ERRORS = (ProviderConnectionError, asyncio.TimeoutError, OSError)


class Web3ContractReader(ContractReader):
    """
    ``ContractReader`` backed by ``AsyncWeb3`` HTTP providers.

    RPC endpoints come from ``EngineConfig.rpc_urls``.  Calls are sent to the
    first endpoint; calls that fail with a connection error are retried on
    the next one.  Contract reverts are final and reported as failures.

    Example:
        reader = Web3ContractReader(EngineConfig.from_env())
        [res] = await reader.read(1, [ContractCall(token, get_domain_separator_abi(), "DOMAIN_SEPARATOR")])
        if res.status:
            separator = res.result
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config if config is not None else EngineConfig.from_env()
        self._instances: Dict[str, AsyncWeb3] = {}

    def _get_web3_instance(self, rpc_url: str) -> AsyncWeb3:
        w3 = self._instances.get(rpc_url)
        if w3 is None:
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": self.config.rpc_timeout}
            ))
            self._instances[rpc_url] = w3
        return w3

    @staticmethod
    async def _call(w3: AsyncWeb3, call: ContractCall) -> Any:
        contract = w3.eth.contract(address=w3.to_checksum_address(call.address), abi=call.abi)
        function = getattr(contract.functions, call.function_name)
        return await function(*call.args).call()

    async def read(self, chain_id: int, calls: Sequence[ContractCall]) -> List[CallResult]:
        results: List[Optional[CallResult]] = [None] * len(calls)
        pending = list(range(len(calls)))

        for rpc_url in self.config.get_rpc_urls(chain_id):
            if not pending:
                break
            w3 = self._get_web3_instance(rpc_url)
            outcomes = await asyncio.gather(
                *(self._call(w3, calls[i]) for i in pending),
                return_exceptions=True,
            )
            retry = []
            for i, outcome in zip(pending, outcomes):
                if isinstance(outcome, _CONNECTION_ERRORS):
                    logger.warning(f"RPC {rpc_url} unreachable for {calls[i].function_name}: {outcome}")
                    results[i] = CallResult(status=False, error=str(outcome))
                    retry.append(i)
                elif isinstance(outcome, (Web3Exception, ValueError)):
                    results[i] = CallResult(status=False, error=str(outcome))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    results[i] = CallResult(status=True, result=outcome)
            pending = retry

        return [r if r is not None else CallResult(status=False, error="not executed") for r in results]
