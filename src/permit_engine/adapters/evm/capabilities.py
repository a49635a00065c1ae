"""
EIP-2612 capability probing.

``CapabilityProber`` answers "does this token implement ``permit``?" with a
process-wide, time-boxed cache keyed by ``(chainId, token)``.

Two variants:

* ``check_support``   (light) probes ``DOMAIN_SEPARATOR()`` only and returns a
  boolean.  Used when choosing between allowance modes.
* ``get_permit_data`` (full) additionally reads ``nonces(owner)``, ``name()``
  and ``version()`` for signing.  When support is already known (hint or
  cache) the domain separator is not probed again.

A caller hint (``PermitHint.supported``) or a chain on the disabled list
short-circuits both variants without any RPC call.  Probe failures mean
"unsupported" and are cached like any other answer.
"""

import time
from typing import Callable, List, Optional

from ...engine.exceptions import CapabilityProbeError
from ...utils import logger
from .cache import TTLCache, eip2612_support_key
from .constants import DEFAULT_PERMIT_VERSION, EngineConfig
from .ERC20_ABI import get_domain_separator_abi, get_eip2612_probe_abi
from .readers import CallResult, ContractCall, ContractReader
from .schemas import Eip2612PermitData, PermitHint


class CapabilityProber:
    def __init__(
        self,
        reader: ContractReader,
        *,
        config: Optional[EngineConfig] = None,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.reader = reader
        self.config = config if config is not None else EngineConfig.from_env()
        if cache is None:
            cache = TTLCache(default_ttl=self.config.capability_cache_ttl, clock=clock)
        self.cache = cache

    def _short_circuit(self, chain_id: int, permit_hint: Optional[PermitHint]) -> Optional[bool]:
        if chain_id in self.config.eip2612_disabled_chains:
            return False
        if permit_hint is not None and permit_hint.supported is not None:
            return permit_hint.supported
        return None

    def _remember(self, chain_id: int, token: str, supported: bool) -> None:
        self.cache.set(eip2612_support_key(chain_id, token), supported, self.config.capability_cache_ttl)

    async def check_support(
        self,
        *,
        chain_id: int,
        token: str,
        permit_hint: Optional[PermitHint] = None,
    ) -> bool:
        """
        Light probe: ``True`` when ``token`` exposes ``DOMAIN_SEPARATOR()``.

        Args:
            chain_id:    EVM chain id.
            token:       ERC-20 token address.
            permit_hint: Optional caller hint; ``supported`` wins over probing.

        Returns:
            Whether the token supports EIP-2612.
        """
        declared = self._short_circuit(chain_id, permit_hint)
        if declared is not None:
            return declared

        cached = self.cache.get(eip2612_support_key(chain_id, token))
        if cached is not None:
            return cached

        [res] = await self.reader.read(chain_id, [
            ContractCall(token, get_domain_separator_abi(), "DOMAIN_SEPARATOR"),
        ])
        supported = res.status and res.result is not None
        if not supported:
            logger.debug(f"DOMAIN_SEPARATOR probe failed for {token} on {chain_id}: {res.error}")
        self._remember(chain_id, token, supported)
        return supported

    async def get_permit_data(
        self,
        *,
        chain_id: int,
        token: str,
        owner: str,
        permit_hint: Optional[PermitHint] = None,
    ) -> Eip2612PermitData:
        """
        Full probe: support flag plus ``name``, ``version`` and ``nonces(owner)``.

        ``version`` falls back to ``"1"`` when the token has no ``version()``
        view.  A token whose ``name`` or ``nonces`` read fails is reported as
        unsupported.

        Args:
            chain_id:    EVM chain id.
            token:       ERC-20 token address.
            owner:       Account whose nonce is needed.
            permit_hint: Optional caller hint; a hint domain is passed through.

        Returns:
            ``Eip2612PermitData``; ``supported=False`` carries no other fields.
        """
        declared = self._short_circuit(chain_id, permit_hint)
        if declared is False:
            return Eip2612PermitData(supported=False)

        known = declared if declared is not None else self.cache.get(eip2612_support_key(chain_id, token))
        if known is False:
            return Eip2612PermitData(supported=False)

        abi = get_eip2612_probe_abi()
        calls: List[ContractCall] = [
            ContractCall(token, abi, "nonces", (owner,)),
            ContractCall(token, abi, "name"),
            ContractCall(token, abi, "version"),
        ]
        if known is None:
            calls.append(ContractCall(token, abi, "DOMAIN_SEPARATOR"))

        results = await self.reader.read(chain_id, calls)
        try:
            data = self._parse_probe(results, probed_separator=known is None)
        except CapabilityProbeError as e:
            logger.warning(f"EIP-2612 probe for {token} on chain {chain_id} treated as unsupported: {e}")
            if known is None:
                self._remember(chain_id, token, False)
            return Eip2612PermitData(supported=False)

        self._remember(chain_id, token, True)
        if permit_hint is not None and permit_hint.domain:
            data.domain = dict(permit_hint.domain)
        return data

    @staticmethod
    def _parse_probe(results: List[CallResult], *, probed_separator: bool) -> Eip2612PermitData:
        nonce_res, name_res, version_res = results[:3]
        if probed_separator and not results[3].status:
            raise CapabilityProbeError(f"DOMAIN_SEPARATOR unavailable: {results[3].error}")
        if not nonce_res.status or nonce_res.result is None:
            raise CapabilityProbeError(f"nonces(owner) unavailable: {nonce_res.error}")
        if not name_res.status or not name_res.result:
            raise CapabilityProbeError(f"name() unavailable: {name_res.error}")

        version = version_res.result if version_res.status and version_res.result else DEFAULT_PERMIT_VERSION
        return Eip2612PermitData(
            supported=True,
            name=name_res.result,
            version=version,
            nonce=int(nonce_res.result),
        )
