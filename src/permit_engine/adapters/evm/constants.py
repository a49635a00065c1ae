"""
EVM Permit Constants and Configuration

Provides the fixed protocol values the engine depends on (Permit2 deployments,
on-chain permit dispatch discriminators, placeholder payloads, numeric limits)
and the environment-aware ``EngineConfig`` model.

Environment Variables:
    - PERMIT_SIGNATURE_EXPIRY_SECS: Default deadline offset in seconds (1800)
    - PERMIT_EIP2612_DISABLED_CHAINS: Comma separated chain ids that never use EIP-2612
    - PERMIT_CAPABILITY_CACHE_TTL: Capability cache TTL in seconds (86400)
    - PERMIT_BATCH_ALLOWED: Whether batch Permit2 signatures may be selected (true)
    - PERMIT_RPC_URLS_<chainId>: Comma separated RPC endpoints for one chain
    - PERMIT_RPC_TIMEOUT: HTTP timeout for RPC requests (60)
"""

import os
import time
from enum import IntEnum
from typing import Callable, Dict, List, Optional

import dotenv
from eth_abi import encode
from eth_utils import keccak, to_hex
from pydantic import BaseModel, Field

from ...engine.exceptions import ConfigurationError

dotenv.load_dotenv()


# ---------------------------------------------------------------------------
# Numeric limits
# ---------------------------------------------------------------------------

MAX_UINT256: int = 2**256 - 1
MAX_UINT160: int = 2**160 - 1
MAX_UINT48: int = 2**48 - 1

#: Default signature lifetime (30 minutes).
SIGNATURE_EXPIRY_IN_SECS: int = 1800

#: Capability cache lifetime (24 hours).
EIP2612_SUPPORT_CACHE_EXPIRY: int = 86400

#: Used when a token has no ``version()`` view.
DEFAULT_PERMIT_VERSION: str = "1"

#: Upper bound for the Permit2 nonce bitmap scan.
MAX_WORD_ITERATIONS: int = 1000

#: Katana.
DEFAULT_EIP2612_DISABLED_CHAINS: List[int] = [747474]


# ---------------------------------------------------------------------------
# Permit2 deployments
# ---------------------------------------------------------------------------

#: Canonical Uniswap Permit2 singleton address.
DEFAULT_PERMIT2_ADDRESS: str = "0x000000000022D473030F116dDEE9F6B43aC78BA3"

#: Chains where Permit2 lives at a non-canonical address.
_EXCLUSIVE_PERMIT2_ADDRESSES: Dict[str, List[int]] = {
    "0x0000000000225e31D15943971F47aD3022F714Fa": [324, 2741, 232],
    "0x5Aeec43fF96b9B6c5a1dC1DAdA662ACE3c236C49": [10242],
    "0x08208a5f56696E7AA3eAF7a307fa63B37bd8e8A5": [6001, 5115, 996, 14, 8822, 42766, 5165],
}

_PERMIT2_BY_CHAIN: Dict[int, str] = {
    chain_id: address
    for address, chain_ids in _EXCLUSIVE_PERMIT2_ADDRESSES.items()
    for chain_id in chain_ids
}


def get_permit2_address(chain_id: int) -> str:
    """Return the Permit2 deployment used on ``chain_id``."""
    return _PERMIT2_BY_CHAIN.get(chain_id, DEFAULT_PERMIT2_ADDRESS)


# ---------------------------------------------------------------------------
# Native currency
# ---------------------------------------------------------------------------

NATIVE_TOKEN_ADDRESSES = frozenset({
    "0x0000000000000000000000000000000000000000",
    "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee",
})


def is_native_token(address: str) -> bool:
    return address.lower() in NATIVE_TOKEN_ADDRESSES


# ---------------------------------------------------------------------------
# On-chain permit dispatch discriminators
# ---------------------------------------------------------------------------

class DZapPermitMode(IntEnum):
    """Mode byte understood by v2 routers and by the zap service."""
    PERMIT = 0
    PERMIT2_APPROVE = 1
    PERMIT2_WITNESS_TRANSFER = 2
    BATCH_PERMIT2_WITNESS_TRANSFER = 3


class DZapV1PermitMode(IntEnum):
    """Mode byte understood by legacy v1 trade routers."""
    PERMIT = 0
    PERMIT2_TRANSFER_FROM = 1
    PERMIT2_APPROVE = 2


#: ``PERMIT`` with empty data: the router falls back to the existing allowance.
DEFAULT_PERMIT_DATA: str = to_hex(encode(["uint8", "bytes"], [int(DZapPermitMode.PERMIT), b""]))

#: Placeholder for one-to-many followers whose amount is covered by token 0.
DEFAULT_PERMIT2_DATA: str = to_hex(encode(["uint8", "bytes"], [int(DZapPermitMode.PERMIT2_APPROVE), b""]))


# ---------------------------------------------------------------------------
# Gasless intent (DZap verifier) domain
# ---------------------------------------------------------------------------

GASLESS_DOMAIN_NAME: str = "DZapVerifier"
GASLESS_DOMAIN_VERSION: str = "1"
GASLESS_SALT_SOURCE: str = "DZap-v0.1"
GASLESS_DOMAIN_SALT: str = to_hex(keccak(text=GASLESS_SALT_SOURCE))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def _parse_int_list(raw: Optional[str], default: List[int]) -> List[int]:
    if raw is None or not raw.strip():
        return list(default)
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise ConfigurationError(f"Invalid chain id list: {raw!r}") from e


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class EngineConfig(BaseModel):
    """Runtime configuration for the permit engine."""
    signature_expiry_secs: int = Field(default=SIGNATURE_EXPIRY_IN_SECS, gt=0, description="Default deadline offset")
    eip2612_disabled_chains: List[int] = Field(
        default_factory=lambda: list(DEFAULT_EIP2612_DISABLED_CHAINS),
        description="Chains on which EIP-2612 is never used",
    )
    capability_cache_ttl: int = Field(default=EIP2612_SUPPORT_CACHE_EXPIRY, gt=0, description="Capability cache TTL")
    batch_allowed: bool = Field(default=True, description="Whether batch Permit2 may be selected")
    rpc_urls: Dict[int, List[str]] = Field(default_factory=dict, description="RPC endpoints per chain id")
    rpc_timeout: int = Field(default=60, gt=0, description="HTTP timeout for RPC requests")

    @classmethod
    def from_env(cls, **overrides) -> "EngineConfig":
        """
        Build a config from ``PERMIT_*`` environment variables.

        Keyword arguments override the environment.

        Raises:
            ConfigurationError: If an environment value cannot be parsed.
        """
        rpc_urls: Dict[int, List[str]] = {}
        for key, value in os.environ.items():
            if not key.startswith("PERMIT_RPC_URLS_"):
                continue
            suffix = key[len("PERMIT_RPC_URLS_"):]
            if not suffix.isdigit():
                raise ConfigurationError(f"Invalid chain id in {key}")
            rpc_urls[int(suffix)] = [url.strip() for url in value.split(",") if url.strip()]

        try:
            values = {
                "signature_expiry_secs": int(os.getenv("PERMIT_SIGNATURE_EXPIRY_SECS", SIGNATURE_EXPIRY_IN_SECS)),
                "eip2612_disabled_chains": _parse_int_list(
                    os.getenv("PERMIT_EIP2612_DISABLED_CHAINS"), DEFAULT_EIP2612_DISABLED_CHAINS
                ),
                "capability_cache_ttl": int(os.getenv("PERMIT_CAPABILITY_CACHE_TTL", EIP2612_SUPPORT_CACHE_EXPIRY)),
                "batch_allowed": _parse_bool(os.getenv("PERMIT_BATCH_ALLOWED"), True),
                "rpc_urls": rpc_urls,
                "rpc_timeout": int(os.getenv("PERMIT_RPC_TIMEOUT", 60)),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid permit engine environment: {e}") from e
        values.update(overrides)
        return cls(**values)

    def get_rpc_urls(self, chain_id: int) -> List[str]:
        urls = self.rpc_urls.get(chain_id)
        if not urls:
            raise ConfigurationError(f"No RPC URL configured for chain_id {chain_id}")
        return urls


def get_default_deadline(expiry_secs: int = SIGNATURE_EXPIRY_IN_SECS, clock: Callable[[], float] = time.time) -> int:
    """Return ``now + expiry_secs`` as a unix timestamp."""
    return int(clock()) + expiry_secs
