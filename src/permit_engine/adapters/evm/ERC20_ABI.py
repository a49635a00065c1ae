"""
ERC20 Permit + Permit2 + DZap Verifier ABI Module

This module provides the minimal, read-only ABI fragments the engine needs to
probe EIP-2612 support, resolve nonces and read Permit2 allowances.

Usage:
    from ERC20_ABI import (
        get_eip2612_probe_abi,
        get_permit2_abi,
        get_dzap_nonce_abi,
    )

    # Probe DOMAIN_SEPARATOR / nonces / name / version on a token
    token_abi = get_eip2612_probe_abi()

    # Read allowance(owner, token, spender) and nonceBitmap(owner, word)
    permit2_abi = get_permit2_abi()
"""

from typing import Dict, Any, List


def _view(name: str, inputs: List[Dict[str, str]], outputs: List[Dict[str, str]]) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


def get_domain_separator_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for EIP-2612 ``DOMAIN_SEPARATOR()``.

    Returns:
        List[Dict[str, Any]]: ABI for the ``DOMAIN_SEPARATOR`` view.

    Example:
        abi = get_domain_separator_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        separator = await contract.functions.DOMAIN_SEPARATOR().call()
    """
    return [_view("DOMAIN_SEPARATOR", [], [{"name": "", "type": "bytes32"}])]


def get_eip2612_probe_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for every view read by the full EIP-2612 probe.

    Covers ``DOMAIN_SEPARATOR()``, ``nonces(owner)``, ``name()`` and
    ``version()``.  ``version`` is optional on many tokens; callers treat a
    failed read as the default version.

    Returns:
        List[Dict[str, Any]]: ABI list for the probe views.
    """
    return get_domain_separator_abi() + [
        _view("nonces", [{"name": "owner", "type": "address"}], [{"name": "", "type": "uint256"}]),
        _view("name", [], [{"name": "", "type": "string"}]),
        _view("version", [], [{"name": "", "type": "string"}]),
    ]


def get_permit2_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the Permit2 registry views.

    ``allowance(owner, token, spender)`` returns ``(amount, expiration, nonce)``
    for allowance-style permits; ``nonceBitmap(owner, wordPos)`` returns the
    256-bit word of used signature-transfer nonces.

    Returns:
        List[Dict[str, Any]]: ABI list with ``allowance`` and ``nonceBitmap``.

    Example:
        abi = get_permit2_abi()
        permit2 = web3.eth.contract(address=permit2_address, abi=abi)
        amount, expiration, nonce = await permit2.functions.allowance(owner, token, spender).call()
    """
    return [
        _view(
            "allowance",
            [
                {"name": "user", "type": "address"},
                {"name": "token", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            [
                {"name": "amount", "type": "uint160"},
                {"name": "expiration", "type": "uint48"},
                {"name": "nonce", "type": "uint48"},
            ],
        ),
        _view(
            "nonceBitmap",
            [
                {"name": "", "type": "address"},
                {"name": "", "type": "uint256"},
            ],
            [{"name": "", "type": "uint256"}],
        ),
    ]


def get_dzap_nonce_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the DZap verifier ``getNonce(user)`` view.

    Gasless intents signed under the DZapVerifier domain are sequenced by this
    per-user counter on the router itself.

    Returns:
        List[Dict[str, Any]]: ABI for ``getNonce``.
    """
    return [_view("getNonce", [{"name": "user", "type": "address"}], [{"name": "", "type": "uint256"}])]
