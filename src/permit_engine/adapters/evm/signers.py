"""
Signer adapters.

Callers hand the engine one of two signer shapes:

* an ``eth_account`` ``LocalAccount``: signs ``domain`` / ``types`` /
  ``message`` directly and infers the primary type;
* a wallet client: any object with a (sync or async)
  ``sign_typed_data(*, account, domain, types, primary_type, message)`` and an
  ``account`` address, e.g. a bridge to a browser or hardware wallet.

``as_typed_data_signer`` picks the adapter once, at the boundary; the rest of
the engine only sees ``TypedDataSigner``.  Wallet errors (including user
rejections) propagate unchanged.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

from eth_account.signers.local import LocalAccount
from eth_utils import to_hex

from ...engine.exceptions import SignerError

TypeFields = List[Dict[str, str]]


class TypedDataSigner(ABC):
    """One-method signing capability used throughout the engine."""

    @abstractmethod
    async def get_address(self) -> str:
        """Address of the signing account."""

    @abstractmethod
    async def sign_typed_data(
        self,
        *,
        domain: Dict[str, Any],
        types: Dict[str, TypeFields],
        message: Dict[str, Any],
        account: str,
        primary_type: str,
    ) -> str:
        """
        Sign EIP-712 typed data.

        Args:
            domain:       EIP-712 domain values.
            types:        Type definitions without ``EIP712Domain``.
            message:      Message values.
            account:      Address expected to sign.
            primary_type: Name of the top-level struct in ``types``.

        Returns:
            0x-prefixed hex signature.
        """


@runtime_checkable
class WalletClient(Protocol):
    account: Any

    def sign_typed_data(self, *, account, domain, types, primary_type, message):
        ...


class LocalAccountSigner(TypedDataSigner):
    def __init__(self, account: LocalAccount):
        self.account = account

    async def get_address(self) -> str:
        return self.account.address

    async def sign_typed_data(self, *, domain, types, message, account, primary_type) -> str:
        if account.lower() != self.account.address.lower():
            raise SignerError(f"Local account {self.account.address} cannot sign for {account}")
        signed = self.account.sign_typed_data(domain_data=domain, message_types=types, message_data=message)
        return to_hex(signed.signature)


class WalletClientSigner(TypedDataSigner):
    def __init__(self, client: Any):
        self.client = client

    async def get_address(self) -> str:
        account = getattr(self.client, "account", None)
        address = getattr(account, "address", account)
        if not isinstance(address, str):
            raise SignerError("Wallet client exposes no account address")
        return address

    async def sign_typed_data(self, *, domain, types, message, account, primary_type) -> str:
        signature = self.client.sign_typed_data(
            account=account,
            domain=domain,
            types=types,
            primary_type=primary_type,
            message=message,
        )
        if inspect.isawaitable(signature):
            signature = await signature
        if isinstance(signature, (bytes, bytearray)):
            return to_hex(bytes(signature))
        if isinstance(signature, str) and signature.startswith("0x"):
            return signature
        raise SignerError(f"Wallet client returned an invalid signature: {signature!r}")


def as_typed_data_signer(signer: Union[TypedDataSigner, LocalAccount, Any]) -> TypedDataSigner:
    """
    Wrap ``signer`` in the matching adapter.

    Raises:
        SignerError: If ``signer`` matches neither supported shape.
    """
    if isinstance(signer, TypedDataSigner):
        return signer
    if isinstance(signer, LocalAccount):
        return LocalAccountSigner(signer)
    if isinstance(signer, WalletClient):
        return WalletClientSigner(signer)
    raise SignerError(f"Unsupported signer type: {type(signer).__name__}")


async def resolve_account(signer: TypedDataSigner, account: Optional[str] = None) -> str:
    return account or await signer.get_address()
