"""
EIP-712 typed-data containers for every permit shape the engine signs.

Each container owns its fixed type schema and exposes:

* ``to_dict()``       -> ``{types, primaryType, domain, message}`` including the
                         ``EIP712Domain`` entry (``eth_signTypedData_v4`` layout)
* ``message_types()`` -> the same ``types`` without ``EIP712Domain``, as taken
                         by ``eth_account``'s ``sign_typed_data`` and by wallet
                         clients that derive the domain type themselves

Witness variants (``TransferWitness``, ``SwapWitness``, ``BridgeWitness``) carry
their own sub-type name and field list; the Permit2 witness containers merge
that sub-type into ``types`` so the outer ``witness`` field always references
the struct embedded in the message.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

from ...engine.exceptions import InvalidWitnessDataError


TypeFields = List[Dict[str, str]]


# -----------------------------
# EIP-712 Domain
# -----------------------------

_DOMAIN_FIELD_TYPES = (
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
)


@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Used to prevent signature replay across domains.

    ``version`` and ``salt`` are optional: Permit2 omits ``version`` and the
    DZap verifier adds a ``salt``.  Absent fields are left out of both the
    domain dict and the ``EIP712Domain`` type.
    """
    name: str
    chainId: int
    verifyingContract: str
    version: Optional[str] = None
    salt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        values = {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
            "salt": self.salt,
        }
        return {key: value for key, value in values.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EIP712Domain":
        return cls(
            name=data["name"],
            chainId=int(data["chainId"]),
            verifyingContract=data["verifyingContract"],
            version=data.get("version"),
            salt=data.get("salt"),
        )

    def type_fields(self) -> TypeFields:
        present = self.to_dict()
        return [{"name": name, "type": type_} for name, type_ in _DOMAIN_FIELD_TYPES if name in present]


class _TypedData:
    """Shared ``to_dict`` layout for the containers below."""

    primary_type: str

    def domain(self) -> EIP712Domain:
        raise NotImplementedError

    def message_types(self) -> Dict[str, TypeFields]:
        raise NotImplementedError

    def message(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        """Return a dict compatible with EIP-712 structured signing.

        The returned structure follows the conventional layout consumed by
        EIP-712 signing libraries: { types, primaryType, domain, message }.
        """
        domain = self.domain()
        return {
            "types": {"EIP712Domain": domain.type_fields(), **self.message_types()},
            "primaryType": self.primary_type,
            "domain": domain.to_dict(),
            "message": self.message(),
        }


def _require(type_name: str, /, **values: Any) -> None:
    missing = [name for name, value in values.items() if value is None or value == ""]
    if missing:
        raise InvalidWitnessDataError(f"{type_name} requires {', '.join(missing)}")


# -----------------------------
# EIP-2612: Permit
# -----------------------------

@dataclass
class EIP2612PermitTypedData(_TypedData):
    """
    Typed data for an ERC-20 ``permit(owner, spender, value, deadline, v, r, s)``.

    The domain is normally ``{name, version, chainId, verifyingContract=token}``
    but tokens with a nonstandard separator may supply their own domain.

    Attributes:
        eip712_domain: Domain of the token contract.
        owner:         Token holder granting the allowance.
        spender:       Router receiving the allowance.
        value:         Allowance amount.
        nonce:         Token's ``nonces(owner)`` value.
        deadline:      Unix timestamp after which the permit is invalid.
    """
    eip712_domain: EIP712Domain
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    primary_type: str = "Permit"

    types: Dict[str, TypeFields] = field(
        default_factory=lambda: {
            "Permit": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
            ],
        }
    )

    def domain(self) -> EIP712Domain:
        return self.eip712_domain

    def message_types(self) -> Dict[str, TypeFields]:
        return self.types

    def message(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


# -----------------------------
# Permit2 witnesses
# -----------------------------

@dataclass
class TransferWitness:
    """Plain transfer witness: binds the signature to ``owner`` -> ``recipient``."""
    owner: str
    recipient: str

    type_name: ClassVar[str] = "DZapTransferWitness"
    type_fields: ClassVar[TypeFields] = [
        {"name": "owner", "type": "address"},
        {"name": "recipient", "type": "address"},
    ]

    def __post_init__(self):
        _require(self.type_name, owner=self.owner, recipient=self.recipient)

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "recipient": self.recipient}


@dataclass
class SwapWitness:
    """Gasless swap witness."""
    tx_id: str
    user: str
    executor_fees_hash: str
    swap_data_hash: str

    type_name: ClassVar[str] = "DZapSwapWitness"
    type_fields: ClassVar[TypeFields] = [
        {"name": "txId", "type": "bytes32"},
        {"name": "user", "type": "address"},
        {"name": "executorFeesHash", "type": "bytes32"},
        {"name": "swapDataHash", "type": "bytes32"},
    ]

    def __post_init__(self):
        _require(
            self.type_name,
            txId=self.tx_id,
            user=self.user,
            executorFeesHash=self.executor_fees_hash,
            swapDataHash=self.swap_data_hash,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txId": self.tx_id,
            "user": self.user,
            "executorFeesHash": self.executor_fees_hash,
            "swapDataHash": self.swap_data_hash,
        }


@dataclass
class BridgeWitness:
    """Gasless bridge / swap-bridge witness."""
    tx_id: str
    user: str
    executor_fees_hash: str
    swap_data_hash: str
    adapter_data_hash: str

    type_name: ClassVar[str] = "DZapBridgeWitness"
    type_fields: ClassVar[TypeFields] = [
        {"name": "txId", "type": "bytes32"},
        {"name": "user", "type": "address"},
        {"name": "executorFeesHash", "type": "bytes32"},
        {"name": "swapDataHash", "type": "bytes32"},
        {"name": "adapterDataHash", "type": "bytes32"},
    ]

    def __post_init__(self):
        _require(
            self.type_name,
            txId=self.tx_id,
            user=self.user,
            executorFeesHash=self.executor_fees_hash,
            swapDataHash=self.swap_data_hash,
            adapterDataHash=self.adapter_data_hash,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txId": self.tx_id,
            "user": self.user,
            "executorFeesHash": self.executor_fees_hash,
            "swapDataHash": self.swap_data_hash,
            "adapterDataHash": self.adapter_data_hash,
        }


WitnessData = Union[TransferWitness, SwapWitness, BridgeWitness]


# -----------------------------
# Permit2 typed data
# -----------------------------

_TOKEN_PERMISSIONS: TypeFields = [
    {"name": "token", "type": "address"},
    {"name": "amount", "type": "uint256"},
]


def permit2_domain(chain_id: int, verifying_contract: str) -> EIP712Domain:
    """Permit2's domain has no ``version`` field."""
    return EIP712Domain(name="Permit2", chainId=chain_id, verifyingContract=verifying_contract)


@dataclass
class TokenPermission:
    token: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token, "amount": self.amount}


@dataclass
class Permit2PermitSingleTypedData(_TypedData):
    """
    EIP-712 typed-data container for a Permit2 allowance-style ``PermitSingle``.

    Attributes:
        chain_id:            EVM network ID.
        verifying_contract:  Permit2 deployment on that chain.
        spender:             Router receiving the allowance.
        token:               ERC-20 token contract address.
        amount:              Allowance amount (uint160).
        expiration:          Allowance expiry (uint48).
        nonce:               Current allowance nonce from ``allowance(owner, token, spender)``.
        sig_deadline:        Unix timestamp after which the signature is invalid.
    """
    chain_id: int
    verifying_contract: str
    spender: str
    token: str
    amount: int
    expiration: int
    nonce: int
    sig_deadline: int

    primary_type: str = "PermitSingle"

    types: Dict[str, TypeFields] = field(
        default_factory=lambda: {
            "PermitSingle": [
                {"name": "details", "type": "PermitDetails"},
                {"name": "spender", "type": "address"},
                {"name": "sigDeadline", "type": "uint256"},
            ],
            "PermitDetails": [
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint160"},
                {"name": "expiration", "type": "uint48"},
                {"name": "nonce", "type": "uint48"},
            ],
        }
    )

    def domain(self) -> EIP712Domain:
        return permit2_domain(self.chain_id, self.verifying_contract)

    def message_types(self) -> Dict[str, TypeFields]:
        return self.types

    def message(self) -> Dict[str, Any]:
        return {
            "details": {
                "token": self.token,
                "amount": self.amount,
                "expiration": self.expiration,
                "nonce": self.nonce,
            },
            "spender": self.spender,
            "sigDeadline": self.sig_deadline,
        }


@dataclass
class Permit2WitnessTransferTypedData(_TypedData):
    """
    Typed data for Permit2 ``permitWitnessTransferFrom`` (single token).

    ``types`` is derived from the witness so the ``witness`` field type and the
    merged sub-type cannot drift apart.
    """
    chain_id: int
    verifying_contract: str
    spender: str
    token: str
    amount: int
    nonce: int
    deadline: int
    witness: WitnessData

    primary_type: str = "PermitWitnessTransferFrom"

    def domain(self) -> EIP712Domain:
        return permit2_domain(self.chain_id, self.verifying_contract)

    def message_types(self) -> Dict[str, TypeFields]:
        return {
            "PermitWitnessTransferFrom": [
                {"name": "permitted", "type": "TokenPermissions"},
                {"name": "spender", "type": "address"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "witness", "type": self.witness.type_name},
            ],
            "TokenPermissions": list(_TOKEN_PERMISSIONS),
            self.witness.type_name: list(self.witness.type_fields),
        }

    def message(self) -> Dict[str, Any]:
        return {
            "permitted": {"token": self.token, "amount": self.amount},
            "spender": self.spender,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "witness": self.witness.to_dict(),
        }


@dataclass
class Permit2BatchWitnessTransferTypedData(_TypedData):
    """Typed data for Permit2 ``permitWitnessTransferFrom`` over several tokens."""
    chain_id: int
    verifying_contract: str
    spender: str
    permitted: List[TokenPermission]
    nonce: int
    deadline: int
    witness: WitnessData

    primary_type: str = "PermitBatchWitnessTransferFrom"

    def domain(self) -> EIP712Domain:
        return permit2_domain(self.chain_id, self.verifying_contract)

    def message_types(self) -> Dict[str, TypeFields]:
        return {
            "PermitBatchWitnessTransferFrom": [
                {"name": "permitted", "type": "TokenPermissions[]"},
                {"name": "spender", "type": "address"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "witness", "type": self.witness.type_name},
            ],
            "TokenPermissions": list(_TOKEN_PERMISSIONS),
            self.witness.type_name: list(self.witness.type_fields),
        }

    def message(self) -> Dict[str, Any]:
        return {
            "permitted": [permission.to_dict() for permission in self.permitted],
            "spender": self.spender,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "witness": self.witness.to_dict(),
        }


# -----------------------------
# DZap verifier: gasless intents
# -----------------------------

_GASLESS_BASE_FIELDS: TypeFields = [
    {"name": "txId", "type": "bytes32"},
    {"name": "user", "type": "address"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
    {"name": "executorFeesHash", "type": "bytes32"},
]

GASLESS_SWAP_PRIMARY_TYPE = "SignedGasLessSwapData"
GASLESS_BRIDGE_PRIMARY_TYPE = "SignedGasLessBridgeData"
GASLESS_SWAP_BRIDGE_PRIMARY_TYPE = "SignedGasLessSwapBridgeData"


@dataclass
class GaslessIntentTypedData(_TypedData):
    """
    Typed data for a gasless intent verified by the router itself.

    The primary type follows from which leg hashes are present:

    * swap hash only    -> ``SignedGasLessSwapData``
    * adapter hash only -> ``SignedGasLessBridgeData``
    * both              -> ``SignedGasLessSwapBridgeData``

    Attributes:
        eip712_domain:      DZapVerifier domain (with salt) of the router.
        tx_id:              Pending transaction id (bytes32).
        user:               Signing account.
        nonce:              Router ``getNonce(user)`` value.
        deadline:           Unix timestamp after which the intent is invalid.
        executor_fees_hash: Commitment to the relayer fees (bytes32).
        swap_data_hash:     Commitment to the swap leg, if any (bytes32).
        adapter_data_hash:  Commitment to the bridge leg, if any (bytes32).

    Raises:
        InvalidWitnessDataError: When neither leg hash is present.
    """
    eip712_domain: EIP712Domain
    tx_id: str
    user: str
    nonce: int
    deadline: int
    executor_fees_hash: str
    swap_data_hash: Optional[str] = None
    adapter_data_hash: Optional[str] = None

    def __post_init__(self):
        _require("Gasless intent", txId=self.tx_id, user=self.user, executorFeesHash=self.executor_fees_hash)
        if not self.swap_data_hash and not self.adapter_data_hash:
            raise InvalidWitnessDataError("Gasless intent requires swapDataHash or adapterDataHash")

    @property
    def primary_type(self) -> str:
        if self.swap_data_hash and self.adapter_data_hash:
            return GASLESS_SWAP_BRIDGE_PRIMARY_TYPE
        if self.swap_data_hash:
            return GASLESS_SWAP_PRIMARY_TYPE
        return GASLESS_BRIDGE_PRIMARY_TYPE

    def domain(self) -> EIP712Domain:
        return self.eip712_domain

    def message_types(self) -> Dict[str, TypeFields]:
        fields = list(_GASLESS_BASE_FIELDS)
        if self.swap_data_hash:
            fields.append({"name": "swapDataHash", "type": "bytes32"})
        if self.adapter_data_hash:
            fields.append({"name": "adapterDataHash", "type": "bytes32"})
        return {self.primary_type: fields}

    def message(self) -> Dict[str, Any]:
        message = {
            "txId": self.tx_id,
            "user": self.user,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "executorFeesHash": self.executor_fees_hash,
        }
        if self.swap_data_hash:
            message["swapDataHash"] = self.swap_data_hash
        if self.adapter_data_hash:
            message["adapterDataHash"] = self.adapter_data_hash
        return message
