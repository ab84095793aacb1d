"""
Capability, invocation and target documents.

Documents arrive as JSON objects (already expanded/compacted by the caller)
and are parsed into frozen models. Parsing never modifies the input; each
model keeps a reference to the dict it came from so signature verifiers can
work on the exact bytes that were signed.

Accepted shapes:
    {"id": "urn:cap:1", "parentCapability": "urn:cap:0", ...}   # by reference
    {"id": "urn:cap:1", "parentCapability": {...full doc...}}    # embedded
    {"id": "urn:cap:1", "invoker": ["did:ex:alice"]}
    {"id": "urn:cap:1", "invoker": {"id": "did:ex:alice"}}
"""

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import CapabilityError, MalformedChain, MalformedInvocation

logger = logging.getLogger(__name__)


class ProofPurpose(str, Enum):
    """Purposes a proof can be created for."""
    INVOCATION = "capabilityInvocation"
    DELEGATION = "capabilityDelegation"
    ROOT_GRANT = "capabilityGrant"


# A capability document carries exactly one proof with one of these purposes
DELEGATION_PURPOSES = frozenset({ProofPurpose.DELEGATION.value, ProofPurpose.ROOT_GRANT.value})

_ID_KEYS = ("id", "@id")
_TYPE_KEYS = ("type", "@type")


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _one(value: Any, error: type[CapabilityError], message: str) -> Any:
    """Return the single element of value, or raise error."""
    values = _as_list(value)
    if len(values) != 1:
        raise error(message)
    return values[0]


def _node_id(data: dict[str, Any]) -> Optional[str]:
    for key in _ID_KEYS:
        if isinstance(data.get(key), str):
            return data[key]
    return None


def _identifier(value: Any, error: type[CapabilityError]) -> str:
    """Identifier from a plain string or an object with an id."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        node_id = _node_id(value)
        if node_id:
            return node_id
    raise error(f"Expected an identifier, got {type(value).__name__}")


def _identifiers(value: Any, error: type[CapabilityError]) -> frozenset[str]:
    return frozenset(_identifier(v, error) for v in _as_list(value))


def _type_of(data: dict[str, Any]) -> Any:
    for key in _TYPE_KEYS:
        if key in data:
            return data[key]
    return None


class Caveat(BaseModel):
    """
    A side-condition attached to a capability.

    Only the type is interpreted by the verifier; all other fields are
    handed as-is to the caveat verifier registered for that type.
    """

    type: str
    params: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def get(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)

    @classmethod
    def from_dict(cls, data: Any) -> "Caveat":
        if not isinstance(data, dict):
            raise MalformedChain("Caveat must be an object")
        caveat_type = _one(
            _type_of(data), MalformedChain, "Caveat must have exactly one type"
        )
        if not isinstance(caveat_type, str):
            raise MalformedChain("Caveat type must be a string")
        params = {k: v for k, v in data.items() if k not in _TYPE_KEYS}
        return cls(type=caveat_type, params=params)


class Proof(BaseModel):
    """
    A proof attached to a capability or an invocation.

    Attributes:
        creator: Identity that created the signature
        purpose: Proof purpose (see ProofPurpose)
        capability: Capability being exercised (invocation proofs only),
            either an id or an embedded capability document
        signature_value: Opaque signature material
    """

    creator: str
    purpose: str
    capability: Optional[Any] = None
    signature_value: Optional[str] = None
    source: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    model_config = ConfigDict(frozen=True)

    @property
    def is_delegation_capable(self) -> bool:
        return self.purpose in DELEGATION_PURPOSES

    @property
    def capability_id(self) -> Optional[str]:
        if self.capability is None:
            return None
        if isinstance(self.capability, str):
            return self.capability
        if isinstance(self.capability, dict):
            return _node_id(self.capability)
        return None

    @classmethod
    def from_dict(
        cls,
        data: Any,
        error: type[CapabilityError] = MalformedChain,
    ) -> "Proof":
        if not isinstance(data, dict):
            raise error("Proof must be an object")
        if "creator" not in data:
            raise error("Proof creator field is mandatory")
        creator = _identifier(
            _one(data["creator"], error, "Proof must have exactly one creator"), error
        )
        purpose = data.get("proofPurpose")
        if not isinstance(purpose, str):
            raise error("Proof must have a proofPurpose")
        signature_value = data.get("signatureValue")
        if signature_value is not None and not isinstance(signature_value, str):
            raise error("Proof signatureValue must be a string")
        capability = data.get("capability")
        if capability is not None:
            capability = _one(capability, error, "Proof must reference exactly one capability")
        return cls(
            creator=creator,
            purpose=purpose,
            capability=capability,
            signature_value=signature_value,
            source=data,
        )


class CapabilityDocument(BaseModel):
    """
    A capability: authority over a target for a set of actions.

    A document without a parent is a root capability. A document that
    carries nothing but its id is a reference which must be fetched before
    it can be used. An embedded parent is kept as its raw dict and only
    parsed when parent_capability is read, one level at a time.
    """

    id: str
    invocation_target: Optional[str] = None
    parent: Optional[Any] = Field(default=None, exclude=True, repr=False)
    allowed_action: Optional[frozenset[str]] = None
    invoker: frozenset[str] = frozenset()
    caveat: tuple[Caveat, ...] = ()
    proof: tuple[Proof, ...] = ()
    reference_only: bool = False
    source: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    model_config = ConfigDict(frozen=True)

    @property
    def parent_id(self) -> Optional[str]:
        if self.parent is None:
            return None
        return _identifier(self.parent, MalformedChain)

    @property
    def parent_capability(self) -> Optional["CapabilityDocument"]:
        """The parent parsed one level deep (a reference if not embedded)."""
        if self.parent is None:
            return None
        return CapabilityDocument.from_dict(self.parent)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def delegation_proof(self) -> Proof:
        """The single delegation (or root grant) proof of this document."""
        proofs = [p for p in self.proof if p.is_delegation_capable]
        if len(proofs) != 1:
            raise MalformedChain(
                f"Capability must carry exactly one delegation proof, found {len(proofs)}",
                capability_id=self.id,
            )
        return proofs[0]

    @classmethod
    def from_dict(cls, data: Any) -> "CapabilityDocument":
        """Parse a capability document or a reference to one."""
        if isinstance(data, str):
            return cls(id=data, reference_only=True, source={"id": data})
        if not isinstance(data, dict):
            raise MalformedChain("Capability must be an object or an identifier")

        doc_id = _node_id(data)
        if not doc_id:
            raise MalformedChain("Capability must have an id")
        if set(data) <= set(_ID_KEYS):
            return cls(id=doc_id, reference_only=True, source=data)

        try:
            parent = None
            if data.get("parentCapability") is not None:
                parent = _one(
                    data["parentCapability"], MalformedChain,
                    "Capability must have at most one parentCapability",
                )
                _identifier(parent, MalformedChain)

            target = None
            if data.get("invocationTarget") is not None:
                target = _identifier(_one(
                    data["invocationTarget"], MalformedChain,
                    "Capability must have at most one invocationTarget",
                ), MalformedChain)

            allowed_action = None
            if data.get("allowedAction") is not None:
                allowed_action = _identifiers(data["allowedAction"], MalformedChain)

            return cls(
                id=doc_id,
                invocation_target=target,
                parent=parent,
                allowed_action=allowed_action,
                invoker=_identifiers(data.get("invoker"), MalformedChain),
                caveat=tuple(Caveat.from_dict(c) for c in _as_list(data.get("caveat"))),
                proof=tuple(Proof.from_dict(p) for p in _as_list(data.get("proof"))),
                source=data,
            )
        except MalformedChain as e:
            e.capability_id = e.capability_id or doc_id
            raise


class Invocation(BaseModel):
    """
    The document being authorized for execution.

    Its type names the action being invoked. Any other field is available
    to caveat verifiers through get().
    """

    id: Optional[str] = None
    action: str
    proof: tuple[Proof, ...] = ()
    source: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    model_config = ConfigDict(frozen=True)

    def get(self, key: str, default: Any = None) -> Any:
        return self.source.get(key, default)

    def invocation_proof(self) -> Proof:
        """The single capabilityInvocation proof attached to this document."""
        proofs = [p for p in self.proof if p.purpose == ProofPurpose.INVOCATION.value]
        if len(proofs) != 1:
            raise MalformedInvocation(
                f"Invocation must carry exactly one invocation proof, found {len(proofs)}"
            )
        return proofs[0]

    @classmethod
    def from_dict(cls, data: Any) -> "Invocation":
        if not isinstance(data, dict):
            raise MalformedInvocation("Invocation must be an object")
        action = _one(
            _type_of(data), MalformedInvocation, "Invocation must have exactly one type"
        )
        action = _identifier(action, MalformedInvocation)
        return cls(
            id=_node_id(data),
            action=action,
            proof=tuple(
                Proof.from_dict(p, MalformedInvocation) for p in _as_list(data.get("proof"))
            ),
            source=data,
        )


class TargetDocument(BaseModel):
    """
    The protected resource a root capability governs.

    capability_delegate lists the identities the resource itself authorizes
    to grant capabilities over it.
    """

    id: str
    capability_delegate: frozenset[str] = frozenset()

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_dict(cls, data: Any) -> "TargetDocument":
        if not isinstance(data, dict):
            raise MalformedChain("Target must be an object")
        target_id = _node_id(data)
        if not target_id:
            raise MalformedChain("Target must have an id")
        delegates = data.get("capabilityDelegate", data.get("capabilityDelegation"))
        return cls(id=target_id, capability_delegate=_identifiers(delegates, MalformedChain))
