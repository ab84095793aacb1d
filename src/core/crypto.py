"""
Signature verification for capability and invocation proofs.

The chain verifier treats signature checking as an opaque collaborator
(SignatureVerifier). This module provides the interface plus a reference
Ed25519 implementation over a JSON canonical form:

- Ed25519 key pair generation
- Canonical signing input (document without proofs + proof options)
- Document signing (returns a new document with the proof appended)
- Ed25519SignatureVerifier resolving creator keys through a DocumentStore
"""

import base64
import binascii
import copy
import json
import logging
from typing import Any, Optional

from cryptography.exceptions import InvalidSignature as InvalidEd25519Signature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from pydantic import BaseModel, ConfigDict, field_serializer, field_validator

from .documents import ProofPurpose
from .errors import CryptoError, DocumentNotFound
from .store import DocumentStore

logger = logging.getLogger(__name__)

SIGNATURE_TYPE = "Ed25519Signature2018"
KEY_TYPE = "Ed25519VerificationKey2018"


class KeyPair(BaseModel):
    """Container for an Ed25519 key pair."""

    private_key: bytes
    public_key: bytes

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_serializer('private_key', 'public_key')
    def serialize_bytes(self, v: bytes, _info):
        """Serialize bytes to base64 string."""
        return base64.b64encode(v).decode()

    @field_validator('private_key', 'public_key', mode='before')
    @classmethod
    def validate_bytes(cls, v: Any) -> bytes:
        """Decode base64 string to bytes if needed."""
        if isinstance(v, str):
            return base64.b64decode(v)
        return v

    def key_document(self, identity: str) -> dict[str, Any]:
        """Key document publishing this public key under an identity."""
        return {
            "id": identity,
            "type": KEY_TYPE,
            "publicKeyBase64": base64.b64encode(self.public_key).decode(),
        }


class KeyDocument(BaseModel):
    """Public key material for an identity."""

    id: str
    public_key: bytes

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyDocument":
        key_id = data.get("id", data.get("@id"))
        encoded = data.get("publicKeyBase64")
        if not isinstance(key_id, str) or not isinstance(encoded, str):
            raise CryptoError("Key document must have an id and publicKeyBase64")
        try:
            public_key = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise CryptoError(f"Invalid public key encoding for {key_id}: {e}") from e
        return cls(id=key_id, public_key=public_key)


def generate_signing_keypair() -> KeyPair:
    """
    Generate an Ed25519 key pair for signing proofs.

    Returns:
        KeyPair with raw private and public key bytes
    """
    private_key = Ed25519PrivateKey.generate()
    public_key = private_key.public_key()

    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption()
    )
    public_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw
    )

    return KeyPair(private_key=private_bytes, public_key=public_bytes)


def canonical_bytes(document: dict[str, Any], proof: dict[str, Any]) -> bytes:
    """
    Signing input for a proof.

    Covers the document without its top-level proofs, and the proof without
    its signature value. Embedded parent capabilities are covered as-is.
    """
    body = {k: v for k, v in document.items() if k != "proof"}
    options = {k: v for k, v in proof.items() if k != "signatureValue"}
    return json.dumps(
        {"document": body, "proof": options},
        sort_keys=True,
        separators=(',', ':'),
    ).encode()


def sign_document(
    document: dict[str, Any],
    creator: str,
    private_key: bytes,
    purpose: ProofPurpose,
    capability: Optional[Any] = None,
) -> dict[str, Any]:
    """
    Sign a document and return a copy with the proof appended.

    Args:
        document: Capability or invocation document
        creator: Identity of the signer (resolvable to a key document)
        private_key: Raw Ed25519 private key bytes
        purpose: Proof purpose
        capability: Capability reference (invocation proofs only)

    Returns:
        New document; the input is not modified
    """
    signed = copy.deepcopy(document)
    proof: dict[str, Any] = {
        "type": SIGNATURE_TYPE,
        "creator": creator,
        "proofPurpose": ProofPurpose(purpose).value,
    }
    if capability is not None:
        proof["capability"] = capability

    key = Ed25519PrivateKey.from_private_bytes(private_key)
    signature = key.sign(canonical_bytes(signed, proof))
    proof["signatureValue"] = base64.b64encode(signature).decode()

    existing = signed.get("proof")
    if existing is None:
        signed["proof"] = proof
    elif isinstance(existing, list):
        signed["proof"] = existing + [proof]
    else:
        signed["proof"] = [existing, proof]
    return signed


class SignatureVerifier:
    """
    Abstract interface for cryptographic proof verification.

    Owns canonicalization and the signature algorithm; the chain verifier
    only needs a yes/no answer. Raise CryptoError when verification cannot
    be carried out at all.
    """

    async def verify(
        self,
        document: dict[str, Any],
        proof: dict[str, Any],
        purpose: ProofPurpose,
    ) -> bool:
        raise NotImplementedError


def _purpose_matches(proof_purpose: Any, purpose: ProofPurpose) -> bool:
    return proof_purpose == purpose.value


class Ed25519SignatureVerifier(SignatureVerifier):
    """
    Ed25519 verifier over the JSON canonical form.

    Creator keys are resolved through a DocumentStore holding key documents:
        {"id": "did:example:alice", "publicKeyBase64": "..."}
    """

    def __init__(self, key_store: DocumentStore):
        self.key_store = key_store

    async def resolve_key(self, creator: str) -> Ed25519PublicKey:
        """Resolve the public key of a proof creator."""
        try:
            data = await self.key_store.fetch(creator)
        except DocumentNotFound as e:
            raise CryptoError(f"No key document for {creator}") from e
        key_document = KeyDocument.from_dict(data)
        try:
            return Ed25519PublicKey.from_public_bytes(key_document.public_key)
        except ValueError as e:
            raise CryptoError(f"Invalid Ed25519 public key for {creator}: {e}") from e

    async def verify(
        self,
        document: dict[str, Any],
        proof: dict[str, Any],
        purpose: ProofPurpose,
    ) -> bool:
        if not _purpose_matches(proof.get("proofPurpose"), purpose):
            logger.debug(f"Proof purpose {proof.get('proofPurpose')} does not match {purpose.value}")
            return False

        encoded = proof.get("signatureValue")
        if not isinstance(encoded, str):
            return False
        try:
            signature = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise CryptoError(f"Invalid signature encoding: {e}") from e

        creator = proof.get("creator")
        if isinstance(creator, dict):
            creator = creator.get("id", creator.get("@id"))
        if not isinstance(creator, str):
            raise CryptoError("Proof creator must be an identifier")

        key = await self.resolve_key(creator)
        try:
            key.verify(signature, canonical_bytes(document, proof))
        except InvalidEd25519Signature:
            logger.debug(f"Signature by {creator} failed verification")
            return False
        return True
