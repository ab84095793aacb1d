"""
Shared fixtures: identities with real Ed25519 keys and a builder for signed
capability chains.
"""

from typing import Any, Iterable, Optional

import pytest

from src.core.crypto import Ed25519SignatureVerifier, generate_signing_keypair, sign_document
from src.core.documents import ProofPurpose
from src.core.store import InMemoryDocumentStore

TARGET = "urn:res:printer"
OWNER = "did:example:owner"
ALICE = "did:example:alice"
BOB = "did:example:bob"
CAROL = "did:example:carol"
MALLORY = "did:example:mallory"

IDENTITIES = (OWNER, ALICE, BOB, CAROL, MALLORY)


class ChainBuilder:
    """Issues signed capabilities and invocations into a document store."""

    def __init__(self, store: InMemoryDocumentStore, keys: dict):
        self.store = store
        self.keys = keys
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"urn:{prefix}:{self._counter}"

    def root(
        self,
        invoker: Iterable[str] = (ALICE,),
        actions: Optional[Iterable[str]] = ("read", "write"),
        creator: str = OWNER,
        caveat: Optional[list] = None,
        target: Optional[str] = TARGET,
        capability_id: Optional[str] = None,
        store: bool = True,
    ) -> dict[str, Any]:
        document: dict[str, Any] = {"id": capability_id or self._next_id("cap")}
        if target is not None:
            document["invocationTarget"] = target
        document["invoker"] = list(invoker)
        if actions is not None:
            document["allowedAction"] = list(actions)
        if caveat:
            document["caveat"] = caveat
        signed = sign_document(
            document, creator, self.keys[creator].private_key, ProofPurpose.ROOT_GRANT
        )
        if store:
            self.store.add(signed)
        return signed

    def delegate(
        self,
        parent: dict[str, Any],
        invoker: Iterable[str],
        creator: str,
        actions: Optional[Iterable[str]] = None,
        caveat: Optional[list] = None,
        embed: bool = False,
        capability_id: Optional[str] = None,
        store: bool = True,
    ) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": capability_id or self._next_id("cap"),
            "parentCapability": parent if embed else parent["id"],
            "invoker": list(invoker),
        }
        if actions is not None:
            document["allowedAction"] = list(actions)
        if caveat:
            document["caveat"] = caveat
        signed = sign_document(
            document, creator, self.keys[creator].private_key, ProofPurpose.DELEGATION
        )
        if store:
            self.store.add(signed)
        return signed

    def invoke(
        self,
        capability: dict[str, Any],
        creator: str,
        action: str = "read",
        embed: bool = False,
        **fields: Any,
    ) -> dict[str, Any]:
        document = {"id": self._next_id("inv"), "type": action, **fields}
        return sign_document(
            document,
            creator,
            self.keys[creator].private_key,
            ProofPurpose.INVOCATION,
            capability=capability if embed else capability["id"],
        )


@pytest.fixture
def keys():
    """One Ed25519 key pair per test identity."""
    return {identity: generate_signing_keypair() for identity in IDENTITIES}


@pytest.fixture
def store(keys):
    """Store holding every identity's key document and the target."""
    store = InMemoryDocumentStore(
        keypair.key_document(identity) for identity, keypair in keys.items()
    )
    store.add({"id": TARGET, "capabilityDelegate": [OWNER]})
    return store


@pytest.fixture
def signatures(store):
    return Ed25519SignatureVerifier(store)


@pytest.fixture
def chains(store, keys):
    return ChainBuilder(store, keys)
