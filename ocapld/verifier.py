"""
ocap-ld SDK - Verifier Module.

High-level API for invocation verification.

Usage:
    from ocapld import OcapVerifier
    from src.core import InMemoryDocumentStore

    store = InMemoryDocumentStore(documents)
    verifier = OcapVerifier(store)

    result = await verifier.verify(invocation, expected_target="urn:res:1")
    if not result:
        print(result.reason, result.message)
"""

import asyncio
import logging
from typing import Any, Optional, Union

from src.core.caveats import CaveatRegistry, RevocationChecker, default_caveat_registry
from src.core.chain import ChainResolver
from src.core.crypto import Ed25519SignatureVerifier, SignatureVerifier
from src.core.documents import CapabilityDocument, Invocation, Proof
from src.core.purposes import (
    InvocationProofPurpose,
    VerificationOptions,
    VerificationResult,
)
from src.core.store import DocumentStore

from .config import OcapConfig

logger = logging.getLogger(__name__)


class OcapVerifier:
    """
    Configured entry point for verifying invocations.

    Holds only immutable collaborators, so one instance can serve many
    concurrent verifications.
    """

    def __init__(
        self,
        store: DocumentStore,
        signature_verifier: Optional[SignatureVerifier] = None,
        config: Optional[OcapConfig] = None,
        caveat_verifiers: Optional[CaveatRegistry] = None,
        revocation_checker: Optional[RevocationChecker] = None,
    ):
        """
        Args:
            store: Document store for capabilities, targets and keys
            signature_verifier: Proof verifier (default: Ed25519 over store)
            config: Verifier configuration
            caveat_verifiers: Extra caveat verifiers, merged over the built-ins
            revocation_checker: Default revocation checker
        """
        self.store = store
        self.config = config or OcapConfig()
        self.signature_verifier = signature_verifier or Ed25519SignatureVerifier(store)

        registry: dict[str, Any] = {}
        if self.config.builtin_caveats:
            registry.update(default_caveat_registry())
        registry.update(caveat_verifiers or {})

        self._purpose = InvocationProofPurpose(
            store,
            self.signature_verifier,
            caveat_verifiers=registry,
            revocation_checker=revocation_checker,
            max_chain_length=self.config.chain_limit,
        )

    @property
    def caveat_types(self) -> list[str]:
        """Caveat types this verifier understands by default."""
        return sorted(self._purpose.caveat_verifiers)

    async def verify(
        self,
        invocation: Union[Invocation, dict[str, Any]],
        expected_target: str,
        proof: Optional[Union[Proof, dict[str, Any]]] = None,
        caveat_verifiers: Optional[CaveatRegistry] = None,
        revocation_checker: Optional[RevocationChecker] = None,
        timeout: Optional[float] = None,
    ) -> VerificationResult:
        """
        Verify an invocation against the expected target.

        Per-call caveat verifiers replace the configured registry for this
        call only.
        """
        options = VerificationOptions(
            expected_target=expected_target,
            caveat_verifiers=caveat_verifiers,
            revocation_checker=revocation_checker,
            timeout=timeout if timeout is not None else self.config.timeout,
        )
        return await self._purpose.verify(invocation, proof, options)

    def verify_sync(
        self,
        invocation: Union[Invocation, dict[str, Any]],
        expected_target: str,
        **kwargs: Any,
    ) -> VerificationResult:
        """Blocking variant of verify() for callers without an event loop."""
        return asyncio.run(self.verify(invocation, expected_target, **kwargs))

    async def resolve_chain(self, capability: Any) -> list[CapabilityDocument]:
        """Resolve a capability into its root-first chain without verifying it."""
        resolver = ChainResolver(self.store, self.config.chain_limit)
        return await resolver.resolve(capability)
