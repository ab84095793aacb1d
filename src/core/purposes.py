"""
Proof purposes for object capabilities.

Three purposes make up the verification state machine:

- RootGrant: a parentless capability signed by an identity the target
  itself authorizes. This is the trust anchor.
- Delegation: a capability re-issued by an invoker of its parent,
  optionally with a narrower action set.
- Invocation: the exercise of the leaf capability of a chain.

Invocation verification walks:

    Start -> ChainResolved -> RootValidated -> ContextExtended(0..n)
          -> FinalChecksPassed

and any step can fail into a terminal error (see errors.py). There are no
partial results: either every check passes or verification fails.

Usage:
    purpose = InvocationProofPurpose(store, Ed25519SignatureVerifier(store))
    result = await purpose.verify(invocation, options={"expectedTarget": target})
    if not result:
        print(result.reason, result.message)
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .caveats import CaveatRegistry, RevocationChecker, never_revoked
from .chain import ChainResolver
from .context import AuthorizationContext, ContextSnapshot
from .crypto import SignatureVerifier
from .documents import (
    CapabilityDocument,
    Invocation,
    Proof,
    ProofPurpose,
    TargetDocument,
)
from .errors import (
    ActionNotPermitted,
    CapabilityError,
    CaveatFailed,
    DocumentNotFound,
    InvalidParent,
    InvalidSignature,
    MalformedChain,
    MalformedInvocation,
    MissingParent,
    NotAuthorized,
    Revoked,
    TargetMismatch,
    Unauthorized,
    UnknownCaveatType,
    UnresolvedReference,
    VerificationErrorCode,
    VerificationTimeout,
)
from .store import DocumentStore

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    """Await value if a collaborator returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


async def _check_not_revoked(checker: RevocationChecker, capability: CapabilityDocument) -> None:
    if await _resolve(checker(capability)):
        raise Revoked(f"Capability {capability.id} has been revoked", capability_id=capability.id)


async def _check_signature(
    verifier: SignatureVerifier,
    document: dict[str, Any],
    proof: Proof,
    purpose: ProofPurpose,
    subject_id: Optional[str],
) -> None:
    if not await _resolve(verifier.verify(document, proof.source, purpose)):
        raise InvalidSignature(
            f"{purpose.value} proof by {proof.creator} failed signature verification",
            capability_id=subject_id,
        )


def purpose_for(capability: CapabilityDocument) -> ProofPurpose:
    """Proof purpose a capability is verified under."""
    if capability.is_root:
        return ProofPurpose.ROOT_GRANT
    return ProofPurpose.DELEGATION


def _position_proof(capability: CapabilityDocument, purpose: ProofPurpose) -> Proof:
    """The delegation proof of a capability, which must carry its position's purpose."""
    proof = capability.delegation_proof()
    if proof.purpose != purpose.value:
        raise MalformedChain(
            f"Capability {capability.id} carries a {proof.purpose} proof where "
            f"{purpose.value} is required",
            capability_id=capability.id,
        )
    return proof


class RootGrantProofPurpose:
    """
    Verifies a root capability.

    No ancestry is checked: the root is valid when it is not revoked, carries
    exactly one capabilityGrant proof created by one of the target's
    capability delegates, and that proof's signature verifies.
    """

    purpose = ProofPurpose.ROOT_GRANT

    def __init__(
        self,
        signature_verifier: SignatureVerifier,
        revocation_checker: RevocationChecker = never_revoked,
    ):
        self.signature_verifier = signature_verifier
        self.revocation_checker = revocation_checker

    async def verify(self, capability: CapabilityDocument, ctx: AuthorizationContext) -> bool:
        if not capability.is_root:
            raise MalformedChain(
                f"Capability {capability.id} has a parent and cannot be a root grant",
                capability_id=capability.id,
            )
        await _check_not_revoked(self.revocation_checker, capability)

        proof = _position_proof(capability, self.purpose)
        if proof.creator not in ctx.capability_delegates:
            raise NotAuthorized(
                f"Root capability {capability.id} is not signed by a delegate of its target",
                capability_id=capability.id,
            )

        await _check_signature(
            self.signature_verifier, capability.source, proof, self.purpose, capability.id
        )
        return True


class DelegationProofPurpose:
    """
    Verifies delegated capabilities of one resolved chain.

    Created per verification call; results are memoized for that call only.
    """

    purpose = ProofPurpose.DELEGATION

    def __init__(
        self,
        chain: list[CapabilityDocument],
        signature_verifier: SignatureVerifier,
        revocation_checker: RevocationChecker = never_revoked,
    ):
        self.signature_verifier = signature_verifier
        self.revocation_checker = revocation_checker
        self._chain = {capability.id: capability for capability in chain}
        self._root_grant = RootGrantProofPurpose(signature_verifier, revocation_checker)
        self._verified: set[str] = set()

    async def verify_capability(
        self,
        capability: CapabilityDocument,
        ctx: AuthorizationContext,
    ) -> bool:
        """Verify a capability under the purpose its position requires."""
        if capability.id in self._verified:
            return True

        purpose = purpose_for(capability)
        if purpose == ProofPurpose.ROOT_GRANT:
            await self._root_grant.verify(capability, ctx)
        elif purpose == ProofPurpose.DELEGATION:
            await self.verify(capability, ctx)

        self._verified.add(capability.id)
        return True

    async def verify(self, capability: CapabilityDocument, ctx: AuthorizationContext) -> bool:
        """
        Verify one delegation step.

        Steps (first failure wins):
        1. Not revoked
        2. Has a parent
        3. Delegation proof has the delegation purpose and its creator is an
           invoker of the parent
        4. Parent verifies (recursively, down to the root grant)
        5. Delegation proof signature verifies

        Raises:
            Revoked, MissingParent, InvalidParent, NotAuthorized,
            MalformedChain, InvalidSignature, CryptoError
        """
        if capability.id in self._verified:
            return True

        await _check_not_revoked(self.revocation_checker, capability)

        if capability.is_root:
            raise MissingParent(
                f"Delegated capability {capability.id} has no parentCapability",
                capability_id=capability.id,
            )
        parent = self._chain.get(capability.parent_id)
        if parent is None:
            raise InvalidParent(
                f"Parent {capability.parent_id} of {capability.id} is not part of the chain",
                capability_id=capability.id,
            )

        proof = _position_proof(capability, self.purpose)
        if proof.creator not in parent.invoker:
            raise NotAuthorized(
                f"Capability {capability.id} was not delegated by an invoker of {parent.id}",
                capability_id=capability.id,
            )

        try:
            await self.verify_capability(parent, ctx)
        except CapabilityError as e:
            raise InvalidParent(
                f"Parent {parent.id} of {capability.id} failed verification: {e.code.value}",
                capability_id=capability.id,
                cause=e,
            ) from e

        await _check_signature(
            self.signature_verifier, capability.source, proof, self.purpose, capability.id
        )
        self._verified.add(capability.id)
        return True


class VerificationOptions(BaseModel):
    """
    Per-call verification options.

    Accepts both the linked-data key names (expectedTarget, caveatVerifiers,
    revocationChecker) and their snake_case equivalents.
    """

    expected_target: str = Field(alias="expectedTarget")
    caveat_verifiers: Optional[Mapping[str, Callable[..., Any]]] = Field(
        default=None, alias="caveatVerifiers"
    )
    revocation_checker: Optional[Callable[..., Any]] = Field(
        default=None, alias="revocationChecker"
    )
    timeout: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True, frozen=True)

    @classmethod
    def coerce(cls, options: Union["VerificationOptions", Mapping[str, Any]]) -> "VerificationOptions":
        if isinstance(options, cls):
            return options
        return cls.model_validate(dict(options))


@dataclass
class VerificationResult:
    """Outcome of an invocation verification."""
    verified: bool
    reason: Optional[VerificationErrorCode] = None
    message: Optional[str] = None
    capability_id: Optional[str] = None
    chain: list[str] = field(default_factory=list)
    trace: list[ContextSnapshot] = field(default_factory=list)
    duration_ms: float = 0.0
    error: Optional[CapabilityError] = field(default=None, repr=False)

    def __bool__(self) -> bool:
        return self.verified

    def to_dict(self) -> dict[str, Any]:
        return {
            "verified": self.verified,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "capability_id": self.capability_id,
            "chain": self.chain,
            "trace": [snapshot.to_dict() for snapshot in self.trace],
            "duration_ms": self.duration_ms,
        }


@dataclass
class _Progress:
    """What one verification call has established so far."""
    chain: list[CapabilityDocument] = field(default_factory=list)
    context: Optional[AuthorizationContext] = None


class InvocationProofPurpose:
    """
    Verifies that an invocation is authorized by its capability chain.

    Collaborators are injected once; everything that varies per call
    (expected target, caveat verifiers, revocation checker, timeout) is
    passed through VerificationOptions. No state is shared between calls.
    """

    purpose = ProofPurpose.INVOCATION

    def __init__(
        self,
        document_store: DocumentStore,
        signature_verifier: SignatureVerifier,
        caveat_verifiers: Optional[CaveatRegistry] = None,
        revocation_checker: Optional[RevocationChecker] = None,
        max_chain_length: Optional[int] = None,
    ):
        """
        Args:
            document_store: Resolves capability references and target documents
            signature_verifier: Verifies delegation and invocation proofs
            caveat_verifiers: Default caveat registry (empty: every caveat fails)
            revocation_checker: Default revocation checker (never revoked)
            max_chain_length: Maximum capability chain length (None = unlimited)
        """
        self.document_store = document_store
        self.signature_verifier = signature_verifier
        self.caveat_verifiers: CaveatRegistry = caveat_verifiers or {}
        self.revocation_checker: RevocationChecker = revocation_checker or never_revoked
        self.max_chain_length = max_chain_length

    async def verify(
        self,
        invocation: Union[Invocation, dict[str, Any]],
        proof: Optional[Union[Proof, dict[str, Any]]] = None,
        options: Optional[Union[VerificationOptions, Mapping[str, Any]]] = None,
    ) -> VerificationResult:
        """
        Verify an invocation.

        Args:
            invocation: Invocation document
            proof: Invocation proof (defaults to the proof attached to the document)
            options: VerificationOptions or a mapping with expectedTarget etc.

        Returns:
            VerificationResult; authorization failures never raise
        """
        opts = VerificationOptions.coerce(options or {})
        progress = _Progress()
        start = time.perf_counter()

        try:
            ctx = await self._run(invocation, proof, opts, progress)
        except CapabilityError as e:
            result = VerificationResult(
                verified=False,
                reason=e.code,
                message=e.message,
                capability_id=e.capability_id,
                chain=[c.id for c in progress.chain],
                trace=list(progress.context.trace) if progress.context else [],
                duration_ms=(time.perf_counter() - start) * 1000,
                error=e,
            )
            logger.warning(f"Invocation denied ({e.code.value}): {e.message}")
            return result

        result = VerificationResult(
            verified=True,
            capability_id=progress.chain[-1].id,
            chain=[c.id for c in progress.chain],
            trace=list(ctx.trace),
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        logger.info(
            f"Invocation authorized by {result.capability_id} "
            f"(chain length {len(result.chain)}, {result.duration_ms:.2f}ms)"
        )
        return result

    async def check(
        self,
        invocation: Union[Invocation, dict[str, Any]],
        proof: Optional[Union[Proof, dict[str, Any]]] = None,
        options: Optional[Union[VerificationOptions, Mapping[str, Any]]] = None,
    ) -> AuthorizationContext:
        """
        Verify an invocation, raising on failure.

        Returns:
            The final authorization context

        Raises:
            CapabilityError: The specific failure
        """
        opts = VerificationOptions.coerce(options or {})
        return await self._run(invocation, proof, opts, _Progress())

    async def _run(
        self,
        invocation: Union[Invocation, dict[str, Any]],
        proof: Optional[Union[Proof, dict[str, Any]]],
        opts: VerificationOptions,
        progress: _Progress,
    ) -> AuthorizationContext:
        steps = self._verify(invocation, proof, opts, progress)
        if not opts.timeout:
            return await steps
        # Only an expired deadline is a verification timeout; a collaborator's
        # own TimeoutError propagates
        task = asyncio.create_task(steps)
        try:
            done, _ = await asyncio.wait({task}, timeout=opts.timeout)
        finally:
            if not task.done():
                task.cancel()
        if task not in done:
            try:
                await task
            except asyncio.CancelledError:
                pass
            raise VerificationTimeout(
                f"Verification did not complete within {opts.timeout}s", timeout=opts.timeout
            )
        return task.result()

    async def _verify(
        self,
        invocation: Union[Invocation, dict[str, Any]],
        proof: Optional[Union[Proof, dict[str, Any]]],
        opts: VerificationOptions,
        progress: _Progress,
    ) -> AuthorizationContext:
        if not isinstance(invocation, Invocation):
            invocation = Invocation.from_dict(invocation)
        invocation_proof = self._invocation_proof(invocation, proof)
        caveat_verifiers = (
            opts.caveat_verifiers if opts.caveat_verifiers is not None else self.caveat_verifiers
        )
        revocation_checker = opts.revocation_checker or self.revocation_checker

        # Resolve chain
        resolver = ChainResolver(self.document_store, self.max_chain_length)
        chain = await resolver.resolve(invocation_proof.capability)
        progress.chain = chain
        root = chain[0]

        # Target check
        if root.invocation_target != opts.expected_target:
            raise TargetMismatch(
                f"Root capability targets {root.invocation_target}, expected {opts.expected_target}",
                capability_id=root.id,
            )

        # Seed context from the target's delegates and the root's actions
        target = await self._fetch_target(root.invocation_target)
        ctx = AuthorizationContext.seed(root, target.capability_delegate)
        progress.context = ctx

        # Validate root
        delegation = DelegationProofPurpose(chain, self.signature_verifier, revocation_checker)
        await delegation.verify_capability(root, ctx)

        # Extend from root
        ctx.extend_identities(root)
        ctx.record(root)

        # Fold the rest of the chain towards the leaf
        for capability in chain[1:]:
            await delegation.verify_capability(capability, ctx)
            ctx.narrow_actions(capability)
            ctx.extend_identities(capability)
            ctx.record(capability)

        # Final invoker check
        leaf_id = chain[-1].id
        if not ctx.is_authorized(invocation_proof.creator):
            raise Unauthorized(
                f"Invocation not signed by an authorized identity: {invocation_proof.creator}",
                capability_id=leaf_id,
            )
        await _check_signature(
            self.signature_verifier, invocation.source, invocation_proof, self.purpose, leaf_id
        )

        # Action check
        if not ctx.permits(invocation.action):
            raise ActionNotPermitted(
                f"Invocation type {invocation.action} not in the chain's allowed actions",
                capability_id=leaf_id,
            )

        # Caveats, root first
        for capability in chain:
            for caveat in capability.caveat:
                caveat_verifier = caveat_verifiers.get(caveat.type)
                if caveat_verifier is None:
                    raise UnknownCaveatType(
                        f"No verifier registered for caveat type {caveat.type}",
                        capability_id=capability.id,
                    )
                if not await _resolve(caveat_verifier(caveat, invocation)):
                    raise CaveatFailed(
                        f"Caveat {caveat.type} of {capability.id} did not pass",
                        capability_id=capability.id,
                    )

        return ctx

    def _invocation_proof(
        self,
        invocation: Invocation,
        proof: Optional[Union[Proof, dict[str, Any]]],
    ) -> Proof:
        if proof is None:
            invocation_proof = invocation.invocation_proof()
        elif isinstance(proof, Proof):
            invocation_proof = proof
        else:
            invocation_proof = Proof.from_dict(proof, MalformedInvocation)

        if invocation_proof.purpose != self.purpose.value:
            raise MalformedInvocation(
                f"Invocation proof purpose must be {self.purpose.value}, "
                f"got {invocation_proof.purpose}"
            )
        if invocation_proof.capability is None:
            raise MalformedInvocation("Invocation proof must reference a capability")
        return invocation_proof

    async def _fetch_target(self, target_id: str) -> TargetDocument:
        try:
            data = await self.document_store.fetch(target_id)
        except DocumentNotFound as e:
            raise UnresolvedReference(f"Invocation target {target_id} could not be resolved") from e
        target = TargetDocument.from_dict(data)
        if target.id != target_id:
            raise MalformedChain(f"Fetched target {target.id} does not match {target_id}")
        return target


async def verify_invocation(
    invocation: Union[Invocation, dict[str, Any]],
    *,
    document_store: DocumentStore,
    signature_verifier: SignatureVerifier,
    expected_target: str,
    proof: Optional[Union[Proof, dict[str, Any]]] = None,
    caveat_verifiers: Optional[CaveatRegistry] = None,
    revocation_checker: Optional[RevocationChecker] = None,
    timeout: Optional[float] = None,
    max_chain_length: Optional[int] = None,
) -> VerificationResult:
    """Verify an invocation with explicitly supplied collaborators."""
    purpose = InvocationProofPurpose(
        document_store,
        signature_verifier,
        max_chain_length=max_chain_length,
    )
    options = VerificationOptions(
        expected_target=expected_target,
        caveat_verifiers=caveat_verifiers,
        revocation_checker=revocation_checker,
        timeout=timeout,
    )
    return await purpose.verify(invocation, proof, options)
