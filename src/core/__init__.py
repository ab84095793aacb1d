"""
Core capability chain verification components.

This package provides:
- Documents: Capability, invocation and target document models
- ChainResolver: Parent-link walking with cycle detection
- AuthorizationContext: Identity/action accumulation along a chain
- Proof purposes: RootGrant, Delegation and Invocation verification
- Collaborators: Document store, signature verifier, caveats, revocation
"""

from .errors import (
    VerificationErrorCode,
    CapabilityError,
    CyclicChain,
    UnresolvedReference,
    MalformedChain,
    DelegationDepthExceeded,
    TargetMismatch,
    EmptyRootActions,
    EmptyInvokerList,
    NotAuthorized,
    Revoked,
    MissingParent,
    InvalidParent,
    ActionExpansionForbidden,
    MalformedInvocation,
    Unauthorized,
    ActionNotPermitted,
    UnknownCaveatType,
    CaveatFailed,
    InvalidSignature,
    CryptoError,
    VerificationTimeout,
    DocumentNotFound,
)

from .documents import (
    ProofPurpose,
    DELEGATION_PURPOSES,
    Caveat,
    Proof,
    CapabilityDocument,
    Invocation,
    TargetDocument,
)

from .store import (
    DocumentStore,
    InMemoryDocumentStore,
)

from .crypto import (
    KeyPair,
    KeyDocument,
    SignatureVerifier,
    Ed25519SignatureVerifier,
    canonical_bytes,
    generate_signing_keypair,
    sign_document,
)

from .caveats import (
    CaveatVerifier,
    CaveatRegistry,
    RevocationChecker,
    RevocationList,
    never_revoked,
    default_caveat_registry,
    verify_expiration,
    verify_restrict_paths,
    EXPIRATION_CAVEAT,
    RESTRICT_PATHS_CAVEAT,
)

from .chain import ChainResolver

from .context import (
    AuthorizationContext,
    ContextSnapshot,
)

from .purposes import (
    RootGrantProofPurpose,
    DelegationProofPurpose,
    InvocationProofPurpose,
    VerificationOptions,
    VerificationResult,
    purpose_for,
    verify_invocation,
)

__all__ = [
    # Errors
    "VerificationErrorCode",
    "CapabilityError",
    "CyclicChain",
    "UnresolvedReference",
    "MalformedChain",
    "DelegationDepthExceeded",
    "TargetMismatch",
    "EmptyRootActions",
    "EmptyInvokerList",
    "NotAuthorized",
    "Revoked",
    "MissingParent",
    "InvalidParent",
    "ActionExpansionForbidden",
    "MalformedInvocation",
    "Unauthorized",
    "ActionNotPermitted",
    "UnknownCaveatType",
    "CaveatFailed",
    "InvalidSignature",
    "CryptoError",
    "VerificationTimeout",
    "DocumentNotFound",
    # Documents
    "ProofPurpose",
    "DELEGATION_PURPOSES",
    "Caveat",
    "Proof",
    "CapabilityDocument",
    "Invocation",
    "TargetDocument",
    # Store
    "DocumentStore",
    "InMemoryDocumentStore",
    # Crypto
    "KeyPair",
    "KeyDocument",
    "SignatureVerifier",
    "Ed25519SignatureVerifier",
    "canonical_bytes",
    "generate_signing_keypair",
    "sign_document",
    # Caveats
    "CaveatVerifier",
    "CaveatRegistry",
    "RevocationChecker",
    "RevocationList",
    "never_revoked",
    "default_caveat_registry",
    "verify_expiration",
    "verify_restrict_paths",
    "EXPIRATION_CAVEAT",
    "RESTRICT_PATHS_CAVEAT",
    # Chain
    "ChainResolver",
    "AuthorizationContext",
    "ContextSnapshot",
    # Purposes
    "RootGrantProofPurpose",
    "DelegationProofPurpose",
    "InvocationProofPurpose",
    "VerificationOptions",
    "VerificationResult",
    "purpose_for",
    "verify_invocation",
]
