"""
Capability chain verification errors.

Every failure the verifier can report is a CapabilityError subclass carrying
a VerificationErrorCode, so callers can tell exactly which check rejected
an invocation. All of them are terminal: the verifier never retries.
"""

from enum import Enum
from typing import Any, Optional


class VerificationErrorCode(str, Enum):
    """Reason codes for a failed verification."""
    # Chain structure
    CYCLIC_CHAIN = "CyclicChain"
    UNRESOLVED_REFERENCE = "UnresolvedReference"
    MALFORMED_CHAIN = "MalformedChain"
    DELEGATION_DEPTH_EXCEEDED = "DelegationDepthExceeded"

    # Root
    TARGET_MISMATCH = "TargetMismatch"
    EMPTY_ROOT_ACTIONS = "EmptyRootActions"
    EMPTY_INVOKER_LIST = "EmptyInvokerList"

    # Delegation
    NOT_AUTHORIZED = "NotAuthorized"
    REVOKED = "Revoked"
    MISSING_PARENT = "MissingParent"
    INVALID_PARENT = "InvalidParent"
    ACTION_EXPANSION_FORBIDDEN = "ActionExpansionForbidden"

    # Invocation
    MALFORMED_INVOCATION = "MalformedInvocation"
    UNAUTHORIZED = "Unauthorized"
    ACTION_NOT_PERMITTED = "ActionNotPermitted"
    UNKNOWN_CAVEAT_TYPE = "UnknownCaveatType"
    CAVEAT_FAILED = "CaveatFailed"

    # Collaborators
    INVALID_SIGNATURE = "InvalidSignature"
    CRYPTO_ERROR = "CryptoError"
    TIMEOUT = "Timeout"


class CapabilityError(Exception):
    """Base exception for capability verification errors."""

    code: VerificationErrorCode = VerificationErrorCode.MALFORMED_CHAIN

    def __init__(self, message: str, capability_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.capability_id = capability_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "capability_id": self.capability_id,
        }


class CyclicChain(CapabilityError):
    """A capability id was seen twice while walking the chain."""
    code = VerificationErrorCode.CYCLIC_CHAIN


class UnresolvedReference(CapabilityError):
    """A referenced document could not be fetched."""
    code = VerificationErrorCode.UNRESOLVED_REFERENCE


class MalformedChain(CapabilityError):
    """Chain structure is invalid (bad document, proof count, etc.)."""
    code = VerificationErrorCode.MALFORMED_CHAIN


class DelegationDepthExceeded(CapabilityError):
    """Chain is longer than the configured maximum."""
    code = VerificationErrorCode.DELEGATION_DEPTH_EXCEEDED


class TargetMismatch(CapabilityError):
    """Root capability governs a different target than expected."""
    code = VerificationErrorCode.TARGET_MISMATCH


class EmptyRootActions(CapabilityError):
    """Root capability does not define any allowed action."""
    code = VerificationErrorCode.EMPTY_ROOT_ACTIONS


class EmptyInvokerList(CapabilityError):
    """Capability names no invoker."""
    code = VerificationErrorCode.EMPTY_INVOKER_LIST


class NotAuthorized(CapabilityError):
    """Delegation proof was created by an identity without authority."""
    code = VerificationErrorCode.NOT_AUTHORIZED


class Revoked(CapabilityError):
    """Capability has been revoked."""
    code = VerificationErrorCode.REVOKED


class MissingParent(CapabilityError):
    """Delegated capability has no parent."""
    code = VerificationErrorCode.MISSING_PARENT


class InvalidParent(CapabilityError):
    """Parent capability is missing from the chain or failed verification."""
    code = VerificationErrorCode.INVALID_PARENT

    def __init__(
        self,
        message: str,
        capability_id: Optional[str] = None,
        cause: Optional[CapabilityError] = None,
    ):
        super().__init__(message, capability_id)
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.cause is not None:
            data["cause"] = self.cause.to_dict()
        return data


class ActionExpansionForbidden(CapabilityError):
    """Delegation tried to add an action its parent does not allow."""
    code = VerificationErrorCode.ACTION_EXPANSION_FORBIDDEN


class MalformedInvocation(CapabilityError):
    """Invocation document or its proof is structurally invalid."""
    code = VerificationErrorCode.MALFORMED_INVOCATION


class Unauthorized(CapabilityError):
    """Invocation signer is not an authorized identity of the chain."""
    code = VerificationErrorCode.UNAUTHORIZED


class ActionNotPermitted(CapabilityError):
    """Invocation action is outside the chain's allowed actions."""
    code = VerificationErrorCode.ACTION_NOT_PERMITTED


class UnknownCaveatType(CapabilityError):
    """No verifier is registered for a caveat type."""
    code = VerificationErrorCode.UNKNOWN_CAVEAT_TYPE


class CaveatFailed(CapabilityError):
    """A caveat predicate rejected the invocation."""
    code = VerificationErrorCode.CAVEAT_FAILED


class InvalidSignature(CapabilityError):
    """Signature verifier rejected a proof."""
    code = VerificationErrorCode.INVALID_SIGNATURE


class CryptoError(CapabilityError):
    """Signature verification could not be carried out."""
    code = VerificationErrorCode.CRYPTO_ERROR


class VerificationTimeout(CapabilityError):
    """Verification was abandoned before completing."""
    code = VerificationErrorCode.TIMEOUT

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class DocumentNotFound(Exception):
    """Document store has no document with the requested id."""

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id
