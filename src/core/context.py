"""
Authorization context accumulated while folding a capability chain.

The context is created for one verification call, folded once per chain
entry from root to leaf, read by the final invocation checks and then
discarded. Authorized identities only ever grow; allowed actions only ever
shrink.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .documents import CapabilityDocument
from .errors import ActionExpansionForbidden, EmptyInvokerList, EmptyRootActions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextSnapshot:
    """Context state after processing one chain entry."""
    capability_id: str
    authorized_identities: frozenset[str]
    allowed_actions: frozenset[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "capability_id": self.capability_id,
            "authorized_identities": sorted(self.authorized_identities),
            "allowed_actions": sorted(self.allowed_actions),
        }


@dataclass
class AuthorizationContext:
    """
    Mutable accumulator for a single verification call.

    Attributes:
        authorized_identities: Identities established as entitled to act
        allowed_actions: Actions still permitted at this point in the chain
        capability_delegates: Identities the target lets grant root capabilities
        trace: Snapshot recorded after each chain entry
    """
    authorized_identities: set[str] = field(default_factory=set)
    allowed_actions: set[str] = field(default_factory=set)
    capability_delegates: frozenset[str] = frozenset()
    trace: list[ContextSnapshot] = field(default_factory=list)

    @classmethod
    def seed(
        cls,
        root: CapabilityDocument,
        capability_delegates: Iterable[str],
    ) -> "AuthorizationContext":
        """
        Create the context for a chain.

        The target's delegates are the initial authorized identities; the
        root's allowedAction is the initial action set and must not be empty.
        """
        if not root.allowed_action:
            raise EmptyRootActions(
                "Root capability allowedAction must not be empty", capability_id=root.id
            )
        delegates = frozenset(capability_delegates)
        return cls(
            authorized_identities=set(delegates),
            allowed_actions=set(root.allowed_action),
            capability_delegates=delegates,
        )

    def narrow_actions(self, capability: CapabilityDocument) -> None:
        """
        Restrict allowed actions to the capability's allowedAction.

        A capability without allowedAction inherits the current set. Any
        action not already allowed is rejected.
        """
        if not capability.allowed_action:
            return
        extra = capability.allowed_action - self.allowed_actions
        if extra:
            raise ActionExpansionForbidden(
                f"Capability {capability.id} cannot add actions: {sorted(extra)}",
                capability_id=capability.id,
            )
        self.allowed_actions = set(capability.allowed_action)

    def extend_identities(self, capability: CapabilityDocument) -> None:
        """Add the capability's invokers to the authorized identities."""
        if not capability.invoker:
            raise EmptyInvokerList(
                f"Capability {capability.id} has an empty invoker list",
                capability_id=capability.id,
            )
        self.authorized_identities |= capability.invoker

    def record(self, capability: CapabilityDocument) -> ContextSnapshot:
        snapshot = ContextSnapshot(
            capability_id=capability.id,
            authorized_identities=frozenset(self.authorized_identities),
            allowed_actions=frozenset(self.allowed_actions),
        )
        self.trace.append(snapshot)
        logger.debug(
            f"Context after {capability.id}: "
            f"{len(snapshot.authorized_identities)} identities, "
            f"actions={sorted(snapshot.allowed_actions)}"
        )
        return snapshot

    def is_authorized(self, identity: str) -> bool:
        return identity in self.authorized_identities

    def permits(self, action: str) -> bool:
        return action in self.allowed_actions
