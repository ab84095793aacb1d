"""
Capability chain resolution.

Walks parentCapability links from a leaf capability up to its root and
returns the chain root-first, so authorization can be folded from the trust
anchor outwards.
"""

import logging
from typing import Any, Optional

from .documents import CapabilityDocument
from .errors import (
    CyclicChain,
    DelegationDepthExceeded,
    DocumentNotFound,
    MalformedChain,
    UnresolvedReference,
)
from .store import DocumentStore

logger = logging.getLogger(__name__)


class ChainResolver:
    """
    Resolves a capability reference into a root-first chain.

    Reference-only nodes are fetched from the document store and embedded
    parents are parsed one level per iteration, so nesting depth never turns
    into recursion depth. Each resolve() call owns its own visited set, so a
    cycle is detected the first time an id repeats, whether documents are
    embedded or fetched. The length limit is checked before the next level
    is parsed.
    """

    def __init__(self, store: DocumentStore, max_length: Optional[int] = None):
        """
        Args:
            store: Document store used for reference-only nodes
            max_length: Maximum chain length (None or 0 = unlimited)
        """
        self.store = store
        self.max_length = max_length or None

    async def resolve(self, leaf: Any) -> list[CapabilityDocument]:
        """
        Resolve the chain ending in leaf.

        Args:
            leaf: Capability id, {"id": ...} reference, embedded capability
                dict or CapabilityDocument

        Returns:
            Capabilities ordered root first

        Raises:
            CyclicChain: If a capability id repeats
            UnresolvedReference: If a referenced capability cannot be fetched
            MalformedChain: If a document is invalid or the root has no target
            DelegationDepthExceeded: If the chain exceeds max_length
        """
        node: Optional[CapabilityDocument] = (
            leaf if isinstance(leaf, CapabilityDocument) else CapabilityDocument.from_dict(leaf)
        )
        visited: set[str] = set()
        chain: list[CapabilityDocument] = []

        while node is not None:
            if node.id in visited:
                raise CyclicChain(
                    f"Cyclical capability chain detected at {node.id}",
                    capability_id=node.id,
                )
            visited.add(node.id)

            if node.reference_only:
                node = await self._fetch(node.id)

            chain.append(node)
            if self.max_length and len(chain) > self.max_length:
                raise DelegationDepthExceeded(
                    f"Capability chain exceeds maximum length of {self.max_length}",
                    capability_id=node.id,
                )
            node = node.parent_capability

        chain.reverse()
        root = chain[0]
        if not root.invocation_target:
            raise MalformedChain(
                "Root capability must have an invocationTarget", capability_id=root.id
            )

        logger.debug(f"Resolved capability chain: {' -> '.join(c.id for c in chain)}")
        return chain

    async def _fetch(self, capability_id: str) -> CapabilityDocument:
        try:
            data = await self.store.fetch(capability_id)
        except DocumentNotFound as e:
            raise UnresolvedReference(
                f"Capability {capability_id} could not be resolved",
                capability_id=capability_id,
            ) from e

        document = CapabilityDocument.from_dict(data)
        if document.id != capability_id:
            raise MalformedChain(
                f"Fetched document {document.id} does not match reference {capability_id}",
                capability_id=capability_id,
            )
        if document.reference_only:
            raise MalformedChain(
                f"Fetched capability {capability_id} has no body",
                capability_id=capability_id,
            )
        return document
