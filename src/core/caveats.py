"""
Caveat verifiers and revocation checkers.

Both are plain per-call configuration values: a caveat registry is a
mapping from caveat type to predicate, a revocation checker is a predicate
over a capability. Predicates may be sync or async. There is no
process-wide registry; default_caveat_registry() returns a fresh mapping.

Usage:
    registry = default_caveat_registry()
    registry["RateLimit"] = my_rate_limit_check

    result = await verifier.verify(
        invocation,
        options={"expectedTarget": target, "caveatVerifiers": registry},
    )
"""

import fnmatch
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

from .documents import CapabilityDocument, Caveat, Invocation

logger = logging.getLogger(__name__)

CaveatVerifier = Callable[[Caveat, Invocation], Union[bool, Awaitable[bool]]]
CaveatRegistry = Mapping[str, CaveatVerifier]
RevocationChecker = Callable[[CapabilityDocument], Union[bool, Awaitable[bool]]]

EXPIRATION_CAVEAT = "Expiration"
RESTRICT_PATHS_CAVEAT = "RestrictPaths"


def never_revoked(capability: CapabilityDocument) -> bool:
    """Default revocation checker."""
    return False


class RevocationList:
    """
    Revocation checker backed by a set of revoked capability ids.

    Callable, so it can be passed directly as a revocation checker.
    """

    def __init__(self, revoked: Optional[Iterable[str]] = None):
        self._revoked: set[str] = set(revoked or ())

    def revoke(self, capability_id: str) -> None:
        self._revoked.add(capability_id)
        logger.info(f"Revoked capability {capability_id}")

    def is_revoked(self, capability_id: str) -> bool:
        return capability_id in self._revoked

    def __call__(self, capability: CapabilityDocument) -> bool:
        return self.is_revoked(capability.id)

    def __len__(self) -> int:
        return len(self._revoked)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def verify_expiration(caveat: Caveat, invocation: Invocation) -> bool:
    """
    Expiration caveat: {"type": "Expiration", "expires": "<ISO-8601>"}.

    Fails once the expiry has passed, or if it cannot be parsed.
    """
    expires = _parse_datetime(caveat.get("expires"))
    if expires is None:
        logger.warning(f"Unparseable expires value in caveat: {caveat.get('expires')!r}")
        return False
    return datetime.now(timezone.utc) < expires


def verify_restrict_paths(caveat: Caveat, invocation: Invocation) -> bool:
    """
    Path caveat: {"type": "RestrictPaths", "paths": ["/data/*", ...]}.

    The invocation's path must match one of the glob patterns. Invocations
    that carry no path are not restricted.
    """
    allowed_paths = caveat.get("paths") or []
    if isinstance(allowed_paths, str):
        allowed_paths = [allowed_paths]
    requested_path = invocation.get("path")
    if requested_path is None:
        return True
    return any(fnmatch.fnmatch(requested_path, p) for p in allowed_paths)


def default_caveat_registry() -> dict[str, CaveatVerifier]:
    """A fresh registry containing the built-in caveat verifiers."""
    return {
        EXPIRATION_CAVEAT: verify_expiration,
        RESTRICT_PATHS_CAVEAT: verify_restrict_paths,
    }
