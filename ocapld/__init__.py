"""
ocap-ld SDK - Object capability verification for linked-data documents.

Verifies that an invocation of a protected resource is authorized by a
chain of signed capability documents: a root grant issued by one of the
resource's delegates, zero or more delegations, and the invocation itself.

Quick Start:
    from ocapld import OcapVerifier
    from src.core import InMemoryDocumentStore

    store = InMemoryDocumentStore(documents)
    verifier = OcapVerifier(store)
    result = verifier.verify_sync(invocation, expected_target="urn:res:1")

Features:
    - Chain resolution with cycle detection
    - Monotonic action narrowing along delegations
    - Pluggable caveats and revocation checks
    - Ed25519 reference signatures
"""

from .config import OcapConfig
from .verifier import OcapVerifier
from src.core.errors import (
    CapabilityError,
    VerificationErrorCode,
)
from src.core.purposes import VerificationResult

__version__ = "0.1.0"

__all__ = [
    # Core
    "OcapVerifier",
    "OcapConfig",
    "VerificationResult",
    # Exceptions
    "CapabilityError",
    "VerificationErrorCode",
    # Version
    "__version__",
]
