"""
Anchored Verifiable Credentials
===============================

Issue and verify signed credentials whose documents live on IPFS and whose
fingerprints are anchored on a Hedera consensus topic.

Components:
- KeyManager: Keys and digest signing (secp256k1 / Ed25519)
- DIDManager: did:hedera creation and resolution
- IPFSContentStore: Content-addressed document storage
- AnchorLog: Append-only fingerprint log on a topic
- CredentialIssuer: Store -> anchor -> sign
- CredentialVerifier: Resolve -> check -> fetch
- DIDService: Pipeline context used by the API

Standards:
- W3C DID Core 1.0: https://www.w3.org/TR/did-core/
- W3C Verifiable Credentials: https://www.w3.org/TR/vc-data-model/
"""

from .anchor_log import AnchorLog, AnchorRecord, Receipt
from .content_store import ContentStore, InMemoryContentStore, IPFSContentStore
from .credential_issuer import CredentialIssuer, IssuerContext, VerifiableCredential
from .credential_verifier import (
    ContentStatus,
    CredentialVerifier,
    VerificationResult,
    VerificationStatus,
)
from .did_manager import DIDDocument, DIDManager, Identity, IdentityRecord
from .did_service import DIDService
from .errors import (
    AnchorFailure,
    CredentialPipelineError,
    InternalError,
    InvalidDIDFormat,
    MissingParameters,
    MissingProof,
    NotFound,
    RegistrationFailure,
    ResolutionFailure,
    SigningFailure,
    StorageFailure,
)
from .key_manager import KeyManager, KeyPair, KeyType
from .ledger import InMemoryLedgerClient, LedgerClient, LedgerReceipt

__version__ = "1.0.0"
__all__ = [
    # Keys
    "KeyManager",
    "KeyPair",
    "KeyType",

    # Identity
    "DIDManager",
    "DIDDocument",
    "Identity",
    "IdentityRecord",

    # Storage and anchoring
    "ContentStore",
    "IPFSContentStore",
    "InMemoryContentStore",
    "AnchorLog",
    "AnchorRecord",
    "Receipt",
    "LedgerClient",
    "LedgerReceipt",
    "InMemoryLedgerClient",

    # Credentials
    "CredentialIssuer",
    "CredentialVerifier",
    "IssuerContext",
    "VerifiableCredential",
    "VerificationResult",
    "VerificationStatus",
    "ContentStatus",

    # Errors
    "CredentialPipelineError",
    "MissingParameters",
    "InvalidDIDFormat",
    "ResolutionFailure",
    "RegistrationFailure",
    "StorageFailure",
    "NotFound",
    "AnchorFailure",
    "MissingProof",
    "InternalError",
    "SigningFailure",

    # Service
    "DIDService"
]
