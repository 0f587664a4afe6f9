"""
DID System Integration Service
===============================

Pipeline context wiring the registry, content store, anchor log, issuer
and verifier around one set of injected network clients:

    issue  = store -> anchor -> sign
    verify = resolve issuer -> check signature -> fetch document
"""

import logging
from typing import Any, Dict, Optional

from .anchor_log import AnchorLog
from .content_store import ContentStore
from .credential_issuer import CredentialIssuer, IssuerContext, VerifiableCredential
from .credential_verifier import CredentialVerifier, VerificationResult
from .did_manager import DIDManager, Identity, IdentityRecord
from .errors import MissingParameters
from .key_manager import KeyManager, KeyType
from .ledger import LedgerClient

logger = logging.getLogger(__name__)


class DIDService:
    """
    Main service class for DID and credential operations

    Built once at process start. Holds no per-request state; the ledger
    client, content store and issuer key are shared read-mostly.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        content_store: ContentStore,
        topic_id: str,
        issuer: Optional[IssuerContext] = None,
        initial_balance_hbar: int = 10,
        dedupe_anchors: bool = False
    ):
        self.ledger = ledger
        self.content_store = content_store
        self.topic_id = topic_id
        self.issuer = issuer

        self.key_manager = KeyManager()
        self.did_manager = DIDManager(ledger, self.key_manager, initial_balance_hbar)
        self.anchor_log = AnchorLog(ledger, topic_id, dedupe=dedupe_anchors)
        self.credential_issuer = CredentialIssuer(content_store, self.anchor_log, self.key_manager)
        self.credential_verifier = CredentialVerifier(self.did_manager, content_store, self.key_manager)

    async def start(self) -> "DIDService":
        """Connect the content store once before serving requests"""
        await self.content_store.ensure_connected()
        return self

    async def close(self) -> None:
        await self.content_store.close()
        await self.ledger.close()

    # ==================== DID OPERATIONS ====================

    async def create_identity(self, key_type: KeyType = KeyType.ECDSA_SECP256K1) -> Identity:
        return await self.did_manager.create(key_type)

    async def resolve_did(self, did: str) -> IdentityRecord:
        if not did:
            raise MissingParameters("Missing did")
        return await self.did_manager.resolve(did)

    # ==================== CREDENTIALS ====================

    async def issue(
        self,
        subject_did: Optional[str],
        document: Optional[Dict[str, Any]],
        issuer: Optional[IssuerContext] = None
    ) -> VerifiableCredential:
        """
        Issue an anchored credential for ``document``

        Inputs are validated before any network call is made.

        Raises:
            MissingParameters: if the subject DID or document is missing,
                or no issuer is configured
        """
        if not subject_did or not isinstance(subject_did, str):
            raise MissingParameters("Missing patientDID or document in request body")
        if document is None or not isinstance(document, dict):
            raise MissingParameters("Missing patientDID or document in request body")

        issuer = issuer or self.issuer
        if issuer is None:
            raise MissingParameters("No issuer configured")

        return await self.credential_issuer.issue(subject_did, document, issuer)

    async def verify(
        self,
        credential: Optional[Dict[str, Any]],
        issuer_did: Optional[str]
    ) -> VerificationResult:
        """
        Verify ``credential`` against ``issuer_did``

        Raises:
            MissingParameters: if either input is missing
            MissingProof: if the proof block is unusable
        """
        if not credential or not isinstance(credential, dict) or not issuer_did:
            raise MissingParameters("Missing signedVC or issuerDID in request body")
        return await self.credential_verifier.verify(credential, issuer_did)

    # ==================== INFO ====================

    def get_info(self) -> Dict[str, Any]:
        return {
            "issuerDID": self.issuer.did if self.issuer else None,
            "topicId": self.topic_id,
            "network": self.ledger.network
        }
