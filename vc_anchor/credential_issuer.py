"""
Verifiable Credentials Issuer
=============================

Issues content-anchored Verifiable Credentials following the
W3C Verifiable Credentials Data Model 1.1:

    store document -> anchor fingerprint -> build payload -> sign

The three side effects are not atomic. If signing fails after the anchor
was written, the stored document and the anchor record stay in place and no
credential is returned.

Reference: https://www.w3.org/TR/vc-data-model/
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .anchor_log import AnchorLog, AnchorRecord
from .canonical import digest, fingerprint, utc_now
from .content_store import ContentStore
from .did_manager import key_id_for
from .errors import SigningFailure
from .key_manager import KeyManager, KeyPair

logger = logging.getLogger(__name__)

VC_CONTEXT = "https://www.w3.org/2018/credentials/v1"
HEALTH_CREDENTIAL = "HealthCredential"
PROOF_PURPOSE = "assertionMethod"


@dataclass
class CredentialProof:
    """Proof attached to a Verifiable Credential"""
    type: str  # EcdsaSecp256k1Signature2019, Ed25519Signature2020
    created: str
    verification_method: str  # <issuerDID>#key-1
    signature_value: str
    proof_purpose: str = PROOF_PURPOSE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "created": self.created,
            "proofPurpose": self.proof_purpose,
            "verificationMethod": self.verification_method,
            "signatureValue": self.signature_value
        }


@dataclass
class VerifiableCredential:
    """
    W3C Verifiable Credential

    ``credential_subject`` is ``{"id": <subject DID>, "payload": {...}}``
    where the payload is the caller's document plus its
    ``contentReference`` and ``documentFingerprint``.
    """
    context: List[str] = field(default_factory=lambda: [VC_CONTEXT])
    id: str = ""
    type: List[str] = field(default_factory=lambda: ["VerifiableCredential"])
    issuer: Dict[str, Any] = field(default_factory=dict)
    issuance_date: str = ""
    credential_subject: Dict[str, Any] = field(default_factory=dict)
    proof: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.id:
            self.id = f"urn:uuid:{uuid.uuid4()}"
        if not self.issuance_date:
            self.issuance_date = utc_now()

    def payload(self) -> Dict[str, Any]:
        """The signed part: everything except the proof"""
        return {
            "@context": self.context,
            "id": self.id,
            "type": self.type,
            "issuer": self.issuer,
            "issuanceDate": self.issuance_date,
            "credentialSubject": self.credential_subject
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to W3C VC JSON format"""
        vc = self.payload()
        if self.proof:
            vc["proof"] = self.proof
        return vc

    def get_hash(self) -> str:
        """Payload fingerprint (hash of the credential without proof)"""
        return fingerprint(self.payload())

    @property
    def subject_payload(self) -> Dict[str, Any]:
        return self.credential_subject.get("payload") or {}

    @property
    def content_reference(self) -> Optional[str]:
        return self.subject_payload.get("contentReference")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifiableCredential":
        return cls(
            context=data.get("@context", []),
            id=data.get("id", ""),
            type=data.get("type", []),
            issuer=data.get("issuer", {}),
            issuance_date=data.get("issuanceDate", ""),
            credential_subject=data.get("credentialSubject", {}),
            proof=data.get("proof")
        )


@dataclass
class IssuerContext:
    """An issuer identity together with the key it signs with"""
    did: str
    keypair: KeyPair

    @classmethod
    def from_private_key(
        cls, did: str, private_key: str, key_manager: Optional[KeyManager] = None
    ) -> "IssuerContext":
        keypair = (key_manager or KeyManager()).load_private_key(private_key, did)
        return cls(did=did, keypair=keypair)

    @property
    def verification_method(self) -> str:
        return key_id_for(self.did)


class CredentialIssuer:
    """
    Issues anchored credentials

    Collaborators are injected once and shared across requests; the issuer
    identity is supplied per call.
    """

    def __init__(
        self,
        content_store: ContentStore,
        anchor_log: AnchorLog,
        key_manager: Optional[KeyManager] = None,
        credential_type: str = HEALTH_CREDENTIAL
    ):
        self.content_store = content_store
        self.anchor_log = anchor_log
        self.key_manager = key_manager or KeyManager()
        self.credential_type = credential_type

    # ==================== CREDENTIAL ISSUANCE ====================

    async def issue(
        self,
        subject_did: str,
        document: Dict[str, Any],
        issuer: IssuerContext
    ) -> VerifiableCredential:
        """
        Store, anchor and sign a credential for ``document``

        Args:
            subject_did: DID of the credential subject
            document: Arbitrary JSON object about the subject
            issuer: Identity and key of the issuing party

        Returns:
            Signed VerifiableCredential

        Raises:
            StorageFailure: if the document could not be stored
            AnchorFailure: if the anchor was not confirmed; nothing is signed
            SigningFailure: if the issuer key could not sign
        """
        # 1. Content store
        content_reference = await self.content_store.store(document)

        # 2. Fingerprint of the same canonical bytes
        document_fingerprint = fingerprint(document)

        # 3. Anchor (hard stop on failure)
        receipt = await self.anchor_log.append(AnchorRecord(
            content_reference=content_reference,
            document_fingerprint=document_fingerprint,
            subject_did=subject_did
        ))

        # 4. Payload
        vc = VerifiableCredential(
            type=["VerifiableCredential", self.credential_type],
            issuer={"id": issuer.did},
            credential_subject={
                "id": subject_did,
                "payload": {
                    **document,
                    "contentReference": content_reference,
                    "documentFingerprint": document_fingerprint
                }
            }
        )

        # 5-7. Sign payload fingerprint, attach proof
        vc.proof = self._sign(vc, issuer).to_dict()

        logger.info("Issued %s for %s (cid=%s, anchor seq=%s)",
                    vc.id, subject_did, content_reference, receipt.sequence_number)
        return vc

    # ==================== SIGNING ====================

    def _sign(self, vc: VerifiableCredential, issuer: IssuerContext) -> CredentialProof:
        try:
            signature = self.key_manager.sign_digest(issuer.keypair, digest(vc.payload()))
        except (ValueError, TypeError) as exc:
            logger.error("Signing failed for %s after anchoring %s",
                         vc.id, vc.content_reference)
            raise SigningFailure("Failed to sign credential") from exc

        return CredentialProof(
            type=issuer.keypair.key_type.signature_type,
            created=vc.issuance_date,
            verification_method=issuer.verification_method,
            signature_value=signature
        )
