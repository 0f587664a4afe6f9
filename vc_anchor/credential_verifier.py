"""
Verifiable Credentials Verifier
================================

Checks a credential against the live key of its expected issuer.

Steps:
- Split the proof from the payload and check it names ``<issuer>#key-1``
- Recompute the payload fingerprint
- Resolve the issuer DID (awaited before any signature check)
- Check the signature
- If valid, fetch the anchored document back from the content store
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from .canonical import digest, utc_now
from .content_store import ContentStore
from .credential_issuer import VerifiableCredential
from .did_manager import DIDManager, key_id_for
from .errors import MissingProof, StorageFailure
from .key_manager import KeyManager

logger = logging.getLogger(__name__)


class VerificationStatus(Enum):
    """Credential verification status"""
    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"


class ContentStatus(Enum):
    """Availability of the anchored document after verification"""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    NOT_REFERENCED = "not_referenced"
    NOT_CHECKED = "not_checked"


@dataclass
class VerificationResult:
    """Result of credential verification"""
    verified: bool
    credential: Dict[str, Any]
    status: VerificationStatus
    document: Optional[Dict[str, Any]] = None
    content_status: ContentStatus = ContentStatus.NOT_CHECKED
    content_error: Optional[str] = None
    verified_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified": self.verified,
            "status": self.status.value,
            "vc": self.credential,
            "document": self.document,
            "contentStatus": self.content_status.value,
            "contentError": self.content_error,
            "verifiedAt": self.verified_at
        }


class CredentialVerifier:
    """
    Verifies credentials issued by CredentialIssuer

    A signature mismatch is a normal negative result. Structural problems
    with the proof raise MissingProof.
    """

    def __init__(
        self,
        did_manager: DIDManager,
        content_store: ContentStore,
        key_manager: Optional[KeyManager] = None
    ):
        self.did_manager = did_manager
        self.content_store = content_store
        self.key_manager = key_manager or KeyManager()

    # ==================== VERIFICATION ====================

    async def verify(
        self,
        credential: Union[VerifiableCredential, Dict[str, Any]],
        expected_issuer_did: str,
        fetch_document: bool = True
    ) -> VerificationResult:
        """
        Verify a credential against its expected issuer

        Args:
            credential: Signed credential (object or W3C JSON dict)
            expected_issuer_did: DID whose key must have signed it
            fetch_document: Retrieve the referenced document when valid

        Returns:
            VerificationResult

        Raises:
            MissingProof: if the proof is absent, has no signature, or names
                another verification method
            InvalidDIDFormat / ResolutionFailure: if the issuer cannot be resolved
        """
        vc_dict = credential.to_dict() if isinstance(credential, VerifiableCredential) \
            else dict(credential)

        # 1. Split proof from payload
        proof = vc_dict.pop("proof", None)
        payload = vc_dict
        signature = self._check_proof(proof, expected_issuer_did)

        # 2. Recompute payload fingerprint
        payload_digest = digest(payload)

        # 3. Resolve issuer key
        record = await self.did_manager.resolve(expected_issuer_did)

        # 4. Signature
        verified = self.key_manager.verify_digest(record.public_key, payload_digest, signature)
        full_credential = {**payload, "proof": proof}

        if not verified:
            logger.warning("Signature mismatch for %s (issuer %s)",
                           payload.get("id"), expected_issuer_did)
            return VerificationResult(
                verified=False,
                credential=full_credential,
                status=VerificationStatus.INVALID_SIGNATURE
            )

        result = VerificationResult(
            verified=True,
            credential=full_credential,
            status=VerificationStatus.VALID
        )

        # 5. Anchored document
        if fetch_document:
            await self._attach_document(result, payload)
        return result

    # ==================== HELPERS ====================

    def _check_proof(self, proof: Any, expected_issuer_did: str) -> str:
        if not isinstance(proof, dict) or not proof:
            raise MissingProof("Missing proof in VC")
        signature = proof.get("signatureValue")
        if not signature or not isinstance(signature, str):
            raise MissingProof("Missing proof in VC", {"reason": "no signatureValue"})
        if proof.get("verificationMethod") != key_id_for(expected_issuer_did):
            raise MissingProof(
                "Missing proof in VC",
                {"reason": "verificationMethod mismatch",
                 "verificationMethod": proof.get("verificationMethod")}
            )
        return signature

    async def _attach_document(self, result: VerificationResult, payload: Dict[str, Any]) -> None:
        subject = payload.get("credentialSubject")
        subject_payload = subject.get("payload") if isinstance(subject, dict) else None
        reference = subject_payload.get("contentReference") \
            if isinstance(subject_payload, dict) else None

        if not reference:
            result.content_status = ContentStatus.NOT_REFERENCED
            return

        try:
            result.document = await self.content_store.retrieve(reference)
            result.content_status = ContentStatus.AVAILABLE
        except StorageFailure as exc:
            logger.warning("Content %s unavailable: %s", reference, exc.extra or exc.message)
            result.content_status = ContentStatus.UNAVAILABLE
            result.content_error = exc.message
