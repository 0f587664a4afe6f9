"""
Anchor Log
==========

Append-only record of document fingerprints on a Hedera Consensus Service
topic. Each append is one topic message; ordering between writers is the
topic's consensus order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .canonical import canonicalize, utc_now
from .errors import AnchorFailure, LedgerError
from .ledger import LedgerClient, LedgerReceipt

logger = logging.getLogger(__name__)

DOCUMENT_ANCHOR = "document-anchor"

Receipt = LedgerReceipt


@dataclass(frozen=True)
class AnchorRecord:
    """One immutable anchor entry"""
    content_reference: str
    document_fingerprint: str
    subject_did: str
    record_type: str = DOCUMENT_ANCHOR
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentReference": self.content_reference,
            "documentFingerprint": self.document_fingerprint,
            "subjectDID": self.subject_did,
            "recordType": self.record_type,
            "timestamp": self.timestamp
        }


class AnchorLog:
    """
    Writes AnchorRecords to a ledger topic

    Args:
        ledger: Ledger client used for submission
        topic_id: Consensus topic holding the log
        dedupe: Reuse the receipt of an already anchored (fingerprint,
            subject) pair instead of appending again, for retrying a
            partially failed issuance. The cache lives for the process and
            is never evicted.
    """

    def __init__(self, ledger: LedgerClient, topic_id: str, dedupe: bool = False):
        self.ledger = ledger
        self.topic_id = topic_id
        self.dedupe = dedupe
        self._anchored: Dict[Tuple[str, str], Receipt] = {}

    async def append(self, record: AnchorRecord) -> Receipt:
        """
        Submit one record and wait for its receipt

        Raises:
            AnchorFailure: if submission fails or the receipt is not SUCCESS
        """
        if self.dedupe:
            cached = self._anchored.get((record.document_fingerprint, record.subject_did))
            if cached is not None:
                logger.info("Fingerprint %s already anchored, reusing receipt",
                            record.document_fingerprint[:16])
                return cached

        try:
            receipt = await self.ledger.submit_topic_message(
                self.topic_id, canonicalize(record.to_dict())
            )
        except LedgerError as exc:
            logger.error("Anchor submission failed: %s", exc.extra or exc.message)
            raise AnchorFailure("Failed to anchor data on HCS", exc.extra) from exc

        if not receipt.is_success:
            logger.error("Anchor receipt status %s for %s", receipt.status, record.content_reference)
            raise AnchorFailure("Failed to anchor data on HCS", {"status": receipt.status})

        logger.info("Anchored %s on topic %s (seq=%s)",
                    record.content_reference, self.topic_id, receipt.sequence_number)
        if self.dedupe:
            self._anchored[(record.document_fingerprint, record.subject_did)] = receipt
        return receipt

    def lookup(self, document_fingerprint: str, subject_did: str) -> Optional[Receipt]:
        """Receipt of a fingerprint anchored for a subject by this process, if deduping"""
        return self._anchored.get((document_fingerprint, subject_did))
