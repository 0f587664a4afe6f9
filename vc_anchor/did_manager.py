"""
DID Manager - Identity Registry for did:hedera identifiers

DID Format: did:hedera:<shard>.<realm>.<account-num>

A DID is bound to exactly one Hedera account and the single key on it.
Resolution reads the live account state from the ledger.

Reference: https://www.w3.org/TR/did-core/
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import InvalidDIDFormat, LedgerError, RegistrationFailure, ResolutionFailure
from .key_manager import KeyManager, KeyPair, KeyType
from .ledger import LedgerClient

logger = logging.getLogger(__name__)

DID_PREFIX = "did:hedera:"
DID_PATTERN = re.compile(r"^did:hedera:(\d+\.\d+\.\d+)$")


def parse_did(did: str) -> str:
    """
    Extract the account id from a did:hedera identifier

    Raises:
        InvalidDIDFormat: if the string is not a did:hedera DID
    """
    match = DID_PATTERN.match(did or "")
    if not match:
        raise InvalidDIDFormat("Invalid DID format", {"did": did})
    return match.group(1)


def key_id_for(did: str) -> str:
    return f"{did}#key-1"


@dataclass
class DIDDocument:
    """
    W3C DID Document

    Reference: https://www.w3.org/TR/did-core/#core-properties
    """
    id: str  # The DID
    controller: Optional[str] = None
    verification_method: List[Dict] = field(default_factory=list)
    authentication: List[str] = field(default_factory=list)
    assertion_method: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.controller:
            self.controller = self.id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to W3C DID Document JSON format"""
        return {
            "@context": "https://www.w3.org/ns/did/v1",
            "id": self.id,
            "controller": self.controller,
            "verificationMethod": self.verification_method,
            "authentication": self.authentication,
            "assertionMethod": self.assertion_method,
        }


@dataclass
class Identity:
    """A freshly registered identity, including its private key"""
    account_id: str
    private_key: str
    did: str
    public_key: str
    evm_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "accountId": self.account_id,
            "privateKey": self.private_key,
            "did": self.did,
            "publicKey": self.public_key
        }
        if self.evm_address:
            result["evmAddress"] = self.evm_address
        return result


@dataclass
class IdentityRecord:
    """Resolution result: live account state plus its DID document"""
    did: str
    account_id: str
    public_key: str
    balance: str
    did_document: DIDDocument

    @property
    def verification_method(self) -> List[Dict]:
        return self.did_document.verification_method

    def to_dict(self) -> Dict[str, Any]:
        return {
            "did": self.did,
            "accountId": self.account_id,
            "publicKey": self.public_key,
            "balance": self.balance,
            "didDocument": self.did_document.to_dict()
        }


class DIDManager:
    """
    Creates and resolves did:hedera identities

    Features:
    - Create a funded ledger account with a fresh key pair
    - Resolve a DID to its live public key and balance
    """

    def __init__(
        self,
        ledger: LedgerClient,
        key_manager: Optional[KeyManager] = None,
        initial_balance_hbar: int = 10
    ):
        self.ledger = ledger
        self.key_manager = key_manager or KeyManager()
        self.initial_balance_hbar = initial_balance_hbar

    # ==================== DID CREATION ====================

    async def create(self, key_type: KeyType = KeyType.ECDSA_SECP256K1) -> Identity:
        """
        Create a new DID backed by a new ledger account

        Args:
            key_type: Curve of the account key

        Returns:
            Identity with account id, DID and DER hex keys

        Raises:
            RegistrationFailure: if the ledger rejects account creation
        """
        keypair = self.key_manager.generate(key_type)

        try:
            account_id = await self.ledger.create_account(keypair, self.initial_balance_hbar)
        except LedgerError as exc:
            logger.error("Account creation failed: %s", exc.extra or exc.message)
            raise RegistrationFailure("DID registration failed", exc.extra) from exc

        did = f"{DID_PREFIX}{account_id}"
        self.key_manager.bind(keypair, did)
        logger.info("Registered %s", did)

        return Identity(
            account_id=account_id,
            private_key=keypair.private_key,
            did=did,
            public_key=keypair.public_key,
            evm_address=self.key_manager.evm_address(keypair)
        )

    # ==================== DID RESOLUTION ====================

    async def resolve(self, did: str) -> IdentityRecord:
        """
        Resolve DID to its current key and account state

        Raises:
            InvalidDIDFormat: if ``did`` is not a did:hedera DID
            ResolutionFailure: on network errors or unknown accounts
        """
        account_id = parse_did(did)

        try:
            info = await self.ledger.get_account_info(account_id)
            balance = await self.ledger.get_account_balance(account_id)
        except LedgerError as exc:
            logger.warning("Could not resolve %s: %s", did, exc.extra or exc.message)
            raise ResolutionFailure(f"Could not resolve DID: {did}", exc.extra) from exc

        key_type = self._key_type_of(info.public_key)
        key = KeyPair(
            key_id=key_id_for(did),
            key_type=key_type,
            public_key=info.public_key,
            controller=did
        )
        document = DIDDocument(
            id=did,
            verification_method=[key.to_verification_method()],
            authentication=[key.key_id],
            assertion_method=[key.key_id]
        )

        return IdentityRecord(
            did=did,
            account_id=account_id,
            public_key=info.public_key,
            balance=balance,
            did_document=document
        )

    def _key_type_of(self, public_key: str) -> KeyType:
        try:
            return self.key_manager.key_type_of(public_key)
        except ValueError:
            return KeyType.ECDSA_SECP256K1
