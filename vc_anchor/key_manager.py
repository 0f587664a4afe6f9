"""
Key Manager - Cryptographic keys and the signing provider

Supports:
- ECDSA secp256k1: Hedera ECDSA accounts (default, EVM compatible)
- Ed25519: Hedera ED25519 accounts

Keys travel as hex-encoded DER (PKCS#8 private, SubjectPublicKeyInfo public),
the same form the Hedera SDKs print with ``toStringDer``.
"""

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)
from eth_account import Account

from .canonical import utc_now


PrivateKeyTypes = Union[ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]
PublicKeyTypes = Union[ec.EllipticCurvePublicKey, ed25519.Ed25519PublicKey]


class KeyType(Enum):
    """Verification method types we can sign with"""
    ECDSA_SECP256K1 = "EcdsaSecp256k1VerificationKey2019"
    ED25519 = "Ed25519VerificationKey2020"

    @property
    def signature_type(self) -> str:
        if self is KeyType.ED25519:
            return "Ed25519Signature2020"
        return "EcdsaSecp256k1Signature2019"


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('utf-8').rstrip('=')


def _b64url_decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + '=' * (-len(data) % 4))


@dataclass
class KeyPair:
    """Represents a cryptographic key pair"""
    key_id: str
    key_type: KeyType
    public_key: str  # DER hex
    private_key: Optional[str] = None  # DER hex, never leaves the issuer context
    created_at: str = ""
    controller: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = utc_now()

    def to_verification_method(self) -> Dict[str, Any]:
        """Convert to W3C Verification Method format"""
        return {
            "id": self.key_id,
            "type": self.key_type.value,
            "controller": self.controller,
            "publicKeyHex": self.public_key
        }

    def __repr__(self) -> str:
        return (
            f"KeyPair(key_id={self.key_id!r}, key_type={self.key_type.name}, "
            f"public_key={self.public_key[:16]}...)"
        )


class KeyManager:
    """
    Signing provider for DID operations

    Features:
    - Generate secp256k1 / Ed25519 key pairs
    - Import keys from DER or raw hex strings
    - Sign and verify 32-byte digests
    - Derive the EVM alias of an ECDSA key
    """

    # ==================== KEY GENERATION ====================

    def generate(self, key_type: KeyType = KeyType.ECDSA_SECP256K1, did: str = "") -> KeyPair:
        """
        Generate a fresh key pair

        Args:
            key_type: Curve to use
            did: The DID that will control this key (may be bound later)

        Returns:
            KeyPair with DER hex encoded keys
        """
        if key_type is KeyType.ED25519:
            private_key = ed25519.Ed25519PrivateKey.generate()
        else:
            private_key = ec.generate_private_key(ec.SECP256K1())
        return self._to_keypair(private_key, did)

    def load_private_key(
        self,
        encoded: str,
        did: str = "",
        raw_key_type: KeyType = KeyType.ECDSA_SECP256K1
    ) -> KeyPair:
        """
        Import a private key string

        Accepts DER hex (PKCS#8) or a raw 32-byte hex key, with or without
        ``0x`` prefix. A raw key carries no curve, so it is read as
        ``raw_key_type`` (secp256k1 unless told otherwise).
        """
        data = bytes.fromhex(encoded[2:] if encoded.startswith("0x") else encoded)
        if len(data) == 32 and raw_key_type is KeyType.ED25519:
            private_key = ed25519.Ed25519PrivateKey.from_private_bytes(data)
        elif len(data) == 32:
            private_key = ec.derive_private_key(int.from_bytes(data, "big"), ec.SECP256K1())
        else:
            private_key = serialization.load_der_private_key(data, password=None)
        if not isinstance(private_key, (ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)):
            raise ValueError(f"Unsupported private key type: {type(private_key).__name__}")
        return self._to_keypair(private_key, did)

    def bind(self, keypair: KeyPair, did: str) -> KeyPair:
        """Attach a key pair to its DID as ``<did>#key-1``"""
        keypair.key_id = f"{did}#key-1"
        keypair.controller = did
        return keypair

    def _to_keypair(self, private_key: PrivateKeyTypes, did: str) -> KeyPair:
        private_der = private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )
        public_der = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )
        key_type = KeyType.ED25519 if isinstance(private_key, ed25519.Ed25519PrivateKey) \
            else KeyType.ECDSA_SECP256K1

        return KeyPair(
            key_id=f"{did}#key-1" if did else "",
            key_type=key_type,
            public_key=public_der.hex(),
            private_key=private_der.hex(),
            controller=did
        )

    # ==================== SIGNING ====================

    def sign_digest(self, keypair: KeyPair, message_digest: bytes) -> str:
        """
        Sign a SHA-256 digest

        ECDSA signatures are raw r||s (64 bytes); both kinds are returned
        base64url encoded without padding.
        """
        if not keypair.private_key:
            raise ValueError("Private key not available for signing")

        private_key = serialization.load_der_private_key(
            bytes.fromhex(keypair.private_key), password=None
        )

        if isinstance(private_key, ed25519.Ed25519PrivateKey):
            return _b64url_encode(private_key.sign(message_digest))

        der_signature = private_key.sign(message_digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        r, s = decode_dss_signature(der_signature)
        return _b64url_encode(r.to_bytes(32, "big") + s.to_bytes(32, "big"))

    # ==================== VERIFICATION ====================

    def load_public_key(self, public_key: str) -> PublicKeyTypes:
        """
        Parse a public key hex string

        DER SubjectPublicKeyInfo, a 33/65 byte SEC1 secp256k1 point or a
        32 byte raw Ed25519 key.
        """
        data = bytes.fromhex(public_key[2:] if public_key.startswith("0x") else public_key)
        if len(data) in (33, 65) and data[0] in (0x02, 0x03, 0x04):
            return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)
        if len(data) == 32:
            return ed25519.Ed25519PublicKey.from_public_bytes(data)
        key = serialization.load_der_public_key(data)
        if not isinstance(key, (ec.EllipticCurvePublicKey, ed25519.Ed25519PublicKey)):
            raise ValueError(f"Unsupported public key type: {type(key).__name__}")
        return key

    def key_type_of(self, public_key: str) -> KeyType:
        if isinstance(self.load_public_key(public_key), ed25519.Ed25519PublicKey):
            return KeyType.ED25519
        return KeyType.ECDSA_SECP256K1

    def verify_digest(self, public_key: str, message_digest: bytes, signature: str) -> bool:
        """
        Verify a signature produced by ``sign_digest``

        Returns:
            True if signature is valid for the digest under the key
        """
        try:
            key = self.load_public_key(public_key)
            sig_bytes = _b64url_decode(signature)

            if isinstance(key, ed25519.Ed25519PublicKey):
                key.verify(sig_bytes, message_digest)
                return True

            if len(sig_bytes) != 64:
                return False
            der_signature = encode_dss_signature(
                int.from_bytes(sig_bytes[:32], "big"),
                int.from_bytes(sig_bytes[32:], "big")
            )
            key.verify(der_signature, message_digest, ec.ECDSA(Prehashed(hashes.SHA256())))
            return True
        except (InvalidSignature, ValueError, TypeError):
            return False

    # ==================== ETHEREUM ALIAS ====================

    def evm_address(self, keypair: KeyPair) -> Optional[str]:
        """EVM address of an ECDSA key, None for Ed25519"""
        if keypair.key_type is not KeyType.ECDSA_SECP256K1 or not keypair.private_key:
            return None
        private_key = serialization.load_der_private_key(
            bytes.fromhex(keypair.private_key), password=None
        )
        raw = private_key.private_numbers().private_value.to_bytes(32, "big")
        return Account.from_key(raw).address
