"""Common cryptographic utilities.
"""

from __future__ import annotations

import hashlib
import hmac

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey
from cryptography.hazmat.primitives.kdf.hkdf import HKDF


class CryptoUtils:
    """Utility class for cryptographic operations."""

    @staticmethod
    def public_bytes(public_key: X25519PublicKey) -> bytes:
        """Raw 32-byte encoding of an X25519 public key."""
        return public_key.public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )

    @staticmethod
    def transcript_hash(initiator_pub: bytes, responder_pub: bytes) -> bytes:
        """Hash of the handshake transcript, used for channel binding."""
        return hashlib.sha256(b"peerchat:" + initiator_pub + responder_pub).digest()

    @staticmethod
    def derive_session_key(shared: bytes, transcript_hash: bytes) -> bytes:
        """Derive session key from the ECDH shared secret."""
        return HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=transcript_hash,
            info=b"peerchat session",
        ).derive(shared)

    @staticmethod
    def finished_proof(session_key: bytes, label: bytes, transcript_hash: bytes) -> bytes:
        """Key confirmation MAC for one side of the handshake."""
        return hmac.new(session_key, label + transcript_hash, hashlib.sha256).digest()

    @staticmethod
    def verify_proof(expected: bytes, received: bytes) -> bool:
        return hmac.compare_digest(expected, received)
