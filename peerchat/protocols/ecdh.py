"""
X25519 key agreement protocols with ChaCha20Poly1305 transport encryption.

Two variants are provided. The plain variant completes in two messages:
the initiator sends its ephemeral public key, the responder answers with
its own and both sides derive the same session key. The confirmed variant
adds the finished proofs used for key confirmation and takes three
messages; the responder only becomes active once the initiator has proven
it holds the key.
"""

from __future__ import annotations

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from peerchat.common.crypto import CryptoUtils
from peerchat.common.models import ProtocolKind

from .base import HandshakeStep, ProtocolError

logger = logging.getLogger(__name__)

PUBLIC_KEY_LEN = 32
NONCE_LEN = 12
PROOF_LEN = 32

RESPONDER_FINISHED = b"responder-finished:"
INITIATOR_FINISHED = b"initiator-finished:"

# Handshake states
FRESH = "fresh"
AWAIT_RESPONSE = "await-response"
AWAIT_CONFIRM = "await-confirm"
ACTIVE = "active"


class X25519Protocol:
    """Two-message ephemeral X25519 handshake."""

    kind = ProtocolKind.X25519

    def __init__(self) -> None:
        self._eph_priv = X25519PrivateKey.generate()
        self._eph_pub = CryptoUtils.public_bytes(self._eph_priv.public_key())
        self._state = FRESH
        self._session_key: bytes | None = None
        self._transcript_hash: bytes | None = None
        self._aead: ChaCha20Poly1305 | None = None

    def protocol_kind(self) -> ProtocolKind:
        return self.kind

    def is_active(self) -> bool:
        return self._state == ACTIVE

    def new_session(self) -> bytes:
        """Start as initiator and return the first handshake payload."""
        if self._state != FRESH:
            msg = "session already started"
            raise ProtocolError(msg)
        self._state = AWAIT_RESPONSE
        return self._eph_pub

    def decrypt(self, data: bytes) -> list[bytes]:
        if self._state == ACTIVE:
            return [self._open(data)]
        if self._state == FRESH:
            return self._respond(data)
        if self._state == AWAIT_RESPONSE:
            return self._complete(data)
        if self._state == AWAIT_CONFIRM:
            return self._confirm(data)
        msg = f"unexpected handshake state: {self._state}"
        raise ProtocolError(msg)

    def encrypt(self, data: bytes) -> list[bytes]:
        if self._aead is None or self._state != ACTIVE:
            msg = "cannot encrypt before the handshake is complete"
            raise ProtocolError(msg)
        nonce = os.urandom(NONCE_LEN)
        return [nonce + self._aead.encrypt(nonce, data, self._aad())]

    def _respond(self, initiator_pub: bytes) -> list[bytes]:
        """Answer an initiator's first payload. Raises the reply as a step."""
        self._derive(initiator_pub, self._eph_pub, initiator_pub)
        self._state = ACTIVE
        raise HandshakeStep([self._eph_pub])

    def _complete(self, responder_pub: bytes) -> list[bytes]:
        self._derive(self._eph_pub, responder_pub, responder_pub)
        self._state = ACTIVE
        return []

    def _confirm(self, data: bytes) -> list[bytes]:
        msg = "unexpected confirmation payload"
        raise ProtocolError(msg)

    def _derive(self, initiator_pub: bytes, responder_pub: bytes, peer_pub: bytes) -> None:
        if len(peer_pub) != PUBLIC_KEY_LEN:
            msg = "invalid handshake public key"
            raise ProtocolError(msg)
        try:
            shared = self._eph_priv.exchange(
                X25519PublicKey.from_public_bytes(peer_pub)
            )
        except ValueError as e:
            msg = "key agreement failed"
            raise ProtocolError(msg) from e
        self._transcript_hash = CryptoUtils.transcript_hash(initiator_pub, responder_pub)
        self._session_key = CryptoUtils.derive_session_key(
            shared, self._transcript_hash
        )
        self._aead = ChaCha20Poly1305(self._session_key)

    def _aad(self) -> bytes:
        assert self._transcript_hash is not None
        return b"chat:" + self.kind.value.encode() + b":" + self._transcript_hash

    def _open(self, data: bytes) -> bytes:
        assert self._aead is not None
        if len(data) <= NONCE_LEN:
            msg = "ciphertext too short"
            raise ProtocolError(msg)
        nonce, ciphertext = data[:NONCE_LEN], data[NONCE_LEN:]
        try:
            return self._aead.decrypt(nonce, ciphertext, self._aad())
        except InvalidTag as e:
            msg = "decrypt failed"
            raise ProtocolError(msg) from e


class ConfirmedX25519Protocol(X25519Protocol):
    """Three-message X25519 handshake with finished proofs on both sides."""

    kind = ProtocolKind.X25519_CONFIRM

    def _respond(self, initiator_pub: bytes) -> list[bytes]:
        self._derive(initiator_pub, self._eph_pub, initiator_pub)
        self._state = AWAIT_CONFIRM
        raise HandshakeStep([self._eph_pub + self._proof(RESPONDER_FINISHED)])

    def _complete(self, data: bytes) -> list[bytes]:
        if len(data) != PUBLIC_KEY_LEN + PROOF_LEN:
            msg = "invalid handshake response"
            raise ProtocolError(msg)
        responder_pub, proof = data[:PUBLIC_KEY_LEN], data[PUBLIC_KEY_LEN:]
        self._derive(self._eph_pub, responder_pub, responder_pub)
        if not CryptoUtils.verify_proof(self._proof(RESPONDER_FINISHED), proof):
            msg = "responder proof mismatch"
            raise ProtocolError(msg)
        self._state = ACTIVE
        raise HandshakeStep([self._proof(INITIATOR_FINISHED)])

    def _confirm(self, data: bytes) -> list[bytes]:
        if not CryptoUtils.verify_proof(self._proof(INITIATOR_FINISHED), data):
            msg = "initiator proof mismatch"
            raise ProtocolError(msg)
        self._state = ACTIVE
        logger.debug("Key confirmation complete")
        return []

    def _proof(self, label: bytes) -> bytes:
        assert self._session_key is not None
        assert self._transcript_hash is not None
        return CryptoUtils.finished_proof(self._session_key, label, self._transcript_hash)
