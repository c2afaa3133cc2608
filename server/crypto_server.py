"""
crypto_server.py - Template Encryption at Rest

Provides:
  - AES-256-GCM authenticated encryption / decryption of biometric templates
  - Self-contained envelope:  [12-byte nonce][ciphertext || 16-byte tag]

The key lives only in this object for the process lifetime. It is never
logged and never written to the audit trail.
"""

import os
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from common.errors import CryptoError

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────
KEY_LEN   = 32          # 256 bits for AES-256
NONCE_LEN = 12          # 96 bits (NIST recommended for GCM)
TAG_LEN   = 16          # 128-bit GCM tag, appended by the cryptography library


class CryptoService:
    """Symmetric encrypt/decrypt of templates with a single in-memory key."""

    def __init__(self, key: Optional[bytes] = None):
        if key is None:
            key = AESGCM.generate_key(bit_length=KEY_LEN * 8)
            logger.info("Generated a fresh AES-256 template key")
        elif len(key) != KEY_LEN:
            raise CryptoError(f"Key must be {KEY_LEN} bytes (256 bits) for AES-256")
        self._aesgcm = AESGCM(key)

    def __repr__(self):
        return f"{self.__class__.__name__}(AES-256-GCM)"

    def encrypt(self, plaintext: bytes) -> bytes:
        """
        Encrypt *plaintext* with a fresh random nonce.

        Two calls with the same input never return the same envelope.
        """
        if not plaintext:
            raise CryptoError("Template cannot be null or empty")
        nonce = os.urandom(NONCE_LEN)
        try:
            ciphertext = self._aesgcm.encrypt(nonce, bytes(plaintext), None)  # tag appended
        except (TypeError, ValueError, OverflowError) as e:
            raise CryptoError(f"Encryption failed: {e}") from e
        return nonce + ciphertext

    def decrypt(self, envelope: bytes) -> bytes:
        """
        Decrypt an envelope produced by encrypt().
        Raises CryptoError if the GCM tag check fails (tamper or wrong key).
        """
        if not envelope or len(envelope) < NONCE_LEN + TAG_LEN:
            raise CryptoError("Encrypted template is invalid")
        nonce, ciphertext = envelope[:NONCE_LEN], envelope[NONCE_LEN:]
        try:
            return self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise CryptoError("Decryption failed: authentication tag mismatch") from e
        except (TypeError, ValueError) as e:
            raise CryptoError(f"Decryption failed: {e}") from e
