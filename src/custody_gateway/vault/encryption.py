# Vault - Encryption Service
#
# Process-wide master key → per-secret AES-256-GCM encryption
# Fresh 96-bit nonce for every encryption, stored beside the ciphertext
# Optional associated data binds a ciphertext to its owner and slot

import base64
import binascii
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import ConfigurationError, DecryptionError


class EncryptionService:
    """
    Handles encryption/decryption of stored credentials.

    Flow:
    1. Master key is loaded once at startup (never user-supplied, never stored with data)
    2. Each secret is sealed with AES-256-GCM under a unique nonce
    3. Nonce + ciphertext are base64-encoded into TEXT columns
    4. Decryption authenticates before returning plaintext; any mismatch
       (tampered bytes, wrong key, wrong associated data) is a DecryptionError
    """

    KEY_LENGTH = 32  # 256 bits for AES-256
    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
    TAG_LENGTH = 16

    @staticmethod
    def encrypt(
        plaintext: str,
        key: bytes,
        associated_data: Optional[bytes] = None,
    ) -> Tuple[bytes, bytes]:
        """
        Encrypt plaintext using AES-256-GCM.

        Args:
            plaintext: Secret to encrypt
            key: 256-bit master key
            associated_data: Authenticated but unencrypted context

        Returns:
            Tuple of (nonce, ciphertext)
            Both needed for decryption
        """
        nonce = os.urandom(EncryptionService.NONCE_LENGTH)

        aesgcm = AESGCM(key)
        ciphertext = aesgcm.encrypt(nonce, plaintext.encode('utf-8'), associated_data)

        return nonce, ciphertext

    @staticmethod
    def decrypt(
        nonce: bytes,
        ciphertext: bytes,
        key: bytes,
        associated_data: Optional[bytes] = None,
    ) -> str:
        """
        Decrypt ciphertext using AES-256-GCM.

        Args:
            nonce: Nonce used during encryption
            ciphertext: Encrypted data (with GCM tag)
            key: 256-bit master key (same as encryption)
            associated_data: Must match what was passed to encrypt()

        Returns:
            Decrypted plaintext

        Raises:
            DecryptionError: If the data is malformed or authentication fails
        """
        if len(nonce) != EncryptionService.NONCE_LENGTH:
            raise DecryptionError("Invalid nonce length")
        if len(ciphertext) < EncryptionService.TAG_LENGTH:
            raise DecryptionError("Encrypted data too short")

        try:
            plaintext_bytes = AESGCM(key).decrypt(nonce, ciphertext, associated_data)
        except InvalidTag:
            raise DecryptionError("Authentication tag mismatch") from None
        except ValueError as exc:
            raise DecryptionError(f"Invalid key: {exc}") from None

        try:
            return plaintext_bytes.decode('utf-8')
        except UnicodeDecodeError:
            raise DecryptionError("Decrypted data is not valid UTF-8") from None

    @staticmethod
    def encode_for_storage(data: bytes) -> str:
        """Encode binary data for database storage (base64)."""
        return base64.b64encode(data).decode('utf-8')

    @staticmethod
    def decode_from_storage(data: str) -> bytes:
        """Decode base64-encoded data from database."""
        try:
            return base64.b64decode(data.encode('utf-8'), validate=True)
        except (binascii.Error, ValueError, AttributeError):
            raise DecryptionError("Stored value is not valid base64") from None


def generate_master_key() -> str:
    """Generate a new random master key, urlsafe-base64 encoded."""
    return base64.urlsafe_b64encode(os.urandom(EncryptionService.KEY_LENGTH)).decode('ascii')


def load_master_key(value: str) -> bytes:
    """
    Parse the configured master key.

    Accepts urlsafe or standard base64 that decodes to exactly 32 bytes.

    Raises:
        ConfigurationError: If the value is not a valid 256-bit key
    """
    value = value.strip()
    padded = value + "=" * (-len(value) % 4)
    key = None
    for decoder in (base64.urlsafe_b64decode, base64.standard_b64decode):
        try:
            candidate = decoder(padded.encode('ascii'))
        except (binascii.Error, ValueError, UnicodeEncodeError):
            continue
        if len(candidate) == EncryptionService.KEY_LENGTH:
            key = candidate
            break

    if key is None:
        raise ConfigurationError(
            "CUSTODY_SECRET_KEY must be base64 for exactly 32 bytes; "
            "generate one with 'custody-gateway --generate-key'"
        )
    return key
