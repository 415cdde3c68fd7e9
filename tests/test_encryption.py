"""
Tests for EncryptionService and master-key handling.

Covers: AES-256-GCM round trip, fresh nonce per encryption, tamper and
wrong-key detection, associated-data binding, storage encoding, and
master-key parsing.
"""

import base64
import os

import pytest

from custody_gateway.exceptions import ConfigurationError, DecryptionError
from custody_gateway.vault.encryption import (
    EncryptionService,
    generate_master_key,
    load_master_key,
)


@pytest.fixture
def key():
    return os.urandom(EncryptionService.KEY_LENGTH)


# ===================================================================
# Round trip
# ===================================================================


class TestEncryptDecrypt:

    def test_round_trip(self, key):
        nonce, ciphertext = EncryptionService.encrypt("sk-test-123", key)
        assert EncryptionService.decrypt(nonce, ciphertext, key) == "sk-test-123"

    def test_ciphertext_does_not_contain_plaintext(self, key):
        _, ciphertext = EncryptionService.encrypt("sk-very-recognizable", key)
        assert b"sk-very-recognizable" not in ciphertext

    def test_unicode_round_trip(self, key):
        nonce, ciphertext = EncryptionService.encrypt("clé-秘密", key)
        assert EncryptionService.decrypt(nonce, ciphertext, key) == "clé-秘密"

    def test_fresh_nonce_each_time(self, key):
        first = EncryptionService.encrypt("same", key)
        second = EncryptionService.encrypt("same", key)
        assert first[0] != second[0]
        assert first[1] != second[1]

    def test_nonce_length(self, key):
        nonce, _ = EncryptionService.encrypt("x", key)
        assert len(nonce) == EncryptionService.NONCE_LENGTH


# ===================================================================
# Failure detection
# ===================================================================


class TestDecryptFailures:

    def test_tampered_ciphertext(self, key):
        nonce, ciphertext = EncryptionService.encrypt("secret", key)
        tampered = bytes([ciphertext[0] ^ 0x01]) + ciphertext[1:]
        with pytest.raises(DecryptionError):
            EncryptionService.decrypt(nonce, tampered, key)

    def test_wrong_key(self, key):
        nonce, ciphertext = EncryptionService.encrypt("secret", key)
        with pytest.raises(DecryptionError):
            EncryptionService.decrypt(nonce, ciphertext, os.urandom(32))

    def test_associated_data_mismatch(self, key):
        nonce, ciphertext = EncryptionService.encrypt("secret", key, b"alice:ai-api-key")
        with pytest.raises(DecryptionError):
            EncryptionService.decrypt(nonce, ciphertext, key, b"bob:ai-api-key")

    def test_associated_data_match(self, key):
        nonce, ciphertext = EncryptionService.encrypt("secret", key, b"alice:ai-api-key")
        assert EncryptionService.decrypt(nonce, ciphertext, key, b"alice:ai-api-key") == "secret"

    def test_bad_nonce_length(self, key):
        _, ciphertext = EncryptionService.encrypt("secret", key)
        with pytest.raises(DecryptionError, match="nonce"):
            EncryptionService.decrypt(b"short", ciphertext, key)

    def test_truncated_ciphertext(self, key):
        nonce, _ = EncryptionService.encrypt("secret", key)
        with pytest.raises(DecryptionError):
            EncryptionService.decrypt(nonce, b"tiny", key)

    def test_invalid_key_length(self, key):
        nonce, ciphertext = EncryptionService.encrypt("secret", key)
        with pytest.raises(DecryptionError):
            EncryptionService.decrypt(nonce, ciphertext, b"not-a-valid-key")

    def test_public_message_hides_detail(self, key):
        nonce, ciphertext = EncryptionService.encrypt("secret", key)
        with pytest.raises(DecryptionError) as exc_info:
            EncryptionService.decrypt(nonce, ciphertext, os.urandom(32))
        assert exc_info.value.public_message == "Stored credentials could not be decrypted"
        assert exc_info.value.status_code == 500


# ===================================================================
# Storage encoding
# ===================================================================


class TestStorageEncoding:

    def test_decode_rejects_garbage(self):
        with pytest.raises(DecryptionError):
            EncryptionService.decode_from_storage("not base64 !!")

    def test_decode_rejects_non_string(self):
        with pytest.raises(DecryptionError):
            EncryptionService.decode_from_storage(None)

    def test_encoded_value_is_ascii(self, key):
        _, ciphertext = EncryptionService.encrypt("secret", key)
        encoded = EncryptionService.encode_for_storage(ciphertext)
        assert encoded.isascii()
        assert EncryptionService.decode_from_storage(encoded) == ciphertext


# ===================================================================
# Master key
# ===================================================================


class TestMasterKey:

    def test_generated_key_loads(self):
        key = load_master_key(generate_master_key())
        assert len(key) == 32

    def test_generated_keys_differ(self):
        assert generate_master_key() != generate_master_key()

    def test_standard_base64_accepted(self):
        raw = os.urandom(32)
        assert load_master_key(base64.b64encode(raw).decode()) == raw

    def test_unpadded_urlsafe_accepted(self):
        raw = os.urandom(32)
        encoded = base64.urlsafe_b64encode(raw).decode().rstrip("=")
        assert load_master_key(encoded) == raw

    def test_surrounding_whitespace_ignored(self):
        raw = os.urandom(32)
        assert load_master_key(f"  {base64.b64encode(raw).decode()}\n") == raw

    def test_wrong_length_rejected(self):
        with pytest.raises(ConfigurationError, match="32 bytes"):
            load_master_key(base64.b64encode(os.urandom(16)).decode())

    def test_not_base64_rejected(self):
        with pytest.raises(ConfigurationError):
            load_master_key("this is definitely not a key")
