# Vault Module - Encrypted Credential Custody
#
# Per-user credential bundles, each slot sealed with AES-256-GCM
# under the process-wide master key

from .credential_store import (
    KNOWN_SLOTS,
    SLOT_AI_API_KEY,
    SLOT_PAYMENT_CLIENT_ID,
    SLOT_PAYMENT_SECRET,
    CredentialBundle,
    CredentialStore,
    SealedSecret,
)
from .encryption import EncryptionService, generate_master_key, load_master_key

__all__ = [
    "CredentialBundle",
    "CredentialStore",
    "EncryptionService",
    "KNOWN_SLOTS",
    "SLOT_AI_API_KEY",
    "SLOT_PAYMENT_CLIENT_ID",
    "SLOT_PAYMENT_SECRET",
    "SealedSecret",
    "generate_master_key",
    "load_master_key",
]
