# Vault - Credential Store
#
# One encrypted credential bundle per user id. Every secret slot is sealed
# independently (own nonce, AES-256-GCM, bound to "<user_id>:<slot>") and
# the whole bundle is written with a single atomic upsert: a later
# submission replaces the earlier one, nothing is merged.
#
# get() hands back the sealed bundle. Plaintext only exists inside
# reveal(), at the point where a provider client is being built.

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Union

from ..core import db
from ..exceptions import CredentialsNotFound, DecryptionError, ValidationError
from .encryption import EncryptionService

logger = logging.getLogger(__name__)

# Known secret slots
SLOT_AI_API_KEY = "ai-api-key"
SLOT_PAYMENT_CLIENT_ID = "payment-client-id"
SLOT_PAYMENT_SECRET = "payment-secret"

KNOWN_SLOTS = (SLOT_AI_API_KEY, SLOT_PAYMENT_CLIENT_ID, SLOT_PAYMENT_SECRET)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS credential_bundles (
        user_id TEXT PRIMARY KEY,
        slots TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
)


@dataclass(frozen=True)
class SealedSecret:
    """Ciphertext of one slot plus the nonce needed to open it."""

    nonce: bytes
    ciphertext: bytes

    def to_storage(self) -> Dict[str, str]:
        return {
            "nonce": EncryptionService.encode_for_storage(self.nonce),
            "ciphertext": EncryptionService.encode_for_storage(self.ciphertext),
        }

    @classmethod
    def from_storage(cls, data: Mapping[str, str]) -> "SealedSecret":
        try:
            nonce, ciphertext = data["nonce"], data["ciphertext"]
        except (KeyError, TypeError):
            raise DecryptionError("Stored slot is missing nonce or ciphertext") from None
        return cls(
            nonce=EncryptionService.decode_from_storage(nonce),
            ciphertext=EncryptionService.decode_from_storage(ciphertext),
        )


@dataclass(frozen=True)
class CredentialBundle:
    """A user's sealed credentials. Never holds plaintext."""

    user_id: str
    slots: Dict[str, SealedSecret] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @property
    def slot_names(self) -> List[str]:
        return sorted(self.slots)

    def has_slot(self, slot: str) -> bool:
        return slot in self.slots


def _associated_data(user_id: str, slot: str) -> bytes:
    return f"{user_id}:{slot}".encode("utf-8")


class CredentialStore:
    """Thread-safe SQLite store for encrypted credential bundles.

    Args:
        db_path: Path to the SQLite database file.
        master_key: Process-wide 256-bit key used for every slot.
    """

    def __init__(self, db_path: Union[str, Path], master_key: bytes):
        if len(master_key) != EncryptionService.KEY_LENGTH:
            raise ValueError("master_key must be 32 bytes")
        self._db_path = Path(db_path)
        self._key = master_key
        db.initialize(self._db_path, _SCHEMA)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def seal(self, user_id: str, slot: str, plaintext: str) -> SealedSecret:
        nonce, ciphertext = EncryptionService.encrypt(
            plaintext, self._key, _associated_data(user_id, slot)
        )
        return SealedSecret(nonce=nonce, ciphertext=ciphertext)

    def upsert(self, user_id: str, secrets: Mapping[str, str]) -> CredentialBundle:
        """Seal every slot and replace the user's bundle atomically.

        Raises:
            ValidationError: If user_id is blank or no secret is supplied.
            PersistenceError: If the database write fails.
        """
        if not user_id or not user_id.strip():
            raise ValidationError("userId is required")
        filled = {slot: value for slot, value in secrets.items() if value}
        if not filled:
            raise ValidationError("At least one credential must be provided")

        sealed = {slot: self.seal(user_id, slot, value) for slot, value in filled.items()}
        payload = json.dumps({slot: s.to_storage() for slot, s in sealed.items()})
        now = datetime.now(timezone.utc).isoformat()

        with db.session(self._db_path, write=True) as conn:
            conn.execute(
                """INSERT INTO credential_bundles (user_id, slots, created_at, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                       slots = excluded.slots,
                       updated_at = excluded.updated_at""",
                (user_id, payload, now, now),
            )
            row = conn.execute(
                "SELECT created_at FROM credential_bundles WHERE user_id = ?",
                (user_id,),
            ).fetchone()

        logger.debug("Stored %d credential slot(s) for user %s", len(sealed), user_id)
        return CredentialBundle(
            user_id=user_id,
            slots=sealed,
            created_at=row["created_at"] if row else now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, user_id: str) -> CredentialBundle:
        """Return the sealed bundle for ``user_id``.

        Raises:
            CredentialsNotFound: If no bundle is registered.
            DecryptionError: If the stored row is unreadable.
            PersistenceError: If the database read fails.
        """
        with db.session(self._db_path) as conn:
            row = conn.execute(
                "SELECT user_id, slots, created_at, updated_at "
                "FROM credential_bundles WHERE user_id = ?",
                (user_id,),
            ).fetchone()

        if row is None:
            raise CredentialsNotFound(user_id)

        try:
            raw_slots = json.loads(row["slots"])
        except (json.JSONDecodeError, TypeError):
            raise DecryptionError("Stored bundle is not valid JSON") from None
        if not isinstance(raw_slots, dict):
            raise DecryptionError("Stored bundle has an unexpected shape")

        return CredentialBundle(
            user_id=row["user_id"],
            slots={slot: SealedSecret.from_storage(data) for slot, data in raw_slots.items()},
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def reveal(self, bundle: CredentialBundle, slot: str) -> str:
        """Decrypt one slot of ``bundle``. Callers must not keep the result.

        Raises:
            CredentialsNotFound: If the bundle has no such slot.
            DecryptionError: If the slot cannot be authenticated.
        """
        sealed = bundle.slots.get(slot)
        if sealed is None:
            raise CredentialsNotFound(bundle.user_id, slot)
        return EncryptionService.decrypt(
            sealed.nonce,
            sealed.ciphertext,
            self._key,
            _associated_data(bundle.user_id, slot),
        )

    def list_slots(self, user_id: str) -> List[str]:
        """Slot names stored for ``user_id`` (never values)."""
        return self.get(user_id).slot_names
