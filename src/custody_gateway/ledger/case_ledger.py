# Ledger - Append-only Case Ledger
#
# Immutable, per-user record of every credentialed action. Records are only
# ever inserted; there is no update or delete path. Concurrent appends for
# the same user may interleave, ordering is applied at read time:
# newest timestamp first, insertion order breaking ties.

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union
from uuid import uuid4

from ..core import db
from ..exceptions import PersistenceError, ValidationError
from .records import CaseDetails, CaseRecord, CaseType, details_from_dict, details_to_dict

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS case_records (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        user_id TEXT NOT NULL,
        case_type TEXT NOT NULL,
        details TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_case_user_ts ON case_records(user_id, created_at)",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CaseLedger:
    """SQLite-backed append-only ledger of case records.

    Args:
        db_path: Path to the SQLite database file.
        clock: Returns the current time; timestamps are always server-assigned.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._db_path = Path(db_path)
        self._clock = clock
        db.initialize(self._db_path, _SCHEMA)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(self, user_id: str, details: CaseDetails) -> CaseRecord:
        """Insert one record and return it.

        Raises:
            ValidationError: If user_id is blank.
            PersistenceError: If the insert fails.
        """
        if not user_id:
            raise ValidationError("userId is required")

        record = CaseRecord(
            id=str(uuid4()),
            user_id=user_id,
            case_type=details.case_type,
            details=details,
            created_at=self._clock().astimezone(timezone.utc).isoformat(timespec="microseconds"),
        )
        with db.session(self._db_path, write=True) as conn:
            conn.execute(
                """INSERT INTO case_records (id, user_id, case_type, details, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.user_id,
                    record.case_type.value,
                    json.dumps(details_to_dict(details)),
                    record.created_at,
                ),
            )
        return record

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_by_user(self, user_id: str, limit: Optional[int] = None) -> List[CaseRecord]:
        """All records for ``user_id``, newest first."""
        sql = (
            "SELECT id, user_id, case_type, details, created_at FROM case_records "
            "WHERE user_id = ? ORDER BY created_at DESC, seq DESC"
        )
        params: list = [user_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with db.session(self._db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_record(r) for r in rows]

    def count(self, user_id: Optional[str] = None) -> int:
        with db.session(self._db_path) as conn:
            if user_id is None:
                row = conn.execute("SELECT COUNT(*) FROM case_records").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM case_records WHERE user_id = ?", (user_id,)
                ).fetchone()
        return row[0] if row else 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_record(row) -> CaseRecord:
        try:
            case_type = CaseType(row["case_type"])
            details = details_from_dict(case_type, json.loads(row["details"] or "{}"))
        except (ValueError, TypeError) as exc:
            logger.error("Unreadable case record %s: %s", row["id"], exc)
            raise PersistenceError(f"Unreadable case record {row['id']}") from exc
        return CaseRecord(
            id=row["id"],
            user_id=row["user_id"],
            case_type=case_type,
            details=details,
            created_at=row["created_at"],
        )
