"""Database repository for account lifecycle data."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from psycopg import Cursor
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, Role, SignalKind, normalize_role

_ACCOUNT_COLUMNS = """
    id::text, email, name, role, "createdAt", "emailOptOut",
    "inactivityWarnedAt", "scheduledDeletionAt"
"""

_SIGNAL_QUERIES: dict[SignalKind, str] = {
    SignalKind.essay_submission: """
        SELECT MAX(e."createdAt")
        FROM essay_entity e
        WHERE e."isDraft" = false AND e."studentId"::text = %s
    """,
    SignalKind.task_creation: """
        SELECT MAX(t."createdAt")
        FROM room_entity r
        JOIN task_entity t ON t."roomId"::text = r.id::text
        WHERE r."professorId"::text = %s
    """,
}


class AccountRepository:
    """Postgres-backed account store exposing lifecycle reads and the two mutation primitives."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def find_accounts_by_roles(self, roles: Iterable[Role]) -> list[Account]:
        """Return every account whose normalised role is one of ``roles``."""
        role_values = [role.value for role in roles]
        if not role_values:
            return []
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_ACCOUNT_COLUMNS}
                    FROM user_entity
                    WHERE LOWER(TRIM(role)) = ANY(%s)
                    ORDER BY "createdAt" ASC
                    """,
                    (role_values,),
                )
                rows = cur.fetchall()
        return [self._map_record(row) for row in rows]

    def get_account(self, account_id: str) -> Account | None:
        """Fetch a single account or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_ACCOUNT_COLUMNS}
                    FROM user_entity
                    WHERE id::text = %s
                    """,
                    (account_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def get_created_at(self, account_id: str) -> datetime | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute('SELECT "createdAt" FROM user_entity WHERE id::text = %s', (account_id,))
                row = cur.fetchone()
        return row[0] if row else None

    def get_last_signal_timestamp(self, account_id: str, signal_kind: SignalKind) -> datetime | None:
        """Return the newest timestamp of ``signal_kind`` owned by the account."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(_SIGNAL_QUERIES[signal_kind], (account_id,))
                row = cur.fetchone()
        return row[0] if row else None

    def write_warn_and_schedule(
        self,
        account_id: str,
        warned_at: datetime,
        scheduled_at: datetime,
        *,
        actor: str | None = None,
    ) -> bool:
        """Set the warned/scheduled pair in one statement.

        The update only applies while the account is still unwarned, so a
        concurrent writer cannot schedule the same account twice. Returns
        ``True`` when the row was updated.
        """
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE user_entity
                    SET "inactivityWarnedAt" = %s,
                        "scheduledDeletionAt" = %s
                    WHERE id::text = %s AND "inactivityWarnedAt" IS NULL
                    """,
                    (warned_at, scheduled_at, account_id),
                )
                updated = cur.rowcount == 1
                if updated:
                    self._insert_audit_event(
                        cur,
                        account_id=account_id,
                        event_type="account.inactivity_warned",
                        actor=actor,
                        metadata={"scheduled_deletion_at": scheduled_at.isoformat()},
                    )
                conn.commit()
        return updated

    def delete_account(self, account_id: str, *, actor: str | None = None) -> bool:
        """Remove an account and everything it owns in a single transaction.

        Students take their essays and enrollments with them; professors take
        their rooms, the rooms' tasks, enrollments and the essays written for
        those tasks. Returns ``False`` when the account does not exist.
        """
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT role FROM user_entity WHERE id::text = %s FOR UPDATE", (account_id,))
                row = cur.fetchone()
                if not row:
                    conn.rollback()
                    return False

                if normalize_role(row[0]) is Role.student:
                    cur.execute('DELETE FROM essay_entity WHERE "studentId"::text = %s', (account_id,))
                    cur.execute('DELETE FROM enrollment_entity WHERE "studentId"::text = %s', (account_id,))
                else:
                    cur.execute(
                        """
                        DELETE FROM essay_entity
                        WHERE "taskId"::text IN (
                            SELECT t.id::text
                            FROM task_entity t
                            JOIN room_entity r ON t."roomId"::text = r.id::text
                            WHERE r."professorId"::text = %s
                        )
                        """,
                        (account_id,),
                    )
                    cur.execute(
                        """
                        DELETE FROM task_entity
                        WHERE "roomId"::text IN (
                            SELECT id::text FROM room_entity WHERE "professorId"::text = %s
                        )
                        """,
                        (account_id,),
                    )
                    cur.execute(
                        """
                        DELETE FROM enrollment_entity
                        WHERE "roomId"::text IN (
                            SELECT id::text FROM room_entity WHERE "professorId"::text = %s
                        )
                        """,
                        (account_id,),
                    )
                    cur.execute('DELETE FROM room_entity WHERE "professorId"::text = %s', (account_id,))

                cur.execute("DELETE FROM user_entity WHERE id::text = %s", (account_id,))
                deleted = cur.rowcount == 1
                if deleted:
                    self._insert_audit_event(
                        cur,
                        account_id=account_id,
                        event_type="account.deleted",
                        actor=actor,
                        metadata={"role": str(row[0])},
                    )
                conn.commit()
        return deleted

    def set_email_opt_out(self, account_id: str, email: str) -> bool:
        """Flag the account as opted out when both id and email (case-insensitive) match."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE user_entity
                    SET "emailOptOut" = true
                    WHERE id::text = %s AND LOWER(email) = LOWER(%s)
                    """,
                    (account_id, email),
                )
                updated = cur.rowcount == 1
                if updated:
                    self._insert_audit_event(
                        cur,
                        account_id=account_id,
                        event_type="account.email_opt_out",
                        actor=account_id,
                    )
                conn.commit()
        return updated

    def find_latest_room_id(self, account_id: str) -> str | None:
        """Return the most recent room the account is enrolled in or owns."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    SELECT "roomId"::text
                    FROM enrollment_entity
                    WHERE "studentId"::text = %s
                    ORDER BY id DESC
                    LIMIT 1
                    """,
                    (account_id,),
                )
                row = cur.fetchone()
                if row and row[0]:
                    return row[0]
                cur.execute(
                    """
                    SELECT id::text
                    FROM room_entity
                    WHERE "professorId"::text = %s
                    ORDER BY id DESC
                    LIMIT 1
                    """,
                    (account_id,),
                )
                row = cur.fetchone()
        return row[0] if row and row[0] else None

    def count_lifecycle_states(self) -> dict[str, int]:
        """Return how many accounts exist, have been warned and are scheduled for deletion."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    SELECT
                        COUNT(*)::int,
                        COUNT("inactivityWarnedAt")::int,
                        COUNT("scheduledDeletionAt")::int,
                        COUNT(*) FILTER (WHERE "emailOptOut")::int
                    FROM user_entity
                    """
                )
                row = cur.fetchone()
        return {
            "accounts": row[0],
            "warned": row[1],
            "scheduled_for_deletion": row[2],
            "opted_out": row[3],
        }

    def _insert_audit_event(
        self,
        cur: Cursor,
        *,
        account_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit trail entry inside the caller's transaction."""
        cur.execute(
            """
            INSERT INTO lifecycle_audit_log (account_id, event_type, actor, metadata)
            VALUES (%s, %s, %s, %s)
            """,
            (account_id, event_type, actor, Json(metadata or {})),
        )

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            email=row[1] or "",
            name=row[2] or "",
            role=row[3] or "",
            created_at=row[4],
            email_opt_out=bool(row[5]),
            inactivity_warned_at=row[6],
            scheduled_deletion_at=row[7],
        )
