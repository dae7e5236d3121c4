"""
PostgreSQL repository adapters - Implement the domain repository protocols.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Concurrency Design:
-------------------
1. **One live code per (event, email)**: replace_session() is a single
   INSERT ... ON CONFLICT (event_id, email) DO UPDATE, so concurrent
   "send code" requests converge on one row and one valid code.

2. **Serialised verification**: verify_code() locks the session row with
   SELECT ... FOR UPDATE; concurrent wrong guesses queue behind each other
   and cannot race past max_attempts.

3. **Exactly-once redirect tokens**: consume_redirect_token() locks the
   token row and stamps consumed_at inside the same transaction.

4. **Upsert boundary**: the partial unique index on registrations
   (event_id, email) WHERE order_id IS NULL is the uniqueness boundary;
   INSERT ... ON CONFLICT DO NOTHING followed by UPDATE never produces a
   second row for the same identity.

5. **Atomic transfer**: the swag/badge reset and the event change run in
   one transaction; any failure rolls all of it back.

All TTLs are compared against database time (NOW()) at read time.
"""

import logging
import uuid
from pathlib import Path
from typing import Any

from psycopg import errors, sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.codes import code_matches
from src.domain.masking import normalize_email
from src.domain.models import (
    Event,
    QualifiedRegistrant,
    Registration,
    RegistrationMode,
    RegistrationStatus,
    VerificationSession,
)
from src.domain.ports import TokenResult, TransferResult, VerifyResult

logger = logging.getLogger(__name__)

# Columns a submission may write; anything else in a values dict is ignored.
_WRITABLE_COLUMNS = (
    "first_name",
    "last_name",
    "phone",
    "distributor_id",
    "language",
    "form_data",
    "status",
    "swag_status",
    "verified_by_hydra",
    "order_id",
    "attendee_index",
)


def _to_event(row: dict[str, Any]) -> Event:
    return Event(
        id=row["id"],
        name=row["name"],
        registration_mode=RegistrationMode(row["registration_mode"]),
        registration_closed_at=row["registration_closed_at"],
        qualification_start_date=row["qualification_start_date"],
        qualification_end_date=row["qualification_end_date"],
        capacity=row["capacity"],
        required_fields=tuple(row["required_fields"] or ()),
    )


def _to_qualifier(row: dict[str, Any]) -> QualifiedRegistrant:
    return QualifiedRegistrant(
        id=row["id"],
        event_id=row["event_id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        distributor_id=row["distributor_id"],
        guest_allowance_rule_id=row["guest_allowance_rule_id"],
    )


def _to_registration(row: dict[str, Any]) -> Registration:
    return Registration(
        id=row["id"],
        event_id=row["event_id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        distributor_id=row["distributor_id"],
        phone=row["phone"],
        status=RegistrationStatus(row["status"]),
        swag_status=row["swag_status"],
        verified_by_hydra=row["verified_by_hydra"],
        language=row["language"],
        form_data=row["form_data"] or {},
        order_id=row["order_id"],
        attendee_index=row["attendee_index"],
        badge_printed_at=row["badge_printed_at"],
        badge_print_count=row["badge_print_count"],
        checked_in_at=row["checked_in_at"],
        checked_in_by=row["checked_in_by"],
        registered_at=row["registered_at"],
        last_modified=row["last_modified"],
    )


def _adapt(name: str, value: Any) -> Any:
    if name == "form_data":
        return Jsonb(value or {})
    if name == "status":
        return RegistrationStatus(value).value
    return value


def _writable(values: dict[str, Any]) -> dict[str, Any]:
    return {name: _adapt(name, values[name]) for name in _WRITABLE_COLUMNS if name in values}


class PostgresEventRepository:
    """
    Implements EventRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def get_event(self, event_id: str) -> Event | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute("SELECT * FROM events WHERE id = %s", (event_id,))
            row = cursor.fetchone()
        return _to_event(row) if row else None

    def create_event(self, event: Event) -> Event:
        insert_sql = """
            INSERT INTO events (
                id, name, registration_mode, registration_closed_at,
                qualification_start_date, qualification_end_date, capacity, required_fields
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                insert_sql,
                (
                    event.id,
                    event.name,
                    event.registration_mode.value,
                    event.registration_closed_at,
                    event.qualification_start_date,
                    event.qualification_end_date,
                    event.capacity,
                    Jsonb(list(event.required_fields)),
                ),
            )
            row = cursor.fetchone()
            conn.commit()
        return _to_event(row)

    def close_registration(self, event_id: str) -> Event | None:
        close_sql = """
            UPDATE events
            SET registration_closed_at = COALESCE(registration_closed_at, NOW())
            WHERE id = %s
            RETURNING *
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(close_sql, (event_id,))
            row = cursor.fetchone()
            conn.commit()
        return _to_event(row) if row else None


class PostgresQualifierRepository:
    """Implements QualifierRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def find_qualifier_by_distributor_id(
        self, event_id: str, distributor_id: str
    ) -> QualifiedRegistrant | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                "SELECT * FROM qualified_registrants WHERE event_id = %s AND distributor_id = %s LIMIT 1",
                (event_id, distributor_id),
            )
            row = cursor.fetchone()
        return _to_qualifier(row) if row else None

    def find_qualifier_by_email(self, event_id: str, email: str) -> QualifiedRegistrant | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                "SELECT * FROM qualified_registrants WHERE event_id = %s AND lower(email) = %s LIMIT 1",
                (event_id, normalize_email(email)),
            )
            row = cursor.fetchone()
        return _to_qualifier(row) if row else None

    def add_qualifiers(self, qualifiers: list[QualifiedRegistrant]) -> int:
        insert_sql = """
            INSERT INTO qualified_registrants
                (id, event_id, first_name, last_name, email, distributor_id, guest_allowance_rule_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.executemany(
                insert_sql,
                [
                    (
                        q.id,
                        q.event_id,
                        q.first_name,
                        q.last_name,
                        q.email,
                        q.distributor_id,
                        q.guest_allowance_rule_id,
                    )
                    for q in qualifiers
                ],
            )
            conn.commit()
        return len(qualifiers)


class PostgresVerificationRepository:
    """
    Implements VerificationSessionRepository protocol via psycopg3.

    Code comparison always runs bcrypt (against a dummy hash when the
    session is missing) before any state-based return.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def replace_session(
        self,
        event_id: str,
        email: str,
        code_hash: str,
        ttl_seconds: int,
        profile: dict[str, Any],
        session_token: str | None,
    ) -> None:
        sql_text = """
            INSERT INTO verification_sessions
                (id, event_id, email, code_hash, session_token, attempt_count, profile, created_at, expires_at)
            VALUES (%s, %s, %s, %s, %s, 0, %s, NOW(), NOW() + %s * INTERVAL '1 second')
            ON CONFLICT (event_id, email) DO UPDATE
            SET id = EXCLUDED.id,
                code_hash = EXCLUDED.code_hash,
                session_token = EXCLUDED.session_token,
                attempt_count = 0,
                profile = EXCLUDED.profile,
                created_at = NOW(),
                expires_at = EXCLUDED.expires_at
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql_text,
                (str(uuid.uuid4()), event_id, email, code_hash, session_token, Jsonb(profile), ttl_seconds),
            )
            conn.commit()

    def verify_code(
        self,
        event_id: str,
        code: str,
        max_attempts: int,
        *,
        email: str | None = None,
        session_token: str | None = None,
    ) -> tuple[VerifyResult, VerificationSession | None]:
        """
        Verify a code with the session row locked for the whole check.

        Uses SELECT FOR UPDATE so attempts on one session are serialised.
        """
        if session_token is not None:
            where, key = "session_token = %s", session_token
        elif email is not None:
            where, key = "email = %s", email
        else:
            code_matches(code, None)
            return VerifyResult.NOT_FOUND, None

        select_sql = f"""
            SELECT id, event_id, email, code_hash, session_token, attempt_count, profile,
                   expires_at, expires_at <= NOW() AS expired
            FROM verification_sessions
            WHERE event_id = %s AND {where}
            FOR UPDATE
        """
        delete_sql = "DELETE FROM verification_sessions WHERE id = %s"
        increment_sql = "UPDATE verification_sessions SET attempt_count = attempt_count + 1 WHERE id = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(select_sql, (event_id, key))
            row = cursor.fetchone()

            # Always run the comparison for constant-time behavior
            matched = code_matches(code, row["code_hash"] if row else None)

            if row is None:
                conn.commit()
                return VerifyResult.NOT_FOUND, None

            if row["expired"]:
                cursor.execute(delete_sql, (row["id"],))
                conn.commit()
                return VerifyResult.EXPIRED, None

            if row["attempt_count"] >= max_attempts:
                cursor.execute(delete_sql, (row["id"],))
                conn.commit()
                return VerifyResult.EXHAUSTED, None

            if not matched:
                if row["attempt_count"] + 1 >= max_attempts:
                    cursor.execute(delete_sql, (row["id"],))
                    conn.commit()
                    return VerifyResult.EXHAUSTED, None
                cursor.execute(increment_sql, (row["id"],))
                conn.commit()
                return VerifyResult.INVALID_CODE, None

            # Codes are single-use
            cursor.execute(delete_sql, (row["id"],))
            conn.commit()

        session = VerificationSession(
            id=row["id"],
            event_id=row["event_id"],
            email=row["email"],
            code_hash=row["code_hash"],
            attempt_count=row["attempt_count"],
            expires_at=row["expires_at"],
            profile=row["profile"] or {},
            session_token=row["session_token"],
        )
        return VerifyResult.SUCCESS, session

    def discard_session(
        self, event_id: str, *, email: str | None = None, session_token: str | None = None
    ) -> bool:
        if session_token is not None:
            where, key = "session_token = %s", session_token
        elif email is not None:
            where, key = "email = %s", email
        else:
            return False
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(f"DELETE FROM verification_sessions WHERE event_id = %s AND {where}", (event_id, key))
            conn.commit()
            return cursor.rowcount > 0

    def create_grant(
        self, token: str, event_id: str, email: str, profile: dict[str, Any], ttl_seconds: int
    ) -> None:
        insert_sql = """
            INSERT INTO verification_grants (token, event_id, email, profile, created_at, expires_at)
            VALUES (%s, %s, %s, %s, NOW(), NOW() + %s * INTERVAL '1 second')
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(insert_sql, (token, event_id, email, Jsonb(profile), ttl_seconds))
            conn.commit()

    def find_grant(self, token: str) -> dict[str, Any] | None:
        select_sql = """
            SELECT event_id, email, profile FROM verification_grants
            WHERE token = %s AND expires_at > NOW()
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(select_sql, (token,))
            row = cursor.fetchone()
        if row is None:
            return None
        return {**(row["profile"] or {}), "event_id": row["event_id"], "email": row["email"]}


class PostgresRedirectTokenRepository:
    """Implements RedirectTokenRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create_redirect_token(
        self, token: str, event_id: str, email: str, profile: dict[str, Any], ttl_seconds: int
    ) -> None:
        insert_sql = """
            INSERT INTO redirect_tokens (token, event_id, email, profile, created_at, expires_at)
            VALUES (%s, %s, %s, %s, NOW(), NOW() + %s * INTERVAL '1 second')
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(insert_sql, (token, event_id, email, Jsonb(profile), ttl_seconds))
            conn.commit()

    def consume_redirect_token(
        self, token: str, email: str, event_id: str
    ) -> tuple[TokenResult, dict[str, Any] | None]:
        select_sql = """
            SELECT event_id, email, profile, consumed_at, expires_at <= NOW() AS expired
            FROM redirect_tokens
            WHERE token = %s
            FOR UPDATE
        """
        consume_sql = "UPDATE redirect_tokens SET consumed_at = NOW() WHERE token = %s AND consumed_at IS NULL"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(select_sql, (token,))
            row = cursor.fetchone()
            if (
                row is None
                or row["consumed_at"] is not None
                or row["email"] != email
                or row["event_id"] != event_id
            ):
                conn.commit()
                return TokenResult.INVALID, None
            if row["expired"]:
                conn.commit()
                return TokenResult.EXPIRED, None

            cursor.execute(consume_sql, (token,))
            consumed = cursor.rowcount == 1
            conn.commit()

        if not consumed:
            return TokenResult.INVALID, None
        return TokenResult.SUCCESS, row["profile"] or {}


class PostgresRegistrationRepository:
    """Implements RegistrationRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def get_registration(self, registration_id: str) -> Registration | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute("SELECT * FROM registrations WHERE id = %s", (registration_id,))
            row = cursor.fetchone()
        return _to_registration(row) if row else None

    def find_registration(
        self, event_id: str, *, email: str | None = None, distributor_id: str | None = None
    ) -> Registration | None:
        base_sql = "SELECT * FROM registrations WHERE event_id = %s AND order_id IS NULL AND {} = %s LIMIT 1"
        lookups = []
        if email:
            lookups.append(("email", normalize_email(email)))
        if distributor_id:
            lookups.append(("distributor_id", distributor_id))

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            for column, value in lookups:
                query = sql.SQL(base_sql).format(sql.Identifier(column))
                cursor.execute(query, (event_id, value))
                row = cursor.fetchone()
                if row is not None:
                    return _to_registration(row)
        return None

    def _insert_sql(self, columns: list[str], on_conflict: bool) -> sql.Composed:
        query = sql.SQL(
            "INSERT INTO registrations (id, event_id, email, registered_at, last_modified, {columns}) "
            "VALUES (%s, %s, %s, NOW(), NOW(), {values})"
        ).format(
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        if on_conflict:
            query += sql.SQL(" ON CONFLICT (event_id, email) WHERE order_id IS NULL DO NOTHING")
        return query + sql.SQL(" RETURNING *")

    @staticmethod
    def _insert_values(values: dict[str, Any]) -> dict[str, Any]:
        row = _writable(values)
        row.setdefault("first_name", "")
        row.setdefault("last_name", "")
        if row.get("language") is None:
            row["language"] = "en"
        return row

    def upsert_registration(
        self, event_id: str, email: str, values: dict[str, Any]
    ) -> tuple[Registration, bool]:
        """
        Insert, or update the row holding (event_id, email).

        The partial unique index decides: ON CONFLICT DO NOTHING returns no
        row when the identity is already registered, and the UPDATE then
        writes only the submitted columns.
        """
        insert_values = self._insert_values(values)
        insert_sql = self._insert_sql(list(insert_values), on_conflict=True)
        update_values = _writable(values)
        assignments = [
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in update_values
        ] + [sql.SQL("last_modified = NOW()")]
        update_sql = sql.SQL(
            "UPDATE registrations SET {} WHERE event_id = %s AND email = %s AND order_id IS NULL RETURNING *"
        ).format(sql.SQL(", ").join(assignments))

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            # A concurrent cancel can remove the row between the two statements
            for _ in range(2):
                cursor.execute(
                    insert_sql, (str(uuid.uuid4()), event_id, email, *insert_values.values())
                )
                row = cursor.fetchone()
                if row is not None:
                    conn.commit()
                    return _to_registration(row), False

                cursor.execute(update_sql, (*update_values.values(), event_id, email))
                row = cursor.fetchone()
                conn.commit()
                if row is not None:
                    return _to_registration(row), True
        raise RuntimeError(f"Upsert did not converge for event {event_id}")

    def update_registration(
        self, registration_id: str, values: dict[str, Any]
    ) -> Registration | None:
        update_values = _writable(values)
        assignments = [
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in update_values
        ] + [sql.SQL("last_modified = NOW()")]
        update_sql = sql.SQL("UPDATE registrations SET {} WHERE id = %s RETURNING *").format(
            sql.SQL(", ").join(assignments)
        )
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(update_sql, (*update_values.values(), registration_id))
            row = cursor.fetchone()
            conn.commit()
        return _to_registration(row) if row else None

    def insert_order(self, rows: list[dict[str, Any]]) -> list[Registration]:
        created = []
        with self._pool.connection() as conn:
            with conn.transaction(), conn.cursor(row_factory=dict_row) as cursor:
                for values in rows:
                    insert_values = self._insert_values(values)
                    cursor.execute(
                        self._insert_sql(list(insert_values), on_conflict=False),
                        (str(uuid.uuid4()), values["event_id"], values["email"], *insert_values.values()),
                    )
                    created.append(_to_registration(cursor.fetchone()))
        return created

    def transfer_registration(
        self, registration_id: str, source_event_id: str, target_event_id: str
    ) -> tuple[TransferResult, Registration | None]:
        lock_sql = "SELECT event_id FROM registrations WHERE id = %s FOR UPDATE"
        move_sql = """
            UPDATE registrations
            SET event_id = %s,
                checked_in_at = NULL,
                checked_in_by = NULL,
                badge_printed_at = NULL,
                badge_print_count = 0,
                swag_status = 'pending',
                status = CASE WHEN status = 'checked_in' THEN 'registered' ELSE status END,
                last_modified = NOW()
            WHERE id = %s
            RETURNING *
        """
        with self._pool.connection() as conn:
            try:
                with conn.transaction(), conn.cursor(row_factory=dict_row) as cursor:
                    cursor.execute(lock_sql, (registration_id,))
                    row = cursor.fetchone()
                    if row is None or row["event_id"] != source_event_id:
                        return TransferResult.NOT_FOUND, None
                    cursor.execute("DELETE FROM swag_assignments WHERE registration_id = %s", (registration_id,))
                    cursor.execute("DELETE FROM badge_prints WHERE registration_id = %s", (registration_id,))
                    cursor.execute(move_sql, (target_event_id, registration_id))
                    moved = _to_registration(cursor.fetchone())
            except errors.UniqueViolation:
                logger.info("Transfer of %s blocked by existing registration in %s", registration_id, target_event_id)
                return TransferResult.CONFLICT, None
        return TransferResult.SUCCESS, moved

    def delete_registration(self, registration_id: str) -> bool:
        """Guests, travel, reimbursements, swag and badge prints cascade."""
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM registrations WHERE id = %s", (registration_id,))
            conn.commit()
            return cursor.rowcount == 1

    def check_in(self, registration_id: str, checked_in_by: str | None) -> Registration | None:
        check_in_sql = """
            UPDATE registrations
            SET status = 'checked_in', checked_in_at = NOW(), checked_in_by = %s, last_modified = NOW()
            WHERE id = %s
            RETURNING *
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(check_in_sql, (checked_in_by, registration_id))
            row = cursor.fetchone()
            conn.commit()
        return _to_registration(row) if row else None

    def record_badge_print(self, registration_id: str) -> Registration | None:
        print_sql = """
            UPDATE registrations
            SET badge_printed_at = NOW(), badge_print_count = badge_print_count + 1, last_modified = NOW()
            WHERE id = %s
            RETURNING *
        """
        with self._pool.connection() as conn:
            with conn.transaction(), conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(print_sql, (registration_id,))
                row = cursor.fetchone()
                if row is None:
                    return None
                cursor.execute(
                    "INSERT INTO badge_prints (id, registration_id, printed_at) VALUES (%s, %s, NOW())",
                    (str(uuid.uuid4()), registration_id),
                )
        return _to_registration(row)

    def assign_swag(self, registration_id: str, item_name: str) -> str:
        assignment_id = str(uuid.uuid4())
        with self._pool.connection() as conn:
            conn.execute(
                "INSERT INTO swag_assignments (id, registration_id, item_name) VALUES (%s, %s, %s)",
                (assignment_id, registration_id, item_name),
            )
            conn.commit()
        return assignment_id

    def count_swag_assignments(self, registration_id: str) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) FROM swag_assignments WHERE registration_id = %s", (registration_id,)
            )
            return cursor.fetchone()[0]

    def add_guest(
        self, registration_id: str, first_name: str, last_name: str, email: str | None = None
    ) -> str:
        guest_id = str(uuid.uuid4())
        with self._pool.connection() as conn:
            conn.execute(
                "INSERT INTO guests (id, registration_id, first_name, last_name, email) VALUES (%s, %s, %s, %s, %s)",
                (guest_id, registration_id, first_name, last_name, email),
            )
            conn.commit()
        return guest_id

    def list_guests(self, registration_id: str) -> list[dict[str, Any]]:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                "SELECT id, first_name, last_name, email FROM guests WHERE registration_id = %s ORDER BY created_at",
                (registration_id,),
            )
            return cursor.fetchall()


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
