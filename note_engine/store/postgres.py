"""PostgreSQL note store (psycopg 3).

Header and installment rows are written in one transaction. Status changes
lock the note row, then the installment row (``SELECT ... FOR UPDATE``), the
same order ``update_note`` and ``delete_note`` use, so concurrent toggles
serialise without deadlocking against edits.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Collection, Iterator

import psycopg
from psycopg.rows import dict_row

from note_engine.config import PostgresConfig
from note_engine.engine.invariants import check_header_update, check_installment_update, validate_note
from note_engine.engine.lifecycle import derive_note_status, toggle_status
from note_engine.exceptions import EntityNotFoundError, PersistenceFailure
from note_engine.generators.ids import IdGenerator
from note_engine.logging import note_context
from note_engine.models.enums import InstallmentStatus, NoteStatus
from note_engine.models.note import Installment, PromissoryNote
from note_engine.serialization import installment_from_record, note_from_record
from note_engine.store.base import NoteFilter, NoteStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS promissory_notes (
    id               TEXT PRIMARY KEY,
    customer_id      TEXT NOT NULL,
    total_amount     NUMERIC(14, 2) NOT NULL CHECK (total_amount > 0),
    issue_date       DATE NOT NULL,
    is_legacy        BOOLEAN NOT NULL DEFAULT FALSE,
    paid_amount      NUMERIC(14, 2) NOT NULL DEFAULT 0 CHECK (paid_amount >= 0),
    status           TEXT NOT NULL DEFAULT 'Active',
    notes            TEXT NOT NULL DEFAULT '',
    debtor_name      TEXT NOT NULL DEFAULT '',
    debtor_id_number TEXT NOT NULL DEFAULT '',
    debtor_address   TEXT NOT NULL DEFAULT '',
    image_url        TEXT,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at       TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS promissory_note_installments (
    id             TEXT PRIMARY KEY,
    note_id        TEXT NOT NULL REFERENCES promissory_notes (id) ON DELETE CASCADE,
    sequence_index INTEGER NOT NULL,
    amount         NUMERIC(14, 2) NOT NULL CHECK (amount > 0),
    due_date       DATE NOT NULL,
    status         TEXT NOT NULL DEFAULT 'Pending',
    notes          TEXT NOT NULL DEFAULT '',
    UNIQUE (note_id, sequence_index)
);

CREATE INDEX IF NOT EXISTS idx_promissory_notes_customer ON promissory_notes (customer_id);
CREATE INDEX IF NOT EXISTS idx_promissory_notes_status ON promissory_notes (status);
"""

NOTE_COLUMNS = (
    "id, customer_id, total_amount, issue_date, is_legacy, paid_amount, status, notes, "
    "debtor_name, debtor_id_number, debtor_address, image_url, created_at, updated_at"
)

INSERT_INSTALLMENT = """
    INSERT INTO promissory_note_installments (id, note_id, sequence_index, amount, due_date, status, notes)
    VALUES (%(id)s, %(note_id)s, %(sequence_index)s, %(amount)s, %(due_date)s, %(status)s, %(notes)s)
"""


class PostgresNoteStore(NoteStore):
    """Note store backed by PostgreSQL.

    Parameters
    ----------
    config : PostgresConfig | None
        Connection settings; defaults to a local database.
    conninfo : str | None
        Explicit connection string, overrides ``config``.
    ids : IdGenerator | None
        Source of ids for notes and installments created without one.
    """

    def __init__(
        self,
        config: PostgresConfig | None = None,
        *,
        conninfo: str | None = None,
        ids: IdGenerator | None = None,
    ) -> None:
        self.conninfo = conninfo or (config or PostgresConfig()).connection_string
        self.ids = ids or IdGenerator()

    @contextmanager
    def _transaction(self, action: str) -> Iterator[psycopg.Connection]:
        try:
            with psycopg.connect(self.conninfo, row_factory=dict_row) as conn:
                with conn.transaction():
                    yield conn
        except psycopg.Error as e:
            logger.error("PostgreSQL %s failed: %s", action, e)
            raise PersistenceFailure(f"Could not {action}: {e}") from e

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self._transaction("create schema") as conn:
            conn.execute(SCHEMA)

    def create_note(self, note: PromissoryNote) -> str:
        """Insert a note and its installments in one transaction."""
        note_id = note.note_id or self.ids.new_id()
        installments = self._bind_installments(note, note_id)
        note = replace(note, note_id=note_id, installments=installments)
        validate_note(note)
        status = derive_note_status(note.status, installments)

        with self._transaction(f"create note {note_id}") as conn:
            conn.execute(
                f"""
                INSERT INTO promissory_notes ({NOTE_COLUMNS})
                VALUES (%(id)s, %(customer_id)s, %(total_amount)s, %(issue_date)s, %(is_legacy)s,
                        %(paid_amount)s, %(status)s, %(notes)s, %(debtor_name)s, %(debtor_id_number)s,
                        %(debtor_address)s, %(image_url)s, COALESCE(%(created_at)s, now()), NULL)
                """,
                _note_params(note, status),
            )
            with conn.cursor() as cur:
                cur.executemany(INSERT_INSTALLMENT, [_installment_params(i) for i in installments])

        logger.info(
            "Created note %s with %d installments",
            note_id,
            len(installments),
            extra=note_context(note_id, customer_id=note.customer_id),
        )
        return note_id

    def update_note(self, note_id: str, note: PromissoryNote, *, discard_paid: Collection[str] = ()) -> None:
        """Replace header and installment rows in one transaction.

        The stored installments are read under the note lock, so a toggle
        committed before this transaction is checked against, not overwritten.
        """
        installments = self._bind_installments(note, note_id)
        note = replace(note, note_id=note_id, installments=installments)
        validate_note(note)

        with self._transaction(f"update note {note_id}") as conn:
            existing = self._lock_note(conn, note_id)
            check_header_update(existing, note)
            stored = conn.execute(
                "SELECT * FROM promissory_note_installments WHERE note_id = %s ORDER BY sequence_index FOR UPDATE",
                (note_id,),
            ).fetchall()
            existing = replace(existing, installments=[installment_from_record(row) for row in stored])
            installments = check_installment_update(existing, note, discard_paid)
            status = derive_note_status(existing.status, installments)

            conn.execute(
                """
                UPDATE promissory_notes
                SET customer_id = %(customer_id)s, issue_date = %(issue_date)s, paid_amount = %(paid_amount)s,
                    status = %(status)s, notes = %(notes)s, debtor_name = %(debtor_name)s,
                    debtor_id_number = %(debtor_id_number)s, debtor_address = %(debtor_address)s,
                    image_url = %(image_url)s, updated_at = now()
                WHERE id = %(id)s
                """,
                _note_params(note, status),
            )
            conn.execute("DELETE FROM promissory_note_installments WHERE note_id = %s", (note_id,))
            with conn.cursor() as cur:
                cur.executemany(INSERT_INSTALLMENT, [_installment_params(i) for i in installments])

        logger.info("Updated note %s (%d installments)", note_id, len(installments), extra=note_context(note_id))

    def delete_note(self, note_id: str) -> None:
        """Delete a note; installments go with it (ON DELETE CASCADE)."""
        with self._transaction(f"delete note {note_id}") as conn:
            self._lock_note(conn, note_id)
            conn.execute("DELETE FROM promissory_notes WHERE id = %s", (note_id,))
        logger.info("Deleted note %s", note_id, extra=note_context(note_id))

    def get_note(self, note_id: str) -> PromissoryNote:
        with self._transaction(f"load note {note_id}") as conn:
            row = conn.execute(f"SELECT {NOTE_COLUMNS} FROM promissory_notes WHERE id = %s", (note_id,)).fetchone()
            if row is None:
                raise EntityNotFoundError(f"Note {note_id} not found")
            return self._load_installments(conn, [row])[0]

    def set_installment_status(self, installment_id: str, status: InstallmentStatus) -> Installment:
        return self._change_installment(installment_id, lambda _: InstallmentStatus(status))

    def toggle_installment_status(self, installment_id: str) -> Installment:
        return self._change_installment(installment_id, toggle_status)

    def set_note_status(self, note_id: str, status: NoteStatus) -> PromissoryNote:
        with self._transaction(f"set status of note {note_id}") as conn:
            self._lock_note(conn, note_id)
            conn.execute(
                "UPDATE promissory_notes SET status = %s, updated_at = now() WHERE id = %s",
                (NoteStatus(status).value, note_id),
            )
        return self.get_note(note_id)

    def list_notes(self, note_filter: NoteFilter | None = None) -> list[PromissoryNote]:
        note_filter = note_filter or NoteFilter()
        clauses: list[str] = []
        params: list[Any] = []
        if note_filter.status is not None:
            clauses.append("status = %s")
            params.append(NoteStatus(note_filter.status).value)
        if note_filter.customer_id is not None:
            clauses.append("customer_id = %s")
            params.append(note_filter.customer_id)
        if note_filter.search:
            clauses.append("(debtor_name ILIKE %s OR notes ILIKE %s)")
            pattern = f"%{note_filter.search.strip()}%"
            params.extend([pattern, pattern])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._transaction("list notes") as conn:
            rows = conn.execute(
                f"SELECT {NOTE_COLUMNS} FROM promissory_notes {where} ORDER BY created_at DESC",
                params,
            ).fetchall()
            return self._load_installments(conn, rows)

    def _change_installment(self, installment_id: str, change) -> Installment:
        with self._transaction(f"update installment {installment_id}") as conn:
            found = conn.execute(
                "SELECT note_id FROM promissory_note_installments WHERE id = %s", (installment_id,)
            ).fetchone()
            if found is None:
                raise EntityNotFoundError(f"Installment {installment_id} not found")

            note = self._lock_note(conn, found["note_id"])
            row = conn.execute(
                "SELECT * FROM promissory_note_installments WHERE id = %s FOR UPDATE", (installment_id,)
            ).fetchone()
            if row is None:
                raise EntityNotFoundError(f"Installment {installment_id} not found")

            installment = installment_from_record(row)
            installment.status = change(installment.status)
            conn.execute(
                "UPDATE promissory_note_installments SET status = %s WHERE id = %s",
                (installment.status.value, installment_id),
            )

            statuses = conn.execute(
                "SELECT status FROM promissory_note_installments WHERE note_id = %s", (note.note_id,)
            ).fetchall()
            rows = [_StatusRow(InstallmentStatus(r["status"])) for r in statuses]
            status = derive_note_status(note.status, rows)
            if status != note.status:
                conn.execute(
                    "UPDATE promissory_notes SET status = %s, updated_at = now() WHERE id = %s",
                    (status.value, note.note_id),
                )
                logger.info(
                    "Note %s is now %s",
                    note.note_id,
                    status.value,
                    extra=note_context(note.note_id, installment_id),
                )
            return installment

    def _lock_note(self, conn: psycopg.Connection, note_id: str) -> PromissoryNote:
        row = conn.execute(
            f"SELECT {NOTE_COLUMNS} FROM promissory_notes WHERE id = %s FOR UPDATE", (note_id,)
        ).fetchone()
        if row is None:
            raise EntityNotFoundError(f"Note {note_id} not found")
        return note_from_record(row)

    def _load_installments(self, conn: psycopg.Connection, rows: list[dict]) -> list[PromissoryNote]:
        if not rows:
            return []
        note_ids = [row["id"] for row in rows]
        installment_rows = conn.execute(
            "SELECT * FROM promissory_note_installments WHERE note_id = ANY(%s) ORDER BY note_id, sequence_index",
            (note_ids,),
        ).fetchall()
        by_note: dict[str, list[dict]] = {}
        for inst in installment_rows:
            by_note.setdefault(inst["note_id"], []).append(inst)
        return [note_from_record({**row, "installments": by_note.get(row["id"], [])}) for row in rows]

    def _bind_installments(self, note: PromissoryNote, note_id: str) -> list[Installment]:
        return [
            Installment(
                installment_id=inst.installment_id or self.ids.new_id(),
                note_id=note_id,
                sequence_index=inst.sequence_index,
                amount=inst.amount,
                due_date=inst.due_date,
                status=inst.status,
                notes=inst.notes,
            )
            for inst in note.ordered_installments()
        ]


class _StatusRow:
    """Minimal installment stand-in for status derivation."""

    __slots__ = ("status",)

    def __init__(self, status: InstallmentStatus) -> None:
        self.status = status

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID


def _note_params(note: PromissoryNote, status: NoteStatus) -> dict[str, Any]:
    return {
        "id": note.note_id,
        "customer_id": note.customer_id,
        "total_amount": note.total_amount,
        "issue_date": note.issue_date,
        "is_legacy": note.is_legacy,
        "paid_amount": note.paid_amount if note.is_legacy else 0,
        "status": status.value,
        "notes": note.notes,
        "debtor_name": note.debtor_name,
        "debtor_id_number": note.debtor_id_number,
        "debtor_address": note.debtor_address,
        "image_url": note.image_url,
        "created_at": note.created_at.astimezone(timezone.utc) if isinstance(note.created_at, datetime) else None,
    }


def _installment_params(inst: Installment) -> dict[str, Any]:
    return {
        "id": inst.installment_id,
        "note_id": inst.note_id,
        "sequence_index": inst.sequence_index,
        "amount": inst.amount,
        "due_date": inst.due_date,
        "status": inst.status.value,
        "notes": inst.notes,
    }
