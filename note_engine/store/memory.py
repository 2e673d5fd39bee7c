"""In-memory note store with atomic writes and per-installment isolation."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Collection

from note_engine.engine.invariants import check_header_update, check_installment_update, validate_note
from note_engine.engine.lifecycle import derive_note_status, toggle_status
from note_engine.exceptions import EntityNotFoundError, InvalidEntityStateError
from note_engine.generators.ids import IdGenerator
from note_engine.logging import note_context
from note_engine.models.enums import InstallmentStatus, NoteStatus
from note_engine.models.note import Installment, PromissoryNote
from note_engine.store.base import NoteFilter, NoteStore

logger = logging.getLogger(__name__)


@dataclass
class InMemoryNoteStore(NoteStore):
    """In-memory store for notes with relationship tracking.

    Every write validates the full note first and then swaps the header and
    installment rows under a single lock, so readers never observe a note with
    a stale or partial installment set. Notes handed in and out are copies.
    """

    ids: IdGenerator = field(default_factory=IdGenerator)

    # Primary entities
    notes: dict[str, PromissoryNote] = field(default_factory=dict)
    installments: dict[str, Installment] = field(default_factory=dict)

    # Relationship indexes
    _customer_notes: dict[str, list[str]] = field(default_factory=dict)
    _note_installments: dict[str, list[str]] = field(default_factory=dict)

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def create_note(self, note: PromissoryNote) -> str:
        """Add a note and its installments to the store."""
        note = copy.deepcopy(note)
        if not note.note_id:
            note.note_id = self.ids.new_id()
        for inst in note.installments:
            inst.note_id = note.note_id
            if not inst.installment_id:
                inst.installment_id = self.ids.new_id()

        validate_note(note)

        with self._lock:
            if note.note_id in self.notes:
                raise InvalidEntityStateError(f"Note {note.note_id} already exists")
            self._check_installment_ownership(note)

            note.status = derive_note_status(note.status, note.installments)
            note.created_at = note.created_at or datetime.now()
            count = len(note.installments)
            self._put(note)
            self._customer_notes.setdefault(note.customer_id, []).append(note.note_id)

        logger.info(
            "Created note %s with %d installments",
            note.note_id,
            count,
            extra=note_context(note.note_id, customer_id=note.customer_id),
        )
        return note.note_id

    def update_note(self, note_id: str, note: PromissoryNote, *, discard_paid: Collection[str] = ()) -> None:
        """Replace a note's header and installment set.

        Stored statuses win over the incoming ones for unchanged rows; see
        :func:`~note_engine.engine.invariants.check_installment_update`.
        """
        note = copy.deepcopy(note)
        note.note_id = note_id
        for inst in note.installments:
            inst.note_id = note_id
            if not inst.installment_id:
                inst.installment_id = self.ids.new_id()

        validate_note(note)

        with self._lock:
            existing = self._require_note(note_id)
            check_header_update(existing, note)
            self._check_installment_ownership(note)
            note.installments = check_installment_update(self._snapshot(existing), note, discard_paid)
            count = len(note.installments)

            note.status = derive_note_status(existing.status, note.installments)
            note.created_at = existing.created_at
            note.updated_at = datetime.now()

            for inst_id in self._note_installments.pop(note_id, []):
                self.installments.pop(inst_id, None)
            if existing.customer_id != note.customer_id:
                self._customer_notes[existing.customer_id].remove(note_id)
                self._customer_notes.setdefault(note.customer_id, []).append(note_id)
            self._put(note)

        logger.info("Updated note %s (%d installments)", note_id, count, extra=note_context(note_id))

    def delete_note(self, note_id: str) -> None:
        """Delete a note and cascade to its installments."""
        with self._lock:
            note = self._require_note(note_id)
            for inst_id in self._note_installments.pop(note_id, []):
                del self.installments[inst_id]
            self._customer_notes[note.customer_id].remove(note_id)
            del self.notes[note_id]
        logger.info("Deleted note %s", note_id, extra=note_context(note_id))

    def get_note(self, note_id: str) -> PromissoryNote:
        """Get a note with its installments in sequence order."""
        with self._lock:
            return self._snapshot(self._require_note(note_id))

    def set_installment_status(self, installment_id: str, status: InstallmentStatus) -> Installment:
        """Set an installment's status and re-derive its note's status."""
        with self._lock:
            inst = self._require_installment(installment_id)
            inst.status = InstallmentStatus(status)
            self._refresh_note_status(inst.note_id)
            return copy.deepcopy(inst)

    def toggle_installment_status(self, installment_id: str) -> Installment:
        """Flip an installment between paid and not paid."""
        with self._lock:
            inst = self._require_installment(installment_id)
            inst.status = toggle_status(inst.status)
            self._refresh_note_status(inst.note_id)
            return copy.deepcopy(inst)

    def set_note_status(self, note_id: str, status: NoteStatus) -> PromissoryNote:
        """Store an operator-chosen note status."""
        with self._lock:
            note = self._require_note(note_id)
            note.status = NoteStatus(status)
            note.updated_at = datetime.now()
            return self._snapshot(note)

    def list_notes(self, note_filter: NoteFilter | None = None) -> list[PromissoryNote]:
        """List notes matching a filter, newest first."""
        note_filter = note_filter or NoteFilter()
        with self._lock:
            matched = [
                self._snapshot(note)
                for note in reversed(list(self.notes.values()))
                if note_filter.matches(note)
            ]
        return sorted(matched, key=lambda n: n.created_at or datetime.min, reverse=True)

    # Query methods
    def get_customer_notes(self, customer_id: str) -> list[PromissoryNote]:
        """Get all notes for a customer."""
        with self._lock:
            note_ids = self._customer_notes.get(customer_id, [])
            return [self._snapshot(self.notes[nid]) for nid in note_ids]

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        with self._lock:
            return {
                "notes": len(self.notes),
                "installments": len(self.installments),
                "customers": sum(1 for ids in self._customer_notes.values() if ids),
            }

    def _put(self, note: PromissoryNote) -> None:
        rows = note.ordered_installments()
        note.installments = []  # rows live in self.installments
        self.notes[note.note_id] = note
        self._note_installments[note.note_id] = [inst.installment_id for inst in rows]
        for inst in rows:
            self.installments[inst.installment_id] = inst

    def _snapshot(self, note: PromissoryNote) -> PromissoryNote:
        result = copy.deepcopy(note)
        result.installments = [
            copy.deepcopy(self.installments[inst_id]) for inst_id in self._note_installments.get(note.note_id, [])
        ]
        return result

    def _refresh_note_status(self, note_id: str) -> None:
        note = self.notes[note_id]
        rows = [self.installments[inst_id] for inst_id in self._note_installments[note_id]]
        status = derive_note_status(note.status, rows)
        if status != note.status:
            logger.info("Note %s is now %s", note_id, status.value, extra=note_context(note_id))
            note.status = status
            note.updated_at = datetime.now()

    def _check_installment_ownership(self, note: PromissoryNote) -> None:
        for inst in note.installments:
            owner = self.installments.get(inst.installment_id)
            if owner is not None and owner.note_id != note.note_id:
                raise InvalidEntityStateError(
                    f"Installment {inst.installment_id} already belongs to note {owner.note_id}"
                )

    def _require_note(self, note_id: str) -> PromissoryNote:
        try:
            return self.notes[note_id]
        except KeyError:
            raise EntityNotFoundError(f"Note {note_id} not found") from None

    def _require_installment(self, installment_id: str) -> Installment:
        try:
            return self.installments[installment_id]
        except KeyError:
            raise EntityNotFoundError(f"Installment {installment_id} not found") from None
