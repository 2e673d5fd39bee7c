"""Contracts for the collaborators the engine persists through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Collection

from note_engine.models.enums import InstallmentStatus, NoteStatus
from note_engine.models.note import Installment, PromissoryNote


@dataclass(frozen=True)
class NoteFilter:
    """Criteria for listing notes. Unset fields match everything."""

    status: NoteStatus | None = None
    customer_id: str | None = None
    search: str | None = None  # debtor name or note text, case-insensitive

    def matches(self, note: PromissoryNote) -> bool:
        if self.status is not None and note.status != self.status:
            return False
        if self.customer_id is not None and note.customer_id != self.customer_id:
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = f"{note.debtor_name}\n{note.notes}".lower()
            if needle not in haystack:
                return False
        return True


class NoteStore(ABC):
    """Persistence collaborator for notes and their installments.

    Implementations must write a note header and its installment set
    atomically, and must isolate read-modify-write status changes per
    installment. After any installment status change the owning note's status
    is re-derived in the same isolated step.
    """

    @abstractmethod
    def create_note(self, note: PromissoryNote) -> str:
        """Persist a new note with its installments and return its id."""

    @abstractmethod
    def update_note(self, note_id: str, note: PromissoryNote, *, discard_paid: Collection[str] = ()) -> None:
        """Replace a note's header fields and installment set.

        Runs :func:`~note_engine.engine.invariants.check_installment_update`
        against the stored rows in the same isolated step as the write, so
        payments recorded since the caller loaded the note are kept or refused,
        never silently overwritten. ``discard_paid`` lists paid installment ids
        the operator agreed to discard.
        """

    @abstractmethod
    def delete_note(self, note_id: str) -> None:
        """Delete a note together with all its installments."""

    @abstractmethod
    def get_note(self, note_id: str) -> PromissoryNote:
        """Load a note with installments ordered by sequence index."""

    @abstractmethod
    def set_installment_status(self, installment_id: str, status: InstallmentStatus) -> Installment:
        """Set an installment's status explicitly (e.g. Late, from an audit job)."""

    @abstractmethod
    def toggle_installment_status(self, installment_id: str) -> Installment:
        """Flip an installment between paid and not paid."""

    @abstractmethod
    def set_note_status(self, note_id: str, status: NoteStatus) -> PromissoryNote:
        """Store an operator-chosen note status."""

    @abstractmethod
    def list_notes(self, note_filter: NoteFilter | None = None) -> list[PromissoryNote]:
        """List notes matching a filter, newest first."""


class AttachmentStore(ABC):
    """Stores scanned images of signed notes."""

    @abstractmethod
    def upload(self, blob: bytes, filename: str) -> str:
        """Store an image and return the URL to keep on the note."""
