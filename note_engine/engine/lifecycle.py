"""Installment and note status state machines.

Installments move between Pending and Paid through a single toggle; Late is
set elsewhere and counts as "not yet paid". A note's status is derived from
its installments (Active until every installment is Paid, then Completed)
except that Defaulted is an operator decision and overrides the derivation
until the operator reinstates the note.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from note_engine.exceptions import InvalidEntityStateError
from note_engine.logging import note_context
from note_engine.models.enums import InstallmentStatus, NoteStatus
from note_engine.models.note import Installment, PromissoryNote

if TYPE_CHECKING:
    from note_engine.store.base import NoteStore

logger = logging.getLogger(__name__)


def toggle_status(status: InstallmentStatus) -> InstallmentStatus:
    """Flip an installment status: Pending/Late -> Paid, Paid -> Pending."""
    if status == InstallmentStatus.PAID:
        return InstallmentStatus.PENDING
    return InstallmentStatus.PAID


def derive_note_status(current: NoteStatus, installments: Iterable[Installment]) -> NoteStatus:
    """Compute a note's status from its installments.

    Defaulted is terminal here; only :func:`reinstate` leaves it.
    """
    if current == NoteStatus.DEFAULTED:
        return NoteStatus.DEFAULTED
    installments = list(installments)
    if installments and all(inst.is_paid for inst in installments):
        return NoteStatus.COMPLETED
    return NoteStatus.ACTIVE


def ensure_regenerable(note: PromissoryNote) -> None:
    """Reject schedule regeneration for notes that are no longer active."""
    if note.status != NoteStatus.ACTIVE:
        raise InvalidEntityStateError(
            f"Note {note.note_id} is {note.status.value}; its installments can no longer be regenerated"
        )


def record_installment_payment(store: NoteStore, installment_id: str) -> Installment:
    """Toggle an installment's payment state and persist it.

    The store performs the read-modify-write and the note status derivation
    as one isolated step, so concurrent toggles of the same installment
    serialise instead of interleaving.

    Parameters
    ----------
    store : NoteStore
        Persistence collaborator.
    installment_id : str
        Installment to toggle.

    Returns
    -------
    Installment
        The installment with its new status.
    """
    installment = store.toggle_installment_status(installment_id)
    logger.info(
        "Installment %s of note %s is now %s",
        installment_id,
        installment.note_id,
        installment.status.value,
        extra=note_context(installment.note_id, installment_id),
    )
    return installment


def mark_defaulted(store: NoteStore, note_id: str) -> PromissoryNote:
    """Operator decision: the debtor has defaulted on the note."""
    note = store.get_note(note_id)
    if note.status == NoteStatus.COMPLETED:
        raise InvalidEntityStateError(f"Note {note_id} is fully paid and cannot be marked defaulted")
    if note.status == NoteStatus.DEFAULTED:
        return note
    logger.info("Marking note %s as defaulted", note_id, extra=note_context(note_id, customer_id=note.customer_id))
    return store.set_note_status(note_id, NoteStatus.DEFAULTED)


def reinstate(store: NoteStore, note_id: str) -> PromissoryNote:
    """Lift a default; the note returns to its installment-derived status."""
    note = store.get_note(note_id)
    if note.status != NoteStatus.DEFAULTED:
        raise InvalidEntityStateError(f"Note {note_id} is {note.status.value}, not defaulted")
    status = derive_note_status(NoteStatus.ACTIVE, note.installments)
    logger.info("Reinstating note %s as %s", note_id, status.value, extra=note_context(note_id))
    return store.set_note_status(note_id, status)
