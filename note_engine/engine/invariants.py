"""Consistency checks every persisted note must pass."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Collection

from note_engine.config import ScheduleConfig
from note_engine.engine.calculator import DEFAULT_CONFIG, round_money
from note_engine.exceptions import (
    InvalidEntityStateError,
    RegenerationOverPaidInstallments,
    ScheduleInvariantError,
)
from note_engine.models.enums import NoteStatus
from note_engine.models.note import Installment, PromissoryNote


def validate_note(note: PromissoryNote, config: ScheduleConfig = DEFAULT_CONFIG) -> None:
    """Check a note's header and installment set before it is committed.

    Raises
    ------
    ScheduleInvariantError
        Naming the first broken rule and the offending installment.
    """
    if note.total_amount <= 0:
        raise ScheduleInvariantError(f"Note {note.note_id}: total amount must be positive, got {note.total_amount}")

    if note.is_legacy and not (0 <= note.paid_amount < note.total_amount):
        raise ScheduleInvariantError(
            f"Note {note.note_id}: paid amount {note.paid_amount} must be in [0, {note.total_amount})"
        )

    remaining = note.remaining_amount
    installments = note.ordered_installments()

    if remaining > 0 and not installments:
        raise ScheduleInvariantError(f"Note {note.note_id}: {remaining} remaining but no installments")

    indexes = [inst.sequence_index for inst in installments]
    if indexes != list(range(len(installments))):
        raise ScheduleInvariantError(
            f"Note {note.note_id}: sequence indexes must be 0..{len(installments) - 1}, got {indexes}"
        )

    ids = [inst.installment_id for inst in installments]
    if len(set(ids)) != len(ids):
        raise ScheduleInvariantError(f"Note {note.note_id}: duplicate installment ids")

    for inst in installments:
        if inst.note_id != note.note_id:
            raise ScheduleInvariantError(
                f"Installment {inst.installment_id} belongs to note {inst.note_id}, not {note.note_id}"
            )
        if inst.amount <= 0 or inst.amount != round_money(inst.amount, config):
            raise ScheduleInvariantError(
                f"Installment #{inst.sequence_index + 1} amount {inst.amount} is not a positive "
                f"multiple of {config.money_quantum}"
            )

    for prev, curr in zip(installments, installments[1:]):
        if curr.due_date <= prev.due_date:
            raise ScheduleInvariantError(
                f"Installment #{curr.sequence_index + 1} is due {curr.due_date}, "
                f"not after installment #{prev.sequence_index + 1} ({prev.due_date})"
            )

    # Only the final installment may differ from the regular amount
    regular = {inst.amount for inst in installments[:-1]}
    if len(regular) > 1:
        raise ScheduleInvariantError(
            f"Note {note.note_id}: installments before the last must share one amount, got {sorted(regular)}"
        )

    scheduled = sum((inst.amount for inst in installments), Decimal("0"))
    if scheduled != remaining:
        raise ScheduleInvariantError(
            f"Note {note.note_id}: installments sum to {scheduled} but {remaining} is to be scheduled"
        )


def check_header_update(existing: PromissoryNote, updated: PromissoryNote) -> None:
    """Reject edits to the fields fixed when a note is created.

    Raises
    ------
    InvalidEntityStateError
        If the face value or the legacy flag would change.
    """
    if updated.total_amount != existing.total_amount:
        raise InvalidEntityStateError(
            f"Note {existing.note_id}: total amount is fixed at {existing.total_amount}, "
            f"cannot change it to {updated.total_amount}"
        )
    if updated.is_legacy != existing.is_legacy:
        raise InvalidEntityStateError(f"Note {existing.note_id}: the legacy flag cannot change after creation")


def check_installment_update(
    existing: PromissoryNote,
    updated: PromissoryNote,
    discard_paid: Collection[str] = (),
) -> list[Installment]:
    """Check a replacement installment set against the stored one.

    Installment statuses belong to the stored rows: an incoming installment
    with the same id, position, amount and due date as a stored one keeps the
    stored status, so a payment recorded while an edit was open survives the
    save. Rows that are dropped or rescheduled lose their status.

    Parameters
    ----------
    existing : PromissoryNote
        The note as currently stored, with its installments.
    updated : PromissoryNote
        The note about to be written.
    discard_paid : Collection[str]
        Ids of paid installments the operator agreed to discard.

    Returns
    -------
    list[Installment]
        The installments to write, in sequence order.

    Raises
    ------
    InvalidEntityStateError
        The stored note is completed or defaulted and its schedule would change.
    RegenerationOverPaidInstallments
        A stored paid installment would be dropped or rescheduled and is not
        listed in ``discard_paid``.
    """
    stored = {inst.installment_id: inst for inst in existing.installments}
    kept: set[str] = set()
    result = []
    for inst in updated.ordered_installments():
        previous = stored.get(inst.installment_id)
        if previous is not None and _same_row(previous, inst):
            inst = replace(inst, status=previous.status)
            kept.add(inst.installment_id)
        result.append(inst)

    rescheduled = len(kept) != len(stored) or len(result) != len(stored)
    if rescheduled and existing.status != NoteStatus.ACTIVE:
        raise InvalidEntityStateError(
            f"Note {existing.note_id} is {existing.status.value}; its installments can no longer be regenerated"
        )

    lost = [
        inst
        for inst in existing.ordered_installments()
        if inst.is_paid and inst.installment_id not in kept and inst.installment_id not in discard_paid
    ]
    if lost:
        numbers = ", ".join(f"#{inst.sequence_index + 1}" for inst in lost)
        raise RegenerationOverPaidInstallments(
            f"Note {existing.note_id}: installments {numbers} are paid and this update would erase them"
        )
    return result


def _same_row(stored: Installment, incoming: Installment) -> bool:
    return (
        stored.sequence_index == incoming.sequence_index
        and stored.amount == incoming.amount
        and stored.due_date == incoming.due_date
    )
