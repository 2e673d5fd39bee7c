"""Per-note and portfolio figures shown alongside a schedule."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from note_engine.engine.calculator import infer_interval
from note_engine.models.enums import InstallmentStatus, Interval, NoteStatus
from note_engine.models.note import Installment, PromissoryNote


@dataclass(frozen=True)
class NoteSummary:
    """Money and progress figures for one note.

    ``total_amount`` is the legal face value; ``scheduled_amount`` is what the
    installments cover, which is smaller for legacy notes.
    """

    note_id: str
    status: NoteStatus
    total_amount: Decimal
    paid_before_system: Decimal
    scheduled_amount: Decimal
    collected_amount: Decimal
    outstanding_amount: Decimal
    installment_count: int
    status_counts: dict[InstallmentStatus, int]
    interval: Interval
    next_due: Installment | None
    final_due_date: date | None


@dataclass(frozen=True)
class PortfolioBucket:
    """Count and face value of the notes in one status."""

    count: int
    total_amount: Decimal


def summarize(note: PromissoryNote) -> NoteSummary:
    """Compute the summary of a note from its installments."""
    installments = note.ordered_installments()
    collected = sum((inst.amount for inst in installments if inst.is_paid), Decimal("0"))
    counts = {status: 0 for status in InstallmentStatus}
    for inst in installments:
        counts[inst.status] += 1

    return NoteSummary(
        note_id=note.note_id,
        status=note.status,
        total_amount=note.total_amount,
        paid_before_system=note.paid_amount if note.is_legacy else Decimal("0"),
        scheduled_amount=note.remaining_amount,
        collected_amount=collected,
        outstanding_amount=note.remaining_amount - collected,
        installment_count=len(installments),
        status_counts=counts,
        interval=infer_interval([inst.due_date for inst in installments]),
        next_due=next((inst for inst in installments if not inst.is_paid), None),
        final_due_date=installments[-1].due_date if installments else None,
    )


def portfolio_totals(notes: Iterable[PromissoryNote]) -> dict[NoteStatus, PortfolioBucket]:
    """Group notes by status with their count and summed face value."""
    counts = {status: 0 for status in NoteStatus}
    totals = {status: Decimal("0") for status in NoteStatus}
    for note in notes:
        counts[note.status] += 1
        totals[note.status] += note.total_amount
    return {status: PortfolioBucket(counts[status], totals[status]) for status in NoteStatus}
