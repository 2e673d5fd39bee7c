"""Legacy reconciliation: work out how much of a note still needs scheduling."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from note_engine.config import ScheduleConfig
from note_engine.engine.calculator import DEFAULT_CONFIG, round_money
from note_engine.exceptions import InvalidPaymentAmount, InvalidScheduleInput
from note_engine.models.note import PromissoryNote
from note_engine.models.policy import as_decimal


def reconcile(
    total_amount: Any,
    is_legacy: bool,
    paid_amount: Any = Decimal("0"),
    config: ScheduleConfig = DEFAULT_CONFIG,
) -> Decimal:
    """Return the amount to schedule for a note.

    Parameters
    ----------
    total_amount : Decimal
        Face value of the note.
    is_legacy : bool
        Whether part of the note was paid before it entered the system.
    paid_amount : Decimal
        Amount already paid; ignored for non-legacy notes.

    Returns
    -------
    Decimal
        ``total_amount - paid_amount`` for legacy notes, else ``total_amount``.

    Raises
    ------
    InvalidScheduleInput
        If the total amount is missing, not numeric or not positive.
    InvalidPaymentAmount
        If a legacy paid amount is negative or not strictly below the total.
    """
    total = as_decimal(total_amount)
    if total is None:
        raise InvalidScheduleInput("total_amount", f"Total amount is not a number: {total_amount!r}")
    total = round_money(total, config)
    if total <= 0:
        raise InvalidScheduleInput("total_amount", f"Total amount must be positive, got {total}")

    if not is_legacy:
        return total

    paid = as_decimal(paid_amount)
    if paid is None:
        raise InvalidPaymentAmount("paid_amount", f"Paid amount is not a number: {paid_amount!r}")
    paid = round_money(paid, config)
    if paid < 0:
        raise InvalidPaymentAmount("paid_amount", f"Paid amount cannot be negative, got {paid}")
    if paid >= total:
        raise InvalidPaymentAmount(
            "paid_amount",
            f"Paid amount {paid} must be less than the total amount {total}; "
            "a fully paid note has nothing to schedule",
        )
    return total - paid


def reconcile_note(note: PromissoryNote, config: ScheduleConfig = DEFAULT_CONFIG) -> Decimal:
    """Reconcile a note model, see :func:`reconcile`."""
    return reconcile(note.total_amount, note.is_legacy, note.paid_amount, config)
