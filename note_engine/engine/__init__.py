"""Amortization engine: schedules, reconciliation, lifecycles and edit sessions."""

from note_engine.engine.calculator import (
    ScheduledInstallment,
    add_interval,
    calculate,
    check_schedule_input,
    describe_plan,
)
from note_engine.engine.invariants import validate_note
from note_engine.engine.lifecycle import (
    derive_note_status,
    mark_defaulted,
    record_installment_payment,
    reinstate,
    toggle_status,
)
from note_engine.engine.reconciler import reconcile, reconcile_note
from note_engine.engine.summary import NoteSummary, PortfolioBucket, portfolio_totals, summarize
from note_engine.engine.session import NoteEditSession

__all__ = [
    "NoteEditSession",
    "NoteSummary",
    "PortfolioBucket",
    "ScheduledInstallment",
    "add_interval",
    "calculate",
    "check_schedule_input",
    "derive_note_status",
    "describe_plan",
    "mark_defaulted",
    "portfolio_totals",
    "reconcile",
    "reconcile_note",
    "record_installment_payment",
    "reinstate",
    "summarize",
    "toggle_status",
    "validate_note",
]
