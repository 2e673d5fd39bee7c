"""Domain models for promissory notes."""

from note_engine.models.customer import DebtorProfile
from note_engine.models.enums import (
    InstallmentStatus,
    Interval,
    NoteStatus,
    RegenerationPolicy,
)
from note_engine.models.note import Installment, PromissoryNote
from note_engine.models.policy import ByAmount, ByCount, SplitPolicy

__all__ = [
    "ByAmount",
    "ByCount",
    "DebtorProfile",
    "Installment",
    "InstallmentStatus",
    "Interval",
    "NoteStatus",
    "PromissoryNote",
    "RegenerationPolicy",
    "SplitPolicy",
]
