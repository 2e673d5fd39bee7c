"""Enumeration types for promissory notes and their installments."""

from enum import Enum


class InstallmentStatus(str, Enum):
    PENDING = "Pending"
    LATE = "Late"
    PAID = "Paid"


class NoteStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    DEFAULTED = "Defaulted"


class Interval(str, Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class RegenerationPolicy(str, Enum):
    """How an edit session treats installments when scheduling inputs change."""

    DESTRUCTIVE = "destructive"
    GUARDED = "guarded"
