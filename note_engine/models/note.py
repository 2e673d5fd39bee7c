"""Promissory note and installment models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from note_engine.models.enums import InstallmentStatus, NoteStatus


@dataclass
class Installment:
    """One dated, fixed-amount portion of a note's remaining balance."""

    installment_id: str
    note_id: str
    sequence_index: int  # 0, 1, 2, ...
    amount: Decimal
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    notes: str = ""

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID


@dataclass
class PromissoryNote:
    """Promissory note (kambiala) with its installment schedule.

    For legacy notes ``issue_date`` is the due date of the first installment
    still pending, not the date the debt originated.
    """

    note_id: str
    customer_id: str
    total_amount: Decimal  # Legal face value
    issue_date: date
    is_legacy: bool = False
    paid_amount: Decimal = Decimal("0")  # Paid before entering the system
    status: NoteStatus = NoteStatus.ACTIVE
    installments: list[Installment] = field(default_factory=list)
    notes: str = ""
    debtor_name: str = ""
    debtor_id_number: str = ""
    debtor_address: str = ""
    image_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def remaining_amount(self) -> Decimal:
        """Amount actually scheduled into installments."""
        if self.is_legacy:
            return self.total_amount - self.paid_amount
        return self.total_amount

    def ordered_installments(self) -> list[Installment]:
        return sorted(self.installments, key=lambda inst: inst.sequence_index)
