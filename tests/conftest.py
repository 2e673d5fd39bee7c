"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal
from typing import Callable

import pytest

from note_engine.engine.calculator import calculate
from note_engine.generators.ids import IdGenerator
from note_engine.models import ByCount, Installment, Interval, PromissoryNote
from note_engine.store import InMemoryNoteStore


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def customer_id() -> str:
    """Sample customer ID."""
    return "cust-test-001"


@pytest.fixture
def start_date() -> date:
    """First due date used by most schedules."""
    return date(2025, 1, 15)


@pytest.fixture
def ids(seed: int) -> IdGenerator:
    """Seeded id generator."""
    return IdGenerator(seed=seed)


@pytest.fixture
def store() -> InMemoryNoteStore:
    """Create a fresh store for each test."""
    return InMemoryNoteStore(ids=IdGenerator(seed=7))


@pytest.fixture
def make_note(customer_id: str, start_date: date) -> Callable[..., PromissoryNote]:
    """Factory for valid notes with a calculated schedule."""

    def _make(
        total: str = "100.00",
        count: int = 3,
        *,
        note_id: str = "note-001",
        is_legacy: bool = False,
        paid: str = "0",
        interval: Interval = Interval.MONTHLY,
        debtor_name: str = "Ana Souza",
        notes: str = "",
    ) -> PromissoryNote:
        total_amount = Decimal(total)
        paid_amount = Decimal(paid) if is_legacy else Decimal("0")
        schedule = calculate(total_amount - paid_amount, start_date, ByCount(count), interval)
        installments = [
            Installment(
                installment_id=f"{note_id}-{item.sequence_index}",
                note_id=note_id,
                sequence_index=item.sequence_index,
                amount=item.amount,
                due_date=item.due_date,
                notes=item.notes,
            )
            for item in schedule
        ]
        return PromissoryNote(
            note_id=note_id,
            customer_id=customer_id,
            total_amount=total_amount,
            issue_date=start_date,
            is_legacy=is_legacy,
            paid_amount=paid_amount,
            installments=installments,
            notes=notes,
            debtor_name=debtor_name,
        )

    return _make
