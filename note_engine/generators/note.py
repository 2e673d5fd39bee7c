"""Synthetic promissory notes for demos, fixtures and load checks."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator

from note_engine.config import ScheduleConfig
from note_engine.engine.calculator import calculate
from note_engine.engine.lifecycle import derive_note_status
from note_engine.generators.base import BaseGenerator
from note_engine.generators.ids import IdGenerator
from note_engine.models.customer import DebtorProfile
from note_engine.models.enums import InstallmentStatus, Interval, NoteStatus
from note_engine.models.note import Installment, PromissoryNote
from note_engine.models.policy import ByAmount, ByCount


class DebtorGenerator(BaseGenerator):
    """Generate synthetic debtor profiles."""

    def generate(self) -> DebtorProfile:
        return DebtorProfile(
            customer_id=self.fake.uuid4(),
            name=self.fake.name(),
            id_number=self.fake.numerify("#########"),
            address=self.fake.address().replace("\n", ", "),
        )


class PromissoryNoteGenerator(BaseGenerator):
    """Generate notes with valid schedules and plausible payment progress."""

    COUNT_CHOICES = [1, 3, 6, 10, 12, 18, 24]
    INTERVAL_WEIGHTS = {Interval.MONTHLY: 0.8, Interval.WEEKLY: 0.2}

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "en_US",
        config: ScheduleConfig | None = None,
        legacy_rate: float = 0.2,
    ) -> None:
        super().__init__(seed, locale)
        self.config = config or ScheduleConfig()
        self.legacy_rate = legacy_rate
        # Offset seeds so note ids and customer ids come from distinct streams
        self.ids = IdGenerator(seed=None if seed is None else seed + 1, locale=locale)
        self._debtors = DebtorGenerator(seed=None if seed is None else seed + 2, locale=locale)

    def generate(self, debtor: DebtorProfile | None = None, today: date | None = None) -> PromissoryNote:
        """Generate one note.

        Parameters
        ----------
        debtor : DebtorProfile | None
            Debtor to issue the note to; a synthetic one when omitted.
        today : date | None
            Reference date; installments due before it are mostly paid.

        Returns
        -------
        PromissoryNote
            Note whose installments satisfy every schedule invariant.
        """
        rng = self.fake.random
        debtor = debtor or self._debtors.generate()
        today = today or date.today()

        total = Decimal(rng.randint(10, 500) * 100)
        is_legacy = rng.random() < self.legacy_rate
        paid = Decimal(rng.randint(1, int(total / 100) - 1) * 100) if is_legacy and total > 100 else Decimal("0")
        is_legacy = is_legacy and paid > 0

        remaining = total - paid
        interval = rng.choices(list(self.INTERVAL_WEIGHTS), weights=list(self.INTERVAL_WEIGHTS.values()))[0]
        if rng.random() < 0.7:
            policy = ByCount(rng.choice(self.COUNT_CHOICES))
        else:
            policy = ByAmount((remaining / rng.choice(self.COUNT_CHOICES)).quantize(Decimal("1")))

        start = today - timedelta(days=rng.randint(0, 365))
        note_id = self.ids.new_id()

        installments = [
            Installment(
                installment_id=self.ids.new_id(),
                note_id=note_id,
                sequence_index=item.sequence_index,
                amount=item.amount,
                due_date=item.due_date,
                status=self._payment_state(item.due_date, today),
                notes=item.notes,
            )
            for item in calculate(remaining, start, policy, interval, self.config)
        ]

        note = PromissoryNote(
            note_id=note_id,
            customer_id=debtor.customer_id,
            total_amount=total,
            issue_date=start,
            is_legacy=is_legacy,
            paid_amount=paid,
            installments=installments,
            notes=self.fake.sentence(nb_words=6),
            debtor_name=debtor.name,
            debtor_id_number=debtor.id_number,
            debtor_address=debtor.address,
        )
        note.status = derive_note_status(NoteStatus.ACTIVE, installments)
        if note.status == NoteStatus.ACTIVE and rng.random() < 0.03:
            note.status = NoteStatus.DEFAULTED
        return note

    def generate_batch(self, count: int, today: date | None = None) -> Iterator[PromissoryNote]:
        """Generate multiple notes.

        Parameters
        ----------
        count : int
            Number of notes to generate.

        Yields
        ------
        PromissoryNote
            Generated note.
        """
        for _ in range(count):
            yield self.generate(today=today)

    def _payment_state(self, due_date: date, today: date) -> InstallmentStatus:
        if due_date > today:
            return InstallmentStatus.PENDING
        roll = self.fake.random.random()
        if roll < 0.85:
            return InstallmentStatus.PAID
        if roll < 0.95:
            return InstallmentStatus.LATE
        return InstallmentStatus.PENDING
