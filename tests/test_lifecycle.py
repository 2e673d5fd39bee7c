"""Tests for installment and note status transitions."""

import threading

import pytest

from note_engine.engine.lifecycle import (
    derive_note_status,
    ensure_regenerable,
    mark_defaulted,
    record_installment_payment,
    reinstate,
    toggle_status,
)
from note_engine.exceptions import EntityNotFoundError, InvalidEntityStateError
from note_engine.models import InstallmentStatus, NoteStatus
from note_engine.store import InMemoryNoteStore


@pytest.fixture
def saved_note_id(store: InMemoryNoteStore, make_note) -> str:
    """A two-installment note already in the store."""
    return store.create_note(make_note(total="200.00", count=2))


class TestToggleStatus:
    """Tests for the installment toggle."""

    @pytest.mark.parametrize(
        "before,after",
        [
            (InstallmentStatus.PENDING, InstallmentStatus.PAID),
            (InstallmentStatus.LATE, InstallmentStatus.PAID),
            (InstallmentStatus.PAID, InstallmentStatus.PENDING),
        ],
    )
    def test_transitions(self, before: InstallmentStatus, after: InstallmentStatus) -> None:
        assert toggle_status(before) == after


class TestDeriveNoteStatus:
    """Tests for note status derivation."""

    def test_all_paid_completes(self, make_note) -> None:
        note = make_note()
        for inst in note.installments:
            inst.status = InstallmentStatus.PAID

        assert derive_note_status(NoteStatus.ACTIVE, note.installments) == NoteStatus.COMPLETED

    def test_any_unpaid_is_active(self, make_note) -> None:
        note = make_note()
        note.installments[0].status = InstallmentStatus.PAID
        note.installments[1].status = InstallmentStatus.LATE

        assert derive_note_status(NoteStatus.COMPLETED, note.installments) == NoteStatus.ACTIVE

    def test_no_installments_is_active(self) -> None:
        assert derive_note_status(NoteStatus.ACTIVE, []) == NoteStatus.ACTIVE

    def test_defaulted_is_sticky(self, make_note) -> None:
        note = make_note()
        for inst in note.installments:
            inst.status = InstallmentStatus.PAID

        assert derive_note_status(NoteStatus.DEFAULTED, note.installments) == NoteStatus.DEFAULTED

    def test_ensure_regenerable(self, make_note) -> None:
        note = make_note()
        ensure_regenerable(note)

        note.status = NoteStatus.COMPLETED
        with pytest.raises(InvalidEntityStateError, match="Completed"):
            ensure_regenerable(note)


class TestRecordInstallmentPayment:
    """Tests for toggling payments through the store."""

    def test_paying_every_installment_completes_note(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        first, second = store.get_note(saved_note_id).installments

        assert record_installment_payment(store, first.installment_id).status == InstallmentStatus.PAID
        assert store.get_note(saved_note_id).status == NoteStatus.ACTIVE

        record_installment_payment(store, second.installment_id)
        assert store.get_note(saved_note_id).status == NoteStatus.COMPLETED

    def test_unpaying_reopens_note(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        for inst in store.get_note(saved_note_id).installments:
            record_installment_payment(store, inst.installment_id)

        first = store.get_note(saved_note_id).installments[0]
        assert record_installment_payment(store, first.installment_id).status == InstallmentStatus.PENDING
        assert store.get_note(saved_note_id).status == NoteStatus.ACTIVE

    def test_late_installment_becomes_paid(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        first = store.get_note(saved_note_id).installments[0]
        store.set_installment_status(first.installment_id, InstallmentStatus.LATE)

        assert record_installment_payment(store, first.installment_id).status == InstallmentStatus.PAID

    def test_unknown_installment(self, store: InMemoryNoteStore) -> None:
        with pytest.raises(EntityNotFoundError):
            record_installment_payment(store, "missing")

    def test_concurrent_toggles_serialise(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        """An even number of concurrent toggles leaves the installment unpaid."""
        target = store.get_note(saved_note_id).installments[0].installment_id
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            for _ in range(25):
                record_installment_payment(store, target)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        note = store.get_note(saved_note_id)
        assert note.installments[0].status == InstallmentStatus.PENDING
        assert note.status == NoteStatus.ACTIVE


class TestDefault:
    """Tests for marking defaults and reinstating."""

    def test_mark_defaulted(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        note = mark_defaulted(store, saved_note_id)

        assert note.status == NoteStatus.DEFAULTED
        assert store.get_note(saved_note_id).status == NoteStatus.DEFAULTED

    def test_mark_defaulted_twice_is_noop(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        mark_defaulted(store, saved_note_id)

        assert mark_defaulted(store, saved_note_id).status == NoteStatus.DEFAULTED

    def test_payments_do_not_lift_default(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        mark_defaulted(store, saved_note_id)
        for inst in store.get_note(saved_note_id).installments:
            record_installment_payment(store, inst.installment_id)

        assert store.get_note(saved_note_id).status == NoteStatus.DEFAULTED

    def test_reinstate_derives_status(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        mark_defaulted(store, saved_note_id)
        for inst in store.get_note(saved_note_id).installments:
            record_installment_payment(store, inst.installment_id)

        assert reinstate(store, saved_note_id).status == NoteStatus.COMPLETED

    def test_reinstate_partially_paid(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        mark_defaulted(store, saved_note_id)

        assert reinstate(store, saved_note_id).status == NoteStatus.ACTIVE

    def test_cannot_default_completed_note(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        for inst in store.get_note(saved_note_id).installments:
            record_installment_payment(store, inst.installment_id)

        with pytest.raises(InvalidEntityStateError, match="fully paid"):
            mark_defaulted(store, saved_note_id)

    def test_reinstate_requires_default(self, store: InMemoryNoteStore, saved_note_id: str) -> None:
        with pytest.raises(InvalidEntityStateError, match="not defaulted"):
            reinstate(store, saved_note_id)
