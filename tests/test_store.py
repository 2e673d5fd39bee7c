"""Tests for InMemoryNoteStore."""

import logging
from datetime import datetime
from decimal import Decimal

import pytest

from note_engine.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    RegenerationOverPaidInstallments,
    ScheduleInvariantError,
)
from note_engine.models import InstallmentStatus, NoteStatus
from note_engine.store import InMemoryNoteStore, NoteFilter


class TestCreateNote:
    """Tests for creating notes."""

    def test_create_and_get(self, store: InMemoryNoteStore, make_note) -> None:
        note_id = store.create_note(make_note())
        loaded = store.get_note(note_id)

        assert note_id == "note-001"
        assert loaded.total_amount == Decimal("100.00")
        assert [inst.sequence_index for inst in loaded.installments] == [0, 1, 2]
        assert loaded.status == NoteStatus.ACTIVE
        assert loaded.created_at is not None

    def test_assigns_missing_ids(self, store: InMemoryNoteStore, make_note) -> None:
        note = make_note(note_id="")
        for inst in note.installments:
            inst.installment_id = ""

        note_id = store.create_note(note)
        loaded = store.get_note(note_id)

        assert note_id
        assert all(inst.installment_id for inst in loaded.installments)
        assert all(inst.note_id == note_id for inst in loaded.installments)

    def test_duplicate_note(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())

        with pytest.raises(InvalidEntityStateError, match="already exists"):
            store.create_note(make_note())

    def test_installment_owned_by_other_note(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note(note_id="a"))
        other = make_note(note_id="b")
        other.installments[0].installment_id = "a-0"

        with pytest.raises(InvalidEntityStateError, match="already belongs"):
            store.create_note(other)

    def test_invalid_note_is_not_written(self, store: InMemoryNoteStore, make_note) -> None:
        note = make_note()
        note.installments[0].amount = Decimal("50.00")

        with pytest.raises(ScheduleInvariantError):
            store.create_note(note)

        assert store.summary() == {"notes": 0, "installments": 0, "customers": 0}

    def test_fully_paid_note_is_completed(self, store: InMemoryNoteStore, make_note) -> None:
        note = make_note()
        for inst in note.installments:
            inst.status = InstallmentStatus.PAID

        assert store.get_note(store.create_note(note)).status == NoteStatus.COMPLETED

    def test_returned_notes_are_copies(self, store: InMemoryNoteStore, make_note) -> None:
        note = make_note()
        note_id = store.create_note(note)
        note.installments[0].amount = Decimal("1")

        loaded = store.get_note(note_id)
        loaded.installments[0].status = InstallmentStatus.PAID

        fresh = store.get_note(note_id)
        assert fresh.installments[0].amount == Decimal("33.33")
        assert fresh.installments[0].status == InstallmentStatus.PENDING


class TestUpdateNote:
    """Tests for replacing notes."""

    def test_replaces_installment_set(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note(count=3))
        store.update_note("note-001", make_note(count=2, notes="Renegotiated"))

        loaded = store.get_note("note-001")
        assert len(loaded.installments) == 2
        assert loaded.notes == "Renegotiated"
        assert loaded.updated_at is not None
        assert "note-001-2" not in store.installments

    def test_keeps_created_at(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        created = store.get_note("note-001").created_at

        store.update_note("note-001", make_note(count=1))

        assert store.get_note("note-001").created_at == created

    def test_total_amount_is_immutable(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())

        with pytest.raises(InvalidEntityStateError, match="total amount is fixed"):
            store.update_note("note-001", make_note(total="200.00"))

        assert store.get_note("note-001").total_amount == Decimal("100.00")

    def test_invalid_update_keeps_previous_rows(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        broken = make_note(count=2)
        broken.installments[1].amount = Decimal("1.00")

        with pytest.raises(ScheduleInvariantError):
            store.update_note("note-001", broken)

        assert len(store.get_note("note-001").installments) == 3

    def test_unknown_note(self, store: InMemoryNoteStore, make_note) -> None:
        with pytest.raises(EntityNotFoundError, match="Note missing not found"):
            store.update_note("missing", make_note())

    def test_defaulted_status_survives_update(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        store.set_note_status("note-001", NoteStatus.DEFAULTED)

        store.update_note("note-001", make_note(notes="Sent to collections"))

        assert store.get_note("note-001").status == NoteStatus.DEFAULTED

    def test_change_customer(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        moved = make_note()
        moved.customer_id = "cust-other"

        store.update_note("note-001", moved)

        assert store.get_customer_notes("cust-test-001") == []
        assert [n.note_id for n in store.get_customer_notes("cust-other")] == ["note-001"]

    def test_keeps_payment_recorded_after_load(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        store.toggle_installment_status("note-001-0")

        store.update_note("note-001", make_note(notes="Called debtor"))

        loaded = store.get_note("note-001")
        assert loaded.notes == "Called debtor"
        assert loaded.installments[0].status == InstallmentStatus.PAID

    def test_refuses_to_drop_paid_installment(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        store.toggle_installment_status("note-001-2")

        with pytest.raises(RegenerationOverPaidInstallments, match="#3"):
            store.update_note("note-001", make_note(count=2))

        loaded = store.get_note("note-001")
        assert len(loaded.installments) == 3
        assert loaded.installments[2].status == InstallmentStatus.PAID

    def test_discard_paid_allows_reschedule(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        store.toggle_installment_status("note-001-0")

        store.update_note("note-001", make_note(count=2), discard_paid={"note-001-0"})

        loaded = store.get_note("note-001")
        assert [inst.amount for inst in loaded.installments] == [Decimal("50.00")] * 2
        assert all(inst.status == InstallmentStatus.PENDING for inst in loaded.installments)

    def test_completed_note_cannot_be_rescheduled(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        for inst_id in ("note-001-0", "note-001-1", "note-001-2"):
            store.toggle_installment_status(inst_id)

        with pytest.raises(InvalidEntityStateError, match="Completed"):
            store.update_note("note-001", make_note(count=2), discard_paid={"note-001-0", "note-001-1", "note-001-2"})

        assert store.get_note("note-001").status == NoteStatus.COMPLETED

    def test_logs_installment_count(
        self, store: InMemoryNoteStore, make_note, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="note_engine.store.memory")

        store.create_note(make_note())
        store.update_note("note-001", make_note(count=2))

        assert "Created note note-001 with 3 installments" in caplog.text
        assert "Updated note note-001 (2 installments)" in caplog.text


class TestDeleteNote:
    """Tests for deleting notes."""

    def test_cascades_to_installments(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        store.delete_note("note-001")

        assert store.installments == {}
        with pytest.raises(EntityNotFoundError):
            store.get_note("note-001")
        with pytest.raises(EntityNotFoundError):
            store.toggle_installment_status("note-001-0")

    def test_delete_unknown(self, store: InMemoryNoteStore) -> None:
        with pytest.raises(EntityNotFoundError):
            store.delete_note("missing")


class TestInstallmentStatus:
    """Tests for installment status writes."""

    def test_set_late(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note())
        updated = store.set_installment_status("note-001-0", InstallmentStatus.LATE)

        assert updated.status == InstallmentStatus.LATE
        assert store.get_note("note-001").status == NoteStatus.ACTIVE

    def test_toggle(self, store: InMemoryNoteStore, make_note) -> None:
        store.create_note(make_note(count=1))

        assert store.toggle_installment_status("note-001-0").status == InstallmentStatus.PAID
        assert store.get_note("note-001").status == NoteStatus.COMPLETED


class TestListNotes:
    """Tests for listing and filtering notes."""

    @pytest.fixture
    def populated(self, store: InMemoryNoteStore, make_note) -> InMemoryNoteStore:
        notes = [
            make_note(note_id="n1", debtor_name="Ana Souza", notes="Car purchase"),
            make_note(note_id="n2", debtor_name="Bruno Lima", notes="Store credit"),
            make_note(note_id="n3", debtor_name="Carla Dias", notes="ana's referral"),
        ]
        for day, note in enumerate(notes, start=1):
            note.created_at = datetime(2025, 1, day)
            store.create_note(note)
        store.set_note_status("n2", NoteStatus.DEFAULTED)
        return store

    def test_newest_first(self, populated: InMemoryNoteStore) -> None:
        assert [n.note_id for n in populated.list_notes()] == ["n3", "n2", "n1"]

    def test_filter_by_status(self, populated: InMemoryNoteStore) -> None:
        notes = populated.list_notes(NoteFilter(status=NoteStatus.DEFAULTED))

        assert [n.note_id for n in notes] == ["n2"]

    def test_search_is_case_insensitive(self, populated: InMemoryNoteStore) -> None:
        notes = populated.list_notes(NoteFilter(search="  ANA "))

        assert [n.note_id for n in notes] == ["n3", "n1"]

    def test_combined_filter(self, populated: InMemoryNoteStore) -> None:
        notes = populated.list_notes(NoteFilter(status=NoteStatus.ACTIVE, search="credit"))

        assert notes == []

    def test_filter_by_customer(self, populated: InMemoryNoteStore) -> None:
        assert len(populated.list_notes(NoteFilter(customer_id="cust-test-001"))) == 3
        assert populated.list_notes(NoteFilter(customer_id="nobody")) == []

    def test_listed_notes_carry_installments(self, populated: InMemoryNoteStore) -> None:
        assert all(len(n.installments) == 3 for n in populated.list_notes())

    def test_summary(self, populated: InMemoryNoteStore) -> None:
        assert populated.summary() == {"notes": 3, "installments": 9, "customers": 1}
