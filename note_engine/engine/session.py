"""Edit session for creating or editing a single promissory note.

The session holds the operator's form inputs and a live preview of the
installment schedule. Editing an existing note starts from the persisted
installments, ids and statuses included; the schedule is only regenerated
once a scheduling input actually changes, and regeneration over installments
that are already paid is governed by the configured
:class:`~note_engine.models.enums.RegenerationPolicy`.
"""

from __future__ import annotations

import copy
import logging
from datetime import date
from decimal import Decimal
from typing import Any

from note_engine.config import ScheduleConfig
from note_engine.directory import CustomerDirectory
from note_engine.engine.calculator import (
    calculate,
    check_schedule_input,
    infer_interval,
    round_money,
)
from note_engine.engine.invariants import validate_note
from note_engine.engine.lifecycle import ensure_regenerable
from note_engine.engine.reconciler import reconcile
from note_engine.exceptions import (
    InvalidEntityStateError,
    RegenerationOverPaidInstallments,
    ScheduleEmptyOnConfirm,
    ValidationError,
)
from note_engine.generators.ids import IdGenerator
from note_engine.logging import note_context
from note_engine.models.enums import (
    InstallmentStatus,
    Interval,
    NoteStatus,
    RegenerationPolicy,
)
from note_engine.models.note import Installment, PromissoryNote
from note_engine.models.policy import ByCount, SplitPolicy, as_decimal
from note_engine.store.base import AttachmentStore, NoteStore

logger = logging.getLogger(__name__)


class NoteEditSession:
    """Live preview and confirmation of one note's schedule.

    Use :meth:`new` to create a note and :meth:`edit` to change a persisted
    one. A session is closed after a successful :meth:`confirm`; on failure it
    keeps every input and the preview so the operator can retry.
    """

    def __init__(
        self,
        store: NoteStore,
        *,
        config: ScheduleConfig | None = None,
        ids: IdGenerator | None = None,
        customer_id: str = "",
        start_date: date | None = None,
    ) -> None:
        self.store = store
        self.config = config or ScheduleConfig()
        self.ids = ids or IdGenerator()
        self._closed = False
        self._reset(customer_id, start_date)

    def _reset(self, customer_id: str, start_date: date | None) -> None:
        self.customer_id = customer_id
        self.total_amount: Any = None
        self.is_legacy = False
        self.paid_amount: Any = Decimal("0")
        self.start_date: date = start_date or date.today()
        self.policy: SplitPolicy = ByCount(1)
        self.interval: Interval = self.config.default_interval

        self.notes = ""
        self.debtor_name = ""
        self.debtor_id_number = ""
        self.debtor_address = ""
        self.image_url: str | None = None

        self._original: PromissoryNote | None = None
        self._status = NoteStatus.ACTIVE
        self._preview: list[Installment] = []
        self._schedule_error: ValidationError | None = None
        self._discard_paid: set[str] = set()

        self._recompute()

    @classmethod
    def new(
        cls,
        store: NoteStore,
        customer_id: str = "",
        *,
        config: ScheduleConfig | None = None,
        ids: IdGenerator | None = None,
        start_date: date | None = None,
    ) -> NoteEditSession:
        """Start a session for a note that does not exist yet."""
        return cls(store, config=config, ids=ids, customer_id=customer_id, start_date=start_date)

    @classmethod
    def edit(
        cls,
        store: NoteStore,
        note_id: str,
        *,
        config: ScheduleConfig | None = None,
        ids: IdGenerator | None = None,
    ) -> NoteEditSession:
        """Start a session on a persisted note, seeded from its installments."""
        note = store.get_note(note_id)
        session = cls(store, config=config, ids=ids)
        session._seed(note)
        logger.debug("Editing note %s with %d installments", note_id, len(note.installments))
        return session

    # Read-only state

    @property
    def note_id(self) -> str | None:
        return self._original.note_id if self._original else None

    @property
    def is_new(self) -> bool:
        return self._original is None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def status(self) -> NoteStatus:
        return self._status

    @property
    def preview(self) -> list[Installment]:
        """Current schedule, in sequence order (copies)."""
        return copy.deepcopy(self._preview)

    @property
    def schedule_error(self) -> ValidationError | None:
        """Why the preview is empty, or None."""
        return self._schedule_error

    @property
    def remaining_amount(self) -> Decimal | None:
        """Amount scheduled into installments, None while inputs are invalid."""
        try:
            return reconcile(self.total_amount, self.is_legacy, self.paid_amount, self.config)
        except ValidationError:
            return None

    @property
    def paid_installments(self) -> list[Installment]:
        return [inst for inst in self._preview if inst.is_paid]

    # Scheduling inputs

    def set_total_amount(self, value: Any) -> None:
        """Set the face value. Only possible before the note is created."""
        self._ensure_open()
        if value == self.total_amount:
            return
        if not self.is_new:
            raise InvalidEntityStateError(
                f"Note {self.note_id}: total amount is fixed at {self.total_amount} once the note exists"
            )
        self.total_amount = value
        self._recompute()

    def set_legacy(
        self,
        is_legacy: bool,
        paid_amount: Any = None,
        *,
        confirm_discard_payments: bool = False,
    ) -> None:
        """Mark the note as partially paid before entering the system."""
        self._ensure_open()
        if is_legacy == self.is_legacy and (paid_amount is None or paid_amount == self.paid_amount):
            return
        if not self.is_new and is_legacy != self.is_legacy:
            raise InvalidEntityStateError(f"Note {self.note_id}: the legacy flag cannot change after creation")
        self._guard_regeneration(confirm_discard_payments)
        self.is_legacy = is_legacy
        if paid_amount is not None:
            self.paid_amount = paid_amount
        self._recompute()

    def set_paid_amount(self, value: Any, *, confirm_discard_payments: bool = False) -> None:
        self._apply_input("paid_amount", value, confirm_discard_payments)

    def set_start_date(self, value: date, *, confirm_discard_payments: bool = False) -> None:
        self._apply_input("start_date", value, confirm_discard_payments)

    def set_policy(self, policy: SplitPolicy, *, confirm_discard_payments: bool = False) -> None:
        self._apply_input("policy", policy, confirm_discard_payments)

    def set_interval(self, interval: Interval, *, confirm_discard_payments: bool = False) -> None:
        self._apply_input("interval", interval, confirm_discard_payments)

    # Metadata, never triggers regeneration

    def set_notes(self, text: str) -> None:
        self._ensure_open()
        self.notes = text

    def set_debtor(
        self,
        name: str | None = None,
        id_number: str | None = None,
        address: str | None = None,
    ) -> None:
        self._ensure_open()
        if name is not None:
            self.debtor_name = name
        if id_number is not None:
            self.debtor_id_number = id_number
        if address is not None:
            self.debtor_address = address

    def select_customer(self, customer_id: str, directory: CustomerDirectory | None = None) -> None:
        """Choose the debtor, prefilling name, id number and address when a directory is given."""
        self._ensure_open()
        self.customer_id = customer_id
        if directory is not None:
            profile = directory.lookup(customer_id)
            self.set_debtor(profile.name, profile.id_number, profile.address)

    def attach_image(self, attachments: AttachmentStore, blob: bytes, filename: str) -> str:
        """Upload a scan of the signed note and keep its URL."""
        self._ensure_open()
        self.image_url = attachments.upload(blob, filename)
        return self.image_url

    def set_installment_notes(self, sequence_index: int, text: str) -> None:
        self._ensure_open()
        for inst in self._preview:
            if inst.sequence_index == sequence_index:
                inst.notes = text
                return
        raise ValidationError("sequence_index", f"No installment #{sequence_index + 1} in the schedule")

    def discard_changes(self) -> None:
        """Drop all edits and reload the persisted note (or return to a blank form)."""
        self._ensure_open()
        if self._original is None:
            self._reset(self.customer_id, None)
        else:
            self._seed(self.store.get_note(self._original.note_id))

    # Confirmation

    def build_note(self) -> PromissoryNote:
        """Assemble the note and installments payload from the current inputs.

        Raises
        ------
        ValidationError
            Missing customer or unusable total amount.
        InvalidPaymentAmount
            Legacy paid amount out of range.
        ScheduleEmptyOnConfirm
            No installments in the preview.
        ScheduleInvariantError
            The payload is internally inconsistent.
        """
        if not self.customer_id:
            raise ValidationError("customer_id", "Select the customer the note is issued to")

        reconcile(self.total_amount, self.is_legacy, self.paid_amount, self.config)
        if not self._preview:
            field = self._schedule_error.field if self._schedule_error else "installments"
            reason = f": {self._schedule_error}" if self._schedule_error else ""
            raise ScheduleEmptyOnConfirm(field, f"Cannot save a note without installments{reason}")

        total = round_money(as_decimal(self.total_amount), self.config)
        paid = round_money(as_decimal(self.paid_amount), self.config) if self.is_legacy else Decimal("0")
        note_id = self.note_id or ""
        installments = copy.deepcopy(self._preview)
        for inst in installments:
            inst.note_id = note_id

        note = PromissoryNote(
            note_id=note_id,
            customer_id=self.customer_id,
            total_amount=total,
            issue_date=installments[0].due_date,
            is_legacy=self.is_legacy,
            paid_amount=paid,
            status=self._status,
            installments=installments,
            notes=self.notes,
            debtor_name=self.debtor_name,
            debtor_id_number=self.debtor_id_number,
            debtor_address=self.debtor_address,
            image_url=self.image_url,
            created_at=self._original.created_at if self._original else None,
        )
        validate_note(note, self.config)
        return note

    def confirm(self) -> str:
        """Persist the note and close the session.

        Errors from the store propagate unchanged, including a refusal to
        overwrite installments paid since the session was opened; call
        :meth:`discard_changes` to reload the note. The session only closes
        once the store has returned, so an interrupted or failed call leaves
        inputs and preview intact for a retry.

        Returns
        -------
        str
            Id of the created or updated note.
        """
        self._ensure_open()
        note = self.build_note()

        try:
            if self.is_new:
                note_id = self.store.create_note(note)
            else:
                note_id = note.note_id
                self.store.update_note(note_id, note, discard_paid=frozenset(self._discard_paid))
        except Exception:
            logger.exception(
                "Saving note %s failed; edits kept for retry",
                note.note_id or "(new)",
                extra=note_context(note.note_id, customer_id=note.customer_id),
            )
            raise

        self._closed = True
        logger.info(
            "Saved note %s: %s over %d installments",
            note_id,
            note.remaining_amount,
            len(note.installments),
            extra=note_context(note_id, customer_id=note.customer_id),
        )
        return note_id

    # Internals

    def _seed(self, note: PromissoryNote) -> None:
        installments = note.ordered_installments()
        self._original = copy.deepcopy(note)
        self.customer_id = note.customer_id
        self.total_amount = note.total_amount
        self.is_legacy = note.is_legacy
        self.paid_amount = note.paid_amount
        self.start_date = installments[0].due_date if installments else note.issue_date
        self.policy = ByCount(len(installments))
        self.interval = infer_interval([inst.due_date for inst in installments])
        self.notes = note.notes
        self.debtor_name = note.debtor_name
        self.debtor_id_number = note.debtor_id_number
        self.debtor_address = note.debtor_address
        self.image_url = note.image_url
        self._status = note.status
        self._preview = copy.deepcopy(installments)
        self._schedule_error = None
        self._discard_paid = set()

    def _apply_input(self, name: str, value: Any, confirm_discard_payments: bool) -> None:
        self._ensure_open()
        if getattr(self, name) == value:
            return
        self._guard_regeneration(confirm_discard_payments)
        setattr(self, name, value)
        self._recompute()

    def _guard_regeneration(self, confirm_discard_payments: bool) -> None:
        if self._original is not None:
            ensure_regenerable(self._original)

        paid = self.paid_installments
        if not paid:
            return

        numbers = ", ".join(f"#{inst.sequence_index + 1}" for inst in paid)
        policy = self.config.regeneration_policy
        if policy == RegenerationPolicy.DESTRUCTIVE or not confirm_discard_payments:
            logger.warning(
                "Refused to regenerate schedule of note %s: installments %s are paid",
                self.note_id,
                numbers,
                extra=note_context(self.note_id),
            )
            hint = "" if policy == RegenerationPolicy.DESTRUCTIVE else "; confirm to discard these payments"
            raise RegenerationOverPaidInstallments(
                f"Installments {numbers} are already paid; changing the schedule would erase them{hint}"
            )

        logger.warning(
            "Regenerating schedule of note %s over paid installments %s at operator request",
            self.note_id,
            numbers,
            extra=note_context(self.note_id),
        )
        self._discard_paid.update(inst.installment_id for inst in paid)

    def _recompute(self) -> None:
        self._schedule_error = None
        try:
            remaining = reconcile(self.total_amount, self.is_legacy, self.paid_amount, self.config)
        except ValidationError as e:
            self._schedule_error = e
            self._preview = []
            return

        self._schedule_error = check_schedule_input(
            remaining, self.start_date, self.policy, self.interval, self.config
        )
        scheduled = calculate(remaining, self.start_date, self.policy, self.interval, self.config)

        # Guarded regeneration keeps row identity by position
        keep_ids = self.config.regeneration_policy == RegenerationPolicy.GUARDED
        previous = {inst.sequence_index: inst.installment_id for inst in self._preview} if keep_ids else {}

        self._preview = [
            Installment(
                installment_id=previous.get(item.sequence_index) or self.ids.new_id(),
                note_id=self.note_id or "",
                sequence_index=item.sequence_index,
                amount=item.amount,
                due_date=item.due_date,
                status=InstallmentStatus.PENDING,
                notes=item.notes,
            )
            for item in scheduled
        ]
        logger.debug("Preview recomputed: %d installments for %s", len(self._preview), remaining)

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidEntityStateError("Session already confirmed; start a new session to make further changes")
