"""Conversion between loose external records and the strict note models.

Records coming from the hosted store or older exports spell the same field
several ways (``total_amount`` / ``totalAmount``, ``due_date`` / ``dueDate``)
and carry money as floats or strings. They are normalised here, once, so the
engine only ever sees :class:`PromissoryNote` and :class:`Installment`.
"""

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from note_engine.exceptions import ValidationError
from note_engine.models.enums import InstallmentStatus, NoteStatus
from note_engine.models.note import Installment, PromissoryNote
from note_engine.models.policy import as_decimal

_MISSING = object()

NOTE_FIELDS: dict[str, tuple[str, ...]] = {
    "note_id": ("note_id", "noteId", "id"),
    "customer_id": ("customer_id", "customerId"),
    "total_amount": ("total_amount", "totalAmount", "amount"),
    "issue_date": ("issue_date", "issueDate", "start_date", "startDate"),
    "is_legacy": ("is_legacy", "isLegacy", "legacy"),
    "paid_amount": ("paid_amount", "paidAmount", "amount_paid", "amountPaid"),
    "status": ("status",),
    "installments": ("installments", "promissory_note_installments"),
    "notes": ("notes", "description"),
    "debtor_name": ("debtor_name", "debtorName", "customer_name", "customerName"),
    "debtor_id_number": ("debtor_id_number", "debtorIdNumber", "id_number", "idNumber"),
    "debtor_address": ("debtor_address", "debtorAddress", "address"),
    "image_url": ("image_url", "imageUrl"),
    "created_at": ("created_at", "createdAt"),
    "updated_at": ("updated_at", "updatedAt"),
}

INSTALLMENT_FIELDS: dict[str, tuple[str, ...]] = {
    "installment_id": ("installment_id", "installmentId", "id"),
    "note_id": ("note_id", "noteId", "promissory_note_id", "promissoryNoteId"),
    "sequence_index": ("sequence_index", "sequenceIndex"),
    "installment_number": ("installment_number", "installmentNumber"),  # 1-based
    "amount": ("amount",),
    "due_date": ("due_date", "dueDate"),
    "status": ("status",),
    "notes": ("notes", "description"),
}


def _pick(record: Mapping[str, Any], names: tuple[str, ...], default: Any = _MISSING) -> Any:
    for name in names:
        if name in record and record[name] is not None:
            return record[name]
    return default


def _require(record: Mapping[str, Any], field: str, names: tuple[str, ...]) -> Any:
    value = _pick(record, names)
    if value is _MISSING:
        raise ValidationError(field, f"Missing required field {field!r} (accepted: {', '.join(names)})")
    return value


def parse_money(value: Any, field: str) -> Decimal:
    """Parse a money value from a number or numeric string."""
    result = as_decimal(value)
    if result is None:
        raise ValidationError(field, f"{field} is not a number: {value!r}")
    return result


def parse_date(value: Any, field: str) -> date:
    """Parse a date from a date, datetime or ISO-8601 string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(field, f"{field} is not a date: {value!r}")


def parse_datetime(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    raise ValidationError(field, f"{field} is not a timestamp: {value!r}")


def parse_enum(enum_cls: type[Enum], value: Any, field: str) -> Any:
    """Match an enum by value or name, ignoring case."""
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower()
    for member in enum_cls:
        if text in (str(member.value).lower(), member.name.lower()):
            return member
    raise ValidationError(field, f"{field} must be one of {[m.value for m in enum_cls]}, got {value!r}")


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0", "yes", "no"):
        return value.strip().lower() in ("true", "1", "yes")
    raise ValidationError(field, f"{field} is not a boolean: {value!r}")


def installment_from_record(record: Mapping[str, Any], note_id: str = "") -> Installment:
    """Build an :class:`Installment` from a loose record.

    ``sequence_index`` falls back to ``installment_number - 1`` and then to -1,
    meaning "order by due date" when the owning note is normalised.
    """
    f = INSTALLMENT_FIELDS
    index = _pick(record, f["sequence_index"], None)
    if index is None:
        number = _pick(record, f["installment_number"], None)
        index = int(number) - 1 if number is not None else -1

    return Installment(
        installment_id=str(_pick(record, f["installment_id"], "")),
        note_id=str(_pick(record, f["note_id"], note_id)),
        sequence_index=int(index),
        amount=parse_money(_require(record, "amount", f["amount"]), "amount"),
        due_date=parse_date(_require(record, "due_date", f["due_date"]), "due_date"),
        status=parse_enum(InstallmentStatus, _pick(record, f["status"], "Pending"), "status"),
        notes=str(_pick(record, f["notes"], "")),
    )


def note_from_record(record: Mapping[str, Any]) -> PromissoryNote:
    """Build a :class:`PromissoryNote` (with installments) from a loose record."""
    f = NOTE_FIELDS
    note_id = str(_pick(record, f["note_id"], ""))

    installments = [
        installment_from_record(item, note_id)
        for item in _pick(record, f["installments"], [])
    ]
    if any(inst.sequence_index < 0 for inst in installments):
        installments.sort(key=lambda inst: inst.due_date)
        for i, inst in enumerate(installments):
            inst.sequence_index = i
    installments.sort(key=lambda inst: inst.sequence_index)

    debtor_name = _pick(record, f["debtor_name"], None)
    customer = record.get("customers") or record.get("customer")
    if debtor_name is None and isinstance(customer, Mapping):
        debtor_name = customer.get("name")

    issue_date = _pick(record, f["issue_date"], None)
    if issue_date is None and installments:
        issue_date = installments[0].due_date
    if issue_date is None:
        raise ValidationError("issue_date", "Missing required field 'issue_date' and no installments to infer it from")

    is_legacy = parse_bool(_pick(record, f["is_legacy"], False), "is_legacy")

    return PromissoryNote(
        note_id=note_id,
        customer_id=str(_require(record, "customer_id", f["customer_id"])),
        total_amount=parse_money(_require(record, "total_amount", f["total_amount"]), "total_amount"),
        issue_date=parse_date(issue_date, "issue_date"),
        is_legacy=is_legacy,
        paid_amount=parse_money(_pick(record, f["paid_amount"], 0), "paid_amount") if is_legacy else Decimal("0"),
        status=parse_enum(NoteStatus, _pick(record, f["status"], "Active"), "status"),
        installments=installments,
        notes=str(_pick(record, f["notes"], "")),
        debtor_name=str(debtor_name or ""),
        debtor_id_number=str(_pick(record, f["debtor_id_number"], "")),
        debtor_address=str(_pick(record, f["debtor_address"], "")),
        image_url=_pick(record, f["image_url"], None),
        created_at=parse_datetime(_pick(record, f["created_at"], None), "created_at"),
        updated_at=parse_datetime(_pick(record, f["updated_at"], None), "updated_at"),
    )


def to_dict(obj: Any) -> dict:
    """Convert object to dictionary."""
    if is_dataclass(obj):
        return dataclass_to_dict(obj)
    elif isinstance(obj, dict):
        return obj
    else:
        return {"value": str(obj)}


def dataclass_to_dict(obj: Any) -> dict:
    """Convert dataclass to dict with proper serialization."""
    result = {}
    for key, value in asdict(obj).items():
        result[key] = serialize_value(value)
    if isinstance(obj, PromissoryNote):
        result["remaining_amount"] = serialize_value(obj.remaining_amount)
    return result


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output. Money stays exact as a string."""
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, dict):
        return {serialize_value(k): serialize_value(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value
