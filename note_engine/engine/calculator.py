"""Amortization calculator: amount to split -> dated installment sequence.

Pure functions: Decimal in, dataclasses out. No I/O.

Month arithmetic uses ``dateutil.relativedelta`` and is always applied to the
original start date, never chained from the previous due date. When the start
day does not exist in the target month the due date is clamped to that month's
last day, so a schedule starting on Jan 31 falls due on Feb 28 (or 29), then
Mar 31, Apr 30, and so on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_CEILING, Decimal
from typing import Any

from dateutil.relativedelta import relativedelta

from note_engine.config import ScheduleConfig
from note_engine.exceptions import InvalidScheduleInput
from note_engine.models.enums import Interval
from note_engine.models.policy import ByAmount, ByCount, SplitPolicy, as_decimal

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = ScheduleConfig()


@dataclass(frozen=True)
class ScheduledInstallment:
    """One entry of a computed schedule, before it is bound to a note."""

    sequence_index: int
    amount: Decimal
    due_date: date
    notes: str


@dataclass(frozen=True)
class _Plan:
    amount: Decimal
    start_date: date
    count: int
    per_installment: Decimal
    interval: Interval


def round_money(value: Decimal, config: ScheduleConfig = DEFAULT_CONFIG) -> Decimal:
    """Round a money value to the configured quantum (half-up by default)."""
    return value.quantize(config.money_quantum, rounding=config.rounding)


def add_interval(start_date: date, index: int, interval: Interval) -> date:
    """Return the due date of installment ``index`` counted from ``start_date``."""
    if interval == Interval.WEEKLY:
        return start_date + timedelta(days=7 * index)
    return start_date + relativedelta(months=index)


def _coerce_interval(interval: Any) -> Interval | None:
    if isinstance(interval, Interval):
        return interval
    if isinstance(interval, str):
        try:
            return Interval(interval.strip().lower())
        except ValueError:
            return None
    return None


def _coerce_count(raw: Any) -> int | None:
    value = as_decimal(raw)
    if value is None or value != value.to_integral_value():
        return None
    return int(value)


def _resolve(
    amount_to_split: Any,
    start_date: Any,
    policy: SplitPolicy,
    interval: Any,
    config: ScheduleConfig,
) -> tuple[_Plan | None, InvalidScheduleInput | None]:
    """Validate raw inputs and derive installment count and per-installment value."""
    amount = as_decimal(amount_to_split)
    if amount is None:
        return None, InvalidScheduleInput("amount", f"Amount to split is not a number: {amount_to_split!r}")
    amount = round_money(amount, config)
    if amount <= 0:
        return None, InvalidScheduleInput("amount", f"Amount to split must be positive, got {amount}")

    if isinstance(start_date, datetime):
        start_date = start_date.date()
    if not isinstance(start_date, date):
        return None, InvalidScheduleInput("start_date", f"Start date is not a date: {start_date!r}")

    resolved_interval = _coerce_interval(interval)
    if resolved_interval is None:
        return None, InvalidScheduleInput(
            "interval",
            f"Interval must be one of {[i.value for i in Interval]}, got {interval!r}",
        )

    if isinstance(policy, ByCount):
        count = _coerce_count(policy.count)
        if count is None:
            return None, InvalidScheduleInput("count", f"Installment count must be a whole number, got {policy.count!r}")
        if count <= 0:
            return None, InvalidScheduleInput("count", f"Installment count must be at least 1, got {count}")
        per_installment = amount / count
    elif isinstance(policy, ByAmount):
        per_installment = as_decimal(policy.per_installment)
        if per_installment is None:
            return None, InvalidScheduleInput(
                "per_installment",
                f"Installment amount is not a number: {policy.per_installment!r}",
            )
        if per_installment <= 0:
            return None, InvalidScheduleInput(
                "per_installment",
                f"Installment amount must be positive, got {per_installment}",
            )
        count = int((amount / per_installment).to_integral_value(rounding=ROUND_CEILING))
    else:
        return None, InvalidScheduleInput("policy", f"Unknown split policy: {policy!r}")

    if count > config.max_installments:
        return None, InvalidScheduleInput(
            "count" if isinstance(policy, ByCount) else "per_installment",
            f"Schedule would have {count} installments, more than the limit of {config.max_installments}",
        )

    # Every installment, the last included, must carry at least one quantum
    regular = round_money(per_installment, config)
    if regular <= 0 or amount - regular * (count - 1) <= 0:
        return None, InvalidScheduleInput(
            "count" if isinstance(policy, ByCount) else "per_installment",
            f"Cannot split {amount} into {count} installments of at least {config.money_quantum}",
        )

    return _Plan(amount, start_date, count, per_installment, resolved_interval), None


def check_schedule_input(
    amount_to_split: Any,
    start_date: Any,
    policy: SplitPolicy,
    interval: Any = Interval.MONTHLY,
    config: ScheduleConfig = DEFAULT_CONFIG,
) -> InvalidScheduleInput | None:
    """Explain why ``calculate`` would return an empty schedule.

    Returns
    -------
    InvalidScheduleInput | None
        The problem (with the offending field) or None when inputs are usable.
    """
    _, problem = _resolve(amount_to_split, start_date, policy, interval, config)
    return problem


def calculate(
    amount_to_split: Any,
    start_date: Any,
    policy: SplitPolicy,
    interval: Any = Interval.MONTHLY,
    config: ScheduleConfig = DEFAULT_CONFIG,
) -> list[ScheduledInstallment]:
    """Split an amount into a dated installment sequence.

    Every installment but the last is the per-installment value rounded to the
    money quantum; the last absorbs the rounding remainder so the schedule sums
    exactly to the amount.

    Parameters
    ----------
    amount_to_split : Decimal
        Amount to schedule (the note's remaining amount).
    start_date : date
        Due date of the first installment.
    policy : ByCount | ByAmount
        Split policy.
    interval : Interval
        Monthly or weekly cadence.
    config : ScheduleConfig
        Rounding and labelling configuration.

    Returns
    -------
    list[ScheduledInstallment]
        Ordered installments, or an empty list when inputs are degenerate.
    """
    plan, problem = _resolve(amount_to_split, start_date, policy, interval, config)
    if plan is None:
        logger.debug("Empty schedule: %s (%s)", problem, problem.field)
        return []

    regular = round_money(plan.per_installment, config)
    schedule: list[ScheduledInstallment] = []
    allocated = Decimal("0")

    for i in range(plan.count):
        if i == plan.count - 1:
            amount = plan.amount - allocated
        else:
            amount = regular
            allocated += amount

        schedule.append(
            ScheduledInstallment(
                sequence_index=i,
                amount=amount,
                due_date=add_interval(plan.start_date, i, plan.interval),
                notes=config.render_note(i + 1, plan.count, plan.interval),
            )
        )

    logger.debug(
        "Scheduled %s over %d %s installments starting %s",
        plan.amount,
        plan.count,
        plan.interval.value,
        plan.start_date,
    )
    return schedule


def describe_plan(schedule: list[ScheduledInstallment], interval: Interval) -> str:
    """Summarise a schedule in one sentence, as printed on long notes."""
    if not schedule:
        return "No installments scheduled"

    first = schedule[0]
    last = schedule[-1]
    unit = "week" if interval == Interval.WEEKLY else "month"
    total = sum((inst.amount for inst in schedule), Decimal("0"))

    if len(schedule) == 1:
        return f"Single payment of {first.amount} due {first.due_date.isoformat()}"
    if last.amount == first.amount:
        return (
            f"{len(schedule)} installments of {first.amount} every {unit} "
            f"from {first.due_date.isoformat()} to {last.due_date.isoformat()}, totalling {total}"
        )
    return (
        f"{len(schedule) - 1} installments of {first.amount} every {unit} "
        f"from {first.due_date.isoformat()}, then a final {last.amount} "
        f"on {last.due_date.isoformat()}, totalling {total}"
    )


def infer_interval(due_dates: list[date]) -> Interval:
    """Recover the cadence of a persisted schedule from its first two due dates."""
    if len(due_dates) >= 2 and (due_dates[1] - due_dates[0]).days == 7:
        return Interval.WEEKLY
    return Interval.MONTHLY
