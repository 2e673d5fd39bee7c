"""Split policies: how an amount is divided into installments."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union


@dataclass(frozen=True)
class ByCount:
    """Fix the number of installments and derive their amount."""

    count: Any  # raw operator input; validated by the calculator

    def describe(self) -> str:
        return f"by count ({self.count})"


@dataclass(frozen=True)
class ByAmount:
    """Fix the installment amount and derive how many are needed."""

    per_installment: Any  # raw operator input; validated by the calculator

    def describe(self) -> str:
        return f"by amount ({self.per_installment})"


SplitPolicy = Union[ByCount, ByAmount]


def as_decimal(value: Any) -> Decimal | None:
    """Coerce operator input to Decimal, returning None when not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except ArithmeticError:
        return None
    return result if result.is_finite() else None
