"""Debtor details resolved from the customer directory."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DebtorProfile:
    """Read-only view of a customer used to prefill debtor fields."""

    customer_id: str
    name: str
    id_number: str = ""
    address: str = ""
