"""Customer directory used to prefill debtor details on a note."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from note_engine.exceptions import EntityNotFoundError
from note_engine.models.customer import DebtorProfile

logger = logging.getLogger(__name__)


class CustomerDirectory(ABC):
    """Read-only source of debtor details, keyed by customer id."""

    @abstractmethod
    def lookup(self, customer_id: str) -> DebtorProfile:
        """Resolve a customer.

        Raises
        ------
        EntityNotFoundError
            If the customer does not exist.
        """


class InMemoryCustomerDirectory(CustomerDirectory):
    """Directory backed by a dict of profiles."""

    def __init__(self, profiles: list[DebtorProfile] | None = None) -> None:
        self._profiles: dict[str, DebtorProfile] = {}
        for profile in profiles or []:
            self.add(profile)

    def add(self, profile: DebtorProfile) -> None:
        self._profiles[profile.customer_id] = profile

    def lookup(self, customer_id: str) -> DebtorProfile:
        try:
            return self._profiles[customer_id]
        except KeyError:
            raise EntityNotFoundError(f"Customer {customer_id} not found") from None


class CachedCustomerDirectory(CustomerDirectory):
    """Memoizes lookups of another directory until explicitly invalidated.

    Parameters
    ----------
    source : CustomerDirectory
        Directory to resolve cache misses from.
    """

    def __init__(self, source: CustomerDirectory) -> None:
        self._source = source
        self._cache: dict[str, DebtorProfile] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def lookup(self, customer_id: str) -> DebtorProfile:
        with self._lock:
            cached = self._cache.get(customer_id)
            if cached is not None:
                self.hits += 1
                return cached

        profile = self._source.lookup(customer_id)
        with self._lock:
            self.misses += 1
            self._cache[customer_id] = profile
        return profile

    def invalidate(self, customer_id: str) -> None:
        """Drop one customer, e.g. after their record was edited."""
        with self._lock:
            self._cache.pop(customer_id, None)
        logger.debug("Invalidated cached customer %s", customer_id)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
