"""Identifier generation for notes and installments."""

from note_engine.generators.base import BaseGenerator


class IdGenerator(BaseGenerator):
    """Opaque identifiers, reproducible when seeded."""

    def new_id(self) -> str:
        """Return a fresh UUID4 string."""
        return self.fake.uuid4()
