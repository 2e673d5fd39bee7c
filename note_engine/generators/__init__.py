"""Identifier and sample-data generators."""

from note_engine.generators.base import BaseGenerator
from note_engine.generators.ids import IdGenerator
from note_engine.generators.note import DebtorGenerator, PromissoryNoteGenerator

__all__ = ["BaseGenerator", "DebtorGenerator", "IdGenerator", "PromissoryNoteGenerator"]
