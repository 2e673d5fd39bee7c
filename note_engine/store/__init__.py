"""Persistence collaborators for notes and installments."""

from note_engine.store.base import AttachmentStore, NoteFilter, NoteStore
from note_engine.store.memory import InMemoryNoteStore

__all__ = ["AttachmentStore", "InMemoryNoteStore", "NoteFilter", "NoteStore"]
