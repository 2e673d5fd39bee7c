"""Custom exception hierarchy for note-engine."""


class NoteEngineError(Exception):
    """Base exception for all note-engine errors."""


class EntityNotFoundError(NoteEngineError):
    """Raised when a referenced note, installment or customer does not exist."""


class InvalidEntityStateError(NoteEngineError):
    """Raised when an entity is in an invalid state for the operation."""


class ScheduleInvariantError(InvalidEntityStateError):
    """Raised when a note's installment set breaks a schedule invariant."""


class ValidationError(NoteEngineError):
    """Raised when an input field is invalid.

    Parameters
    ----------
    field : str
        Name of the offending input field.
    message : str
        Human readable description of the problem.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class InvalidScheduleInput(ValidationError):
    """Raised (or returned) when amount, count or per-installment value is unusable."""


class InvalidPaymentAmount(ValidationError):
    """Raised when a legacy note's paid amount is negative or not below the total."""


class ScheduleEmptyOnConfirm(ValidationError):
    """Raised when confirming a note that has no installments."""


class RegenerationOverPaidInstallments(NoteEngineError):
    """Raised when regenerating a schedule would discard recorded payments."""


class PersistenceFailure(NoteEngineError):
    """Raised when the persistence collaborator fails."""


class ConfigurationError(NoteEngineError):
    """Raised when configuration is invalid or missing."""
