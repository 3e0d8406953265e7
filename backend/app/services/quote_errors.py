"""Error taxonomy for the quotation engine."""
from typing import Optional, Sequence


class QuoteEngineError(Exception):
    """Base class for every domain error raised by the engine."""


class ValidationError(QuoteEngineError):
    """
    A spec or pricing field is out of range.

    Recoverable: editing continues, only the transition to ``submitted`` is blocked.
    ``issues`` carries every problem when raised from a whole-quotation check.
    """

    def __init__(
        self,
        field: str,
        message: str,
        window_id: Optional[str] = None,
        issues: Sequence["ValidationError"] = (),
    ):
        self.field = field
        self.message = message
        self.window_id = window_id
        self.issues = tuple(issues) or (self,)
        prefix = f"[{window_id}] " if window_id else ""
        super().__init__(f"{prefix}{field}: {message}")


class InvariantViolation(QuoteEngineError):
    """The requested operation would break a structural invariant."""


class CorruptRecordError(QuoteEngineError):
    """A storage record is not a decodable object/array shape at all."""
