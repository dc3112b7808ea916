from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class TransitionResult:
    """
    Outcome of a guarded state transition.

    Truthy only when the transition was applied. A rejected transition carries the
    record's current ``status`` (None when the record does not exist or belongs to
    someone else) so callers can report the conflict.
    """

    applied: bool
    status: Optional[str] = None
    record: Any = None

    def __bool__(self):
        return self.applied

    @classmethod
    def rejected(cls, status: Optional[str] = None) -> 'TransitionResult':
        return cls(applied=False, status=status)
