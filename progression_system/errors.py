# progression_system/errors.py
"""
Error taxonomy for the progression engine.

ValidationError     - bad input, rejected before any write
StateConflictError  - operation not valid in the partner's current state, no write
PersistenceError    - store failure; SQLAlchemy's own error, propagated unchanged
NotificationError   - sink delivery failure; logged and swallowed by the sink

Every error carries a machine-readable `kind`.
"""
from sqlalchemy.exc import SQLAlchemyError

PersistenceError = SQLAlchemyError


class ProgressionError(Exception):
    """Base class for engine errors."""

    kind = "progression_error"

    def __init__(self, message: str, kind: str = None, **details):
        super().__init__(message)
        if kind:
            self.kind = kind
        self.details = details

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": str(self), **self.details}


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(ProgressionError):
    kind = "validation_error"


class InvalidAmount(ValidationError):
    kind = "invalid_amount"


class UnknownRank(ValidationError):
    kind = "unknown_rank"


class PartnerNotFound(ValidationError):
    kind = "partner_not_found"


# =============================================================================
# STATE CONFLICTS
# =============================================================================

class StateConflictError(ProgressionError):
    kind = "state_conflict"


class AlreadyMaxRank(StateConflictError):
    kind = "already_max_rank"


class AlreadyMinRank(StateConflictError):
    kind = "already_min_rank"


class SameRank(StateConflictError):
    kind = "same_rank"


class ChallengeNotCompleted(StateConflictError):
    kind = "challenge_not_completed"


class AlreadyClaimed(StateConflictError):
    kind = "already_claimed"


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationError(ProgressionError):
    kind = "notification_error"
