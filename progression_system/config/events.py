"""
Ledger event types and the metadata each of them must carry.
"""
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

from progression_system.errors import ValidationError


class EventType(str, Enum):
    """Types of ActivityLog entries."""
    XP_GRANT = "xp_grant"
    ADMIN_GRANT = "admin_grant"
    TASK_COMPLETED = "task_completed"
    QUIZ_COMPLETED = "quiz_completed"
    RANK_UP = "rank_up"
    LOGIN_DAY = "login_day"
    CHALLENGE_COMPLETED = "challenge_completed"
    COMMISSION_OVERRIDE = "commission_override"

    # Activity tracked for tasks and weekly challenges
    VAULT_MODULE_COMPLETED = "vault_module_completed"
    COURSE_COMPLETED = "course_completed"
    AUTOMATION_FULLY_READ = "automation_fully_read"
    AUTOMATION_SUGGESTED = "automation_suggested"
    EARNINGS_CALCULATOR_USED = "earnings_calculator_used"
    CLIENT_ADDED = "client_added"
    AUTOMATION_ASSIGNED = "automation_assigned"
    DEAL_LOGGED = "deal_logged"
    CASE_STUDY_SUBMITTED = "case_study_submitted"


# Event types that count as a completed task for requirement tracking
COMPLETION_EVENT_TYPES = frozenset({EventType.TASK_COMPLETED, EventType.QUIZ_COMPLETED})

# Each entry is a list of alternative key sets; metadata must contain all keys
# of at least one alternative. Types not listed have no required keys.
REQUIRED_METADATA: Dict[EventType, List[FrozenSet[str]]] = {
    EventType.TASK_COMPLETED: [
        frozenset({"lesson_id"}),
        frozenset({"daily_task_id", "task_date"}),
    ],
    EventType.QUIZ_COMPLETED: [frozenset({"lesson_id"})],
    EventType.RANK_UP: [frozenset({"old_rank", "new_rank"})],
    EventType.LOGIN_DAY: [frozenset({"login_date"})],
    EventType.ADMIN_GRANT: [frozenset({"granted_by"})],
    EventType.CHALLENGE_COMPLETED: [frozenset({"challenge_id", "week_key"})],
    EventType.COMMISSION_OVERRIDE: [frozenset({"old_rate", "new_rate", "changed_by"})],
    EventType.VAULT_MODULE_COMPLETED: [frozenset({"module_id"})],
    EventType.AUTOMATION_FULLY_READ: [frozenset({"automation_id"})],
}


def coerce_event_type(value: Union[EventType, str]) -> EventType:
    """
    Accept an EventType or its string value.

    Raises:
        ValidationError: kind="unknown_event_type"
    """
    if isinstance(value, EventType):
        return value
    try:
        return EventType(value)
    except ValueError:
        raise ValidationError(
            f"Unknown event type: {value!r}",
            kind="unknown_event_type",
            eventType=value
        )


def validate_metadata(eventType: EventType, metadata: Mapping[str, Any]) -> None:
    """
    Check that metadata carries the keys documented for the event type.

    Raises:
        ValidationError: kind="invalid_metadata"
    """
    alternatives = REQUIRED_METADATA.get(eventType)
    if not alternatives:
        return

    keys = set(metadata or {})
    if any(required <= keys for required in alternatives):
        return

    expected = " or ".join(str(sorted(alt)) for alt in alternatives)
    raise ValidationError(
        f"Metadata for {eventType.value} must contain {expected}, got {sorted(keys)}",
        kind="invalid_metadata",
        eventType=eventType.value
    )


# =============================================================================
# DEDUP KEYS
# =============================================================================

def lesson_dedup_key(lessonId: str) -> str:
    return f"lesson:{lessonId}"


def daily_task_dedup_key(taskId: str, taskDate) -> str:
    return f"daily:{taskId}:{_iso(taskDate)}"


def login_dedup_key(loginDate) -> str:
    return f"login:{_iso(loginDate)}"


def challenge_dedup_key(challengeId: str, weekKey: str) -> str:
    return f"challenge:{challengeId}:{weekKey}"


def dedup_key_for(eventType: EventType, metadata: Optional[Mapping[str, Any]]) -> Optional[str]:
    """
    The at-most-once key implied by an entry's metadata, or None for event
    types that may repeat.

    Lessons, daily tasks, login days and challenge claims are keyed the same
    way whichever path records them.
    """
    metadata = metadata or {}

    if eventType in COMPLETION_EVENT_TYPES and metadata.get("lesson_id"):
        return lesson_dedup_key(metadata["lesson_id"])
    if eventType == EventType.TASK_COMPLETED and metadata.get("daily_task_id") and metadata.get("task_date"):
        return daily_task_dedup_key(metadata["daily_task_id"], metadata["task_date"])
    if eventType == EventType.LOGIN_DAY and metadata.get("login_date"):
        return login_dedup_key(metadata["login_date"])
    if eventType == EventType.CHALLENGE_COMPLETED and metadata.get("challenge_id") and metadata.get("week_key"):
        return challenge_dedup_key(metadata["challenge_id"], metadata["week_key"])
    return None


def _iso(value) -> str:
    return value if isinstance(value, str) else value.isoformat()
