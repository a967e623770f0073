# progression_system/__init__.py
"""
Partner progression system - XP, ranks, required tasks and commission.
"""

# Services
from progression_system.services.activity_ledger import ActivityLedger
from progression_system.services.xp_service import XpService
from progression_system.services.rank_resolver import RankResolver
from progression_system.services.task_tracker import TaskTracker
from progression_system.services.commission_service import CommissionService
from progression_system.services.progression_service import ProgressionService
from progression_system.services.daily_task_service import DailyTaskService
from progression_system.services.challenge_service import ChallengeService

# Configuration
from progression_system.config.ranks import Rank, RankLadder, DEFAULT_LADDER, get_rank_ladder
from progression_system.config.events import EventType

# Utilities
from progression_system.utils.time_machine import timeMachine

# Events
from progression_system.events.event_bus import eventBus, ProgressionEvents

__all__ = [
    # Services
    'ActivityLedger',
    'XpService',
    'RankResolver',
    'TaskTracker',
    'CommissionService',
    'ProgressionService',
    'DailyTaskService',
    'ChallengeService',

    # Config
    'Rank',
    'RankLadder',
    'DEFAULT_LADDER',
    'get_rank_ladder',
    'EventType',

    # Utils
    'timeMachine',

    # Events
    'eventBus',
    'ProgressionEvents',
]
