"""
Weekly challenges. Four weeks rotate through the year; each challenge has a
minimum rank and a target counted from the partner's ledger.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List

from progression_system.config.events import EventType


@dataclass(frozen=True)
class WeeklyChallenge:
    id: str
    challengeType: str  # engagement, growth, education, contribution, outreach
    title: str
    description: str
    xpReward: int
    minRank: str
    requirementType: str
    target: int


# Ledger event types counted for each requirement type
REQUIREMENT_EVENT_TYPES: Dict[str, FrozenSet[EventType]] = {
    "login_days": frozenset({EventType.LOGIN_DAY}),
    "new_clients": frozenset({EventType.CLIENT_ADDED}),
    "automation_assignments": frozenset({EventType.AUTOMATION_ASSIGNED}),
    "quiz_completion": frozenset({EventType.QUIZ_COMPLETED}),
    "course_completion": frozenset({EventType.COURSE_COMPLETED}),
    "course_or_quiz": frozenset({EventType.COURSE_COMPLETED, EventType.QUIZ_COMPLETED}),
    "automation_suggestion": frozenset({EventType.AUTOMATION_SUGGESTED}),
    "case_study": frozenset({EventType.CASE_STUDY_SUBMITTED}),
    "deal_entries": frozenset({EventType.DEAL_LOGGED}),
}


def _c(week, kind, title, description, xp, minRank, requirementType, target):
    return WeeklyChallenge(
        id=f"week{week}-{kind}",
        challengeType=kind,
        title=title,
        description=description,
        xpReward=xp,
        minRank=minRank,
        requirementType=requirementType,
        target=target,
    )


WEEKLY_CHALLENGES: Dict[int, List[WeeklyChallenge]] = {
    1: [
        _c(1, "engagement", "Daily Login Streak", "Log in 5 days this week",
           500, "Recruit", "login_days", 5),
        _c(1, "growth", "Client Growth", "Add 2 new clients this week",
           1000, "Partner", "new_clients", 2),
        _c(1, "education", "Knowledge Refresh", "Complete any quiz again",
           300, "Recruit", "quiz_completion", 1),
        _c(1, "contribution", "Innovation Challenge", "Suggest 1 new automation",
           800, "Apprentice", "automation_suggestion", 1),
        _c(1, "outreach", "Outreach Master", "Add 3 deal log entries this week",
           700, "Agent", "deal_entries", 3),
    ],
    2: [
        _c(2, "engagement", "Active Week", "Log in 6 days this week",
           600, "Recruit", "login_days", 6),
        _c(2, "growth", "Expansion", "Assign 2 automations to clients",
           1200, "Partner", "automation_assignments", 2),
        _c(2, "education", "Skill Builder", "Complete 2 courses",
           500, "Recruit", "course_completion", 2),
        _c(2, "contribution", "Community Contributor", "Submit a case study",
           1000, "Verified", "case_study", 1),
        _c(2, "outreach", "Connection Builder", "Add 5 deal log entries this week",
           900, "Agent", "deal_entries", 5),
    ],
    3: [
        _c(3, "engagement", "Consistency Champion", "Log in 7 days this week",
           800, "Recruit", "login_days", 7),
        _c(3, "growth", "Client Acquisition", "Add 3 new clients this week",
           1500, "Partner", "new_clients", 3),
        _c(3, "education", "Master Learner", "Complete 3 quizzes",
           700, "Recruit", "quiz_completion", 3),
        _c(3, "contribution", "Innovation Leader", "Suggest 2 new automations",
           1200, "Apprentice", "automation_suggestion", 2),
        _c(3, "outreach", "Outreach Expert", "Add 7 deal log entries this week",
           1100, "Agent", "deal_entries", 7),
    ],
    4: [
        _c(4, "engagement", "Perfect Week", "Log in every day this week (7 days)",
           1000, "Recruit", "login_days", 7),
        _c(4, "growth", "Rapid Growth", "Add 4 new clients this week",
           2000, "Partner", "new_clients", 4),
        _c(4, "education", "Knowledge Master", "Complete 4 courses or quizzes",
           900, "Recruit", "course_or_quiz", 4),
        _c(4, "contribution", "Innovation Master", "Suggest 3 new automations",
           1500, "Apprentice", "automation_suggestion", 3),
        _c(4, "outreach", "Outreach Champion", "Add 10 deal log entries this week",
           1300, "Agent", "deal_entries", 10),
    ],
}
