"""
Partner rank ladder configuration.

The ladder is an immutable value passed into every service. The default is
defined here; a replacement can be loaded from the JSON file named by
Config.RANK_LADDER_PATH.
"""
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple

from progression_system.errors import UnknownRank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rank:
    """A single rung of the partner ladder."""
    name: str
    xpThreshold: int
    commissionRate: Decimal  # percent, e.g. Decimal("40")
    requiredTaskIds: FrozenSet[str] = field(default_factory=frozenset)
    unlocks: Tuple[str, ...] = ()
    isProTier: bool = False

    def __str__(self):
        return self.name


class RankLadder:
    """
    Ordered, validated collection of ranks.

    Invariants:
    - at least one rank, names unique
    - thresholds strictly increasing in ladder order
    - the lowest rank has threshold 0 (every XP total resolves to a rank)
    - at most one Pro tier
    """

    def __init__(self, ranks: List[Rank]):
        if not ranks:
            raise ValueError("Rank ladder must contain at least one rank")

        names = [r.name for r in ranks]
        if len(set(names)) != len(names):
            raise ValueError(f"Rank names must be unique: {names}")

        for lower, higher in zip(ranks, ranks[1:]):
            if higher.xpThreshold <= lower.xpThreshold:
                raise ValueError(
                    f"Rank thresholds must be strictly increasing: "
                    f"{lower.name}={lower.xpThreshold} >= {higher.name}={higher.xpThreshold}"
                )

        if ranks[0].xpThreshold != 0:
            raise ValueError(f"Lowest rank {ranks[0].name} must have threshold 0")

        if sum(1 for r in ranks if r.isProTier) > 1:
            raise ValueError("At most one rank can be marked as the Pro tier")

        self._ranks: Tuple[Rank, ...] = tuple(ranks)
        self._byName: Dict[str, Rank] = {r.name: r for r in ranks}
        self._index: Dict[str, int] = {r.name: i for i, r in enumerate(ranks)}

    def __iter__(self) -> Iterator[Rank]:
        return iter(self._ranks)

    def __len__(self) -> int:
        return len(self._ranks)

    def __contains__(self, name) -> bool:
        return name in self._byName

    @property
    def ranks(self) -> Tuple[Rank, ...]:
        return self._ranks

    @property
    def lowest(self) -> Rank:
        return self._ranks[0]

    @property
    def highest(self) -> Rank:
        return self._ranks[-1]

    @property
    def proRank(self) -> Optional[Rank]:
        for rank in self._ranks:
            if rank.isProTier:
                return rank
        return None

    def get(self, name: str) -> Rank:
        """
        Look up a rank by name.

        Raises:
            UnknownRank: If no rank has this name
        """
        try:
            return self._byName[name]
        except KeyError:
            raise UnknownRank(f"Unknown rank: {name!r}", rank=name)

    def find(self, name: str) -> Optional[Rank]:
        """Case-insensitive lookup, None if absent."""
        if name in self._byName:
            return self._byName[name]
        lowered = name.strip().lower()
        for rank in self._ranks:
            if rank.name.lower() == lowered:
                return rank
        return None

    def indexOf(self, rank) -> int:
        name = rank.name if isinstance(rank, Rank) else rank
        try:
            return self._index[name]
        except KeyError:
            raise UnknownRank(f"Unknown rank: {name!r}", rank=name)

    def at(self, index: int) -> Optional[Rank]:
        if 0 <= index < len(self._ranks):
            return self._ranks[index]
        return None


# =============================================================================
# DEFAULT LADDER
# =============================================================================

_RECRUIT_TASKS = ['stage-1-recruit-3']
_APPRENTICE_TASKS = _RECRUIT_TASKS + ['stage-2-apprentice-6']
_AGENT_TASKS = _APPRENTICE_TASKS + ['stage-3-agent-9', 'stage-3-agent-10']
_PARTNER_TASKS = _AGENT_TASKS + [
    'stage-4-partner-12', 'stage-4-partner-13', 'stage-4-partner-14', 'stage-4-partner-15'
]
# stage-5-verified-16 is a course, not a task
_VERIFIED_TASKS = _PARTNER_TASKS + [
    'stage-5-verified-17', 'stage-5-verified-18', 'stage-5-verified-19', 'stage-5-verified-20'
]

VERIFIED_RANK_NAME = "Verified"

DEFAULT_RANKS = [
    Rank(
        name="Recruit",
        xpThreshold=0,
        commissionRate=Decimal("25"),
        requiredTaskIds=frozenset(_RECRUIT_TASKS),
        unlocks=('getting_started', 'support', 'automations_view'),
    ),
    Rank(
        name="Apprentice",
        xpThreshold=1000,
        commissionRate=Decimal("30"),
        requiredTaskIds=frozenset(_APPRENTICE_TASKS),
        unlocks=('automation_suggestions',),
    ),
    Rank(
        name="Agent",
        xpThreshold=2500,
        commissionRate=Decimal("33"),
        requiredTaskIds=frozenset(_AGENT_TASKS),
        unlocks=('sales_scripts', 'deal_tracking'),
    ),
    Rank(
        name="Partner",
        xpThreshold=4500,
        commissionRate=Decimal("36"),
        requiredTaskIds=frozenset(_PARTNER_TASKS),
        unlocks=('clients_demo', 'referral_link'),
    ),
    Rank(
        name=VERIFIED_RANK_NAME,
        xpThreshold=7000,
        commissionRate=Decimal("40"),
        requiredTaskIds=frozenset(_VERIFIED_TASKS),
        unlocks=('earnings', 'leaderboard', 'clients_real'),
    ),
    Rank(
        name="Partner Pro",
        xpThreshold=10000,
        commissionRate=Decimal("45"),
        requiredTaskIds=frozenset(_VERIFIED_TASKS),
        unlocks=('premium_automations', 'advanced_analytics'),
        isProTier=True,
    ),
]

DEFAULT_LADDER = RankLadder(DEFAULT_RANKS)


# =============================================================================
# LOADING
# =============================================================================

def ladder_from_dict(raw: List[Dict]) -> RankLadder:
    """
    Build a ladder from a list of plain dicts (JSON shape).

    Expected format:
        [{"name": "Recruit", "xpThreshold": 0, "commissionRate": 25,
          "requiredTaskIds": ["..."], "unlocks": ["..."], "isProTier": false}, ...]
    """
    ranks = []
    for item in raw:
        try:
            ranks.append(Rank(
                name=item["name"],
                xpThreshold=int(item["xpThreshold"]),
                commissionRate=Decimal(str(item["commissionRate"])),
                requiredTaskIds=frozenset(item.get("requiredTaskIds", [])),
                unlocks=tuple(item.get("unlocks", [])),
                isProTier=bool(item.get("isProTier", False)),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid rank definition {item!r}: {e}")
    return RankLadder(ranks)


def load_ladder(path: str) -> RankLadder:
    """Load and validate a ladder from a JSON file."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    ladder = ladder_from_dict(raw)
    logger.info(f"Loaded rank ladder from {path}: {len(ladder)} ranks")
    return ladder


# Lazy-loaded configuration cache
_LADDER_CACHE: Optional[RankLadder] = None


def get_rank_ladder() -> RankLadder:
    """
    Get the configured rank ladder with caching.
    Loads from Config.RANK_LADDER_PATH on first access, falls back to DEFAULT_LADDER.
    """
    global _LADDER_CACHE

    if _LADDER_CACHE is None:
        from config import Config

        path = Config.get(Config.RANK_LADDER_PATH)
        _LADDER_CACHE = load_ladder(path) if path else DEFAULT_LADDER
        logger.info(f"Rank ladder ready: {[r.name for r in _LADDER_CACHE]}")

    return _LADDER_CACHE


def reset_rank_ladder_cache():
    global _LADDER_CACHE
    _LADDER_CACHE = None
