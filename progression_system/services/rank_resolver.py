"""
Rank resolver - pure mapping between XP totals and ladder ranks.

Both natural progression and every admin path ask this one place which rank
an XP total corresponds to.
"""
from bisect import bisect_right
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from progression_system.config.ranks import Rank, RankLadder, get_rank_ladder
from progression_system.errors import InvalidAmount

RankLike = Union[Rank, str]

ALWAYS_UNLOCKED = frozenset({'support'})


@dataclass(frozen=True)
class RankProgress:
    current: Rank
    next: Optional[Rank]
    xp: int
    xpToNext: int
    percentage: float


class RankResolver:
    """Side-effect free rank lookups over an injected ladder."""

    def __init__(self, ladder: Optional[RankLadder] = None):
        self.ladder = ladder or get_rank_ladder()
        self._thresholds = [r.xpThreshold for r in self.ladder]

    def _rank(self, rank: RankLike) -> Rank:
        return rank if isinstance(rank, Rank) else self.ladder.get(rank)

    def resolve(self, xp: int) -> Rank:
        """Highest rank whose threshold does not exceed xp."""
        if xp < 0:
            raise InvalidAmount(f"XP cannot be negative: {xp}", amount=xp)
        index = bisect_right(self._thresholds, xp) - 1
        return self.ladder.at(index)

    def next(self, rank: RankLike) -> Optional[Rank]:
        return self.ladder.at(self.ladder.indexOf(self._rank(rank)) + 1)

    def previous(self, rank: RankLike) -> Optional[Rank]:
        index = self.ladder.indexOf(self._rank(rank))
        return self.ladder.at(index - 1) if index > 0 else None

    def compare(self, a: RankLike, b: RankLike) -> int:
        """
        Compare two ranks in ladder order.

        Returns:
            -1 if a < b, 0 if equal, 1 if a > b
        """
        ia = self.ladder.indexOf(self._rank(a))
        ib = self.ladder.indexOf(self._rank(b))
        if ia < ib:
            return -1
        elif ia > ib:
            return 1
        return 0

    def higher(self, a: RankLike, b: RankLike) -> Rank:
        """The higher of two ranks."""
        a, b = self._rank(a), self._rank(b)
        return a if self.compare(a, b) >= 0 else b

    def isAtLeast(self, rank: RankLike, minimum: RankLike) -> bool:
        return self.compare(rank, minimum) >= 0

    def progressToNext(self, xp: int, rank: Optional[RankLike] = None) -> RankProgress:
        """
        Progress from the current rank towards the next one.

        rank defaults to resolve(xp); pass the stored rank for demoted partners.
        At the top of the ladder progress is 100%.
        """
        current = self._rank(rank) if rank is not None else self.resolve(xp)
        nextRank = self.next(current)

        if nextRank is None:
            return RankProgress(current=current, next=None, xp=xp, xpToNext=0, percentage=100.0)

        span = nextRank.xpThreshold - current.xpThreshold
        gained = xp - current.xpThreshold
        percentage = max(0.0, min(100.0, gained * 100.0 / span))

        return RankProgress(
            current=current,
            next=nextRank,
            xp=xp,
            xpToNext=max(0, nextRank.xpThreshold - xp),
            percentage=round(percentage, 2)
        )

    def isFeatureUnlocked(self, feature: str, rank: RankLike) -> bool:
        """A feature is unlocked once any rank up to and including `rank` lists it."""
        if feature in ALWAYS_UNLOCKED:
            return True

        upTo = self.ladder.indexOf(self._rank(rank))
        return any(feature in r.unlocks for r in self.ladder.ranks[:upTo + 1])

    def featureUnlockRequirement(self, feature: str) -> Optional[Tuple[Rank, int]]:
        """Lowest rank that unlocks the feature and its XP threshold, None if never."""
        for rank in self.ladder:
            if feature in rank.unlocks:
                return rank, rank.xpThreshold
        return None
