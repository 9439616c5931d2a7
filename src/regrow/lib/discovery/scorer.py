"""Candidate scorer.

Partitions a candidate pool into three relevance tiers by precedence:
explicit signal (likes, shares) over passive signal (views) over none.
There is no numeric score; within a tier the pool order is kept.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from ...models import Listing
from .interests import InterestProfile


@dataclass
class TieredCandidates:
    primary: list[Listing] = field(default_factory=list)
    secondary: list[Listing] = field(default_factory=list)
    fallback: list[Listing] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.primary) + len(self.secondary) + len(self.fallback)

    def merged(self, limit: int) -> list[Listing]:
        """Concatenate primary, secondary and fallback, capped at *limit*."""
        return (self.primary + self.secondary + self.fallback)[:limit]


def score_candidates(
    candidates: Iterable[Listing],
    primary: InterestProfile,
    secondary: InterestProfile,
    exclude_ids: set[str] | frozenset[str] = frozenset(),
) -> TieredCandidates:
    """Place every non-excluded candidate in exactly one tier."""
    tiers = TieredCandidates()
    for listing in candidates:
        if listing.id in exclude_ids:
            continue
        if primary.matches(listing):
            tiers.primary.append(listing)
        elif secondary.matches(listing):
            tiers.secondary.append(listing)
        else:
            tiers.fallback.append(listing)
    return tiers
