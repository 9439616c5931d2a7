"""Product discovery engine.

Decides which listings a visitor sees and in what order: popularity
ranking, personalized tiered recommendation, or the newest listings.
"""

from .interests import InterestProfile, extract_keywords, matches_keyword
from .orchestrator import (
    DiscoveryMode,
    DiscoveryResult,
    DiscoverySignals,
    DiscoveryState,
    discover,
    resolve_state,
)
from .popularity import rank_by_popularity
from .scorer import TieredCandidates, score_candidates

__all__ = [
    "DiscoveryMode",
    "DiscoveryResult",
    "DiscoverySignals",
    "DiscoveryState",
    "InterestProfile",
    "TieredCandidates",
    "discover",
    "extract_keywords",
    "matches_keyword",
    "rank_by_popularity",
    "resolve_state",
    "score_candidates",
]
