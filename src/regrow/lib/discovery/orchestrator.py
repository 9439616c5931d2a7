"""Discovery orchestrator.

Decides, per request, which listings a visitor sees and in what order.
Three strategies exist:

* ``popular`` – popularity ranking over the filtered listings.
* ``personalized`` – tiered recommendation from the visitor's likes,
  shares and views.
* ``default`` – the newest filtered listings.

The choice is made by :func:`resolve_state`, a pure function of the
request signals.  :func:`discover` re-evaluates it after each stage
(start, history loaded, candidates scored) and serves the default list
as soon as it answers ``default``.

Discovery never writes to the store.  Store errors propagate unchanged.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from pydantic import BaseModel, Field

from ...models import Listing
from .interests import InterestProfile
from .popularity import popular_listings
from .scorer import score_candidates
from .store import (
    PROFILE_FIELDS,
    RECENCY_SORT,
    build_listing_query,
    find_by_field,
    find_by_filter,
    find_by_ids,
    find_user_history,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

# Max listings returned by any strategy.
RESULT_LIMIT = 200

# The candidate pool holds this many times RESULT_LIMIT recent listings.
CANDIDATE_POOL_FACTOR = 2

# How many liked listings feed the primary profile.
LIKED_SOURCES_LIMIT = 40


class DiscoveryMode(str, Enum):
    default = "default"
    popular = "popular"
    recommend = "recommend"


class DiscoveryState(str, Enum):
    popular = "popular"
    personalized = "personalized"
    default = "default"


@dataclass(frozen=True)
class DiscoverySignals:
    """Inputs to the strategy decision.

    ``history_size`` and ``match_count`` are ``None`` until the stage that
    produces them has run.
    """

    mode: DiscoveryMode
    has_identity: bool
    has_keyword: bool
    history_size: int | None = None
    match_count: int | None = None


def resolve_state(signals: DiscoverySignals) -> DiscoveryState:
    """Map request signals to the strategy that should serve them."""
    if signals.mode is DiscoveryMode.popular:
        return DiscoveryState.popular
    if signals.mode is not DiscoveryMode.recommend or not signals.has_identity:
        return DiscoveryState.default
    if signals.history_size == 0 and not signals.has_keyword:
        return DiscoveryState.default
    if signals.match_count == 0:
        return DiscoveryState.default
    return DiscoveryState.personalized


class DiscoveryResult(BaseModel):
    """The output of a discovery call."""

    strategy: DiscoveryState = Field(..., description="Strategy that produced the listings")
    listings: list[Listing] = Field(default_factory=list)


@dataclass
class EngagementHistory:
    """A user's engaged listings, projected to id/title/category."""

    liked: list[Listing] = field(default_factory=list)
    shared: list[Listing] = field(default_factory=list)
    viewed: list[Listing] = field(default_factory=list)
    history_ids: set[str] = field(default_factory=set)

    @property
    def size(self) -> int:
        return len(self.liked) + len(self.shared) + len(self.viewed)

    def primary_profile(self) -> InterestProfile:
        return InterestProfile.from_listings(self.liked + self.shared)

    def secondary_profile(self) -> InterestProfile:
        return InterestProfile.from_listings(self.viewed)

    def exclude_ids(self) -> set[str]:
        """Everything the user already engaged with."""
        ids = {listing.id for listing in self.liked + self.shared + self.viewed}
        return ids | self.history_ids


async def load_engagement(es, user_id: str) -> EngagementHistory:
    """Fetch the listings a user liked, shared and recently viewed."""
    history = await find_user_history(es, user_id)
    liked = await find_by_field(
        es, "liked_by", user_id, limit=LIKED_SOURCES_LIMIT, fields=PROFILE_FIELDS
    )
    shared = await find_by_ids(es, history.shared_history, fields=PROFILE_FIELDS)
    viewed = await find_by_ids(es, history.viewed_history, fields=PROFILE_FIELDS)
    return EngagementHistory(
        liked=liked,
        shared=shared,
        viewed=viewed,
        history_ids=set(history.shared_history) | set(history.viewed_history),
    )


async def default_listings(es, query: dict, limit: int = RESULT_LIMIT) -> list[Listing]:
    """Newest listings matching *query*."""
    return await find_by_filter(es, query, limit=limit, sort=RECENCY_SORT)


async def recommend_listings(
    es,
    history: EngagementHistory,
    keyword: str,
    query: dict,
    limit: int = RESULT_LIMIT,
) -> list[Listing]:
    """Score the recent candidate pool against the user's interest profiles."""
    primary = history.primary_profile()
    secondary = history.secondary_profile()
    if keyword:
        primary.add_keyword(keyword)
        secondary.add_keyword(keyword)

    # Only the newest matches are considered, so an older listing in a
    # liked category cannot surface once the pool is full.
    pool = await find_by_filter(
        es, query, limit=limit * CANDIDATE_POOL_FACTOR, sort=RECENCY_SORT
    )
    tiers = score_candidates(pool, primary, secondary, history.exclude_ids())
    logger.debug(
        "Scored %d candidates: primary=%d secondary=%d fallback=%d",
        len(pool),
        len(tiers.primary),
        len(tiers.secondary),
        len(tiers.fallback),
    )
    return tiers.merged(limit)


async def discover(
    es,
    user_id: str | None = None,
    keyword: str | None = None,
    mode: DiscoveryMode = DiscoveryMode.default,
    category: str | None = None,
) -> DiscoveryResult:
    """Return the ordered listings to show a visitor.

    Parameters
    ----------
    es:
        An ``AsyncElasticsearch`` client instance.
    user_id:
        Identity of the visitor, or ``None`` when anonymous.
    keyword:
        Optional free-text search keyword; surrounding whitespace is ignored.
    mode:
        Requested discovery mode.
    category:
        Optional exact category filter applied to every store query.
    """
    keyword = (keyword or "").strip()
    query = build_listing_query(keyword, category)
    signals = DiscoverySignals(
        mode=mode, has_identity=bool(user_id), has_keyword=bool(keyword)
    )
    state = resolve_state(signals)

    if state is DiscoveryState.popular:
        listings = await popular_listings(es, query, limit=RESULT_LIMIT)
        return DiscoveryResult(strategy=state, listings=listings)

    if state is DiscoveryState.personalized:
        history = await load_engagement(es, user_id)
        signals = replace(signals, history_size=history.size)
        state = resolve_state(signals)
        if state is DiscoveryState.default:
            logger.info("No engagement history for user %s, serving default list", user_id)

    if state is DiscoveryState.personalized:
        listings = await recommend_listings(es, history, keyword, query)
        signals = replace(signals, match_count=len(listings))
        state = resolve_state(signals)
        if state is DiscoveryState.personalized:
            return DiscoveryResult(strategy=state, listings=listings)
        logger.info("No recommendation candidates for user %s, serving default list", user_id)

    listings = await default_listings(es, query)
    return DiscoveryResult(strategy=DiscoveryState.default, listings=listings)
