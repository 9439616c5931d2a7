"""Popularity ranking.

Orders listings by a composite engagement score computed in memory:

* ``like_count`` is the number of distinct users in ``liked_by``.
* ``share_count`` is the stored share counter (absent counts as 0).
* ``popularity_score = like_count + share_count``.

Listings are sorted descending on ``(popularity_score, like_count,
share_count, created_at)``, so equal totals go to the listing with more
likes, then more shares, then the newer one.  The score is a ranking
detail and is not attached to the returned listings.

Tuning knobs live as module-level constants.
"""

import logging
from datetime import datetime, timezone

from elasticsearch.helpers import async_scan

from ...models import Listing
from .store import find_by_ids, to_listings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

# Max listings returned by a popularity ranking.
POPULARITY_LIMIT = 200

# Page size for scrolling the filtered listings.
SCAN_PAGE_SIZE = 1000

# Fields the popularity key is computed from.
POPULARITY_FIELDS = ["id", "liked_by", "share_count", "created_at"]

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def popularity_key(listing: Listing) -> tuple[int, int, int, datetime]:
    """Sort key for a listing; larger sorts first."""
    like_count = listing.like_count
    share_count = listing.share_count or 0
    created_at = listing.created_at or _OLDEST
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (like_count + share_count, like_count, share_count, created_at)


def rank_by_popularity(listings: list[Listing], limit: int = POPULARITY_LIMIT) -> list[Listing]:
    """Return *listings* ordered by popularity, capped at *limit*.

    The sort is stable, so listings with identical keys keep their input
    order.
    """
    return sorted(listings, key=popularity_key, reverse=True)[:limit]


async def popular_listings(
    es,
    query: dict,
    limit: int = POPULARITY_LIMIT,
) -> list[Listing]:
    """Rank every listing matching *query* by popularity.

    The whole filtered set is scrolled once with only the fields the sort
    key needs; the top *limit* are then loaded in full.
    """
    sources = [
        hit.get("_source") or {}
        async for hit in async_scan(
            es,
            query={"query": query, "_source": POPULARITY_FIELDS},
            size=SCAN_PAGE_SIZE,
        )
    ]
    logger.debug("Scoring %d listings for popularity", len(sources))
    ranked = rank_by_popularity(to_listings(sources), limit=limit)

    full = {listing.id: listing for listing in await find_by_ids(es, [r.id for r in ranked])}
    # A listing deleted between the scan and the load is dropped.
    return [full[r.id] for r in ranked if r.id in full]
