"""Listing Store and User store read operations.

Thin async helpers over the ``products`` and ``users`` indices.  Store
failures are not caught here; they propagate to the caller unchanged.
"""

import logging

from pydantic import ValidationError

from ...models import Listing, UserHistory
from ..elasticsearch import PRODUCTS_INDEX, USERS_INDEX, hit_sources

logger = logging.getLogger(__name__)

# Newest first.
RECENCY_SORT = [{"created_at": {"order": "desc", "unmapped_type": "date"}}]

# Fields needed to build an interest profile.
PROFILE_FIELDS = ["id", "title", "category"]

_WILDCARD_SPECIALS = ("\\", "*", "?")


def escape_wildcard(text: str) -> str:
    """Escape wildcard metacharacters so *text* matches literally."""
    for ch in _WILDCARD_SPECIALS:
        text = text.replace(ch, "\\" + ch)
    return text


def build_listing_query(keyword: str | None = None, category: str | None = None) -> dict:
    """Build the title/category filter shared by every discovery mode.

    The keyword is a case-insensitive substring match on the title; the
    category is an exact match.  With neither, every listing matches.
    """
    filters: list[dict] = []
    keyword = (keyword or "").strip()
    category = (category or "").strip()
    if keyword:
        filters.append({
            "wildcard": {
                "title.raw": {
                    "value": f"*{escape_wildcard(keyword)}*",
                    "case_insensitive": True,
                }
            }
        })
    if category:
        filters.append({"term": {"category": category}})
    if not filters:
        return {"match_all": {}}
    return {"bool": {"filter": filters}}


def to_listings(sources: list[dict]) -> list[Listing]:
    """Validate raw ``_source`` dicts, skipping malformed documents."""
    listings: list[Listing] = []
    for src in sources:
        try:
            listings.append(Listing.model_validate(src))
        except ValidationError:
            logger.warning("Skipping malformed listing document %s", src.get("id"))
    return listings


async def find_by_filter(
    es,
    query: dict,
    limit: int,
    sort: list | None = None,
    fields: list[str] | None = None,
) -> list[Listing]:
    """Return up to *limit* listings matching *query* in *sort* order."""
    kwargs = {}
    if sort is not None:
        kwargs["sort"] = sort
    if fields is not None:
        kwargs["_source"] = fields
    resp = await es.search(index=PRODUCTS_INDEX, query=query, size=limit, **kwargs)
    return to_listings(hit_sources(resp))


async def find_by_ids(es, ids: list[str], fields: list[str] | None = None) -> list[Listing]:
    """Fetch the listings whose identity is in *ids*.

    Missing identities are skipped; no store call is made for an empty list.
    """
    if not ids:
        return []
    return await find_by_filter(es, {"terms": {"id": list(ids)}}, limit=len(ids), fields=fields)


async def find_by_field(
    es,
    field: str,
    value: str,
    limit: int,
    fields: list[str] | None = None,
) -> list[Listing]:
    """Return up to *limit* newest listings whose *field* holds *value*."""
    return await find_by_filter(
        es,
        {"bool": {"filter": [{"term": {field: value}}]}},
        limit=limit,
        sort=RECENCY_SORT,
        fields=fields,
    )


async def find_listing(es, listing_id: str) -> Listing | None:
    """Return a single listing, or ``None`` when it does not exist."""
    listings = await find_by_ids(es, [listing_id])
    return listings[0] if listings else None


async def find_user_history(es, user_id: str) -> UserHistory:
    """Load a user's view and share history; an unknown user has none."""
    resp = await es.search(
        index=USERS_INDEX,
        query={"bool": {"filter": [{"term": {"id": user_id}}]}},
        size=1,
        _source=["viewed_history", "shared_history"],
    )
    sources = hit_sources(resp)
    if not sources:
        return UserHistory()
    return UserHistory.model_validate(sources[0])
