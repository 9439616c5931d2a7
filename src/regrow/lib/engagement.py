"""Engagement recording: likes, shares and per-user history.

These are the signal producers the discovery engine reads.  Each write is
a single-document painless update, retried on version conflict, so
concurrent requests cannot lose updates.
"""

from pydantic import BaseModel

from ..models import HISTORY_LIMIT
from .elasticsearch import PRODUCTS_INDEX, USERS_INDEX, unwrap_es_response

# Retries when a concurrent write bumps the document version first.
RETRY_ON_CONFLICT = 3

VIEWED_HISTORY = "viewed_history"
SHARED_HISTORY = "shared_history"

# Prepend an id to a history list and evict from the tail past the limit.
PUSH_HISTORY_SCRIPT = """
if (ctx._source[params.field] == null) { ctx._source[params.field] = []; }
ctx._source[params.field].add(0, params.listing_id);
while (ctx._source[params.field].size() > params.limit) {
  ctx._source[params.field].remove(ctx._source[params.field].size() - 1);
}
"""

TOGGLE_LIKE_SCRIPT = """
if (ctx._source.liked_by == null) { ctx._source.liked_by = []; }
int idx = ctx._source.liked_by.indexOf(params.user_id);
if (idx >= 0) {
  ctx._source.liked_by.remove(idx);
} else {
  ctx._source.liked_by.add(params.user_id);
}
"""

INCREMENT_SHARE_SCRIPT = """
if (ctx._source.share_count == null) { ctx._source.share_count = 0; }
ctx._source.share_count += 1;
"""


class LikeState(BaseModel):
    is_liked: bool
    like_count: int


def _updated_source(resp) -> dict:
    data = unwrap_es_response(resp)
    return (data.get("get") or {}).get("_source") or {}


async def push_history(es, user_id: str, field: str, listing_id: str) -> None:
    """Put *listing_id* at the front of the user's *field* history.

    User documents are keyed by user id.  A user without a document is
    left alone (the 404 is not raised).
    """
    await es.options(ignore_status=404).update(
        index=USERS_INDEX,
        id=user_id,
        script={
            "source": PUSH_HISTORY_SCRIPT,
            "lang": "painless",
            "params": {"field": field, "listing_id": listing_id, "limit": HISTORY_LIMIT},
        },
        retry_on_conflict=RETRY_ON_CONFLICT,
    )


async def record_view(es, user_id: str, listing_id: str) -> None:
    await push_history(es, user_id, VIEWED_HISTORY, listing_id)


async def record_share_history(es, user_id: str, listing_id: str) -> None:
    await push_history(es, user_id, SHARED_HISTORY, listing_id)


async def toggle_like(es, listing_id: str, user_id: str) -> LikeState:
    """Flip the user's like on a listing and return the resulting state."""
    resp = await es.update(
        index=PRODUCTS_INDEX,
        id=listing_id,
        script={
            "source": TOGGLE_LIKE_SCRIPT,
            "lang": "painless",
            "params": {"user_id": user_id},
        },
        retry_on_conflict=RETRY_ON_CONFLICT,
        source=["liked_by"],
    )
    liked_by = _updated_source(resp).get("liked_by") or []
    return LikeState(is_liked=user_id in liked_by, like_count=len(set(liked_by)))


async def increment_share(es, listing_id: str) -> int:
    """Bump a listing's share counter and return the new value."""
    resp = await es.update(
        index=PRODUCTS_INDEX,
        id=listing_id,
        script={"source": INCREMENT_SHARE_SCRIPT, "lang": "painless"},
        retry_on_conflict=RETRY_ON_CONFLICT,
        source=["share_count"],
    )
    return int(_updated_source(resp).get("share_count") or 0)
