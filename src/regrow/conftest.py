"""Shared test fixtures.

``InMemoryEs`` is a fake ``AsyncElasticsearch`` client that evaluates the
small query subset the service issues (``match_all``, ``bool.filter`` with
``term`` / ``terms`` / ``wildcard``), honours ``sort`` on ``created_at``,
``size`` and ``_source``, serves scroll pages for ``async_scan`` and applies
the engagement update scripts.
"""

import copy
import os

import pytest

from .lib.engagement import INCREMENT_SHARE_SCRIPT, PUSH_HISTORY_SCRIPT, TOGGLE_LIKE_SCRIPT


def _field_values(doc: dict, field: str) -> list:
    value = doc.get(field.removesuffix(".raw"))
    if isinstance(value, list):
        return value
    return [value]


def _matches(doc: dict, query: dict | None) -> bool:
    if not query or "match_all" in query:
        return True
    if "bool" in query:
        return all(_matches(doc, f) for f in query["bool"].get("filter", []))
    if "term" in query:
        ((field, value),) = query["term"].items()
        return value in _field_values(doc, field)
    if "terms" in query:
        ((field, values),) = query["terms"].items()
        return any(v in values for v in _field_values(doc, field))
    if "wildcard" in query:
        ((field, clause),) = query["wildcard"].items()
        needle = clause["value"].strip("*").replace("\\", "")
        haystack = doc.get(field.removesuffix(".raw")) or ""
        if clause.get("case_insensitive"):
            needle, haystack = needle.lower(), haystack.lower()
        return needle in haystack
    raise AssertionError(f"Unsupported query in fake: {query}")


class InMemoryEs:
    """Fake Elasticsearch client backed by dicts."""

    def __init__(self, products: list[dict] | None = None, users: list[dict] | None = None):
        self.indices_docs = {
            "products": {d["id"]: copy.deepcopy(d) for d in products or []},
            "users": {d["id"]: copy.deepcopy(d) for d in users or []},
        }
        self.calls: list[dict] = []
        self.error: Exception | None = None
        self._scrolls: dict[str, list[dict]] = {}
        self._scroll_sizes: dict[str, int] = {}

    def searches(self, index: str) -> list[dict]:
        return [c for c in self.calls if c["op"] == "search" and c["index"] == index]

    def updates(self, index: str) -> list[dict]:
        return [c for c in self.calls if c["op"] == "update" and c["index"] == index]

    def options(self, **kwargs):
        return self

    async def search(
        self, *, index=None, query=None, size=10, sort=None, _source=None, body=None, scroll=None, **kwargs
    ):
        if body:
            query = body.get("query", query)
            sort = body.get("sort", sort)
            _source = body.get("_source", _source)
        self.calls.append({
            "op": "search",
            "index": index,
            "query": query,
            "size": size,
            "sort": sort,
            "_source": _source,
            "scroll": scroll,
        })
        if self.error is not None:
            raise self.error
        docs = [d for d in self.indices_docs.get(index, {}).values() if _matches(d, query)]
        # "_doc" is index order, i.e. no sort.
        if isinstance(sort, list):
            docs.sort(key=lambda d: d.get("created_at") or "", reverse=True)
        if _source is not None:
            docs = [{k: v for k, v in d.items() if k in _source} for d in docs]
        hits = [{"_id": d.get("id"), "_source": copy.deepcopy(d)} for d in docs]
        if scroll is None:
            return self._page(hits[:size])
        scroll_id = f"scroll-{len(self._scrolls)}"
        self._scrolls[scroll_id] = hits[size:]
        return self._page(hits[:size], scroll_id=scroll_id, size=size)

    async def scroll(self, *, scroll_id=None, scroll=None, **kwargs):
        self.calls.append({"op": "scroll", "scroll_id": scroll_id})
        remaining = self._scrolls.get(scroll_id, [])
        size = self._scroll_sizes[scroll_id]
        self._scrolls[scroll_id] = remaining[size:]
        return self._page(remaining[:size], scroll_id=scroll_id, size=size)

    async def clear_scroll(self, *, scroll_id=None, **kwargs):
        self.calls.append({"op": "clear_scroll", "scroll_id": scroll_id})
        self._scrolls.pop(scroll_id, None)
        return {"succeeded": True}

    def _page(self, hits: list[dict], scroll_id: str | None = None, size: int | None = None) -> dict:
        resp = {
            "_shards": {"total": 1, "successful": 1, "skipped": 0, "failed": 0},
            "hits": {"hits": hits},
        }
        if scroll_id is not None:
            self._scroll_sizes[scroll_id] = size
            resp["_scroll_id"] = scroll_id
        return resp

    async def update(self, *, index=None, id=None, script=None, source=None, **kwargs):
        self.calls.append({
            "op": "update",
            "index": index,
            "id": id,
            "script": script,
            "retry_on_conflict": kwargs.get("retry_on_conflict"),
        })
        if self.error is not None:
            raise self.error
        doc = self.indices_docs.get(index, {}).get(id)
        if doc is None:
            # Mirrors a 404 swallowed by options(ignore_status=404).
            return {"_id": id, "result": "not_found"}
        params = script.get("params", {})
        if script["source"] == TOGGLE_LIKE_SCRIPT:
            liked_by = doc.setdefault("liked_by", [])
            if params["user_id"] in liked_by:
                liked_by.remove(params["user_id"])
            else:
                liked_by.append(params["user_id"])
        elif script["source"] == INCREMENT_SHARE_SCRIPT:
            doc["share_count"] = (doc.get("share_count") or 0) + 1
        elif script["source"] == PUSH_HISTORY_SCRIPT:
            history = doc.get(params["field"]) or []
            doc[params["field"]] = ([params["listing_id"]] + history)[: params["limit"]]
        else:
            raise AssertionError("Unsupported script in fake")
        fields = source if isinstance(source, list) else list(doc)
        return {
            "_id": id,
            "result": "updated",
            "get": {"_source": {k: copy.deepcopy(doc[k]) for k in fields if k in doc}},
        }


def make_listing(listing_id: str, **fields) -> dict:
    """A ``products`` document with sensible defaults."""
    doc = {
        "id": listing_id,
        "seller": "seller-1",
        "title": f"Listing {listing_id}",
        "description": "",
        "price": 1000,
        "category": "etc",
        "location": "Daegu",
        "images": [],
        "status": "selling",
        "liked_by": [],
        "share_count": 0,
        "created_at": "2026-01-01T00:00:00Z",
    }
    doc.update(fields)
    return doc


@pytest.fixture
def listing_factory():
    return make_listing


@pytest.fixture
def in_memory_es():
    """Factory building an ``InMemoryEs`` from product and user documents."""
    return InMemoryEs


@pytest.fixture
def api_headers():
    """Set a predictable API key for the duration of a test."""
    prev = os.environ.get("API_KEY")
    os.environ["API_KEY"] = "testkey"
    yield {"X-API-Key": "testkey"}
    if prev is None:
        del os.environ["API_KEY"]
    else:
        os.environ["API_KEY"] = prev
