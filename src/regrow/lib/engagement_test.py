"""Tests for engagement recording."""

import pytest

from ..models import HISTORY_LIMIT
from .engagement import (
    PUSH_HISTORY_SCRIPT,
    RETRY_ON_CONFLICT,
    SHARED_HISTORY,
    VIEWED_HISTORY,
    increment_share,
    push_history,
    record_share_history,
    record_view,
    toggle_like,
)


class TestPushHistory:
    @pytest.mark.asyncio
    async def test_prepends_most_recent(self, in_memory_es):
        es = in_memory_es(users=[{"id": "u", "viewed_history": ["a", "b"]}])
        await record_view(es, "u", "c")
        assert es.indices_docs["users"]["u"]["viewed_history"] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_evicts_oldest_past_limit(self, in_memory_es):
        full = [str(i) for i in range(HISTORY_LIMIT)]
        es = in_memory_es(users=[{"id": "u", "shared_history": full}])
        await record_share_history(es, "u", "new")
        history = es.indices_docs["users"]["u"]["shared_history"]
        assert len(history) == HISTORY_LIMIT
        assert history[0] == "new"
        assert history[-1] == str(HISTORY_LIMIT - 2)

    @pytest.mark.asyncio
    async def test_repeat_views_are_not_collapsed(self, in_memory_es):
        es = in_memory_es(users=[{"id": "u", "viewed_history": ["a"]}])
        await record_view(es, "u", "a")
        assert es.indices_docs["users"]["u"]["viewed_history"] == ["a", "a"]

    @pytest.mark.asyncio
    async def test_unknown_user_is_a_no_op(self, in_memory_es):
        es = in_memory_es(users=[{"id": "other"}])
        await push_history(es, "ghost", VIEWED_HISTORY, "a")
        assert "viewed_history" not in es.indices_docs["users"]["other"]

    @pytest.mark.asyncio
    async def test_sends_painless_script(self, in_memory_es):
        es = in_memory_es(users=[{"id": "u"}])
        await push_history(es, "u", SHARED_HISTORY, "x")
        call = es.calls[0]
        assert call["op"] == "update"
        assert call["index"] == "users"
        assert call["id"] == "u"
        assert call["script"]["source"] == PUSH_HISTORY_SCRIPT
        assert call["script"]["params"] == {
            "field": "shared_history",
            "listing_id": "x",
            "limit": HISTORY_LIMIT,
        }

    @pytest.mark.asyncio
    async def test_retries_on_version_conflict(self, in_memory_es):
        es = in_memory_es(users=[{"id": "u"}])
        await record_view(es, "u", "x")
        await record_view(es, "u", "y")
        assert [c["retry_on_conflict"] for c in es.updates("users")] == [RETRY_ON_CONFLICT] * 2
        assert RETRY_ON_CONFLICT >= 1
        assert es.indices_docs["users"]["u"]["viewed_history"] == ["y", "x"]


class TestToggleLike:
    @pytest.mark.asyncio
    async def test_like_then_unlike(self, in_memory_es, listing_factory):
        es = in_memory_es(products=[listing_factory("1", liked_by=["other"])])

        liked = await toggle_like(es, "1", "u")
        assert liked.is_liked is True
        assert liked.like_count == 2

        unliked = await toggle_like(es, "1", "u")
        assert unliked.is_liked is False
        assert unliked.like_count == 1
        assert es.indices_docs["products"]["1"]["liked_by"] == ["other"]

    @pytest.mark.asyncio
    async def test_missing_liked_by(self, in_memory_es, listing_factory):
        doc = listing_factory("1")
        del doc["liked_by"]
        es = in_memory_es(products=[doc])
        state = await toggle_like(es, "1", "u")
        assert state.is_liked is True
        assert state.like_count == 1


class TestIncrementShare:
    @pytest.mark.asyncio
    async def test_increments(self, in_memory_es, listing_factory):
        es = in_memory_es(products=[listing_factory("1", share_count=4)])
        assert await increment_share(es, "1") == 5
        assert await increment_share(es, "1") == 6

    @pytest.mark.asyncio
    async def test_absent_counter_starts_at_zero(self, in_memory_es, listing_factory):
        doc = listing_factory("1")
        doc["share_count"] = None
        es = in_memory_es(products=[doc])
        assert await increment_share(es, "1") == 1
