"""Unit tests for the page aggregator."""

import pytest

from conftest import BASE, FakeResponse, page
from shareaudit.adapters.graph.pagination import PageAggregator
from shareaudit.orchestrator.store import ScanResultStore

FIRST = f"{BASE}/drives/d1/root/children"
SECOND = f"{BASE}/drives/d1/root/children?$skiptoken=abc"


def two_page_chain(session):
    session.add("GET", FIRST, page([{"id": "a"}, {"id": "b"}], next_link=SECOND))
    session.add("GET", SECOND, page([{"id": "c"}]))


class TestFetchAll:
    """Test cases for PageAggregator.fetch_all."""

    @pytest.mark.asyncio
    async def test_concatenates_pages_in_order(self, client, session):
        two_page_chain(session)

        records = await PageAggregator(client).fetch_all(FIRST)

        assert [r["id"] for r in records] == ["a", "b", "c"]
        assert [c.url for c in session.calls] == [FIRST, SECOND]

    @pytest.mark.asyncio
    async def test_fresh_identical_chain_gives_identical_result(self, client, session):
        two_page_chain(session)
        first = await PageAggregator(client).fetch_all(FIRST)

        session.routes.clear()
        two_page_chain(session)
        second = await PageAggregator(client).fetch_all(FIRST)

        assert first == second

    @pytest.mark.asyncio
    async def test_failed_page_returns_partial_and_counts_one_error(self, client, session):
        store = ScanResultStore()
        session.add("GET", FIRST, page([{"id": "a"}, {"id": "b"}], next_link=SECOND))
        session.add("GET", SECOND, FakeResponse(403, {"error": {"code": "accessDenied"}}))

        records = await PageAggregator(client, errors=store).fetch_all(FIRST)

        assert [r["id"] for r in records] == ["a", "b"]
        assert store.stats.error_count == 1

    @pytest.mark.asyncio
    async def test_first_page_failure_returns_empty(self, client, session):
        store = ScanResultStore()
        session.add("GET", FIRST, FakeResponse(404, {"error": {"code": "itemNotFound"}}))

        assert await PageAggregator(client, errors=store).fetch_all(FIRST) == []
        assert store.stats.error_count == 1

    @pytest.mark.asyncio
    async def test_repeated_continuation_link_is_not_refetched(self, client, session):
        session.add("GET", FIRST, page([{"id": "a"}], next_link=SECOND))
        session.add("GET", SECOND, page([{"id": "b"}], next_link=FIRST))

        records = await PageAggregator(client).fetch_all(FIRST)

        assert [r["id"] for r in records] == ["a", "b"]
        assert len(session.calls) == 2

    @pytest.mark.asyncio
    async def test_plain_next_link_key(self, client, session):
        session.add("GET", FIRST, FakeResponse(200, {"value": [{"id": "a"}], "nextLink": SECOND}))
        session.add("GET", SECOND, page([{"id": "b"}]))

        records = await PageAggregator(client).fetch_all(FIRST)

        assert [r["id"] for r in records] == ["a", "b"]
