"""
Unit tests for GitHub pagination module.

Why: Listings must return every item of every page, in page order, and must
     never loop forever on a misbehaving next-page link.

What: Tests LinkHeader parsing, PaginatedResponse and AsyncPaginator,
      including the stalled-pagination and page-cap guards.

How: Uses a mock client whose _fetch_paginated returns canned pages with
     Link headers, without making real API calls.
"""

from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from src.github.exceptions import GitHubPaginationError
from src.github.pagination import (
    AsyncPaginator,
    LinkHeader,
    PaginatedResponse,
    page_number,
)

BASE = "https://api.github.com/repos/acme/widgets/issues"


def page(items: list[dict[str, Any]], next_page: int | None = None) -> PaginatedResponse:
    headers = {}
    if next_page is not None:
        headers["Link"] = f'<{BASE}?state=all&page={next_page}>; rel="next"'
    return PaginatedResponse(items, headers, BASE)


def paginator_over(pages: list[PaginatedResponse], **kwargs: Any) -> AsyncPaginator:
    client = Mock()
    client._fetch_paginated = AsyncMock(side_effect=pages)
    return AsyncPaginator(
        client=client, initial_url=BASE, params={"state": "all"}, **kwargs
    )


class TestLinkHeader:
    """Test LinkHeader parsing."""

    def test_link_header_empty(self) -> None:
        """
        Why: The last page of a listing carries no Link header.
        What: Tests LinkHeader with None header.
        How: Creates LinkHeader with None and validates empty state.
        """
        link_header = LinkHeader(None)
        assert link_header.links == {}
        assert not link_header.has_next
        assert link_header.next_page == 0

    def test_link_header_multiple_links(self) -> None:
        """Test LinkHeader with next and last links."""
        link_header = LinkHeader(
            f'<{BASE}?page=2>; rel="next", <{BASE}?page=10>; rel="last"'
        )

        assert link_header.next_url == f"{BASE}?page=2"
        assert link_header.has_next
        assert link_header.next_page == 2

    def test_link_header_malformed(self) -> None:
        """Test LinkHeader with malformed header."""
        link_header = LinkHeader("malformed link header")

        assert link_header.links == {}
        assert not link_header.has_next

    def test_page_number_invalid(self) -> None:
        """Test page number extraction from URLs without a usable page."""
        assert page_number(f"{BASE}?invalid=url") is None
        assert page_number(f"{BASE}?page=abc") is None
        assert page_number(None) is None


class TestPaginatedResponse:
    """Test PaginatedResponse wrapper."""

    def test_paginated_response_with_next(self) -> None:
        """Test response exposing the next page URL."""
        response = PaginatedResponse(
            [{"number": 1}],
            {"Link": f'<{BASE}?page=2>; rel="next", <{BASE}?page=3>; rel="last"'},
            BASE,
        )

        assert response.items == [{"number": 1}]
        assert response.has_next_page
        assert response.next_page_url == f"{BASE}?page=2"


class TestAsyncPaginator:
    """Test AsyncPaginator iteration."""

    @pytest.mark.asyncio
    async def test_collect_all_concatenates_pages_in_order(self) -> None:
        """
        Why: Counts are computed over the whole listing, so every page must
             be included exactly once and in order.
        What: Tests collect_all over three pages.
        How: Feeds three pages linked by next headers and compares results.
        """
        paginator = paginator_over(
            [
                page([{"number": 1}, {"number": 2}], next_page=2),
                page([{"number": 3}], next_page=3),
                page([{"number": 4}]),
            ]
        )

        items = await paginator.collect_all()

        assert [item["number"] for item in items] == [1, 2, 3, 4]
        assert paginator.pages_fetched == 3

    @pytest.mark.asyncio
    async def test_first_page_uses_params_follow_ups_use_link(self) -> None:
        """Test that query params are sent only with the initial request."""
        paginator = paginator_over([page([{"number": 1}], next_page=2), page([])])

        await paginator.collect_all()

        calls = paginator.client._fetch_paginated.await_args_list
        assert calls[0].args == (BASE, {"state": "all", "per_page": 30})
        assert calls[1].args == (f"{BASE}?state=all&page=2", None)

    @pytest.mark.asyncio
    async def test_single_empty_page(self) -> None:
        """Test a listing with no items at all."""
        paginator = paginator_over([page([])])

        assert await paginator.collect_all() == []
        assert paginator.pages_fetched == 1

    @pytest.mark.asyncio
    async def test_repeated_next_link_raises(self) -> None:
        """
        Why: A next link that points back at a visited page would loop forever.
        What: Tests that revisiting a page raises GitHubPaginationError.
        How: Serves page 2 twice, each linking to page 2 again.
        """
        paginator = paginator_over(
            [
                page([{"number": 1}], next_page=2),
                page([{"number": 2}], next_page=2),
                page([{"number": 3}], next_page=2),
            ]
        )

        with pytest.raises(GitHubPaginationError, match="stalled"):
            await paginator.collect_all()

    @pytest.mark.asyncio
    async def test_non_advancing_page_number_raises(self) -> None:
        """Test that a next link to an earlier page number is rejected."""
        paginator = paginator_over(
            [
                page([{"number": 1}], next_page=3),
                PaginatedResponse(
                    [{"number": 2}],
                    {"Link": f'<{BASE}?state=open&page=2>; rel="next"'},
                    BASE,
                ),
            ]
        )

        with pytest.raises(GitHubPaginationError) as exc_info:
            await paginator.collect_all()

        assert exc_info.value.pages_fetched == 2

    @pytest.mark.asyncio
    async def test_max_pages_raises_instead_of_truncating(self) -> None:
        """
        Why: A silently truncated listing would publish wrong counts.
        What: Tests that exceeding max_pages raises.
        How: Serves endlessly advancing pages with max_pages=3.
        """
        paginator = paginator_over(
            [page([{"number": n}], next_page=n + 1) for n in range(1, 10)],
            max_pages=3,
        )

        with pytest.raises(GitHubPaginationError, match="exceeded 3 pages"):
            await paginator.collect_all()

        assert paginator.pages_fetched == 3

    def test_per_page_capped(self) -> None:
        """Test that per_page is capped at GitHub's maximum of 100."""
        paginator = AsyncPaginator(client=Mock(), initial_url=BASE, per_page=500)

        assert paginator.per_page == 100
        assert paginator.params["per_page"] == 100

    def test_params_not_mutated(self) -> None:
        """Test that caller params are copied rather than mutated."""
        params = {"state": "open"}
        AsyncPaginator(client=Mock(), initial_url=BASE, params=params)

        assert params == {"state": "open"}
