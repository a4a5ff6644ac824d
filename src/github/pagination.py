"""GitHub API pagination utilities."""

import logging
import re
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import parse_qs, urlparse

from .exceptions import GitHubPaginationError

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 30
DEFAULT_MAX_PAGES = 1000


def page_number(url: str | None) -> int | None:
    """Extract the ``page`` query parameter from a URL."""
    if not url:
        return None

    try:
        params = parse_qs(urlparse(url).query)
        page = params.get("page", [None])[0]
        return int(page) if page else None
    except (ValueError, TypeError):
        return None


class LinkHeader:
    """Parser for GitHub Link headers."""

    def __init__(self, link_header: str | None = None):
        """Initialize Link header parser.

        Args:
            link_header: Raw Link header value from response
        """
        self.links: dict[str, str] = {}
        if link_header:
            self._parse(link_header)

    def _parse(self, link_header: str) -> None:
        """Parse Link header into dictionary of rel -> url.

        Args:
            link_header: Raw Link header value
        """
        # Link header format: <url>; rel="next", <url>; rel="last"
        link_pattern = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')

        for match in link_pattern.finditer(link_header):
            url, rel = match.groups()
            self.links[rel] = url

    @property
    def next_url(self) -> str | None:
        """Get URL for next page."""
        return self.links.get("next")

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return "next" in self.links

    @property
    def next_page(self) -> int:
        """Next page number, 0 when there is no further page."""
        return page_number(self.next_url) or 0


class PaginatedResponse:
    """Wrapper for paginated GitHub API responses."""

    def __init__(
        self,
        data: list[dict[str, Any]],
        headers: dict[str, str],
        url: str,
    ):
        """Initialize paginated response.

        Args:
            data: Response data
            headers: Response headers
            url: Request URL
        """
        self.data = data
        self.headers = headers
        self.url = url
        self.link_header = LinkHeader(headers.get("Link"))

    @property
    def has_next_page(self) -> bool:
        """Check if there's a next page."""
        return self.link_header.has_next

    @property
    def next_page_url(self) -> str | None:
        """Get URL for next page."""
        return self.link_header.next_url

    @property
    def items(self) -> list[dict[str, Any]]:
        """Get items from current page."""
        return self.data


class AsyncPaginator:
    """Async iterator over every item of a paginated GitHub listing.

    Pages are fetched strictly one after another by following the ``next``
    link. A listing that keeps pointing at a page already visited, that does
    not advance its page number, or that runs past ``max_pages`` raises
    GitHubPaginationError rather than looping or returning a truncated result.
    """

    def __init__(
        self,
        client: Any,  # Avoid circular import
        initial_url: str,
        params: dict[str, Any] | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
        per_page: int = DEFAULT_PER_PAGE,
    ):
        """Initialize async paginator.

        Args:
            client: GitHub client instance
            initial_url: Initial URL to fetch
            params: Query parameters
            max_pages: Maximum number of pages before the listing is abandoned
            per_page: Items per page (max 100 for GitHub)
        """
        self.client = client
        self.initial_url = initial_url
        self.params = dict(params or {})
        self.max_pages = max_pages
        self.per_page = min(per_page, 100)  # GitHub max is 100

        self.params["per_page"] = self.per_page

        self.pages_fetched = 0

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        """Async iterator implementation."""
        next_url: str | None = self.initial_url
        params: dict[str, Any] | None = self.params
        visited: set[str] = set()
        current_page = 1

        while next_url:
            if self.pages_fetched >= self.max_pages:
                raise GitHubPaginationError(
                    f"Pagination exceeded {self.max_pages} pages for "
                    f"{self.initial_url}",
                    url=next_url,
                    pages_fetched=self.pages_fetched,
                )

            visited.add(next_url)
            response = await self._fetch_page(next_url, params)
            self.pages_fetched += 1

            for item in response.items:
                yield item

            if not response.has_next_page:
                break

            next_url = response.next_page_url
            next_page = response.link_header.next_page
            if next_url in visited or (next_page and next_page <= current_page):
                raise GitHubPaginationError(
                    f"Pagination stalled at page {current_page} for "
                    f"{self.initial_url}",
                    url=next_url,
                    pages_fetched=self.pages_fetched,
                )
            current_page = next_page or current_page + 1

            # The next link already carries the query string
            params = None

    async def _fetch_page(
        self, url: str, params: dict[str, Any] | None
    ) -> PaginatedResponse:
        """Fetch a single page.

        Args:
            url: URL to fetch
            params: Query parameters, None for follow-up links

        Returns:
            PaginatedResponse with data and headers
        """
        result: PaginatedResponse = await self.client._fetch_paginated(url, params)
        logger.debug(
            f"Fetched page {self.pages_fetched + 1} of {self.initial_url} "
            f"({len(result.items)} items)"
        )
        return result

    async def collect_all(self) -> list[dict[str, Any]]:
        """Collect all items from all pages, in page order.

        Returns:
            List of all items
        """
        items = []
        async for item in self:
            items.append(item)
        return items
