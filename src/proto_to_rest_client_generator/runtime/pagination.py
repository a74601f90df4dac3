"""Lazy iteration over paginated listing responses."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

_T = TypeVar("_T")

type FetchPage[T] = Callable[[int, str], tuple[list[T], str]]


class PageIterator(Generic[_T]):
    """Iterates the items of a listing, fetching pages on demand.

    ``fetch(page_size, page_token)`` performs one round trip and returns the
    page's items plus the next page token. The first page is always fetched,
    using the initial token; afterwards a page is fetched only while the
    buffer is empty and the token is non-empty. Not safe for concurrent use.

    Attributes:
        response: The last decoded page response.
        fetch_count: Number of round trips performed so far.
        page_size: Page size requested on each fetch; zero keeps the server default.
        next_page_token: Token of the next page, empty once the listing is exhausted.
    """

    def __init__(
        self,
        fetch: FetchPage[_T],
        *,
        page_size: int = 0,
        page_token: str = "",
    ) -> None:
        self._fetch = fetch
        self._buffer: deque[_T] = deque()
        self._started = False
        self.page_size = page_size
        self.next_page_token = page_token
        self.response: Any = None
        self.fetch_count = 0

    def __iter__(self) -> PageIterator[_T]:
        return self

    def __next__(self) -> _T:
        while not self._buffer:
            if self._exhausted:
                raise StopIteration
            self._fetch_page()
        return self._buffer.popleft()

    def pages(self) -> Iterator[list[_T]]:
        """Yield whole pages; items already buffered by ``next()`` come first."""
        if self._buffer:
            page = list(self._buffer)
            self._buffer.clear()
            yield page
        while not self._exhausted:
            page = self._fetch_page()
            self._buffer.clear()
            yield page

    @property
    def _exhausted(self) -> bool:
        return self._started and not self.next_page_token

    def _fetch_page(self) -> list[_T]:
        items, token = self._fetch(self.page_size, self.next_page_token)
        self._started = True
        self.fetch_count += 1
        self.next_page_token = token
        self._buffer.extend(items)
        return list(items)
