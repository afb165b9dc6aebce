from typing import Any, Callable, List, Optional

from .models import FileEntry
from .utils import get_logger

MIN_QUERY_LENGTH = 3
QUIET_PERIOD_MS = 500

ResultsCallback = Callable[[str, List[FileEntry], bool], None]


def filter_local(entries: List[FileEntry], query: str) -> List[FileEntry]:
    needle = query.strip().lower()
    if not needle:
        return list(entries)
    return [e for e in entries if needle in e.name.lower()]


class SearchCoordinator:
    """Debounced global search with a local fallback for short queries.

    ``on_results(query, entries, is_global)`` receives every result set.
    """

    def __init__(
        self,
        gateway: Any,
        runner: Any,
        scheduler: Any,
        active_listing: Callable[[], List[FileEntry]],
        on_results: Optional[ResultsCallback] = None,
        min_length: int = MIN_QUERY_LENGTH,
        quiet_ms: int = QUIET_PERIOD_MS,
    ) -> None:
        self.gateway = gateway
        self.runner = runner
        self.scheduler = scheduler
        self.active_listing = active_listing
        self.on_results = on_results
        self.min_length = min_length
        self.quiet_ms = quiet_ms
        self.logger = get_logger("chatdrive.search")
        self.query = ""
        self._handle: Any = None

    def set_query(self, text: str) -> None:
        self.query = text
        self._cancel_pending()
        query = text.strip()
        if len(query) < self.min_length:
            self._deliver(text, filter_local(self.active_listing(), query), False)
            return
        if self.scheduler is None:
            self._dispatch(text)
            return
        self._handle = self.scheduler.call_later(self.quiet_ms, lambda: self._dispatch(text))

    def reset(self) -> None:
        self._cancel_pending()
        self.query = ""

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _dispatch(self, text: str) -> None:
        self._handle = None
        query = text.strip()
        self.logger.debug("Global search query=%r", query)

        def done(entries: List[FileEntry]) -> None:
            self._deliver(text, list(entries or []), True)

        def err(exc: Exception) -> None:
            self.logger.debug("Search failed query=%r: %s", query, exc)
            self._deliver(text, [], True)

        self.runner.run(lambda: self.gateway.search_global(query), on_result=done, on_error=err)

    def _deliver(self, text: str, entries: List[FileEntry], is_global: bool) -> None:
        if text != self.query:
            self.logger.debug("Dropping results for superseded query=%r", text)
            return
        if self.on_results:
            self.on_results(text, entries, is_global)
