from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .models import FileEntry, FolderId
from .utils import get_logger

ListingListener = Callable[[FolderId], None]


class FolderListings:
    """Cached folder listings.

    Listeners hear about every change to a folder (loaded or invalidated).
    Invalidation only marks a folder stale; whoever shows that folder decides
    to ``fetch`` again.
    """

    def __init__(self, gateway: Any, runner: Any) -> None:
        self.gateway = gateway
        self.runner = runner
        self.logger = get_logger("chatdrive.listing")
        self._entries: Dict[FolderId, Tuple[FileEntry, ...]] = {}
        self._stale: Set[FolderId] = set()
        self._listeners: List[ListingListener] = []

    def subscribe(self, listener: ListingListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _notify(self, folder_id: FolderId) -> None:
        for listener in list(self._listeners):
            listener(folder_id)

    def get(self, folder_id: FolderId) -> List[FileEntry]:
        return list(self._entries.get(folder_id, ()))

    def is_stale(self, folder_id: FolderId) -> bool:
        return folder_id not in self._entries or folder_id in self._stale

    def put(self, folder_id: FolderId, entries: List[FileEntry]) -> None:
        self._entries[folder_id] = tuple(entries)
        self._stale.discard(folder_id)
        self._notify(folder_id)

    def invalidate(self, folder_id: FolderId) -> None:
        self.logger.debug("Listing invalidated folder=%s", folder_id)
        self._stale.add(folder_id)
        self._notify(folder_id)

    def invalidate_all(self) -> None:
        for folder_id in list(self._entries):
            self.invalidate(folder_id)

    def clear(self) -> None:
        self._entries = {}
        self._stale = set()

    def fetch(
        self,
        folder_id: FolderId,
        on_done: Optional[Callable[[List[FileEntry]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        def done(entries: List[FileEntry]) -> None:
            self.put(folder_id, entries)
            self.logger.debug("Listing loaded folder=%s count=%d", folder_id, len(entries))
            if on_done:
                on_done(self.get(folder_id))

        def err(exc: Exception) -> None:
            self.logger.warning("Listing failed folder=%s: %s", folder_id, exc)
            if on_error:
                on_error(exc)

        self.runner.run(lambda: self.gateway.list_files(folder_id), on_result=done, on_error=err)
