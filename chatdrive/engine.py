from typing import Any, Callable, List, Optional

from .listing import FolderListings
from .models import FileEntry, FolderId
from .operations import FileOperations
from .prompts import Prompter
from .search import ResultsCallback, SearchCoordinator
from .selection import MoveResolver, SelectionSet
from .session import NetworkMonitor, Phase, SessionManager
from .session_store import ClientSettings, ConfigStore
from .transfers import DownloadQueue, UploadQueue
from .utils import get_logger


class Engine:
    """All client engines, built once per process with shared dependencies."""

    def __init__(
        self,
        store: ConfigStore,
        gateway: Any,
        runner: Any,
        prompter: Prompter,
        scheduler: Any = None,
        on_logout: Optional[Callable[[], None]] = None,
        on_search_results: Optional[ResultsCallback] = None,
    ) -> None:
        self.store = store
        self.settings = ClientSettings(store)
        self.gateway = gateway
        self.runner = runner
        self.prompter = prompter
        self.logger = get_logger("chatdrive.engine")
        self._on_logout = on_logout

        self.listings = FolderListings(gateway, runner)
        self.selection = SelectionSet()
        self.monitor = NetworkMonitor(gateway, runner, scheduler)
        self.session = SessionManager(
            gateway,
            store,
            runner,
            prompter,
            self.listings,
            on_logout=self._handle_logout,
            monitor=self.monitor,
        )
        # Queues start paused; restored work waits for a connected session.
        self.uploads = UploadQueue(gateway, store, runner, prompter, self.listings, autostart=False)
        self.downloads = DownloadQueue(gateway, store, runner, prompter, self.listings, autostart=False)
        self.mover = MoveResolver(
            gateway, runner, self.selection, self.listings, self.active_folder, prompter
        )
        self.search = SearchCoordinator(
            gateway, runner, scheduler, self.active_listing, on_results=on_search_results
        )
        self.operations = FileOperations(
            gateway,
            runner,
            prompter,
            self.selection,
            self.listings,
            self.active_folder,
            uploads=self.uploads,
            downloads=self.downloads,
            describe_failure=self.session.describe_failure,
        )
        self.session.subscribe(self._on_session_changed)
        self.session.subscribe_folder(self._on_folder_changed)
        self.listings.subscribe(self._on_listing_changed)
        self._on_session_changed(self.session)
        if self.session.phase == Phase.CONNECTED and self.listings.is_stale(self.active_folder()):
            self.listings.fetch(self.active_folder())

    def active_folder(self) -> FolderId:
        return self.session.active_folder_id

    def active_listing(self) -> List[FileEntry]:
        return self.listings.get(self.session.active_folder_id)

    def _on_session_changed(self, session: SessionManager) -> None:
        for queue in (self.uploads, self.downloads):
            if session.phase == Phase.CONNECTED:
                if queue.paused:
                    queue.resume()
            else:
                queue.pause()

    def _on_folder_changed(self, folder_id: FolderId) -> None:
        self.selection.clear()
        self.search.reset()
        if self.listings.is_stale(folder_id):
            self.listings.fetch(folder_id)

    def _on_listing_changed(self, folder_id: FolderId) -> None:
        # Only the folder on screen is refetched; others reload when opened.
        if folder_id != self.session.active_folder_id or not self.listings.is_stale(folder_id):
            return
        self.listings.fetch(folder_id)

    def _handle_logout(self) -> None:
        self.selection.clear()
        if self._on_logout:
            self._on_logout()

    def close(self) -> None:
        self.monitor.stop()
        self.search.reset()
