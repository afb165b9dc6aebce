from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .errors import InvalidTransition, NotFoundError, describe
from .listing import FolderListings
from .models import ROOT_FOLDER_NAME, Folder, FolderId
from .prompts import Prompter
from .session_store import ClientSettings, ConfigStore
from .utils import env_int, get_logger

DEFAULT_NETWORK_POLL_MS = 10_000


class Phase(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOGGED_OUT = "logged_out"


_TRANSITIONS: Dict[Phase, FrozenSet[Phase]] = {
    Phase.UNINITIALIZED: frozenset({Phase.CONNECTING, Phase.LOGGED_OUT}),
    Phase.CONNECTING: frozenset({Phase.CONNECTED, Phase.LOGGED_OUT, Phase.UNINITIALIZED}),
    Phase.CONNECTED: frozenset({Phase.CONNECTING, Phase.LOGGED_OUT}),
    Phase.LOGGED_OUT: frozenset({Phase.CONNECTING}),
}


def next_phase(current: Phase, target: Phase) -> Phase:
    if target not in _TRANSITIONS[current]:
        raise InvalidTransition(f"{current.value} -> {target.value}")
    return target


@dataclass(frozen=True)
class SessionState:
    phase: Phase
    connected: bool
    active_folder_id: FolderId
    credentials_present: bool


def merge_folders(existing: Sequence[Folder], found: Sequence[Folder]) -> Tuple[List[Folder], int]:
    """Union by folder id; local entries are never dropped."""
    merged = list(existing)
    known = {f.id for f in merged}
    added = 0
    for folder in found:
        if folder.id in known:
            continue
        merged.append(folder)
        known.add(folder.id)
        added += 1
    return merged, added


class NetworkMonitor:
    def __init__(self, gateway: Any, runner: Any, scheduler: Any = None, interval_ms: Optional[int] = None) -> None:
        self.gateway = gateway
        self.runner = runner
        self.scheduler = scheduler
        self.interval_ms = interval_ms or env_int("CHATDRIVE_NETWORK_POLL_MS", DEFAULT_NETWORK_POLL_MS)
        self.online = True
        self.logger = get_logger("chatdrive.network")
        self._listeners: List[Callable[[bool], None]] = []
        self._handle: Any = None
        self._running = False

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def start(self) -> None:
        if self._running or self.scheduler is None:
            return
        self._running = True
        self.check_now()

    def stop(self) -> None:
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def check_now(self) -> None:
        self.runner.run(
            self.gateway.is_network_available,
            on_result=lambda available: self._apply(bool(available)),
            on_error=lambda _exc: self._apply(False),
            on_finished=self._schedule_next,
        )

    def _schedule_next(self) -> None:
        if not self._running:
            return
        self._handle = self.scheduler.call_later(self.interval_ms, self.check_now)

    def _apply(self, available: bool) -> None:
        if available == self.online:
            return
        self.online = available
        self.logger.info("Network %s", "available" if available else "unreachable")
        for listener in list(self._listeners):
            listener(available)


class SessionManager:
    def __init__(
        self,
        gateway: Any,
        store: ConfigStore,
        runner: Any,
        prompter: Prompter,
        listings: FolderListings,
        on_logout: Callable[[], None],
        monitor: Optional[NetworkMonitor] = None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.settings = ClientSettings(store)
        self.runner = runner
        self.prompter = prompter
        self.listings = listings
        self.on_logout = on_logout
        self.monitor = monitor
        self.logger = get_logger("chatdrive.session")
        self.phase = Phase.UNINITIALIZED
        self.folders: Tuple[Folder, ...] = ()
        self.active_folder_id: FolderId = None
        self.is_syncing = False
        self._listeners: List[Callable[["SessionManager"], None]] = []
        self._folder_listeners: List[Callable[[FolderId], None]] = []
        if monitor is not None:
            monitor.subscribe(lambda _online: self._notify())
        self.start()

    @property
    def credentials_present(self) -> bool:
        return self.settings.api_id is not None

    @property
    def connected(self) -> bool:
        online = self.monitor.online if self.monitor is not None else True
        return self.phase == Phase.CONNECTED and online

    def state(self) -> SessionState:
        return SessionState(
            phase=self.phase,
            connected=self.connected,
            active_folder_id=self.active_folder_id,
            credentials_present=self.credentials_present,
        )

    def subscribe(self, listener: Callable[["SessionManager"], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def subscribe_folder(self, listener: Callable[[FolderId], None]) -> Callable[[], None]:
        self._folder_listeners.append(listener)
        return lambda: self._folder_listeners.remove(listener) if listener in self._folder_listeners else None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _transition(self, target: Phase) -> None:
        previous = self.phase
        self.phase = next_phase(self.phase, target)
        self.logger.debug("Session %s -> %s", previous.value, target.value)
        self._notify()

    def describe_failure(self, exc: BaseException) -> str:
        if not self.connected:
            return f"Network unavailable ({describe(exc)})"
        return describe(exc)

    # Connection lifecycle

    def start(self) -> None:
        self.folders = tuple(self.settings.load_folders())
        self.active_folder_id = self.settings.active_folder_id
        api_id = self.settings.api_id
        if api_id is None:
            self.logger.info("No stored credentials; signed out")
            self._enter_logged_out()
            return
        self._transition(Phase.CONNECTING)
        self.runner.run(
            lambda: self.gateway.connect(int(api_id)),
            on_result=lambda _r: self._on_connected(),
            on_error=self._on_connect_failed,
        )

    def login(self, api_id: int, api_hash: Optional[str] = None) -> None:
        self.settings.set_credentials(api_id, api_hash)
        self.start()

    def _on_connected(self) -> None:
        self.folders = tuple(self.settings.load_folders())
        self._transition(Phase.CONNECTED)
        self.logger.info("Connected (%d cached folder(s))", len(self.folders))
        if self.monitor is not None:
            self.monitor.start()
        self.listings.invalidate(self.active_folder_id)

    def _on_connect_failed(self, exc: Exception) -> None:
        self.logger.warning("Failed to connect: %s", exc)
        retry = self.prompter.confirm(
            "Connection failed",
            f"Failed to connect to the backend. Retry?\n\nError: {describe(exc)}",
            confirm_text="Retry",
        )
        if retry:
            self._transition(Phase.UNINITIALIZED)
            self.start()
            return
        self.settings.forget_api_id()
        self._enter_logged_out()

    def _enter_logged_out(self) -> None:
        if self.monitor is not None:
            self.monitor.stop()
        if self.phase != Phase.LOGGED_OUT:
            self._transition(Phase.LOGGED_OUT)
        self.on_logout()

    def logout(self) -> bool:
        if not self.prompter.confirm(
            "Sign Out",
            "Are you sure you want to sign out? This will disconnect your active session.",
            confirm_text="Sign Out",
        ):
            return False

        def work() -> None:
            self.gateway.logout()
            self.gateway.clean_cache()

        def err(exc: Exception) -> None:
            self.logger.warning("Logout failed: %s", exc)
            self.prompter.notify(f"Error signing out: {describe(exc)}", "error")

        self.runner.run(work, on_error=err, on_finished=self._finish_logout)
        return True

    def _finish_logout(self) -> None:
        self.settings.clear_session()
        self.folders = ()
        self.listings.clear()
        self._enter_logged_out()

    # Folder cache

    def _store_folders(self, folders: Sequence[Folder]) -> None:
        self.folders = tuple(folders)
        self.settings.save_folders(list(self.folders))
        self._notify()

    def folder_name(self, folder_id: FolderId) -> str:
        if folder_id is None:
            return ROOT_FOLDER_NAME
        match = next((f for f in self.folders if f.id == folder_id), None)
        return match.name if match else f"Folder {folder_id}"

    def set_active_folder(self, folder_id: FolderId) -> None:
        if folder_id == self.active_folder_id:
            return
        self.active_folder_id = folder_id
        self.settings.set_active_folder_id(folder_id)
        self._notify()
        for listener in list(self._folder_listeners):
            listener(folder_id)

    def sync_folders(self, on_done: Optional[Callable[[int], None]] = None) -> None:
        if self.is_syncing:
            return
        self.is_syncing = True
        self._notify()

        def done(found: List[Folder]) -> None:
            merged, added = merge_folders(self.folders, found)
            if added > 0:
                self._store_folders(merged)
                self.prompter.notify(f"Scan complete. Found {added} new folders.")
            else:
                self.prompter.notify("Scan complete. No new folders found.")
            self.logger.info("Folder sync added %d folder(s)", added)
            if on_done:
                on_done(added)

        def err(exc: Exception) -> None:
            self.logger.warning("Sync failed: %s", exc)
            self.prompter.notify(f"Sync failed: {self.describe_failure(exc)}", "error")

        def finished() -> None:
            self.is_syncing = False
            self._notify()

        self.runner.run(self.gateway.scan_folders, on_result=done, on_error=err, on_finished=finished)

    def create_folder(
        self,
        name: str,
        on_done: Optional[Callable[[Folder], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        name = name.strip()
        if not name:
            return

        def done(folder: Folder) -> None:
            self._store_folders(self.folders + (folder,))
            self.prompter.notify(f'Folder "{name}" created.')
            if on_done:
                on_done(folder)

        def err(exc: Exception) -> None:
            self.prompter.notify(f"Failed to create folder: {self.describe_failure(exc)}", "error")
            if on_error:
                on_error(exc)

        self.runner.run(lambda: self.gateway.create_folder(name), on_result=done, on_error=err)

    def delete_folder(self, folder_id: int, folder_name: str) -> bool:
        if not self.prompter.confirm(
            "Delete Folder",
            f'Are you sure you want to delete "{folder_name}"?\nThis will delete the folder on the backend.',
            confirm_text="Delete",
        ):
            return False

        def done(_result: Any) -> None:
            self._forget_folder(folder_id)
            self.prompter.notify(f'Folder "{folder_name}" deleted.')

        def err(exc: Exception) -> None:
            if isinstance(exc, NotFoundError):
                if self.prompter.confirm(
                    "Folder Not Found",
                    f'Folder "{folder_name}" was not found on the backend (it may have been deleted externally).\n'
                    "Remove it from this app?",
                    confirm_text="Remove",
                ):
                    self._forget_folder(folder_id)
                return
            self.logger.warning("Delete folder %s failed: %s", folder_id, exc)
            self.prompter.notify(f"Failed to delete folder: {self.describe_failure(exc)}", "error")

        self.runner.run(lambda: self.gateway.delete_folder(folder_id), on_result=done, on_error=err)
        return True

    def _forget_folder(self, folder_id: int) -> None:
        self._store_folders([f for f in self.folders if f.id != folder_id])
        if self.active_folder_id == folder_id:
            self.set_active_folder(None)
