"""Pytest configuration and fixtures."""

import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from chatdrive.models import BandwidthStats, FileEntry, Folder
from chatdrive.session_store import KEY_API_ID, ConfigStore
from chatdrive.tasks import InlineRunner


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "qt: tests that need a Qt application"
    )


class FakeGateway:
    """In-memory backend that records every call.

    ``failures`` maps a method name to an exception, or to a callable that
    receives the call arguments and returns an exception (or None).
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple]] = []
        self.failures: Dict[str, Any] = {}
        self.backend_folders: List[Folder] = []
        self.listings: Dict[Any, List[FileEntry]] = {}
        self.search_results: List[FileEntry] = []
        self.network = True
        self.bandwidth = BandwidthStats(up_bytes=0, down_bytes=0)
        self.next_folder_id = 100

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        failure = self.failures.get(name)
        if callable(failure) and not isinstance(failure, BaseException):
            failure = failure(*args)
        if failure is not None:
            raise failure

    def calls_to(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    def connect(self, api_id: int) -> None:
        self._record("connect", api_id)

    def logout(self) -> None:
        self._record("logout")

    def clean_cache(self) -> None:
        self._record("clean_cache")

    def scan_folders(self) -> List[Folder]:
        self._record("scan_folders")
        return list(self.backend_folders)

    def create_folder(self, name: str) -> Folder:
        self._record("create_folder", name)
        folder = Folder(id=self.next_folder_id, name=name)
        self.next_folder_id += 1
        return folder

    def delete_folder(self, folder_id: int) -> None:
        self._record("delete_folder", folder_id)

    def list_files(self, folder_id) -> List[FileEntry]:
        self._record("list_files", folder_id)
        return list(self.listings.get(folder_id, []))

    def upload_file(self, path: str, folder_id) -> None:
        self._record("upload_file", path, folder_id)

    def download_file(self, remote_id: int, save_path: str, folder_id) -> None:
        self._record("download_file", remote_id, save_path, folder_id)

    def delete_file(self, remote_id: int, folder_id) -> None:
        self._record("delete_file", remote_id, folder_id)

    def move_files(self, remote_ids, source_folder_id, target_folder_id) -> None:
        self._record("move_files", list(remote_ids), source_folder_id, target_folder_id)

    def search_global(self, query: str) -> List[FileEntry]:
        self._record("search_global", query)
        return list(self.search_results)

    def is_network_available(self) -> bool:
        self._record("is_network_available")
        return self.network

    def get_bandwidth(self) -> BandwidthStats:
        self._record("get_bandwidth")
        return self.bandwidth

    def close(self) -> None:
        pass


class ScriptedPrompter:
    """Prompter with queued answers; records everything it was asked."""

    def __init__(self) -> None:
        self.confirm_answers: List[bool] = []
        self.save_paths: List[Optional[str]] = []
        self.directory: Optional[str] = "/downloads"
        self.open_files: List[str] = []
        self.confirms: List[Tuple[str, str]] = []
        self.notifications: List[Tuple[str, str]] = []

    def confirm(self, title: str, message: str, confirm_text: str = "OK") -> bool:
        self.confirms.append((title, confirm_text))
        if self.confirm_answers:
            return self.confirm_answers.pop(0)
        return True

    def ask_save_path(self, default_name: str) -> Optional[str]:
        if self.save_paths:
            return self.save_paths.pop(0)
        return f"/downloads/{default_name}"

    def ask_directory(self, title: str) -> Optional[str]:
        return self.directory

    def ask_open_files(self, title: str) -> List[str]:
        return list(self.open_files)

    def notify(self, message: str, level: str = "info") -> None:
        self.notifications.append((message, level))

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [m for m, lvl in self.notifications if level is None or lvl == level]


class _Handle:
    def __init__(self, scheduler: "ManualScheduler", due: int, fn: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.due = due
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by ``advance(ms)`` instead of a real clock."""

    def __init__(self) -> None:
        self.now = 0
        self.handles: List[_Handle] = []

    def call_later(self, delay_ms: int, fn: Callable[[], None]) -> _Handle:
        handle = _Handle(self, self.now + delay_ms, fn)
        self.handles.append(handle)
        return handle

    def pending(self) -> List[_Handle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, ms: int) -> None:
        target = self.now + ms
        while True:
            due = sorted((h for h in self.pending() if h.due <= target), key=lambda h: h.due)
            if not due:
                break
            handle = due[0]
            self.handles.remove(handle)
            self.now = handle.due
            handle.fn()
        self.now = target


class DeferredRunner:
    """Runner that holds tasks until the test releases them."""

    def __init__(self) -> None:
        self.tasks: List[tuple] = []

    def run(self, fn, on_result=None, on_error=None, on_finished=None) -> None:
        self.tasks.append((fn, on_result, on_error, on_finished))

    def run_next(self) -> None:
        fn, on_result, on_error, on_finished = self.tasks.pop(0)
        InlineRunner().run(fn, on_result=on_result, on_error=on_error, on_finished=on_finished)

    def run_all(self) -> None:
        while self.tasks:
            self.run_next()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def prompter():
    return ScriptedPrompter()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def runner():
    return InlineRunner()


@pytest.fixture
def deferred():
    return DeferredRunner()


@pytest.fixture
def store(tmp_path):
    return ConfigStore.load(str(tmp_path / "config.json"))


@pytest.fixture
def signed_in_store(store):
    store.set(KEY_API_ID, "12345")
    store.save()
    return store


@pytest.fixture(scope="session")
def qapp():
    """Offscreen QApplication shared by widget tests."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    widgets = pytest.importorskip("PySide6.QtWidgets")
    app = widgets.QApplication.instance() or widgets.QApplication([])
    yield app
