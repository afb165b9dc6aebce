import os
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .errors import describe
from .listing import FolderListings
from .models import FileEntry, FolderId
from .prompts import Prompter
from .selection import SelectionSet
from .transfers import DownloadQueue, UploadQueue
from .utils import get_logger


@dataclass
class BulkResult:
    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


BulkCallback = Optional[Callable[[BulkResult], None]]


class FileOperations:
    def __init__(
        self,
        gateway: Any,
        runner: Any,
        prompter: Prompter,
        selection: SelectionSet,
        listings: FolderListings,
        active_folder: Callable[[], FolderId],
        uploads: Optional[UploadQueue] = None,
        downloads: Optional[DownloadQueue] = None,
        describe_failure: Callable[[BaseException], str] = describe,
    ) -> None:
        self.gateway = gateway
        self.runner = runner
        self.prompter = prompter
        self.selection = selection
        self.listings = listings
        self.active_folder = active_folder
        self.uploads = uploads
        self.downloads = downloads
        self.describe_failure = describe_failure
        self.logger = get_logger("chatdrive.operations")

    def _entries_by_id(self, folder_id: FolderId) -> dict:
        return {e.id: e for e in self.listings.get(folder_id)}

    def delete(self, remote_id: int, on_done: Optional[Callable[[bool], None]] = None) -> bool:
        if not self.prompter.confirm("Delete File", "Are you sure you want to delete this file?", "Delete"):
            return False
        folder_id = self.active_folder()

        def done(_result: Any) -> None:
            self.listings.invalidate(folder_id)
            self.prompter.notify("File deleted")
            if on_done:
                on_done(True)

        def err(exc: Exception) -> None:
            self.logger.warning("Delete %s failed: %s", remote_id, exc)
            self.prompter.notify(f"Delete failed: {self.describe_failure(exc)}", "error")
            if on_done:
                on_done(False)

        self.runner.run(lambda: self.gateway.delete_file(remote_id, folder_id), on_result=done, on_error=err)
        return True

    def download(self, remote_id: int, name: str, on_done: Optional[Callable[[bool], None]] = None) -> bool:
        save_path = self.prompter.ask_save_path(name)
        if not save_path:
            return False
        folder_id = self.active_folder()
        self.prompter.notify(f"Download started: {name}")

        def done(_result: Any) -> None:
            self.listings.invalidate(folder_id)
            self.prompter.notify(f"Download complete: {name}")
            if on_done:
                on_done(True)

        def err(exc: Exception) -> None:
            self.logger.warning("Download %s failed: %s", remote_id, exc)
            self.prompter.notify(f"Download failed: {self.describe_failure(exc)}", "error")
            if on_done:
                on_done(False)

        self.runner.run(
            lambda: self.gateway.download_file(remote_id, save_path, folder_id), on_result=done, on_error=err
        )
        return True

    def bulk_delete(self, on_done: BulkCallback = None) -> bool:
        ids = self.selection.ids()
        if not ids:
            return False
        if not self.prompter.confirm(
            "Delete Files", f"Are you sure you want to delete {len(ids)} files?", "Delete All"
        ):
            return False
        folder_id = self.active_folder()

        def work() -> BulkResult:
            result = BulkResult()
            for remote_id in ids:
                try:
                    self.gateway.delete_file(remote_id, folder_id)
                except Exception as exc:
                    self.logger.warning("Delete %s failed: %s", remote_id, exc)
                    result.failed += 1
                else:
                    result.succeeded += 1
            return result

        def done(result: BulkResult) -> None:
            self.listings.invalidate(folder_id)
            if result.succeeded > 0:
                self.prompter.notify(f"Deleted {result.succeeded} files.")
            if result.failed > 0:
                self.prompter.notify(f"Failed to delete {result.failed} files.", "error")
            if on_done:
                on_done(result)

        self.runner.run(work, on_result=done, on_finished=self.selection.clear)
        return True

    def bulk_download(self, on_done: BulkCallback = None) -> bool:
        ids = self.selection.ids()
        if not ids:
            return False
        dir_path = self.prompter.ask_directory("Select Download Destination")
        if not dir_path:
            return False
        folder_id = self.active_folder()
        known = self._entries_by_id(folder_id)
        entries = [known.get(i) or FileEntry(id=i, name=str(i)) for i in ids]
        self.prompter.notify(f"Starting batch download of {len(entries)} files...")
        self._download_all(entries, dir_path, folder_id, on_done, finished=self.selection.clear)
        return True

    def download_folder(self, on_done: BulkCallback = None) -> bool:
        folder_id = self.active_folder()
        entries = [e for e in self.listings.get(folder_id) if not e.is_folder]
        if not entries:
            self.prompter.notify("Folder is empty.")
            return False
        dir_path = self.prompter.ask_directory("Download Folder To...")
        if not dir_path:
            return False
        self.prompter.notify(f"Downloading folder contents ({len(entries)} files)...")
        self._download_all(entries, dir_path, folder_id, on_done)
        return True

    def _download_all(
        self,
        entries: List[FileEntry],
        dir_path: str,
        folder_id: FolderId,
        on_done: BulkCallback,
        finished: Optional[Callable[[], None]] = None,
    ) -> None:
        def work() -> BulkResult:
            result = BulkResult()
            for entry in entries:
                try:
                    self.gateway.download_file(entry.id, os.path.join(dir_path, entry.name), folder_id)
                except Exception as exc:
                    self.logger.warning("Download %s failed: %s", entry.name, exc)
                    result.failed += 1
                else:
                    result.succeeded += 1
            return result

        def done(result: BulkResult) -> None:
            self.prompter.notify(f"Downloaded {result.succeeded} files.")
            if result.failed > 0:
                self.prompter.notify(f"Failed to download {result.failed} files.", "error")
            if on_done:
                on_done(result)

        self.runner.run(work, on_result=done, on_finished=finished)

    def queue_bulk_download(self) -> int:
        ids = self.selection.ids()
        if not ids or self.downloads is None:
            return 0
        dir_path = self.prompter.ask_directory("Select Download Destination")
        if not dir_path:
            return 0
        folder_id = self.active_folder()
        known = self._entries_by_id(folder_id)
        for remote_id in ids:
            name = known[remote_id].name if remote_id in known else str(remote_id)
            self.downloads.queue_download(remote_id, name, folder_id, save_path=os.path.join(dir_path, name))
        self.prompter.notify(f"Queued {len(ids)} files for download")
        return len(ids)

    def upload_files(self) -> int:
        if self.uploads is None:
            return 0
        paths = self.prompter.ask_open_files("Select files to upload")
        if not paths:
            return 0
        items = self.uploads.enqueue_paths(paths, self.active_folder())
        self.prompter.notify(f"Queued {len(items)} files for upload")
        return len(items)

    def upload_dropped(self, paths: List[str]) -> int:
        if self.uploads is None or not paths:
            return 0
        items = self.uploads.enqueue_paths(paths, self.active_folder())
        self.prompter.notify(f"Queued {len(items)} dropped files")
        return len(items)
