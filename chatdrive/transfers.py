"""Sequential upload and download queues.

Each queue runs at most one transfer at a time and starts pending items in
insertion order. Only pending items are persisted, so work that was in flight
when the process stopped is not restored.
"""
import dataclasses
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .errors import describe
from .listing import FolderListings
from .models import DownloadItem, FolderId, TransferStatus, UploadItem
from .prompts import Prompter
from .session_store import KEY_PENDING_DOWNLOADS, KEY_PENDING_UPLOADS, ConfigStore
from .utils import get_logger

QueueListener = Callable[["TransferQueue"], None]


class TransferQueue:
    store_key = ""
    item_type: Any = None
    cleared_statuses: Tuple[TransferStatus, ...] = (TransferStatus.SUCCESS,)

    def __init__(
        self,
        gateway: Any,
        store: ConfigStore,
        runner: Any,
        prompter: Optional[Prompter] = None,
        listings: Optional[FolderListings] = None,
        autostart: bool = True,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.runner = runner
        self.prompter = prompter
        self.listings = listings
        self.logger = get_logger(f"chatdrive.{self.direction}")
        self._listeners: List[QueueListener] = []
        self._ticking = False
        self._retick = False
        self._paused = not autostart
        self._items: Tuple[Any, ...] = tuple(self._load_pending())
        if self._items:
            self.logger.info("Restored %d pending %s(s)", len(self._items), self.direction)
        self._tick()

    @property
    def direction(self) -> str:
        return self.store_key.replace("pending_", "").rstrip("s") or "transfer"

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        """Stop starting new items; a transfer already in flight still completes."""
        if not self._paused:
            self.logger.debug("Pausing %s queue", self.direction)
        self._paused = True

    def resume(self) -> None:
        if self._paused:
            self.logger.debug("Resuming %s queue", self.direction)
        self._paused = False
        self._tick()

    @property
    def items(self) -> Tuple[Any, ...]:
        return self._items

    def in_flight(self) -> Optional[Any]:
        return next((i for i in self._items if i.status == TransferStatus.IN_FLIGHT), None)

    def pending(self) -> List[Any]:
        return [i for i in self._items if i.status == TransferStatus.PENDING]

    def active_count(self) -> int:
        return sum(1 for i in self._items if not i.status.finished)

    def get(self, item_id: str) -> Optional[Any]:
        return next((i for i in self._items if i.id == item_id), None)

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def enqueue(self, item: Any) -> Any:
        return self.enqueue_many([item])[0]

    def enqueue_many(self, items: Iterable[Any]) -> List[Any]:
        added = [dataclasses.replace(i, status=TransferStatus.PENDING, error=None) for i in items]
        if not added:
            return []
        self._items = self._items + tuple(added)
        self.logger.debug("Queued %d %s(s)", len(added), self.direction)
        self._changed()
        return added

    def complete_item(self, item_id: str, error: Optional[str] = None) -> None:
        item = self.get(item_id)
        if item is None:
            self.logger.debug("Ignoring completion for unknown item id=%s", item_id)
            return
        if error is None:
            self._replace(item_id, status=TransferStatus.SUCCESS, error=None)
        else:
            self._replace(item_id, status=TransferStatus.FAILED, error=error)
        self._changed()

    def remove(self, item_id: str) -> None:
        self._items = tuple(i for i in self._items if i.id != item_id)
        self._changed()

    def clear_finished(self) -> int:
        kept = tuple(i for i in self._items if i.status not in self.cleared_statuses)
        removed = len(self._items) - len(kept)
        if removed:
            self._items = kept
            self._changed()
        return removed

    def _replace(self, item_id: str, **changes: Any) -> None:
        self._items = tuple(
            dataclasses.replace(i, **changes) if i.id == item_id else i for i in self._items
        )

    def _load_pending(self) -> List[Any]:
        items = []
        for row in self.store.get(self.store_key) or []:
            try:
                items.append(self.item_type.from_dict(row))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                self.logger.warning("Dropping malformed queued %s %r: %s", self.direction, row, exc)
        return items

    def _persist(self) -> None:
        self.store.set(self.store_key, [i.to_dict() for i in self.pending()])
        self.store.save()

    def _commit(self) -> None:
        self._persist()
        for listener in list(self._listeners):
            listener(self)

    def _changed(self) -> None:
        self._commit()
        self._tick()

    def _tick(self) -> None:
        if self._paused:
            return
        # Inline completions re-enter here; flatten them into this loop.
        if self._ticking:
            self._retick = True
            return
        self._ticking = True
        try:
            self._retick = True
            while self._retick:
                self._retick = False
                if self._paused or self.in_flight() is not None:
                    continue
                pending = self.pending()
                if not pending:
                    continue
                self._start(pending[0])
        finally:
            self._ticking = False

    def _start(self, item: Any) -> None:
        self._replace(item.id, status=TransferStatus.IN_FLIGHT)
        self._commit()
        current = self.get(item.id)
        if current is None:
            return
        self.logger.debug("Starting %s id=%s", self.direction, item.id)
        self._execute(current)

    def _execute(self, item: Any) -> None:
        raise NotImplementedError

    def _notify_user(self, message: str, level: str = "info") -> None:
        if self.prompter:
            self.prompter.notify(message, level)


class UploadQueue(TransferQueue):
    store_key = KEY_PENDING_UPLOADS
    item_type = UploadItem

    def enqueue_paths(self, paths: Iterable[str], folder_id: FolderId) -> List[UploadItem]:
        return self.enqueue_many(UploadItem(source_path=p, target_folder=folder_id) for p in paths if p)

    def _execute(self, item: UploadItem) -> None:
        def done(_result: Any) -> None:
            self.complete_item(item.id)
            self.logger.info("Uploaded %s", item.source_path)
            if self.listings:
                self.listings.invalidate(item.target_folder)

        def err(exc: Exception) -> None:
            self.logger.warning("Upload failed %s: %s", item.source_path, exc)
            self.complete_item(item.id, error=describe(exc))
            self._notify_user(f"Upload failed for {item.display_name}: {describe(exc)}", "error")

        self.runner.run(
            lambda: self.gateway.upload_file(item.source_path, item.target_folder),
            on_result=done,
            on_error=err,
        )


class DownloadQueue(TransferQueue):
    store_key = KEY_PENDING_DOWNLOADS
    item_type = DownloadItem
    cleared_statuses = (TransferStatus.SUCCESS, TransferStatus.FAILED)

    def queue_download(
        self,
        remote_item_id: int,
        display_name: str,
        folder_id: FolderId,
        save_path: Optional[str] = None,
    ) -> DownloadItem:
        return self.enqueue(
            DownloadItem(
                remote_item_id=remote_item_id,
                display_name=display_name,
                target_folder=folder_id,
                save_path=save_path,
            )
        )

    def _execute(self, item: DownloadItem) -> None:
        save_path = item.save_path
        if not save_path and self.prompter:
            try:
                save_path = self.prompter.ask_save_path(item.display_name)
            except Exception as exc:
                self.logger.warning("Destination prompt failed for %s: %s", item.display_name, exc)
                self.complete_item(item.id, error=describe(exc))
                self._notify_user(f"Download failed: {item.display_name}", "error")
                return
        if not save_path:
            self.logger.info("Download of %s cancelled at destination prompt", item.display_name)
            self.remove(item.id)
            return
        if save_path != item.save_path:
            self._replace(item.id, save_path=save_path)
            self._commit()

        def done(_result: Any) -> None:
            self.complete_item(item.id)
            self.logger.info("Downloaded %s -> %s", item.display_name, save_path)
            self._notify_user(f"Downloaded: {item.display_name}")

        def err(exc: Exception) -> None:
            self.logger.warning("Download failed %s: %s", item.display_name, exc)
            self.complete_item(item.id, error=describe(exc))
            self._notify_user(f"Download failed: {item.display_name}", "error")

        self.runner.run(
            lambda: self.gateway.download_file(item.remote_item_id, save_path, item.target_folder),
            on_result=done,
            on_error=err,
        )
