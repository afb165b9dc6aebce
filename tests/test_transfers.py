"""
Tests for the upload and download queues.

Verifies that:
- At most one item per queue is in flight
- Items start in insertion order
- Only pending items survive a restart
- A paused queue starts nothing until resumed
- Failures free the slot and are kept until cleared
- A declined save prompt removes the download without a backend call
"""

from unittest.mock import Mock

from chatdrive.errors import BackendError
from chatdrive.listing import FolderListings
from chatdrive.models import DownloadItem, TransferStatus, UploadItem
from chatdrive.session_store import KEY_PENDING_DOWNLOADS, KEY_PENDING_UPLOADS, ConfigStore
from chatdrive.transfers import DownloadQueue, UploadQueue


def statuses(queue):
    return [i.status for i in queue.items]


class TestUploadQueueOrdering:
    """Tests for sequential FIFO draining."""

    def test_single_in_flight(self, gateway, store, deferred, prompter):
        """Three queued uploads never have more than one in flight."""
        queue = UploadQueue(gateway, store, deferred, prompter)
        queue.enqueue_paths(["/a.txt", "/b.txt", "/c.txt"], None)

        assert statuses(queue) == [TransferStatus.IN_FLIGHT, TransferStatus.PENDING, TransferStatus.PENDING]
        assert len(deferred.tasks) == 1

        deferred.run_next()
        assert statuses(queue) == [TransferStatus.SUCCESS, TransferStatus.IN_FLIGHT, TransferStatus.PENDING]
        assert len(deferred.tasks) == 1

        deferred.run_all()
        assert statuses(queue) == [TransferStatus.SUCCESS] * 3

    def test_fifo_order(self, gateway, store, runner, prompter):
        """Backend sees uploads in the order they were queued."""
        queue = UploadQueue(gateway, store, runner, prompter)
        queue.enqueue_paths(["/a.txt", "/b.txt"], 7)
        queue.enqueue_paths(["/c.txt"], None)

        assert gateway.calls_to("upload_file") == [("/a.txt", 7), ("/b.txt", 7), ("/c.txt", None)]
        assert queue.active_count() == 0

    def test_enqueue_while_in_flight_waits(self, gateway, store, deferred, prompter):
        """An item queued during a transfer starts only after it completes."""
        queue = UploadQueue(gateway, store, deferred, prompter)
        queue.enqueue_paths(["/a.txt"], None)
        queue.enqueue_paths(["/b.txt"], None)

        assert queue.in_flight().source_path == "/a.txt"
        deferred.run_next()
        assert queue.in_flight().source_path == "/b.txt"

    def test_enqueue_forces_pending(self, gateway, store, deferred):
        """Items handed in with another status are queued as pending."""
        queue = UploadQueue(gateway, store, deferred)
        queue.enqueue(UploadItem(source_path="/x", status=TransferStatus.SUCCESS))

        assert queue.items[0].status == TransferStatus.IN_FLIGHT


class TestUploadQueueFailures:
    """Tests for failure handling."""

    def test_failure_frees_slot(self, gateway, store, runner, prompter):
        """A failed upload is marked failed and the next one still runs."""
        gateway.failures["upload_file"] = lambda path, _folder: BackendError("disk full") if path == "/a.txt" else None
        queue = UploadQueue(gateway, store, runner, prompter)
        queue.enqueue_paths(["/a.txt", "/b.txt"], None)

        first, second = queue.items
        assert first.status == TransferStatus.FAILED
        assert first.error == "disk full"
        assert second.status == TransferStatus.SUCCESS
        assert "Upload failed for a.txt: disk full" in prompter.messages("error")

    def test_clear_finished_keeps_failed_uploads(self, gateway, store, runner):
        """Clearing uploads removes successes only."""
        gateway.failures["upload_file"] = lambda path, _folder: BackendError("nope") if path == "/b" else None
        queue = UploadQueue(gateway, store, runner)
        queue.enqueue_paths(["/a", "/b"], None)

        assert queue.clear_finished() == 1
        assert [i.source_path for i in queue.items] == ["/b"]

    def test_success_invalidates_target_listing(self, gateway, store, runner):
        """A finished upload marks its folder listing stale."""
        listings = FolderListings(gateway, runner)
        listings.put(5, [])
        queue = UploadQueue(gateway, store, runner, listings=listings)
        queue.enqueue_paths(["/a"], 5)

        assert listings.is_stale(5)

    def test_late_completion_for_unknown_item_ignored(self, gateway, store, deferred):
        """Completing an id that is no longer queued changes nothing."""
        queue = UploadQueue(gateway, store, deferred)
        queue.complete_item("missing")

        assert queue.items == ()


class TestQueuePersistence:
    """Tests for restart behaviour."""

    def test_only_pending_items_persisted(self, gateway, store, deferred, tmp_path):
        """Two pending, one in flight and one done restore as two pending."""
        queue = UploadQueue(gateway, store, deferred)
        queue.enqueue_paths(["/done"], None)
        deferred.run_next()
        queue.enqueue_paths(["/flying", "/p1", "/p2"], None)

        assert statuses(queue) == [
            TransferStatus.SUCCESS,
            TransferStatus.IN_FLIGHT,
            TransferStatus.PENDING,
            TransferStatus.PENDING,
        ]
        saved = ConfigStore.load(store.path).get(KEY_PENDING_UPLOADS)
        assert [row["source_path"] for row in saved] == ["/p1", "/p2"]

        restored = UploadQueue(gateway, ConfigStore.load(store.path), DeferredHold())
        assert [i.source_path for i in restored.items] == ["/p1", "/p2"]

    def test_restored_items_resume(self, gateway, store, runner):
        """Pending uploads left by a previous run start on construction."""
        store.set(KEY_PENDING_UPLOADS, [{"id": "abc", "source_path": "/left.txt", "target_folder": 3}])

        queue = UploadQueue(gateway, store, runner)

        assert gateway.calls_to("upload_file") == [("/left.txt", 3)]
        assert queue.get("abc").status == TransferStatus.SUCCESS

    def test_paused_queue_holds_restored_items(self, gateway, store, runner):
        """A queue built paused starts nothing until resumed."""
        store.set(KEY_PENDING_UPLOADS, [{"id": "abc", "source_path": "/left.txt", "target_folder": 3}])

        queue = UploadQueue(gateway, store, runner, autostart=False)
        queue.enqueue_paths(["/new.txt"], 3)

        assert gateway.calls_to("upload_file") == []
        assert statuses(queue) == [TransferStatus.PENDING, TransferStatus.PENDING]

        queue.resume()

        assert gateway.calls_to("upload_file") == [("/left.txt", 3), ("/new.txt", 3)]

    def test_pause_lets_in_flight_finish(self, gateway, store, deferred):
        """Pausing keeps the running transfer but holds the rest."""
        queue = UploadQueue(gateway, store, deferred)
        queue.enqueue_paths(["/a", "/b"], None)

        queue.pause()
        deferred.run_all()

        assert statuses(queue) == [TransferStatus.SUCCESS, TransferStatus.PENDING]
        assert deferred.tasks == []

    def test_malformed_rows_dropped(self, gateway, store, deferred):
        """Unreadable rows in the store are skipped."""
        store.set(KEY_PENDING_DOWNLOADS, [{"display_name": "no id"}, {"remote_item_id": 4, "display_name": "ok"}])

        queue = DownloadQueue(gateway, store, deferred)

        assert [i.remote_item_id for i in queue.items] == [4]


class DeferredHold:
    """Runner that never runs anything."""

    def run(self, fn, on_result=None, on_error=None, on_finished=None):
        pass


class TestDownloadQueue:
    """Tests for download-specific behaviour."""

    def test_download_prompts_for_destination(self, gateway, store, runner, prompter):
        """The save path is asked when the item goes in flight."""
        prompter.save_paths = ["/tmp/report.pdf"]
        queue = DownloadQueue(gateway, store, runner, prompter)
        queue.queue_download(11, "report.pdf", 2)

        assert gateway.calls_to("download_file") == [(11, "/tmp/report.pdf", 2)]
        assert queue.items[0].status == TransferStatus.SUCCESS
        assert queue.items[0].save_path == "/tmp/report.pdf"
        assert "Downloaded: report.pdf" in prompter.messages()

    def test_declined_destination_removes_item(self, gateway, store, runner, prompter):
        """Cancelling the save prompt removes the item without a backend call."""
        prompter.save_paths = [None, "/tmp/b.bin"]
        queue = DownloadQueue(gateway, store, runner, prompter)
        queue.queue_download(1, "a.bin", None)
        queue.queue_download(2, "b.bin", None)

        assert [i.remote_item_id for i in queue.items] == [2]
        assert gateway.calls_to("download_file") == [(2, "/tmp/b.bin", None)]

    def test_preset_save_path_skips_prompt(self, gateway, store, runner, prompter):
        """Items with a known destination never prompt."""
        prompter.save_paths = [None]
        queue = DownloadQueue(gateway, store, runner, prompter)
        queue.queue_download(9, "x.zip", None, save_path="/out/x.zip")

        assert gateway.calls_to("download_file") == [(9, "/out/x.zip", None)]
        assert prompter.save_paths == [None]

    def test_failed_download_kept_until_cleared(self, gateway, store, runner, prompter):
        """A failed download stays visible; clearing removes done and failed."""
        gateway.failures["download_file"] = lambda rid, _p, _f: BackendError("gone") if rid == 1 else None
        queue = DownloadQueue(gateway, store, runner, prompter)
        queue.queue_download(1, "a", None)
        queue.queue_download(2, "b", None)

        assert statuses(queue) == [TransferStatus.FAILED, TransferStatus.SUCCESS]
        assert queue.items[0].error == "gone"
        assert "Download failed: a" in prompter.messages("error")
        assert queue.clear_finished() == 2
        assert queue.items == ()

    def test_download_item_round_trips_save_path(self):
        """Preset destinations survive persistence."""
        item = DownloadItem(remote_item_id=3, display_name="c", save_path="/d/c")

        assert DownloadItem.from_dict(item.to_dict()).save_path == "/d/c"

    def test_destination_prompt_error_fails_item(self, gateway, store, runner):
        """A broken save dialog fails that item and the queue moves on."""
        prompter = Mock()
        prompter.ask_save_path.side_effect = [OSError("dialog crashed"), "/out/b.bin"]
        queue = DownloadQueue(gateway, store, runner, prompter)
        queue.queue_download(1, "a.bin", None)
        queue.queue_download(2, "b.bin", None)

        assert statuses(queue) == [TransferStatus.FAILED, TransferStatus.SUCCESS]
        assert queue.items[0].error == "dialog crashed"
        assert gateway.calls_to("download_file") == [(2, "/out/b.bin", None)]
