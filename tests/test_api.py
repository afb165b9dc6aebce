"""
Tests for the command client and gateway.

Verifies that:
- Commands are posted to their routes with camelCase arguments
- Reply envelopes are unwrapped into models
- Failures map onto the error taxonomy
- Secrets never reach the command log
"""

import json

import httpx
import pytest

from chatdrive.api import CommandGateway
from chatdrive.client import CommandClient
from chatdrive.errors import (
    BackendError,
    NetworkError,
    NotFoundError,
    UnauthorizedError,
    as_dict,
    error_from_payload,
)
from chatdrive.models import BandwidthStats, FileEntry, Folder


def ok(data=None):
    return httpx.Response(200, json={"ok": True, "data": data})


def fail(code=None, message="boom", status=200):
    error = {"message": message}
    if code:
        error["code"] = code
    return httpx.Response(status, json={"ok": False, "error": error})


class Backend:
    """Mock transport handler keyed by command name."""

    def __init__(self):
        self.replies = {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        command = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content or b"{}")
        self.requests.append((command, body))
        reply = self.replies.get(command, ok())
        if isinstance(reply, Exception):
            raise reply
        return reply

    def last(self):
        return self.requests[-1]


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
def api(backend, tmp_path):
    client = CommandClient(
        base_url="http://bridge.test",
        timeout=5,
        transport=httpx.MockTransport(backend),
        log_path=str(tmp_path / "commands.log"),
    )
    gateway = CommandGateway(client)
    yield gateway
    gateway.close()


class TestCommandRoutes:
    """Tests for request shapes."""

    def test_connect(self, api, backend):
        api.connect(123)

        assert backend.last() == ("cmd_connect", {"apiId": 123})

    def test_move_files(self, api, backend):
        api.move_files([1, 2], None, 9)

        assert backend.last() == (
            "cmd_move_files",
            {"messageIds": [1, 2], "sourceFolderId": None, "targetFolderId": 9},
        )

    def test_download_file(self, api, backend):
        api.download_file(5, "/tmp/a.bin", 3)

        assert backend.last() == ("cmd_download_file", {"messageId": 5, "savePath": "/tmp/a.bin", "folderId": 3})

    def test_client_headers(self, backend, tmp_path):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return ok()

        client = CommandClient(
            base_url="http://bridge.test",
            transport=httpx.MockTransport(handler),
            log_path=str(tmp_path / "c.log"),
        )
        client.request("POST", "/invoke/cmd_logout", json={})
        client.close()

        assert seen["x-client"] == "chatdrive"
        assert seen["accept"] == "application/json"


class TestReplies:
    """Tests for unwrapping reply data."""

    def test_list_files(self, api, backend):
        backend.replies["cmd_get_files"] = ok([
            {"id": 10, "name": "a.txt", "size": 42, "folder_id": 3, "mime_type": "text/plain"},
            {"id": "11", "name": "sub", "type": "folder"},
        ])

        entries = api.list_files(3)

        assert entries[0] == FileEntry(id=10, name="a.txt", size=42, folder_id=3, mime_type="text/plain")
        assert entries[1].id == 11
        assert entries[1].is_folder

    def test_scan_folders(self, api, backend):
        backend.replies["cmd_scan_folders"] = ok([{"id": 1, "name": "A"}, {"id": 2, "name": "B", "parent_id": 1}])

        assert api.scan_folders() == [Folder(1, "A"), Folder(2, "B", parent_id=1)]

    def test_create_folder(self, api, backend):
        backend.replies["cmd_create_folder"] = ok({"id": 77, "name": "New"})

        assert api.create_folder("New") == Folder(77, "New")
        assert backend.last() == ("cmd_create_folder", {"name": "New"})

    def test_create_folder_bad_reply(self, api, backend):
        backend.replies["cmd_create_folder"] = ok("done")

        with pytest.raises(BackendError):
            api.create_folder("New")

    def test_network_available(self, api, backend):
        backend.replies["cmd_is_network_available"] = ok(False)

        assert api.is_network_available() is False

    def test_bandwidth(self, api, backend):
        backend.replies["cmd_get_bandwidth"] = ok(
            {"up_bytes": 100, "down_bytes": 50, "date": "2026-01-02", "limit_bytes": 1000}
        )

        stats = api.get_bandwidth()

        assert stats == BandwidthStats(up_bytes=100, down_bytes=50, date="2026-01-02", limit_bytes=1000)
        assert stats.remaining_bytes == 850


class TestErrors:
    """Tests for failure classification."""

    def test_structured_not_found(self, api, backend):
        backend.replies["cmd_delete_folder"] = fail("not_found", "Folder missing")

        with pytest.raises(NotFoundError) as info:
            api.delete_folder(5)
        assert info.value.message == "Folder missing"

    def test_not_found_message_fallback(self):
        err = error_from_payload({"ok": False, "error": {"message": "Chat NOT FOUND"}})

        assert isinstance(err, NotFoundError)

    def test_plain_string_error(self):
        err = error_from_payload({"ok": False, "error": "Something broke"})

        assert type(err) is BackendError
        assert err.message == "Something broke"

    def test_unauthorized(self, api, backend):
        backend.replies["cmd_get_files"] = fail("unauthorized", "Session expired", status=401)

        with pytest.raises(UnauthorizedError):
            api.list_files(None)

    def test_http_error_without_envelope(self, api, backend):
        backend.replies["cmd_logout"] = httpx.Response(500, text="internal")

        with pytest.raises(BackendError) as info:
            api.logout()
        assert info.value.code == "http_500"

    def test_transport_error(self, api, backend):
        backend.replies["cmd_connect"] = httpx.ConnectError("refused")

        with pytest.raises(NetworkError):
            api.connect(1)

    def test_non_json_reply(self, api, backend):
        backend.replies["cmd_logout"] = httpx.Response(200, text="<html>")

        with pytest.raises(BackendError):
            api.logout()

    def test_as_dict(self):
        assert as_dict(NotFoundError("gone")) == {"code": "not_found", "message": "gone"}


class TestCommandLog:
    """Tests for the command log."""

    def test_secrets_redacted(self, backend, tmp_path):
        log_path = tmp_path / "commands.log"
        client = CommandClient(
            base_url="http://bridge.test",
            transport=httpx.MockTransport(backend),
            log_path=str(log_path),
        )
        client.request("POST", "/invoke/cmd_connect", json={"apiId": 1, "apiHash": "s3cret"})
        client.close()

        text = log_path.read_text(encoding="utf-8")
        assert "cmd_connect" in text
        assert "s3cret" not in text
