from typing import Any, Dict, List, Optional, Sequence

import httpx

from endpoints import FILES, FOLDERS, SESSION, STATUS
from .client import CommandClient
from .errors import BackendError, NetworkError, error_from_payload
from .models import BandwidthStats, FileEntry, Folder, FolderId


def _data_or_raise(resp: httpx.Response) -> Any:
    try:
        payload = resp.json()
    except ValueError as exc:
        raise BackendError(f"Non-JSON response: {resp.text[:200]}") from exc
    if not isinstance(payload, dict):
        raise BackendError(f"Unexpected response: {payload!r}")
    if not payload.get("ok", False):
        raise error_from_payload(payload)
    return payload.get("data")


def _error_from_status(exc: httpx.HTTPStatusError) -> BackendError:
    resp = exc.response
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and "error" in payload:
        return error_from_payload(payload)
    return BackendError(f"HTTP {resp.status_code}: {resp.text[:200]}", code=f"http_{resp.status_code}")


class CommandGateway:
    def __init__(self, client: CommandClient) -> None:
        self.client = client

    def _call(self, route: Dict[str, str], args: Optional[Dict[str, Any]] = None) -> Any:
        try:
            resp = self.client.request(route["method"], route["path"], json=args or {})
        except httpx.HTTPStatusError as exc:
            raise _error_from_status(exc) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Backend unreachable: {exc}") from exc
        return _data_or_raise(resp)

    def connect(self, api_id: int) -> None:
        self._call(SESSION["connect"], {"apiId": int(api_id)})

    def logout(self) -> None:
        self._call(SESSION["logout"])

    def clean_cache(self) -> None:
        self._call(SESSION["clean_cache"])

    def scan_folders(self) -> List[Folder]:
        rows = self._call(FOLDERS["scan"]) or []
        return [Folder.from_dict(row) for row in rows]

    def create_folder(self, name: str) -> Folder:
        data = self._call(FOLDERS["create"], {"name": name})
        if not isinstance(data, dict):
            raise BackendError(f"Unexpected folder descriptor: {data!r}")
        return Folder.from_dict(data)

    def delete_folder(self, folder_id: int) -> None:
        self._call(FOLDERS["delete"], {"folderId": folder_id})

    def list_files(self, folder_id: FolderId) -> List[FileEntry]:
        rows = self._call(FILES["list"], {"folderId": folder_id}) or []
        return [FileEntry.from_dict(row) for row in rows]

    def upload_file(self, path: str, folder_id: FolderId) -> Any:
        return self._call(FILES["upload"], {"path": path, "folderId": folder_id})

    def download_file(self, remote_id: int, save_path: str, folder_id: FolderId) -> None:
        self._call(FILES["download"], {"messageId": remote_id, "savePath": save_path, "folderId": folder_id})

    def delete_file(self, remote_id: int, folder_id: FolderId) -> None:
        self._call(FILES["delete"], {"messageId": remote_id, "folderId": folder_id})

    def move_files(self, remote_ids: Sequence[int], source_folder_id: FolderId, target_folder_id: FolderId) -> None:
        self._call(
            FILES["move"],
            {
                "messageIds": [int(i) for i in remote_ids],
                "sourceFolderId": source_folder_id,
                "targetFolderId": target_folder_id,
            },
        )

    def search_global(self, query: str) -> List[FileEntry]:
        rows = self._call(FILES["search"], {"query": query}) or []
        return [FileEntry.from_dict(row) for row in rows]

    def is_network_available(self) -> bool:
        return bool(self._call(STATUS["network"]))

    def get_bandwidth(self) -> BandwidthStats:
        data = self._call(STATUS["bandwidth"]) or {}
        return BandwidthStats(
            up_bytes=int(data.get("up_bytes", 0)),
            down_bytes=int(data.get("down_bytes", 0)),
            date=str(data.get("date") or ""),
            limit_bytes=int(data.get("limit_bytes", 0)),
        )

    def close(self) -> None:
        self.client.close()
