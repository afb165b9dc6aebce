import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

FolderId = Optional[int]

ROOT_FOLDER_NAME = "Saved Messages"


def new_item_id() -> str:
    return uuid.uuid4().hex[:9]


def _opt_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


@dataclass
class FileEntry:
    id: int
    name: str
    size: int = 0
    folder_id: FolderId = None
    mime_type: Optional[str] = None
    file_ext: Optional[str] = None
    created_at: Optional[str] = None
    icon_type: str = "file"

    @property
    def is_folder(self) -> bool:
        return self.icon_type == "folder"

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "FileEntry":
        return cls(
            id=int(row.get("id")),
            name=row.get("name") or "",
            size=int(row.get("size") or 0),
            folder_id=_opt_int(row.get("folder_id")),
            mime_type=row.get("mime_type"),
            file_ext=row.get("file_ext"),
            created_at=row.get("created_at"),
            icon_type=row.get("icon_type") or row.get("type") or "file",
        )


@dataclass
class Folder:
    id: int
    name: str
    parent_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"id": self.id, "name": self.name}
        if self.parent_id is not None:
            d["parent_id"] = self.parent_id
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        return cls(
            id=int(data.get("id")),
            name=data.get("name") or "",
            parent_id=_opt_int(data.get("parent_id")),
        )


@dataclass
class BandwidthStats:
    up_bytes: int
    down_bytes: int
    date: str = ""
    limit_bytes: int = 0

    @property
    def total_bytes(self) -> int:
        return self.up_bytes + self.down_bytes

    @property
    def remaining_bytes(self) -> int:
        if self.limit_bytes <= 0:
            return 0
        return max(self.limit_bytes - self.total_bytes, 0)


class TransferStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self in (TransferStatus.SUCCESS, TransferStatus.FAILED)


@dataclass(frozen=True)
class UploadItem:
    source_path: str
    target_folder: FolderId = None
    id: str = field(default_factory=new_item_id)
    status: TransferStatus = TransferStatus.PENDING
    error: Optional[str] = None

    @property
    def display_name(self) -> str:
        return os.path.basename(self.source_path) or self.source_path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_path": self.source_path,
            "target_folder": self.target_folder,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadItem":
        return cls(
            source_path=str(data["source_path"]),
            target_folder=_opt_int(data.get("target_folder")),
            id=str(data.get("id") or new_item_id()),
        )


@dataclass(frozen=True)
class DownloadItem:
    remote_item_id: int
    display_name: str
    target_folder: FolderId = None
    save_path: Optional[str] = None
    id: str = field(default_factory=new_item_id)
    status: TransferStatus = TransferStatus.PENDING
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "remote_item_id": self.remote_item_id,
            "display_name": self.display_name,
            "target_folder": self.target_folder,
        }
        if self.save_path:
            d["save_path"] = self.save_path
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DownloadItem":
        return cls(
            remote_item_id=int(data["remote_item_id"]),
            display_name=str(data.get("display_name") or data["remote_item_id"]),
            target_folder=_opt_int(data.get("target_folder")),
            save_path=data.get("save_path") or None,
            id=str(data.get("id") or new_item_id()),
        )
