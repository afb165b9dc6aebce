import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import Folder, FolderId
from .utils import get_logger

DEFAULT_CONFIG_PATH = ".chatdrive/config.json"
LEGACY_CONFIG_PATH = ".chatdrive/settings.json"

KEY_API_ID = "api_id"
KEY_API_HASH = "api_hash"
KEY_FOLDERS = "folders"
KEY_ACTIVE_FOLDER = "active_folder_id"
KEY_VIEW_MODE = "view_mode"
KEY_PENDING_UPLOADS = "pending_uploads"
KEY_PENDING_DOWNLOADS = "pending_downloads"

VIEW_MODES = ("grid", "list")

_MISSING = object()


class ConfigStore:
    """Persisted key-value store backed by a JSON object on disk.

    Reads and writes are best-effort: failures are logged and the in-memory
    state stays usable.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.logger = get_logger("chatdrive.store")
        self._data: Dict[str, Any] = {}

    @classmethod
    def load(cls, path: str) -> "ConfigStore":
        store = cls(path)
        store.reload()
        return store

    def reload(self) -> None:
        config_path = Path(self.path)
        if not config_path.exists():
            self._data = {}
            return
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self.logger.warning("Could not read %s: %s", self.path, exc)
            self._data = {}
            return
        if not isinstance(data, dict):
            self.logger.warning("Ignoring %s: not a JSON object", self.path)
            data = {}
        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key, _MISSING)
        if value is _MISSING:
            return default
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self._data

    def save(self) -> bool:
        config_path = Path(self.path)
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text(json.dumps(self._data, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
            os.chmod(config_path, 0o600)
        except (OSError, TypeError, ValueError) as exc:
            self.logger.warning("Could not save %s: %s", self.path, exc)
            return False
        return True


def open_config_store(path: Optional[str] = None, legacy_path: Optional[str] = None) -> ConfigStore:
    path = path or os.getenv("CHATDRIVE_CONFIG", DEFAULT_CONFIG_PATH)
    legacy_path = legacy_path or os.getenv("CHATDRIVE_LEGACY_CONFIG", LEGACY_CONFIG_PATH)
    store = ConfigStore.load(path)
    if store.get(KEY_API_ID) or not legacy_path or legacy_path == path:
        return store
    legacy = ConfigStore.load(legacy_path)
    if legacy.get(KEY_API_ID):
        store.logger.info("Using legacy settings file %s", legacy_path)
        return legacy
    return store


class ClientSettings:
    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    @property
    def api_id(self) -> Optional[str]:
        value = self.store.get(KEY_API_ID)
        if value is None or value == "":
            return None
        return str(value)

    def set_credentials(self, api_id: int, api_hash: Optional[str] = None) -> None:
        self.store.set(KEY_API_ID, str(api_id))
        if api_hash:
            self.store.set(KEY_API_HASH, api_hash)
        self.store.save()

    def forget_api_id(self) -> None:
        self.store.delete(KEY_API_ID)
        self.store.save()

    def clear_session(self) -> None:
        for key in (KEY_API_ID, KEY_API_HASH, KEY_FOLDERS):
            self.store.delete(key)
        self.store.save()

    def load_folders(self) -> List[Folder]:
        folders = []
        for row in self.store.get(KEY_FOLDERS) or []:
            try:
                folders.append(Folder.from_dict(row))
            except (AttributeError, TypeError, ValueError) as exc:
                self.store.logger.warning("Skipping malformed cached folder %r: %s", row, exc)
        return folders

    def save_folders(self, folders: List[Folder]) -> None:
        self.store.set(KEY_FOLDERS, [f.to_dict() for f in folders])
        self.store.save()

    @property
    def active_folder_id(self) -> FolderId:
        value = self.store.get(KEY_ACTIVE_FOLDER)
        try:
            return None if value is None else int(value)
        except (TypeError, ValueError):
            return None

    def set_active_folder_id(self, folder_id: FolderId) -> None:
        self.store.set(KEY_ACTIVE_FOLDER, folder_id)
        self.store.save()

    @property
    def view_mode(self) -> str:
        value = self.store.get(KEY_VIEW_MODE)
        return value if value in VIEW_MODES else VIEW_MODES[0]

    def set_view_mode(self, mode: str) -> None:
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {mode}")
        self.store.set(KEY_VIEW_MODE, mode)
        self.store.save()
