import gzip
import logging
import os
import re
import shutil
from datetime import date, datetime
from typing import Any, Dict, Optional

SECRET_KEYS = (
    "apihash",
    "api_hash",
    "token",
    "password",
    "phonecode",
    "phone_code",
    "authorization",
    "session",
)
SECRET_HEADERS = ("authorization", "cookie", "x-api-hash")


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value not in ("0", "false", "FALSE", "")


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if env_bool("CHATDRIVE_DEBUG") else logging.INFO)
    return logger


def redacted_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("[REDACTED]" if k.lower() in SECRET_HEADERS else v) for k, v in headers.items()}


def redact_payload(payload: Any) -> Any:
    """Return a copy of ``payload`` with secret-looking keys masked, at any depth."""
    if isinstance(payload, list):
        return [redact_payload(item) for item in payload]
    if not isinstance(payload, dict):
        return payload
    return {
        key: "***" if any(s in str(key).lower() for s in SECRET_KEYS) else redact_payload(value)
        for key, value in payload.items()
    }


class CommandLog:
    """Append-only text log rotated once per day.

    When the first line of a new day is written, the previous day's file is
    gzipped to ``<name>.<YYYY-MM-DD>[-n].gz`` next to it and archives older
    than ``keep_days`` are deleted.  Rotation problems never block writing.
    """

    def __init__(self, path: str, keep_days: int = 7):
        self.path = path
        self.keep_days = keep_days
        self._day: Optional[date] = None
        self._archive_re = re.compile(
            rf"^{re.escape(os.path.basename(path))}\.(\d{{4}}-\d{{2}}-\d{{2}})(?:-\d+)?\.gz$"
        )

    def write(self, line: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.now()
        day = self._day or self._file_day()
        if day is not None and day != now.date():
            self._rotate(day, now.date())
        with open(self.path, "a", encoding="utf-8") as handle:
            handle.write(f"[{now:%Y-%m-%d %H:%M:%S}] {line.rstrip()}\n")
        self._day = now.date()

    def _file_day(self) -> Optional[date]:
        try:
            return date.fromtimestamp(os.path.getmtime(self.path))
        except OSError:
            return None

    def _rotate(self, day: date, today: date) -> None:
        stem = f"{self.path}.{day.isoformat()}"
        target = f"{stem}.gz"
        n = 1
        while os.path.exists(target):
            target = f"{stem}-{n}.gz"
            n += 1
        try:
            with open(self.path, "rb") as src, gzip.open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            os.remove(self.path)
        except OSError as exc:
            get_logger("chatdrive").debug("Log rotation failed for %s: %s", self.path, exc)
            return
        self._prune(today)

    def _prune(self, today: date) -> None:
        folder = os.path.dirname(self.path) or "."
        for name in os.listdir(folder):
            match = self._archive_re.match(name)
            if not match:
                continue
            try:
                age = (today - date.fromisoformat(match.group(1))).days
            except ValueError:
                continue
            if age > self.keep_days:
                try:
                    os.remove(os.path.join(folder, name))
                except OSError as exc:
                    get_logger("chatdrive").debug("Could not prune %s: %s", name, exc)


def truncate_text(text: Optional[str], limit: int = 2000) -> str:
    text = text or ""
    if len(text) > limit:
        return text[:limit] + f"...[+{len(text) - limit} chars]"
    return text


def format_bytes(num: int) -> str:
    """Human-readable size: ``format_bytes(1536) == "1.5 KB"``."""
    size = float(num)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size) < 1024 or unit == "TB":
            break
        size /= 1024
    if unit == "B":
        return f"{int(size)} B"
    return f"{size:.1f} {unit}"
