import json
import os
from typing import Any, Dict, Optional

import httpx

from endpoints import BASE_URL
from .utils import CommandLog, env_int, get_logger, redact_payload, redacted_headers, truncate_text


class CommandClient:
    """HTTP client for the local command bridge.

    Every request and its reply are written, with secrets masked, to a
    daily-rotated command log (``CHATDRIVE_HTTP_LOG``).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        log_path: Optional[str] = None,
    ):
        self.base_url = (base_url or os.getenv("CHATDRIVE_BASE_URL") or BASE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else float(env_int("CHATDRIVE_TIMEOUT", 300))
        self.logger = get_logger('chatdrive')
        self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=transport)
        self.command_log = CommandLog(
            log_path or os.getenv("CHATDRIVE_HTTP_LOG", os.path.join(os.getcwd(), "chatdrive_commands.log")),
            keep_days=env_int("CHATDRIVE_LOG_KEEP_DAYS", 7),
        )

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "X-Client": "chatdrive",
        }

    def _log(self, line: str) -> None:
        try:
            self.command_log.write(line)
        except OSError as exc:
            self.logger.debug('Command log write failed: %s', exc)

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = path if path.startswith('http') else f"{self.base_url}{path}"
        headers = self._default_headers()
        headers.update(kwargs.get('headers') or {})
        kwargs['headers'] = headers
        self.logger.debug('CMD %s %s headers=%s', method, url, redacted_headers(headers))
        if "json" in kwargs:
            payload = json.dumps(redact_payload(kwargs["json"]), ensure_ascii=True)
            self._log(f"{method} {url} payload={payload}")
        else:
            self._log(f"{method} {url}")
        resp = self._client.request(method, url, **kwargs)
        try:
            body = json.dumps(redact_payload(resp.json()), ensure_ascii=True)
        except ValueError:
            body = resp.text
        self._log(f"{method} {url} status={resp.status_code} response={truncate_text(body)}")
        resp.raise_for_status()
        return resp

    def close(self) -> None:
        self._client.close()
