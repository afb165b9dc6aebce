"""Error taxonomy for backend commands.

Replies carry a structured ``code``. Older backends only send a message; for
those, a message containing "not found" (any case) is read as ``not_found``.
"""
from typing import Any, Dict, Optional


class BackendError(Exception):
    code = "backend_error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFoundError(BackendError):
    code = "not_found"


class UnauthorizedError(BackendError):
    code = "unauthorized"


class NetworkError(BackendError):
    code = "network"


class InvalidTransition(RuntimeError):
    pass


_BY_CODE = {
    NotFoundError.code: NotFoundError,
    UnauthorizedError.code: UnauthorizedError,
    NetworkError.code: NetworkError,
}


def error_from_payload(payload: Any) -> BackendError:
    if isinstance(payload, dict):
        err = payload.get("error")
    else:
        err = payload
    if isinstance(err, dict):
        code = err.get("code")
        message = str(err.get("message") or code or "Unknown error")
    else:
        code = None
        message = str(err) if err else "Unknown error"

    cls = _BY_CODE.get(code) if code else None
    if cls is None and "not found" in message.lower():
        cls = NotFoundError
    if cls is None:
        return BackendError(message, code)
    return cls(message)


def describe(exc: BaseException) -> str:
    if isinstance(exc, BackendError):
        return exc.message
    return str(exc)


def as_dict(exc: BackendError) -> Dict[str, str]:
    return {"code": exc.code, "message": exc.message}
