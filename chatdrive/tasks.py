"""Task execution used by the engines.

A runner exposes ``run(fn, on_result=None, on_error=None, on_finished=None)``.
The Qt shell uses ``chatdrive.ui.threads.TaskRunner``; the CLI runs work
inline with ``InlineRunner``.

A scheduler exposes ``call_later(delay_ms, fn)`` returning a handle with
``cancel()``. The Qt implementation is ``chatdrive.ui.threads.QtScheduler``.
"""
from typing import Any, Callable, Optional

from .utils import get_logger


class InlineRunner:
    def __init__(self) -> None:
        self.logger = get_logger("chatdrive.tasks")

    def run(
        self,
        fn: Callable[[], Any],
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_finished: Optional[Callable[[], None]] = None,
    ) -> None:
        try:
            result = fn()
        except Exception as exc:
            self.logger.debug("Task error exc=%s", exc)
            if on_error:
                on_error(exc)
            else:
                self.logger.warning("Unhandled task error: %s", exc)
        else:
            if on_result:
                on_result(result)
        finally:
            if on_finished:
                on_finished()
