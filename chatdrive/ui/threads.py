from typing import Any, Callable, Optional, Set

from PySide6.QtCore import QObject, QRunnable, Qt, QThreadPool, QTimer, Signal, Slot

from ..utils import get_logger


class TaskSignals(QObject):
    result = Signal(object)
    error = Signal(Exception)
    finished = Signal()


class GatewayTask(QRunnable):
    """One blocking gateway call executed on the thread pool."""

    def __init__(self, fn: Callable[[], Any], label: str) -> None:
        super().__init__()
        self.fn = fn
        self.label = label
        self.signals = TaskSignals()
        self.logger = get_logger("chatdrive.qt")

    @Slot()
    def run(self) -> None:
        self.logger.debug("Task %s started", self.label)
        try:
            value = self.fn()
        except Exception as exc:
            self.logger.debug("Task %s raised %r", self.label, exc)
            self.signals.error.emit(exc)
        else:
            self.signals.result.emit(value)
        finally:
            self.signals.finished.emit()


class TaskRunner:
    """Runner backed by ``QThreadPool``.

    Callbacks are delivered with queued connections, so engine state is only
    ever touched from the GUI thread.
    """

    def __init__(self, pool: Optional[QThreadPool] = None) -> None:
        self.pool = pool or QThreadPool.globalInstance()
        self.logger = get_logger("chatdrive.qt")
        self._live: Set[GatewayTask] = set()

    def run(
        self,
        fn: Callable[[], Any],
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_finished: Optional[Callable[[], None]] = None,
    ) -> GatewayTask:
        task = GatewayTask(fn, getattr(fn, "__qualname__", None) or repr(fn))
        self._live.add(task)
        signals = task.signals
        if on_result:
            signals.result.connect(on_result, Qt.QueuedConnection)
        signals.error.connect(on_error or (lambda exc: self._log_unhandled(task.label, exc)), Qt.QueuedConnection)
        if on_finished:
            signals.finished.connect(on_finished, Qt.QueuedConnection)
        signals.finished.connect(lambda: self._live.discard(task), Qt.QueuedConnection)
        self.pool.start(task)
        return task

    def pending(self) -> int:
        return len(self._live)

    def wait(self, timeout_ms: int = 3000) -> bool:
        """Block until running tasks finish; used on shutdown."""
        return self.pool.waitForDone(timeout_ms)

    def _log_unhandled(self, label: str, exc: Exception) -> None:
        self.logger.warning("Unhandled error in %s: %s", label, exc)


class TimerHandle:
    def __init__(self, timer: QTimer) -> None:
        self._timer: Optional[QTimer] = timer

    def cancel(self) -> None:
        if self._timer is None:
            return
        self._timer.stop()
        self._timer.deleteLater()
        self._timer = None


class QtScheduler:
    """Scheduler that fires callbacks from single-shot timers on the GUI thread."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self.parent = parent

    def call_later(self, delay_ms: int, fn: Callable[[], None]) -> TimerHandle:
        timer = QTimer(self.parent)
        timer.setSingleShot(True)
        timer.setInterval(int(delay_ms))
        handle = TimerHandle(timer)

        def fire() -> None:
            handle.cancel()
            fn()

        timer.timeout.connect(fire)
        timer.start()
        return handle
