from typing import Callable, List, Optional

from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ...engine import Engine
from ...models import TransferStatus
from ...transfers import TransferQueue

STATUS_LABELS = {
    TransferStatus.PENDING: "Waiting",
    TransferStatus.IN_FLIGHT: "In progress",
    TransferStatus.SUCCESS: "Done",
    TransferStatus.FAILED: "Failed",
}

STATUS_COLORS = {
    TransferStatus.IN_FLIGHT: "#1d6fd6",
    TransferStatus.SUCCESS: "#2e7d32",
    TransferStatus.FAILED: "#c62828",
}


class QueuePanel(QGroupBox):
    def __init__(self, title: str, parent: Optional[QWidget] = None) -> None:
        super().__init__(title, parent)
        self._queue: Optional[TransferQueue] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

        layout = QVBoxLayout(self)
        header = QHBoxLayout()
        self.summary_label = QLabel("Idle")
        self.summary_label.setStyleSheet("color: #666666;")
        header.addWidget(self.summary_label)
        header.addStretch(1)
        self.clear_btn = QPushButton("Clear finished")
        self.clear_btn.clicked.connect(self._clear_finished)
        header.addWidget(self.clear_btn)
        layout.addLayout(header)
        self.list = QListWidget()
        layout.addWidget(self.list, 1)

    def set_queue(self, queue: Optional[TransferQueue]) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self._queue = queue
        if queue is not None:
            self._unsubscribe = queue.subscribe(lambda _queue: self._render())
        self._render()

    def _render(self) -> None:
        self.list.clear()
        if self._queue is None:
            self.summary_label.setText("Idle")
            return
        for item in self._queue.items:
            text = f"{item.display_name}  [{STATUS_LABELS[item.status]}]"
            if item.error:
                text = f"{text}  {item.error}"
            row = QListWidgetItem(text)
            row.setToolTip(getattr(item, "source_path", None) or getattr(item, "save_path", None) or item.display_name)
            color = STATUS_COLORS.get(item.status)
            if color:
                row.setForeground(QColor(color))
            self.list.addItem(row)
        active = self._queue.active_count()
        self.summary_label.setText(f"{active} active" if active else "Idle")
        self.clear_btn.setEnabled(any(i.status in self._queue.cleared_statuses for i in self._queue.items))

    def _clear_finished(self) -> None:
        if self._queue is not None:
            self._queue.clear_finished()


class TransfersTab(QWidget):
    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        root = QVBoxLayout(self)
        root.setContentsMargins(12, 12, 12, 12)
        root.setSpacing(10)
        self.uploads_panel = QueuePanel("Uploads")
        self.downloads_panel = QueuePanel("Downloads")
        root.addWidget(self.uploads_panel, 1)
        root.addWidget(self.downloads_panel, 1)

    def set_engine(self, engine: Optional[Engine]) -> None:
        self.uploads_panel.set_queue(engine.uploads if engine else None)
        self.downloads_panel.set_queue(engine.downloads if engine else None)

    def panels(self) -> List[QueuePanel]:
        return [self.uploads_panel, self.downloads_panel]
