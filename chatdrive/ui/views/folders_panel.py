from typing import Callable, List, Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QStyle,
    QVBoxLayout,
    QWidget,
)

from ...engine import Engine
from ...models import FolderId
from .files_tab import FILE_ID_MIME, decode_file_id


class FolderDropList(QListWidget):
    """Folder list that accepts file ids dragged out of the file view."""

    file_dropped = Signal(int, int)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setSelectionMode(QAbstractItemView.SingleSelection)
        self.setAcceptDrops(True)
        self.setDragDropMode(QAbstractItemView.DropOnly)
        self.setDropIndicatorShown(True)

    def mimeTypes(self) -> List[str]:
        return [FILE_ID_MIME]

    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasFormat(FILE_ID_MIME):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event) -> None:
        if event.mimeData().hasFormat(FILE_ID_MIME) and self.itemAt(event.position().toPoint()):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dropEvent(self, event) -> None:
        file_id = decode_file_id(event.mimeData())
        item = self.itemAt(event.position().toPoint())
        if file_id is None or item is None:
            event.ignore()
            return
        event.acceptProposedAction()
        self.file_dropped.emit(file_id, self.row(item))


class FoldersPanel(QWidget):
    def __init__(self, status_cb: Optional[Callable[[str], None]] = None, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._status = status_cb or (lambda _msg: None)
        self._engine: Optional[Engine] = None
        self._unsubscribe: List[Callable[[], None]] = []
        self._folder_ids: List[FolderId] = []
        self._rendering = False

        root = QVBoxLayout(self)
        root.setContentsMargins(8, 12, 8, 12)
        root.setSpacing(8)

        title = QLabel("Folders")
        title.setStyleSheet("font-weight: 600; color: #111111;")
        root.addWidget(title)

        self.list = FolderDropList()
        self.list.currentRowChanged.connect(self._on_row_changed)
        self.list.file_dropped.connect(self._on_file_dropped)
        root.addWidget(self.list, 1)

        buttons = QHBoxLayout()
        self.sync_btn = QPushButton("Sync")
        self.sync_btn.clicked.connect(self._sync)
        self.new_btn = QPushButton("New")
        self.new_btn.clicked.connect(self._create)
        self.delete_btn = QPushButton("Delete")
        self.delete_btn.clicked.connect(self._delete)
        buttons.addWidget(self.sync_btn)
        buttons.addWidget(self.new_btn)
        buttons.addWidget(self.delete_btn)
        root.addLayout(buttons)
        self._update_buttons()

    def set_engine(self, engine: Optional[Engine]) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self._engine = engine
        if engine is not None:
            self._unsubscribe.append(engine.session.subscribe(lambda _session: self._render()))
        self._render()

    def _render(self) -> None:
        self._rendering = True
        try:
            self.list.clear()
            self._folder_ids = []
            if self._engine is None:
                return
            session = self._engine.session
            icon = self.style().standardIcon(QStyle.SP_DirIcon)
            for folder_id in [None] + [f.id for f in session.folders]:
                self.list.addItem(QListWidgetItem(icon, session.folder_name(folder_id)))
                self._folder_ids.append(folder_id)
            if session.active_folder_id in self._folder_ids:
                self.list.setCurrentRow(self._folder_ids.index(session.active_folder_id))
        finally:
            self._rendering = False
            self._update_buttons()

    def _update_buttons(self) -> None:
        connected = self._engine is not None and self._engine.session.connected
        syncing = self._engine is not None and self._engine.session.is_syncing
        self.sync_btn.setEnabled(connected and not syncing)
        self.sync_btn.setText("Syncing..." if syncing else "Sync")
        self.new_btn.setEnabled(connected)
        self.delete_btn.setEnabled(connected and self._selected_folder() is not None)

    def _selected_folder(self) -> FolderId:
        row = self.list.currentRow()
        if row < 0 or row >= len(self._folder_ids):
            return None
        return self._folder_ids[row]

    def _on_row_changed(self, row: int) -> None:
        if self._rendering or not self._engine or row < 0:
            return
        self._engine.session.set_active_folder(self._folder_ids[row])

    def _on_file_dropped(self, file_id: int, row: int) -> None:
        if not self._engine or row >= len(self._folder_ids):
            return
        self._engine.mover.drop(file_id, self._folder_ids[row])

    def _sync(self) -> None:
        if self._engine:
            self._status("Scanning for folders...")
            self._engine.session.sync_folders()

    def _create(self) -> None:
        if not self._engine:
            return
        name = self._engine.prompter.ask_text("New Folder", "Folder name:")
        if name:
            self._engine.session.create_folder(name)

    def _delete(self) -> None:
        folder_id = self._selected_folder()
        if not self._engine or folder_id is None:
            return
        self._engine.session.delete_folder(folder_id, self._engine.session.folder_name(folder_id))
