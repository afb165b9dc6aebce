from typing import Callable, List, Optional

from PySide6.QtCore import QByteArray, QItemSelectionModel, QMimeData, QSize, Qt, Signal
from PySide6.QtGui import QDrag
from PySide6.QtWidgets import (
    QAbstractItemView,
    QApplication,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListView,
    QListWidget,
    QListWidgetItem,
    QMenu,
    QPushButton,
    QStyle,
    QVBoxLayout,
    QWidget,
)

from ...engine import Engine
from ...models import FileEntry
from ...utils import format_bytes

FILE_ID_MIME = "application/x-chatdrive-file-id"
ROLE_ID = Qt.UserRole
ROLE_NAME = Qt.UserRole + 1


def encode_file_id(file_id: int) -> QMimeData:
    data = QMimeData()
    data.setData(FILE_ID_MIME, QByteArray(str(file_id).encode("ascii")))
    return data


def decode_file_id(data: QMimeData) -> Optional[int]:
    if not data.hasFormat(FILE_ID_MIME):
        return None
    raw = bytes(data.data(FILE_ID_MIME)).decode("ascii", "ignore").strip()
    try:
        return int(raw)
    except ValueError:
        return None


class FileListWidget(QListWidget):
    """File list that drags the pressed file id and accepts dropped local files."""

    files_dropped = Signal(list)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setSelectionMode(QAbstractItemView.ExtendedSelection)
        self.setDragEnabled(True)
        self.setAcceptDrops(True)
        self.setDragDropMode(QAbstractItemView.DragDrop)
        self.setDefaultDropAction(Qt.MoveAction)
        self.setMovement(QListView.Static)
        self._pressed_item: Optional[QListWidgetItem] = None
        self._press_pos = None
        self._select_on_release = False

    def mimeTypes(self) -> List[str]:
        return [FILE_ID_MIME]

    def mimeData(self, items) -> QMimeData:
        current = self._pressed_item or self.currentItem()
        if current is None and items:
            current = items[0]
        if current is None:
            return QMimeData()
        return encode_file_id(int(current.data(ROLE_ID)))

    def mousePressEvent(self, event) -> None:
        pos = event.position().toPoint()
        item = self.itemAt(pos)
        self._pressed_item = item
        self._press_pos = pos
        # A plain press on an unselected file may start a drag of that file
        # alone, so the selection only changes once the button is released.
        self._select_on_release = (
            item is not None
            and not item.isSelected()
            and event.button() == Qt.LeftButton
            and event.modifiers() == Qt.NoModifier
        )
        if self._select_on_release:
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:
        if self._select_on_release and event.buttons() & Qt.LeftButton:
            moved = (event.position().toPoint() - self._press_pos).manhattanLength()
            if moved >= QApplication.startDragDistance():
                self._select_on_release = False
                self._drag_pressed_item()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event) -> None:
        if self._select_on_release:
            self._select_on_release = False
            self.setCurrentItem(self._pressed_item, QItemSelectionModel.ClearAndSelect)
            self._pressed_item = None
            event.accept()
            return
        super().mouseReleaseEvent(event)
        self._pressed_item = None

    def _drag_pressed_item(self) -> None:
        if self._pressed_item is None:
            return
        drag = QDrag(self)
        drag.setMimeData(self.mimeData([self._pressed_item]))
        drag.exec(Qt.MoveAction)
        self._pressed_item = None

    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
            return
        super().dragEnterEvent(event)

    def dragMoveEvent(self, event) -> None:
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
            return
        super().dragMoveEvent(event)

    def dropEvent(self, event) -> None:
        data = event.mimeData()
        if not data.hasUrls():
            # Reordering inside the list is not a move.
            event.ignore()
            return
        paths = [url.toLocalFile() for url in data.urls() if url.isLocalFile()]
        event.acceptProposedAction()
        if paths:
            self.files_dropped.emit(paths)


class FilesTab(QWidget):
    def __init__(self, status_cb: Optional[Callable[[str], None]] = None, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._status = status_cb or (lambda _msg: None)
        self._engine: Optional[Engine] = None
        self._unsubscribe: List[Callable[[], None]] = []
        self._syncing_selection = False
        self._showing_results = False

        root = QVBoxLayout(self)
        root.setContentsMargins(12, 12, 12, 12)
        root.setSpacing(10)

        header = QHBoxLayout()
        self.folder_label = QLabel("-")
        self.folder_label.setStyleSheet("font-weight: 600; color: #111111;")
        header.addWidget(self.folder_label, alignment=Qt.AlignLeft)
        header.addStretch(1)
        self.search_edit = QLineEdit()
        self.search_edit.setPlaceholderText("Search files...")
        self.search_edit.setClearButtonEnabled(True)
        self.search_edit.setMinimumWidth(260)
        self.search_edit.textChanged.connect(self._on_search_text)
        header.addWidget(self.search_edit)
        self.view_btn = QPushButton("Grid view")
        self.view_btn.setCheckable(True)
        self.view_btn.toggled.connect(self._on_view_toggled)
        header.addWidget(self.view_btn)
        root.addLayout(header)

        toolbar = QHBoxLayout()
        self.upload_btn = QPushButton("Upload files")
        self.upload_btn.clicked.connect(self._upload)
        self.download_btn = QPushButton("Download")
        self.download_btn.clicked.connect(self._download_current)
        self.delete_btn = QPushButton("Delete")
        self.delete_btn.clicked.connect(self._delete_current)
        self.bulk_download_btn = QPushButton("Download selected")
        self.bulk_download_btn.clicked.connect(self._bulk_download)
        self.bulk_delete_btn = QPushButton("Delete selected")
        self.bulk_delete_btn.clicked.connect(self._bulk_delete)
        self.folder_download_btn = QPushButton("Download folder")
        self.folder_download_btn.clicked.connect(self._download_folder)
        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.clicked.connect(self.refresh)
        for btn in (
            self.upload_btn,
            self.download_btn,
            self.delete_btn,
            self.bulk_download_btn,
            self.bulk_delete_btn,
            self.folder_download_btn,
        ):
            toolbar.addWidget(btn)
        toolbar.addStretch(1)
        toolbar.addWidget(self.refresh_btn)
        root.addLayout(toolbar)

        self.list = FileListWidget()
        self.list.itemSelectionChanged.connect(self._on_widget_selection)
        self.list.files_dropped.connect(self._on_files_dropped)
        self.list.setContextMenuPolicy(Qt.CustomContextMenu)
        self.list.customContextMenuRequested.connect(self._context_menu)
        root.addWidget(self.list, 1)

        self.count_label = QLabel("")
        self.count_label.setStyleSheet("color: #666666;")
        root.addWidget(self.count_label)
        self._update_buttons()

    def set_engine(self, engine: Optional[Engine]) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self._engine = engine
        if engine is None:
            self.list.clear()
            return
        self._unsubscribe.append(engine.listings.subscribe(self._on_listing_changed))
        self._unsubscribe.append(engine.session.subscribe_folder(self._on_folder_changed))
        self._unsubscribe.append(engine.selection.subscribe(self._on_selection_changed))
        engine.search.on_results = self._on_search_results
        self.view_btn.setChecked(engine.settings.view_mode == "grid")
        self._apply_view_mode(engine.settings.view_mode)
        self._on_folder_changed(engine.active_folder())

    def refresh(self) -> None:
        if not self._engine:
            self._status("Not signed in.")
            return
        folder_id = self._engine.active_folder()
        self._status("Loading files...")
        self._engine.listings.invalidate(folder_id)

    # Engine listeners

    def _on_folder_changed(self, folder_id) -> None:
        if not self._engine:
            return
        self.folder_label.setText(self._engine.session.folder_name(folder_id))
        self._showing_results = False
        if self.search_edit.text():
            self.search_edit.blockSignals(True)
            self.search_edit.clear()
            self.search_edit.blockSignals(False)
        self._render(self._engine.listings.get(folder_id))

    def _on_listing_changed(self, folder_id) -> None:
        if not self._engine or folder_id != self._engine.active_folder():
            return
        if self._engine.listings.is_stale(folder_id) or self._showing_results:
            return
        self._render(self._engine.listings.get(folder_id))
        self._status("Files loaded.")

    def _on_search_results(self, query: str, entries: List[FileEntry], is_global: bool) -> None:
        self._showing_results = bool(query.strip())
        self._render(entries)
        if is_global:
            self.count_label.setText(f'{len(entries)} result(s) for "{query.strip()}"')

    def _on_selection_changed(self, selection) -> None:
        if self._syncing_selection:
            return
        wanted = set(selection.ids())
        self._syncing_selection = True
        try:
            for row in range(self.list.count()):
                item = self.list.item(row)
                item.setSelected(int(item.data(ROLE_ID)) in wanted)
        finally:
            self._syncing_selection = False
        self._update_buttons()

    # Rendering

    def _render(self, entries: List[FileEntry]) -> None:
        selected = set(self._engine.selection.ids()) if self._engine else set()
        file_icon = self.style().standardIcon(QStyle.SP_FileIcon)
        folder_icon = self.style().standardIcon(QStyle.SP_DirIcon)
        self._syncing_selection = True
        try:
            self.list.clear()
            for entry in entries:
                item = QListWidgetItem(folder_icon if entry.is_folder else file_icon, self._label_for(entry))
                item.setData(ROLE_ID, entry.id)
                item.setData(ROLE_NAME, entry.name)
                item.setToolTip(f"{entry.name}\n{format_bytes(entry.size)}")
                self.list.addItem(item)
                item.setSelected(entry.id in selected)
        finally:
            self._syncing_selection = False
        self.count_label.setText(f"{len(entries)} item(s)")
        self._update_buttons()

    def _label_for(self, entry: FileEntry) -> str:
        if self.list.viewMode() == QListView.IconMode or entry.is_folder:
            return entry.name
        return f"{entry.name}    {format_bytes(entry.size)}"

    def _apply_view_mode(self, mode: str) -> None:
        if mode == "grid":
            self.list.setViewMode(QListView.IconMode)
            self.list.setIconSize(QSize(48, 48))
            self.list.setGridSize(QSize(140, 100))
            self.list.setWordWrap(True)
            self.view_btn.setText("List view")
        else:
            self.list.setViewMode(QListView.ListMode)
            self.list.setIconSize(QSize(16, 16))
            self.list.setGridSize(QSize())
            self.view_btn.setText("Grid view")
        self.list.setMovement(QListView.Static)
        self.list.setDragEnabled(True)

    def _on_view_toggled(self, checked: bool) -> None:
        mode = "grid" if checked else "list"
        self._apply_view_mode(mode)
        if self._engine:
            self._engine.settings.set_view_mode(mode)
            if not self._showing_results:
                self._render(self._engine.active_listing())

    def _update_buttons(self) -> None:
        has_engine = self._engine is not None
        has_current = self.list.currentItem() is not None
        has_selection = has_engine and len(self._engine.selection) > 0
        self.upload_btn.setEnabled(has_engine)
        self.download_btn.setEnabled(has_engine and has_current)
        self.delete_btn.setEnabled(has_engine and has_current)
        self.bulk_download_btn.setEnabled(has_selection)
        self.bulk_delete_btn.setEnabled(has_selection)
        self.folder_download_btn.setEnabled(has_engine and self.list.count() > 0)
        self.refresh_btn.setEnabled(has_engine)

    # Widget events

    def _on_search_text(self, text: str) -> None:
        if self._engine:
            self._engine.search.set_query(text)

    def _on_widget_selection(self) -> None:
        if self._syncing_selection or not self._engine:
            return
        ids = [int(item.data(ROLE_ID)) for item in self.list.selectedItems()]
        self._syncing_selection = True
        try:
            self._engine.selection.replace(ids)
        finally:
            self._syncing_selection = False
        self._update_buttons()

    def _on_files_dropped(self, paths: List[str]) -> None:
        if self._engine:
            self._engine.operations.upload_dropped(paths)

    def _current_entry(self):
        item = self.list.currentItem()
        if item is None:
            return None
        return int(item.data(ROLE_ID)), str(item.data(ROLE_NAME))

    def _upload(self) -> None:
        if self._engine:
            self._engine.operations.upload_files()

    def _download_current(self) -> None:
        current = self._current_entry()
        if self._engine and current:
            self._engine.operations.download(*current)

    def _delete_current(self) -> None:
        current = self._current_entry()
        if self._engine and current:
            self._engine.operations.delete(current[0])

    def _bulk_download(self) -> None:
        if self._engine:
            self._engine.operations.bulk_download()

    def _bulk_delete(self) -> None:
        if self._engine:
            self._engine.operations.bulk_delete()

    def _download_folder(self) -> None:
        if self._engine:
            self._engine.operations.download_folder()

    def _context_menu(self, pos) -> None:
        if not self._engine or len(self._engine.selection) == 0:
            return
        menu = QMenu(self)
        move_menu = menu.addMenu("Move to")
        session = self._engine.session
        targets = [None] + [f.id for f in session.folders]
        for folder_id in targets:
            if folder_id == session.active_folder_id:
                continue
            action = move_menu.addAction(session.folder_name(folder_id))
            action.triggered.connect(lambda _checked=False, fid=folder_id: self._engine.mover.move_selection(fid))
        menu.addSeparator()
        menu.addAction("Queue download", self._engine.operations.queue_bulk_download)
        menu.addAction("Delete selected", self._bulk_delete)
        menu.exec(self.list.viewport().mapToGlobal(pos))
