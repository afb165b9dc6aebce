from typing import Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QAction
from PySide6.QtWidgets import QLabel, QMainWindow, QPushButton, QSplitter, QTabWidget, QToolButton

from ..api import CommandGateway
from ..client import CommandClient
from ..engine import Engine
from ..errors import describe
from ..session import Phase
from ..session_store import open_config_store
from ..utils import format_bytes, get_logger
from .dialogs import QtPrompter
from .state import AppState
from .threads import QtScheduler, TaskRunner
from .views.files_tab import FilesTab
from .views.folders_panel import FoldersPanel
from .views.transfers_tab import TransfersTab


class MainWindow(QMainWindow):
    def __init__(self, config_path: Optional[str] = None) -> None:
        super().__init__()
        self.setWindowTitle("ChatDrive")
        self.resize(1200, 800)
        self.logger = get_logger("chatdrive.qt")

        self.state = AppState()
        self.runner = TaskRunner()
        self.scheduler = QtScheduler(self)
        self.prompter = QtPrompter(self, status_cb=self._set_status)

        self.folders_panel = FoldersPanel(status_cb=self._set_status)
        self.files_tab = FilesTab(status_cb=self._set_status)
        self.transfers_tab = TransfersTab()

        self.tabs = QTabWidget()
        self.tabs.addTab(self.files_tab, "Files")
        self.tabs.addTab(self.transfers_tab, "Transfers")

        splitter = QSplitter(Qt.Horizontal, self)
        splitter.addWidget(self.folders_panel)
        splitter.addWidget(self.tabs)
        splitter.setStretchFactor(1, 1)
        splitter.setSizes([240, 960])
        self.setCentralWidget(splitter)

        self.connection_label = QLabel("")
        self.statusBar().addPermanentWidget(self.connection_label)
        self.setAcceptDrops(True)

        self._build_menu()
        self.statusBar().showMessage("Ready")
        self._init_engine(config_path)
        self._apply_pointer_cursors()

    def _apply_pointer_cursors(self) -> None:
        for btn in self.findChildren(QPushButton):
            btn.setCursor(Qt.PointingHandCursor)
        for btn in self.findChildren(QToolButton):
            btn.setCursor(Qt.PointingHandCursor)

    def _build_menu(self) -> None:
        menu = self.menuBar().addMenu("Session")
        self.act_sign_in = QAction("Sign in...", self)
        self.act_sign_in.setStatusTip("Connect with an API ID")
        self.act_sign_in.triggered.connect(self._sign_in_dialog)
        menu.addAction(self.act_sign_in)

        self.act_sign_out = QAction("Sign out", self)
        self.act_sign_out.setStatusTip("Disconnect and forget the stored session")
        self.act_sign_out.triggered.connect(self._sign_out)
        menu.addAction(self.act_sign_out)
        menu.addSeparator()

        self.act_sync = QAction("Sync folders", self)
        self.act_sync.setStatusTip("Scan the backend for folders missing locally")
        self.act_sync.triggered.connect(lambda: self.folders_panel._sync())
        menu.addAction(self.act_sync)

        self.act_bandwidth = QAction("Bandwidth usage", self)
        self.act_bandwidth.setStatusTip("Show today's transfer usage")
        self.act_bandwidth.triggered.connect(self._show_bandwidth)
        menu.addAction(self.act_bandwidth)
        menu.addSeparator()

        act_quit = QAction("Quit", self)
        act_quit.triggered.connect(self.close)
        menu.addAction(act_quit)

    def _init_engine(self, config_path: Optional[str]) -> None:
        store = open_config_store(config_path)
        gateway = CommandGateway(CommandClient())
        self.state.store = store
        self.state.gateway = gateway
        engine = Engine(
            store,
            gateway,
            self.runner,
            self.prompter,
            scheduler=self.scheduler,
            on_logout=self._on_logged_out,
        )
        self.state.engine = engine
        engine.session.subscribe(lambda _session: self._update_connection())
        self.folders_panel.set_engine(engine)
        self.files_tab.set_engine(engine)
        self.transfers_tab.set_engine(engine)
        self._update_connection()

    def _update_connection(self) -> None:
        engine = self.state.engine
        if engine is None:
            return
        session = engine.session
        if session.phase == Phase.CONNECTED:
            text = "Online" if session.connected else "Offline"
        elif session.phase == Phase.CONNECTING:
            text = "Connecting..."
        elif session.phase == Phase.LOGGED_OUT:
            text = "Signed out"
        else:
            text = ""
        self.connection_label.setText(text)
        self.act_sign_in.setEnabled(session.phase == Phase.LOGGED_OUT)
        self.act_sign_out.setEnabled(session.phase == Phase.CONNECTED)
        self.act_sync.setEnabled(session.connected and not session.is_syncing)
        self.act_bandwidth.setEnabled(session.phase == Phase.CONNECTED)

    def _on_logged_out(self) -> None:
        self._set_status("Signed out.")
        # Runs after Engine construction finishes when startup has no credentials.
        QTimer.singleShot(0, self._sign_in_dialog)

    def _sign_in_dialog(self) -> None:
        engine = self.state.engine
        if engine is None or engine.session.phase != Phase.LOGGED_OUT:
            return
        api_id = self.prompter.ask_api_id()
        if api_id is None:
            self._set_status("Not signed in. Use Session > Sign in.")
            return
        self._set_status("Connecting...")
        engine.session.login(api_id)

    def _sign_out(self) -> None:
        if self.state.engine:
            self.state.engine.session.logout()

    def _show_bandwidth(self) -> None:
        gateway = self.state.gateway
        if gateway is None:
            return

        def done(stats) -> None:
            limit = format_bytes(stats.limit_bytes) if stats.limit_bytes else "-"
            self._set_status(
                f"Today: up {format_bytes(stats.up_bytes)}, down {format_bytes(stats.down_bytes)} (limit {limit})"
            )

        def err(exc: Exception) -> None:
            self._set_status(f"Bandwidth unavailable: {describe(exc)}")

        self.runner.run(gateway.get_bandwidth, on_result=done, on_error=err)

    def _set_status(self, text: str) -> None:
        self.statusBar().showMessage(text)

    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
            return
        super().dragEnterEvent(event)

    def dropEvent(self, event) -> None:
        data = event.mimeData()
        if not data.hasUrls() or self.state.engine is None:
            super().dropEvent(event)
            return
        paths = [url.toLocalFile() for url in data.urls() if url.isLocalFile()]
        event.acceptProposedAction()
        self.state.engine.operations.upload_dropped(paths)

    def closeEvent(self, event) -> None:
        if self.state.engine:
            self.state.engine.close()
        if self.runner.pending() and not self.runner.wait():
            self.logger.warning("Closing with %d task(s) still running", self.runner.pending())
        if self.state.gateway:
            try:
                self.state.gateway.close()
            except Exception as exc:
                self.logger.warning("Gateway close failed: %s", exc)
        super().closeEvent(event)
