from typing import Callable, List, Optional

from PySide6.QtWidgets import QFileDialog, QInputDialog, QMessageBox, QWidget

from ..prompts import Prompter
from ..utils import get_logger


class QtPrompter(Prompter):
    def __init__(self, parent: QWidget, status_cb: Optional[Callable[[str], None]] = None) -> None:
        self.parent = parent
        self._status = status_cb or (lambda _msg: None)
        self.logger = get_logger("chatdrive.qt")

    def confirm(self, title: str, message: str, confirm_text: str = "OK") -> bool:
        box = QMessageBox(self.parent)
        box.setWindowTitle(title)
        box.setText(message)
        ok_btn = box.addButton(confirm_text, QMessageBox.ButtonRole.AcceptRole)
        box.addButton("Cancel", QMessageBox.ButtonRole.RejectRole)
        box.exec()
        return box.clickedButton() is ok_btn

    def ask_save_path(self, default_name: str) -> Optional[str]:
        path, _ = QFileDialog.getSaveFileName(self.parent, "Save file as", default_name)
        return path or None

    def ask_directory(self, title: str) -> Optional[str]:
        path = QFileDialog.getExistingDirectory(self.parent, title)
        return path or None

    def ask_open_files(self, title: str) -> List[str]:
        paths, _ = QFileDialog.getOpenFileNames(self.parent, title)
        return list(paths)

    def ask_text(self, title: str, label: str) -> Optional[str]:
        text, ok = QInputDialog.getText(self.parent, title, label)
        if not ok:
            return None
        return text.strip() or None

    def ask_api_id(self) -> Optional[int]:
        value, ok = QInputDialog.getInt(self.parent, "Sign In", "API ID:", 0, 0, 2_147_483_647)
        if not ok or value <= 0:
            return None
        return value

    def notify(self, message: str, level: str = "info") -> None:
        if level == "error":
            self.logger.warning(message)
            self._status(f"Error: {message}")
        else:
            self.logger.info(message)
            self._status(message)
