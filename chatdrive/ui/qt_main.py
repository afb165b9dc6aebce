import faulthandler
import os
import sys
from typing import List, Optional

from PySide6.QtWidgets import QApplication

from .qt_app import MainWindow
from ..utils import env_bool, get_logger


def main(argv: Optional[List[str]] = None) -> int:
    logger = get_logger("chatdrive.qt")
    fault_log = os.path.join(os.getcwd(), "chatdrive_fault.log")
    if env_bool("CHATDRIVE_FAULTHANDLER", True):
        try:
            fh = open(fault_log, "a", buffering=1, encoding="utf-8")
            faulthandler.enable(file=fh, all_threads=True)
            logger.info("Faulthandler enabled -> %s", fault_log)
        except OSError as exc:
            logger.info("Faulthandler enable failed: %s", exc)
    app = QApplication(sys.argv if argv is None else [sys.argv[0], *argv])
    app.setApplicationName("ChatDrive")
    win = MainWindow(config_path=os.getenv("CHATDRIVE_CONFIG") or None)
    win.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
