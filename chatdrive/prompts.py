import os
from typing import Callable, List, Optional

from .utils import get_logger


class Prompter:
    """User interaction needed by the engines.

    ``confirm`` blocks until the user answers. ``notify`` never blocks.
    Dialog methods return ``None`` (or an empty list) when the user cancels.
    """

    def confirm(self, title: str, message: str, confirm_text: str = "OK") -> bool:
        raise NotImplementedError

    def ask_save_path(self, default_name: str) -> Optional[str]:
        raise NotImplementedError

    def ask_directory(self, title: str) -> Optional[str]:
        raise NotImplementedError

    def ask_open_files(self, title: str) -> List[str]:
        raise NotImplementedError

    def notify(self, message: str, level: str = "info") -> None:
        raise NotImplementedError


class ConsolePrompter(Prompter):
    def __init__(
        self,
        assume_yes: bool = False,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
        save_dir: Optional[str] = None,
        retry_limit: int = 1,
    ) -> None:
        self.assume_yes = assume_yes
        self.retry_limit = retry_limit
        self._retries = 0
        self._input = input_fn
        self._output = output_fn
        self.save_dir = save_dir
        self.logger = get_logger("chatdrive.cli")

    def confirm(self, title: str, message: str, confirm_text: str = "OK") -> bool:
        if self.assume_yes:
            # Unattended runs must not retry a failing connection forever.
            if confirm_text == "Retry":
                self._retries += 1
                return self._retries <= self.retry_limit
            return True
        try:
            answer = self._input(f"{title}: {message} [{confirm_text}? y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    def ask_save_path(self, default_name: str) -> Optional[str]:
        if self.save_dir:
            return os.path.join(self.save_dir, default_name)
        try:
            answer = self._input(f"Save {default_name} as [{default_name}]: ").strip()
        except EOFError:
            return None
        return answer or default_name

    def ask_directory(self, title: str) -> Optional[str]:
        if self.save_dir:
            return self.save_dir
        try:
            answer = self._input(f"{title} [.]: ").strip()
        except EOFError:
            return None
        return answer or "."

    def ask_open_files(self, title: str) -> List[str]:
        try:
            answer = self._input(f"{title} (space separated): ").strip()
        except EOFError:
            return []
        return answer.split()

    def notify(self, message: str, level: str = "info") -> None:
        if level == "error":
            self.logger.error(message)
        else:
            self._output(message)
