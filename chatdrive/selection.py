from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import describe
from .listing import FolderListings
from .models import FolderId
from .prompts import Prompter
from .utils import get_logger


class SelectionSet:
    """Selected remote item ids of the active folder, in selection order."""

    def __init__(self, ids: Iterable[int] = ()) -> None:
        self._ids: Dict[int, None] = dict.fromkeys(int(i) for i in ids)
        self._listeners: List[Callable[["SelectionSet"], None]] = []

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def ids(self) -> List[int]:
        return list(self._ids)

    def subscribe(self, listener: Callable[["SelectionSet"], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _set(self, ids: Dict[int, None]) -> None:
        if list(ids) == list(self._ids):
            return
        self._ids = ids
        for listener in list(self._listeners):
            listener(self)

    def toggle(self, item_id: int) -> None:
        ids = dict(self._ids)
        if item_id in ids:
            del ids[item_id]
        else:
            ids[item_id] = None
        self._set(ids)

    def select_only(self, item_id: int) -> None:
        self._set({item_id: None})

    def replace(self, ids: Iterable[int]) -> None:
        self._set(dict.fromkeys(int(i) for i in ids))

    def clear(self) -> None:
        self._set({})


@dataclass(frozen=True)
class MovePlan:
    ids: Tuple[int, ...]
    source_folder_id: FolderId
    target_folder_id: FolderId
    from_selection: bool


def plan_move(
    dragged_id: int,
    selection: Iterable[int],
    source_folder_id: FolderId,
    target_folder_id: FolderId,
) -> Optional[MovePlan]:
    if source_folder_id == target_folder_id:
        return None
    selected = list(selection)
    if dragged_id in selected:
        return MovePlan(tuple(selected), source_folder_id, target_folder_id, True)
    return MovePlan((dragged_id,), source_folder_id, target_folder_id, False)


class MoveResolver:
    def __init__(
        self,
        gateway: Any,
        runner: Any,
        selection: SelectionSet,
        listings: FolderListings,
        active_folder: Callable[[], FolderId],
        prompter: Optional[Prompter] = None,
    ) -> None:
        self.gateway = gateway
        self.runner = runner
        self.selection = selection
        self.listings = listings
        self.active_folder = active_folder
        self.prompter = prompter
        self.logger = get_logger("chatdrive.move")

    def drop(
        self,
        dragged_id: int,
        target_folder_id: FolderId,
        on_done: Optional[Callable[[MovePlan], None]] = None,
    ) -> Optional[MovePlan]:
        plan = plan_move(dragged_id, self.selection, self.active_folder(), target_folder_id)
        if plan is None:
            self.logger.debug("Drop on the active folder ignored")
            return None
        self._execute(plan, on_done)
        return plan

    def move_selection(
        self,
        target_folder_id: FolderId,
        on_done: Optional[Callable[[MovePlan], None]] = None,
    ) -> Optional[MovePlan]:
        ids = self.selection.ids()
        source = self.active_folder()
        if not ids or source == target_folder_id:
            return None
        plan = MovePlan(tuple(ids), source, target_folder_id, True)
        self._execute(plan, on_done)
        return plan

    def _execute(self, plan: MovePlan, on_done: Optional[Callable[[MovePlan], None]]) -> None:
        def done(_result: Any) -> None:
            self.logger.info(
                "Moved %d item(s) %s -> %s", len(plan.ids), plan.source_folder_id, plan.target_folder_id
            )
            self.listings.invalidate(plan.source_folder_id)
            self.listings.invalidate(plan.target_folder_id)
            if plan.from_selection:
                self.selection.clear()
            self._notify(f"Moved {len(plan.ids)} files.")
            if on_done:
                on_done(plan)

        def err(exc: Exception) -> None:
            self.logger.warning("Move failed: %s", exc)
            self._notify(f"Failed to move file(s): {describe(exc)}", "error")

        self.runner.run(
            lambda: self.gateway.move_files(list(plan.ids), plan.source_folder_id, plan.target_folder_id),
            on_result=done,
            on_error=err,
        )

    def _notify(self, message: str, level: str = "info") -> None:
        if self.prompter:
            self.prompter.notify(message, level)
