from dataclasses import dataclass
from typing import Optional

from ..api import CommandGateway
from ..engine import Engine
from ..session_store import ConfigStore


@dataclass
class AppState:
    store: Optional[ConfigStore] = None
    gateway: Optional[CommandGateway] = None
    engine: Optional[Engine] = None
