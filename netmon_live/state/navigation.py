"""View levels, sort columns, selection identities and the navigation stack.

This module has no knowledge of snapshots or rows; it only holds the
per-level browsing state that the selection resolver operates on.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import List, Optional, Union

class ViewLevel(enum.IntEnum):
    PROCESS_LIST = 0
    CONNECTIONS = 1
    ALL_CONNECTIONS = 2

    @property
    def label(self) -> str:
        return {0: "Processes", 1: "Connections", 2: "All Connections"}[int(self)]

class SortColumn(enum.Enum):
    PID = "PID"
    PROCESS = "Process"
    PROTOCOL = "Protocol"
    LOCAL = "Local"
    REMOTE = "Remote"
    STATE = "State"
    CONNS = "Conns"
    ESTABLISHED = "Established"
    LISTEN = "Listen"
    TX = "TX"
    RX = "RX"

@dataclass(frozen=True)
class ProcessSelection:
    name: str

@dataclass(frozen=True)
class ConnectionSelection:
    process_name: str
    local_addr: str
    remote_addr: str


SelectionID = Union[ProcessSelection, ConnectionSelection]

@dataclass
class ViewState:
    level: ViewLevel = ViewLevel.PROCESS_LIST
    process_name: str = ""
    cursor: int = 0
    selected: Optional[SelectionID] = None
    sort_column: SortColumn = SortColumn.PROCESS
    sort_ascending: bool = True
    selected_column: SortColumn = SortColumn.PROCESS
    sort_mode: bool = False

    def copy(self) -> ViewState:
        return replace(self)

def process_list_view() -> ViewState:
    return ViewState(level=ViewLevel.PROCESS_LIST)

def all_connections_view() -> ViewState:
    return ViewState(level=ViewLevel.ALL_CONNECTIONS)

def connections_view(process_name: str) -> ViewState:
    return ViewState(
        level=ViewLevel.CONNECTIONS,
        process_name=process_name,
        sort_column=SortColumn.LOCAL,
        selected_column=SortColumn.LOCAL,
    )

class NavigationStack:
    """LIFO of view frames; the root frame is never popped."""

    def __init__(self, root: Optional[ViewState] = None) -> None:
        self._frames: List[ViewState] = [root or process_list_view()]

    def current(self) -> ViewState:
        return self._frames[-1]

    def push(self, frame: ViewState) -> None:
        self._frames.append(frame)

    def pop(self) -> bool:
        """Drop the top frame. Returns False (and does nothing) at the root."""
        if len(self._frames) <= 1:
            return False
        self._frames.pop()
        return True

    def reset(self, root: ViewState) -> None:
        self._frames = [root]

    def at_root(self) -> bool:
        return len(self._frames) <= 1

    def frames(self) -> List[ViewState]:
        return [f.copy() for f in self._frames]

    def __len__(self) -> int:
        return len(self._frames)
