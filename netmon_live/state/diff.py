"""Snapshot diffing and the TTL-bounded change ledger used for highlighting."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Mapping, NamedTuple, Optional

from ..models import Connection, Snapshot

class ChangeType(enum.Enum):
    ADDED = "added"
    REMOVED = "removed"

class ConnectionKey(NamedTuple):
    pid: int
    protocol: str
    local_addr: str
    remote_addr: str

    @classmethod
    def of(cls, conn: Connection) -> ConnectionKey:
        return cls(conn.pid, conn.protocol, conn.local_addr, conn.remote_addr)

@dataclass(frozen=True)
class Change:
    type: ChangeType
    timestamp: float

def _keys(snap: Snapshot) -> set[ConnectionKey]:
    return {ConnectionKey.of(c) for app in snap.applications for c in app.connections}

def diff_snapshots(
    prev: Optional[Snapshot],
    curr: Optional[Snapshot],
    now: Optional[float] = None,
) -> Dict[ConnectionKey, Change]:
    """Return the changes between two snapshots.

    Keys present only in ``curr`` are ADDED, keys present only in ``prev`` are
    REMOVED. Either side missing (first tick) yields an empty dict. Every
    change shares one timestamp.
    """
    if prev is None or curr is None:
        return {}
    stamp = time.time() if now is None else now
    prev_keys = _keys(prev)
    curr_keys = _keys(curr)
    changes: Dict[ConnectionKey, Change] = {}
    for key in curr_keys - prev_keys:
        changes[key] = Change(ChangeType.ADDED, stamp)
    for key in prev_keys - curr_keys:
        changes[key] = Change(ChangeType.REMOVED, stamp)
    return changes

class ChangeLedger:
    """Recently changed connections, keyed by ConnectionKey.

    Entries are overwritten on re-occurrence and evicted by ``prune`` once
    older than the TTL, so the size follows churn rather than total volume.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._changes: Dict[ConnectionKey, Change] = {}

    def merge(self, changes: Mapping[ConnectionKey, Change]) -> None:
        self._changes.update(changes)

    def prune(self, max_age: float) -> int:
        cutoff = self._clock() - max_age
        expired = [k for k, ch in self._changes.items() if ch.timestamp < cutoff]
        for k in expired:
            del self._changes[k]
        return len(expired)

    def get(self, conn: Connection) -> Optional[Change]:
        return self._changes.get(ConnectionKey.of(conn))

    def clear(self) -> None:
        self._changes.clear()

    def items(self) -> Iterable[tuple[ConnectionKey, Change]]:
        return list(self._changes.items())

    def __contains__(self, key: object) -> bool:
        return key in self._changes

    def __iter__(self) -> Iterator[ConnectionKey]:
        return iter(list(self._changes))

    def __len__(self) -> int:
        return len(self._changes)
