from __future__ import annotations
import threading
import time
from typing import Dict, List, Optional, Protocol, Tuple

from ..errors import CollectionCancelled
from ..models import ContainerPort, NetIOStats, Snapshot, VirtualContainer

class Deadline:
    """Caller deadline plus optional cancel flag, checked between work items."""

    def __init__(self, timeout: Optional[float] = None, cancel: Optional[threading.Event] = None):
        self.expires = None if timeout is None else time.monotonic() + timeout
        self.cancel = cancel

    def remaining(self) -> Optional[float]:
        if self.expires is None:
            return None
        return max(0.0, self.expires - time.monotonic())

    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def expired(self) -> bool:
        return self.expires is not None and time.monotonic() >= self.expires

    def check(self) -> None:
        if self.cancelled():
            raise CollectionCancelled("request cancelled")
        if self.expired():
            raise CollectionCancelled("deadline exceeded")

class Collector(Protocol):
    def collect(self, timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None) -> Snapshot: ...

class NetIOCollector(Protocol):
    def collect(self, timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None) -> Dict[int, NetIOStats]: ...

class DockerResolver(Protocol):
    def resolve(self, timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None
                ) -> Tuple[Dict[int, ContainerPort], List[VirtualContainer]]: ...
