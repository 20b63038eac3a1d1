"""Messages consumed by Engine.update. Every state change enters through one of these."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..collectors.release import ReleaseInfo
from ..models import ContainerPort, NetIOStats, Snapshot, VirtualContainer

@dataclass(frozen=True)
class Tick:
    at: float = 0.0

@dataclass(frozen=True)
class SnapshotCollected:
    snapshot: Optional[Snapshot] = None
    error: Optional[BaseException] = None

@dataclass(frozen=True)
class NetIOCollected:
    stats: Dict[int, NetIOStats] = field(default_factory=dict)
    error: Optional[BaseException] = None

@dataclass(frozen=True)
class DNSResolved:
    ip: str
    hostname: str = ""
    error: Optional[BaseException] = None

@dataclass(frozen=True)
class DockerResolved:
    ports: Dict[int, ContainerPort] = field(default_factory=dict)
    containers: Tuple[VirtualContainer, ...] = ()
    error: Optional[BaseException] = None

@dataclass(frozen=True)
class VersionChecked:
    info: Optional[ReleaseInfo] = None
    error: Optional[BaseException] = None

@dataclass(frozen=True)
class Key:
    key: str

@dataclass(frozen=True)
class ToggleSetting:
    name: str

@dataclass(frozen=True)
class KillCompleted:
    result: str

@dataclass(frozen=True)
class DismissError:
    pass

@dataclass(frozen=True)
class Quit:
    pass
