from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from .utils.net import extract_port

PROTO_TCP = "TCP"
PROTO_UDP = "UDP"
PROTO_UNKNOWN = "UNK"

STATE_ESTABLISHED = "ESTABLISHED"
STATE_LISTEN = "LISTEN"
STATE_TIME_WAIT = "TIME_WAIT"
STATE_CLOSE_WAIT = "CLOSE_WAIT"
STATE_NONE = "-"

@dataclass(frozen=True)
class NetIOStats:
    bytes_sent: int = 0
    bytes_recv: int = 0
    updated_at: float = 0.0

@dataclass(frozen=True)
class ContainerInfo:
    name: str
    image: str
    id: str  # short (12 char) container id

@dataclass(frozen=True)
class PortMapping:
    host_port: int
    container_port: int
    protocol: str = "tcp"

@dataclass(frozen=True)
class ContainerPort:
    container: ContainerInfo
    host_port: int
    container_port: int
    protocol: str = "tcp"

    def mapping(self) -> PortMapping:
        return PortMapping(self.host_port, self.container_port, self.protocol)

@dataclass(frozen=True)
class VirtualContainer:
    """A running container shown as an Application-shaped row."""
    info: ContainerInfo
    port_mappings: Tuple[PortMapping, ...] = ()

    def host_ports(self) -> set[int]:
        return {pm.host_port for pm in self.port_mappings}

@dataclass(frozen=True)
class Connection:
    pid: int
    protocol: str
    local_addr: str   # '127.0.0.1:52341'
    remote_addr: str  # '142.250.80.46:443', '*' when listening
    state: str        # 'ESTABLISHED', 'LISTEN', '-' for UDP
    container: Optional[ContainerInfo] = None
    port_mapping: Optional[PortMapping] = None

    @property
    def local_port(self) -> int:
        return extract_port(self.local_addr)

@dataclass(frozen=True)
class Application:
    name: str
    exe: str = ""
    pids: Tuple[int, ...] = ()
    connections: Tuple[Connection, ...] = ()
    established_count: int = 0
    listen_count: int = 0

    @property
    def connection_count(self) -> int:
        return len(self.connections)

def build_application(name: str, exe: str, connections) -> Application:
    """Group connections under one app, deriving PIDs and state counts."""
    conns = tuple(connections)
    return Application(
        name=name,
        exe=exe,
        pids=tuple(sorted({c.pid for c in conns})),
        connections=conns,
        established_count=sum(1 for c in conns if c.state == STATE_ESTABLISHED),
        listen_count=sum(1 for c in conns if c.state == STATE_LISTEN),
    )

@dataclass(frozen=True)
class Snapshot:
    applications: Tuple[Application, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)
    skipped_count: int = 0  # connections whose process could not be resolved

    def total_connections(self) -> int:
        return sum(len(app.connections) for app in self.applications)

    def find_app(self, name: str) -> Optional[Application]:
        for app in self.applications:
            if app.name == name:
                return app
        return None

    def process_name_for_pid(self, pid: int) -> str:
        for app in self.applications:
            if pid in app.pids:
                return app.name
        return ""

@dataclass(frozen=True)
class ConnectionRow:
    """A connection flattened out of its app, for the all-connections view."""
    process_name: str
    connection: Connection

    @property
    def pid(self) -> int:
        return self.connection.pid

    @property
    def local_addr(self) -> str:
        return self.connection.local_addr

    @property
    def remote_addr(self) -> str:
        return self.connection.remote_addr
