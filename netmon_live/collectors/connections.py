from __future__ import annotations
import logging
import socket
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

try:
    import psutil  # type: ignore
except Exception:
    psutil = None

from ..errors import CollectionError
from ..models import (
    PROTO_TCP, PROTO_UDP, PROTO_UNKNOWN, STATE_NONE,
    Application, Connection, Snapshot, build_application,
)
from ..utils.net import format_addr
from .base import Deadline

log = logging.getLogger(__name__)

def _addr_parts(addr) -> Tuple[str, int]:
    if not addr:
        return ("", 0)
    ip = addr.ip if hasattr(addr, "ip") else addr[0]
    port = addr.port if hasattr(addr, "port") else addr[1]
    return (ip, port)

def protocol_for(sock_type) -> str:
    if sock_type == socket.SOCK_STREAM:
        return PROTO_TCP
    if sock_type == socket.SOCK_DGRAM:
        return PROTO_UDP
    return PROTO_UNKNOWN

def remote_for(raddr) -> str:
    ip, port = _addr_parts(raddr)
    if not ip or not port:
        return "*"
    return format_addr(ip, port)

def state_for(status: str) -> str:
    if not status or status == "NONE":
        return STATE_NONE
    return status

def sort_by_connection_count(apps: List[Application]) -> List[Application]:
    return sorted(apps, key=lambda a: (-len(a.connections), a.name))

class PsutilCollector:
    """Enumerate sockets with psutil and group them by process name."""

    def __init__(self, kind: str = "inet"):
        self.kind = kind

    def _process_info(self, pid: int, cache: Dict[int, Tuple[str, str]]) -> Tuple[str, str]:
        if pid in cache:
            return cache[pid]
        name = exe = ""
        try:
            p = psutil.Process(pid)
            name = p.name()
            try:
                exe = p.exe()
            except psutil.Error:
                exe = ""
        except psutil.Error:
            pass
        cache[pid] = (name, exe)
        return cache[pid]

    def collect(self, timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None) -> Snapshot:
        if psutil is None:
            raise CollectionError("psutil is not installed")
        deadline = Deadline(timeout, cancel)
        try:
            raw = psutil.net_connections(kind=self.kind)
        except psutil.AccessDenied as exc:
            raise CollectionError(f"permission denied listing connections: {exc}") from exc
        except (psutil.Error, OSError) as exc:
            raise CollectionError(f"failed to get connections: {exc}") from exc

        names: Dict[int, Tuple[str, str]] = {}
        grouped: Dict[str, List[Connection]] = {}
        exes: Dict[str, str] = {}
        skipped = 0
        for c in raw:
            deadline.check()
            if not c.pid:
                continue
            name, exe = self._process_info(c.pid, names)
            if not name:
                skipped += 1
                continue
            lip, lport = _addr_parts(c.laddr)
            grouped.setdefault(name, []).append(Connection(
                pid=c.pid,
                protocol=protocol_for(c.type),
                local_addr=format_addr(lip, lport),
                remote_addr=remote_for(c.raddr),
                state=state_for(str(c.status)),
            ))
            exes.setdefault(name, exe)

        apps = [build_application(name, exes.get(name, ""), conns) for name, conns in grouped.items()]
        if skipped:
            log.debug("skipped %d connections with unknown process", skipped)
        return Snapshot(
            applications=tuple(sort_by_connection_count(apps)),
            timestamp=datetime.now(),
            skipped_count=skipped,
        )
