from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..models import Application, Connection, ConnectionRow, VirtualContainer
from ..utils.net import extract_ports

@dataclass(frozen=True)
class FilterFields:
    process_name: str = ""
    pids: Tuple[int, ...] = ()
    local_addr: str = ""
    remote_addr: str = ""
    protocol: str = ""
    state: str = ""

def matches_filter(text: str, fields: FilterFields, exact_port: bool = False) -> bool:
    """Case-insensitive substring match over every field.

    With ``exact_port`` only the ports parsed from the addresses are
    considered, and they must equal ``text`` ("80" never matches 8080).
    """
    if not text:
        return True

    if exact_port:
        return any(str(p) == text for p in extract_ports(fields.local_addr, fields.remote_addr))

    needle = text.lower()
    if any(text in str(pid) for pid in fields.pids):
        return True
    for value in (fields.process_name, fields.local_addr, fields.remote_addr,
                  fields.protocol, fields.state):
        if value and needle in value.lower():
            return True
    return False

def connection_fields(conn: Connection, process_name: str = "") -> FilterFields:
    return FilterFields(
        process_name=process_name,
        pids=(conn.pid,),
        local_addr=conn.local_addr,
        remote_addr=conn.remote_addr,
        protocol=conn.protocol,
        state=conn.state,
    )

def app_matches(app: Application, text: str, exact_port: bool = False) -> bool:
    if not text:
        return True
    if not exact_port and matches_filter(text, FilterFields(process_name=app.name, pids=app.pids)):
        return True
    return any(matches_filter(text, connection_fields(c, app.name), exact_port) for c in app.connections)

def filter_apps(apps: Sequence[Application], text: str, exact_port: bool = False) -> List[Application]:
    return [a for a in apps if app_matches(a, text, exact_port)]

def filter_connections(
    conns: Sequence[Connection],
    text: str,
    exact_port: bool = False,
    process_name: str = "",
) -> List[Connection]:
    return [c for c in conns if matches_filter(text, connection_fields(c, process_name), exact_port)]

def filter_all_connections(
    rows: Sequence[ConnectionRow],
    text: str,
    exact_port: bool = False,
) -> List[ConnectionRow]:
    return [r for r in rows if matches_filter(text, connection_fields(r.connection, r.process_name), exact_port)]

def filter_virtual_containers(
    vcs: Sequence[VirtualContainer],
    text: str,
    exact_port: bool = False,
) -> List[VirtualContainer]:
    if not text:
        return list(vcs)
    if exact_port:
        return [vc for vc in vcs if any(str(p) == text for p in vc.host_ports())]
    needle = text.lower()
    return [
        vc for vc in vcs
        if needle in vc.info.name.lower()
        or needle in vc.info.image.lower()
        or needle in vc.info.id.lower()
    ]
