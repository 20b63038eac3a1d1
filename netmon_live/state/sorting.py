"""Deterministic, non-mutating sorts for the three list levels.

Every column key ends in a fixed tie-breaker so equal primary values never
reorder between refreshes: process rows fall back to the name, connection
rows to (local, remote), all-connections rows to (process, local, remote).
A descending sort reverses the whole key, tie-breakers included.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..models import Application, Connection, ConnectionRow, NetIOStats
from .navigation import SortColumn, ViewLevel

PROCESS_LIST_COLUMNS = [
    SortColumn.PID, SortColumn.PROCESS, SortColumn.CONNS, SortColumn.ESTABLISHED,
    SortColumn.LISTEN, SortColumn.TX, SortColumn.RX,
]
CONNECTIONS_COLUMNS = [
    SortColumn.PROTOCOL, SortColumn.LOCAL, SortColumn.REMOTE, SortColumn.STATE,
]
ALL_CONNECTIONS_COLUMNS = [
    SortColumn.PID, SortColumn.PROCESS, SortColumn.PROTOCOL, SortColumn.LOCAL,
    SortColumn.REMOTE, SortColumn.STATE,
]

def columns_for_level(level: ViewLevel) -> List[SortColumn]:
    if level == ViewLevel.PROCESS_LIST:
        return list(PROCESS_LIST_COLUMNS)
    if level == ViewLevel.CONNECTIONS:
        return list(CONNECTIONS_COLUMNS)
    return list(ALL_CONNECTIONS_COLUMNS)

def aggregated_bytes(pids: Sequence[int], netio: Mapping[int, NetIOStats], sent: bool) -> int:
    total = 0
    for pid in pids:
        stats = netio.get(pid)
        if stats is not None:
            total += stats.bytes_sent if sent else stats.bytes_recv
    return total

def _first_pid(app: Application) -> int:
    return app.pids[0] if app.pids else 0

def sort_process_list(
    apps: Sequence[Application],
    column: SortColumn,
    ascending: bool = True,
    netio: Optional[Mapping[int, NetIOStats]] = None,
) -> List[Application]:
    stats = netio or {}
    primary: Dict[SortColumn, Callable[[Application], object]] = {
        SortColumn.PID: _first_pid,
        SortColumn.CONNS: lambda a: len(a.connections),
        SortColumn.ESTABLISHED: lambda a: a.established_count,
        SortColumn.LISTEN: lambda a: a.listen_count,
        SortColumn.TX: lambda a: aggregated_bytes(a.pids, stats, sent=True),
        SortColumn.RX: lambda a: aggregated_bytes(a.pids, stats, sent=False),
    }
    key_fn = primary.get(column)
    if key_fn is None:
        # PROCESS and anything not meaningful for processes sort by name
        return sorted(apps, key=lambda a: a.name, reverse=not ascending)
    return sorted(apps, key=lambda a: (key_fn(a), a.name), reverse=not ascending)


_CONN_PRIMARY: Dict[SortColumn, Callable[[Connection], object]] = {
    SortColumn.PID: lambda c: c.pid,
    SortColumn.PROTOCOL: lambda c: c.protocol,
    SortColumn.LOCAL: lambda c: c.local_addr,
    SortColumn.REMOTE: lambda c: c.remote_addr,
    SortColumn.STATE: lambda c: c.state,
}

def sort_connections(
    conns: Sequence[Connection],
    column: SortColumn,
    ascending: bool = True,
) -> List[Connection]:
    key_fn = _CONN_PRIMARY.get(column, _CONN_PRIMARY[SortColumn.LOCAL])
    return sorted(
        conns,
        key=lambda c: (key_fn(c), c.local_addr, c.remote_addr, c.pid, c.protocol),
        reverse=not ascending,
    )

def sort_all_connections(
    rows: Sequence[ConnectionRow],
    column: SortColumn,
    ascending: bool = True,
) -> List[ConnectionRow]:
    if column == SortColumn.PROCESS:
        key_fn: Callable[[ConnectionRow], object] = lambda r: r.process_name
    else:
        conn_key = _CONN_PRIMARY.get(column, _CONN_PRIMARY[SortColumn.PID])
        key_fn = lambda r: conn_key(r.connection)
    return sorted(
        rows,
        key=lambda r: (
            key_fn(r), r.process_name, r.local_addr, r.remote_addr,
            r.pid, r.connection.protocol,
        ),
        reverse=not ascending,
    )
