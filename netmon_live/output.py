from __future__ import annotations
import json as stdjson
from typing import Any, Dict, Mapping, Optional

try:
    import orjson as _oj
    def dumps(obj: Any, pretty: bool = False) -> str:
        opts = _oj.OPT_INDENT_2 if pretty else 0
        return _oj.dumps(obj, option=opts | _oj.OPT_NON_STR_KEYS).decode()
except Exception:
    _oj = None
    def dumps(obj: Any, pretty: bool = False) -> str:
        return stdjson.dumps(obj, indent=2 if pretty else None, ensure_ascii=False)

from .models import Application, Connection, ConnectionRow, NetIOStats, Snapshot, build_application
from .services import display_addr
from .state.diff import ConnectionKey
from .state.sorting import aggregated_bytes

def connection_to_dict(conn) -> Dict[str, Any]:
    d = {
        "pid": conn.pid,
        "protocol": conn.protocol,
        "local_addr": conn.local_addr,
        "remote_addr": conn.remote_addr,
        "state": conn.state,
    }
    if conn.container is not None:
        d["container"] = {"name": conn.container.name, "image": conn.container.image, "id": conn.container.id}
    return d

def application_to_dict(app: Application, netio: Optional[Mapping[int, NetIOStats]] = None) -> Dict[str, Any]:
    netio = netio or {}
    return {
        "name": app.name,
        "pids": list(app.pids),
        "connection_count": app.connection_count,
        "established_count": app.established_count,
        "listen_count": app.listen_count,
        "bytes_sent": aggregated_bytes(app.pids, netio, sent=True),
        "bytes_recv": aggregated_bytes(app.pids, netio, sent=False),
        "connections": [connection_to_dict(c) for c in app.connections],
    }

def snapshot_to_dict(snapshot: Snapshot, netio: Optional[Mapping[int, NetIOStats]] = None) -> Dict[str, Any]:
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "applications": [application_to_dict(a, netio) for a in snapshot.applications],
        "skipped_count": snapshot.skipped_count,
    }

def _rebuild(snapshot: Snapshot, apps) -> Snapshot:
    return Snapshot(applications=tuple(apps), timestamp=snapshot.timestamp,
                    skipped_count=snapshot.skipped_count)

def filter_snapshot_by_port(snapshot: Snapshot, port: str) -> Snapshot:
    """Keep connections whose local or remote address ends in :port, PIDs narrowed to match."""
    suffix = ":" + port
    apps = []
    for app in snapshot.applications:
        conns = [c for c in app.connections
                 if c.local_addr.endswith(suffix) or c.remote_addr.endswith(suffix)]
        if conns:
            apps.append(build_application(app.name, app.exe, conns))
    return _rebuild(snapshot, apps)

def filter_snapshot_by_pid(snapshot: Snapshot, pid: int) -> Snapshot:
    apps = []
    for app in snapshot.applications:
        if pid not in app.pids:
            continue
        conns = [c for c in app.connections if c.pid == pid]
        if conns:
            apps.append(build_application(app.name, app.exe, conns))
    return _rebuild(snapshot, apps)

def _change_label(frame, conn) -> Optional[str]:
    change = frame.changes.get(ConnectionKey.of(conn))
    return change.type.value if change is not None else None

def _display_connection(frame, conn, process_name: str) -> Dict[str, Any]:
    show_services = frame.settings.get("service_names", True)
    dns = frame.dns_cache if frame.settings.get("dns_enabled", True) else None
    d = connection_to_dict(conn)
    d["process_name"] = process_name
    d["local_display"] = display_addr(conn.local_addr, conn.protocol, show_services)
    d["remote_display"] = display_addr(conn.remote_addr, conn.protocol, show_services, dns)
    d["change"] = _change_label(frame, conn) if frame.settings.get("highlight_changes", True) else None
    return d

def frame_to_dict(frame) -> Dict[str, Any]:
    """JSON shape of a published engine frame, addresses rendered for display."""
    view = frame.view
    rows = []
    for row in frame.rows:
        if isinstance(row, Application):
            d = application_to_dict(row, frame.netio)
            d.pop("connections")
            d["exe"] = row.exe
            rows.append(d)
        elif isinstance(row, ConnectionRow):
            rows.append(_display_connection(frame, row.connection, row.process_name))
        elif isinstance(row, Connection):
            rows.append(_display_connection(frame, row, view.process_name))
    kill = frame.kill_target
    return {
        "level": view.level.label,
        "process_name": view.process_name,
        "depth": frame.depth,
        "cursor": view.cursor,
        "sort_column": view.sort_column.value,
        "sort_ascending": view.sort_ascending,
        "sort_mode": view.sort_mode,
        "selected_column": view.selected_column.value,
        "rows": rows,
        "refresh_interval": frame.refresh_interval,
        "filter": frame.filter_text,
        "exact_port": frame.exact_port,
        "search_mode": frame.search_mode,
        "settings": dict(frame.settings),
        "error": frame.last_error or None,
        "status": frame.status or None,
        "kill_prompt": f"Send {kill.signal} to {kill.describe()}? [y/n]" if kill is not None else None,
        "update_available": frame.update_available or None,
        "skipped_count": frame.snapshot.skipped_count if frame.snapshot is not None else 0,
    }
