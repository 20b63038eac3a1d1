"""Materialize the visible, filtered and sorted rows of the top view frame."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Mapping, Optional, Sequence, Tuple

from ..collectors.docker import is_docker_process
from ..models import (
    Application, Connection, ConnectionRow, ContainerPort, NetIOStats, Snapshot,
    VirtualContainer, build_application,
)
from .filtering import (
    filter_all_connections, filter_apps, filter_connections, filter_virtual_containers,
)
from .navigation import ViewLevel, ViewState
from .sorting import sort_all_connections, sort_connections, sort_process_list

CONTAINER_PREFIX = "🐳 "

def container_display_name(vc: VirtualContainer) -> str:
    return f"{CONTAINER_PREFIX}{vc.info.name} ({vc.info.image})"

def is_virtual_container_name(name: str) -> bool:
    return name.startswith(CONTAINER_PREFIX)

@dataclass(frozen=True)
class Dataset:
    """Everything row materialization reads; built by the engine per call."""
    snapshot: Optional[Snapshot] = None
    filter_text: str = ""
    exact_port: bool = False
    netio: Mapping[int, NetIOStats] = field(default_factory=dict)
    docker_ports: Mapping[int, ContainerPort] = field(default_factory=dict)
    virtual_containers: Tuple[VirtualContainer, ...] = ()
    show_containers: bool = True

def attribute_containers(
    conns: Sequence[Connection],
    process_name: str,
    docker_ports: Mapping[int, ContainerPort],
) -> List[Connection]:
    if not docker_ports or not is_docker_process(process_name):
        return list(conns)
    out = []
    for c in conns:
        cp = docker_ports.get(c.local_port)
        if cp is not None and c.container is None:
            c = replace(c, container=cp.container, port_mapping=cp.mapping())
        out.append(c)
    return out

def virtual_container_app(vc: VirtualContainer, data: Dataset) -> Application:
    ports = vc.host_ports()
    conns: List[Connection] = []
    if data.snapshot is not None:
        for app in data.snapshot.applications:
            if not is_docker_process(app.name):
                continue
            matching = [c for c in app.connections if c.local_port in ports]
            conns.extend(attribute_containers(matching, app.name, data.docker_ports))
    return build_application(container_display_name(vc), vc.info.image, conns)

def visible_virtual_containers(data: Dataset) -> List[VirtualContainer]:
    if not data.show_containers:
        return []
    vcs = sorted(data.virtual_containers, key=lambda vc: (vc.info.name, vc.info.id))
    return filter_virtual_containers(vcs, data.filter_text, data.exact_port)

def find_virtual_container(name: str, data: Dataset) -> Optional[VirtualContainer]:
    if not data.show_containers or not is_virtual_container_name(name):
        return None
    for vc in data.virtual_containers:
        if container_display_name(vc) == name:
            return vc
    return None

def find_selected_app(name: str, data: Dataset) -> Optional[Application]:
    """Resolve a drilled-into name to a real app or a virtual container row."""
    if data.snapshot is not None:
        app = data.snapshot.find_app(name)
        if app is not None:
            return app
    vc = find_virtual_container(name, data)
    if vc is None:
        return None
    return virtual_container_app(vc, data)

def process_rows(view: ViewState, data: Dataset) -> List[Application]:
    if data.snapshot is None:
        return []
    apps = filter_apps(data.snapshot.applications, data.filter_text, data.exact_port)
    rows = sort_process_list(apps, view.sort_column, view.sort_ascending, data.netio)
    rows.extend(virtual_container_app(vc, data) for vc in visible_virtual_containers(data))
    return rows

def connection_rows(view: ViewState, data: Dataset) -> List[Connection]:
    app = find_selected_app(view.process_name, data)
    if app is None:
        return []
    conns = attribute_containers(app.connections, app.name, data.docker_ports)
    conns = filter_connections(conns, data.filter_text, data.exact_port, app.name)
    return sort_connections(conns, view.sort_column, view.sort_ascending)

def flatten_connections(data: Dataset) -> List[ConnectionRow]:
    if data.snapshot is None:
        return []
    rows = []
    for app in data.snapshot.applications:
        for c in attribute_containers(app.connections, app.name, data.docker_ports):
            rows.append(ConnectionRow(app.name, c))
    return rows

def all_connection_rows(view: ViewState, data: Dataset) -> List[ConnectionRow]:
    rows = filter_all_connections(flatten_connections(data), data.filter_text, data.exact_port)
    return sort_all_connections(rows, view.sort_column, view.sort_ascending)

def rows_for_view(view: ViewState, data: Dataset) -> list:
    if view.level == ViewLevel.PROCESS_LIST:
        return process_rows(view, data)
    if view.level == ViewLevel.CONNECTIONS:
        return connection_rows(view, data)
    return all_connection_rows(view, data)

