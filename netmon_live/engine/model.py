"""The single-writer state machine behind the monitor.

``Engine.update`` is the only code that mutates monitor state. It takes one
message, applies it, and returns the background work (``Task``) the message
calls for. Tasks never touch the engine; their results come back as messages.
Renderers read an immutable ``Frame`` built by ``Engine.frame``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..config import (
    CFG, KILL_TIMEOUT, MAX_REFRESH_INTERVAL, MIN_REFRESH_INTERVAL, REFRESH_STEP,
    RELEASE_OWNER, RELEASE_REPO, VERSION_CHECK_TIMEOUT, clamp_interval,
)
from ..errors import CollectionCancelled
from ..models import Application, NetIOStats, Snapshot
from ..state.diff import Change, ChangeLedger, ConnectionKey, diff_snapshots
from ..state.navigation import (
    NavigationStack, ProcessSelection, ViewLevel, ViewState,
    all_connections_view, connections_view, process_list_view,
)
from ..state.rows import Dataset, rows_for_view
from ..state.selection import (
    resolve_index, selected_row, sync_selection, validate_selection,
)
from ..state.sorting import columns_for_level
from .enrich import plan_dns_lookups
from .kill import KillTarget, execute_kill, target_for_row
from .messages import (
    DismissError, DNSResolved, DockerResolved, Key, KillCompleted, NetIOCollected,
    Quit, SnapshotCollected, Tick, ToggleSetting, VersionChecked,
)

log = logging.getLogger(__name__)

SETTINGS = ("dns_enabled", "service_names", "highlight_changes", "docker_containers")

@dataclass
class Task:
    """Background work requested by the engine.

    ``run`` returns the message to post back. When it raises or outlives
    ``timeout``, ``fallback(exc)`` supplies the failure message instead.
    ``delay`` postpones the start (used for the next tick); delayed tasks run
    on the timer thread and must not block. ``pool`` names the executor:
    reverse lookups get their own so a slow resolver cannot starve collection.
    """
    name: str
    run: Callable[[], Any]
    timeout: Optional[float] = None
    fallback: Optional[Callable[[BaseException], Any]] = None
    delay: float = 0.0
    pool: str = "work"

    def failed(self, exc: BaseException) -> Any:
        if self.fallback is None:
            return None
        return self.fallback(exc)

@dataclass(frozen=True)
class Frame:
    """Read-only copy of everything a renderer shows."""
    view: ViewState
    depth: int
    rows: Tuple[Any, ...] = ()
    snapshot: Optional[Snapshot] = None
    changes: Mapping[ConnectionKey, Change] = field(default_factory=dict)
    dns_cache: Mapping[str, str] = field(default_factory=dict)
    netio: Mapping[int, NetIOStats] = field(default_factory=dict)
    settings: Mapping[str, bool] = field(default_factory=dict)
    refresh_interval: float = 0.0
    filter_text: str = ""
    exact_port: bool = False
    search_mode: bool = False
    search_query: str = ""
    last_error: str = ""
    status: str = ""
    kill_target: Optional[KillTarget] = None
    update_available: str = ""
    generated_at: float = 0.0

def _err_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__

class Engine:
    def __init__(
        self,
        cfg: CFG,
        collector,
        netio=None,
        docker=None,
        dns_lookup: Optional[Callable[[str], str]] = None,
        signaller=None,
        version_checker: Optional[Callable[..., Any]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = cfg
        self.collector = collector
        self.netio = netio
        self.docker = docker
        self.dns_lookup = dns_lookup
        self.signaller = signaller
        self.version_checker = version_checker
        self.clock = clock

        self.refresh_interval = clamp_interval(cfg.refresh_interval)
        self.settings: Dict[str, bool] = {name: bool(getattr(cfg, name)) for name in SETTINGS}

        self.stack = NavigationStack(process_list_view())
        self.snapshot: Optional[Snapshot] = None
        self.prev_snapshot: Optional[Snapshot] = None
        self.ledger = ChangeLedger(clock)

        self.dns_cache: Dict[str, str] = {}
        self.dns_pending: set[str] = set()
        self.netio_cache: Dict[int, NetIOStats] = {}
        self.docker_ports: Dict = {}
        self.virtual_containers: Tuple = ()
        self.docker_pending = False

        self.last_error: Optional[str] = None
        self.last_error_at = 0.0
        self.status = ""
        self.status_at = 0.0

        self.cli_filter = cfg.port_filter
        self.active_filter = cfg.port_filter
        self.search_mode = False
        self.search_query = ""

        self.kill_target: Optional[KillTarget] = None
        self.update_available = ""
        self.pending_pid = cfg.target_pid
        self.quitting = False

        self._handlers = {
            Tick: self._on_tick,
            SnapshotCollected: self._on_snapshot,
            NetIOCollected: self._on_netio,
            DNSResolved: self._on_dns,
            DockerResolved: self._on_docker,
            VersionChecked: self._on_version,
            Key: self._on_key,
            ToggleSetting: self._on_toggle,
            KillCompleted: self._on_kill_completed,
            DismissError: self._on_dismiss,
            Quit: self._on_quit,
        }

    # ---- lifecycle ----
    def init(self) -> List[Task]:
        tasks = [self._tick_task()] + self._collect_tasks()
        docker = self._docker_task()
        if docker is not None:
            tasks.append(docker)
        if self.cfg.check_updates and self.version_checker is not None:
            tasks.append(self._version_task())
        return tasks

    def update(self, msg) -> List[Task]:
        handler = self._handlers.get(type(msg))
        if handler is None:
            log.debug("ignoring unknown message %r", msg)
            return []
        return handler(msg)

    # ---- derived state ----
    def current_view(self) -> ViewState:
        return self.stack.current()

    def filter_text(self) -> str:
        return self.search_query if self.search_mode else self.active_filter

    def exact_port(self) -> bool:
        return not self.search_mode and bool(self.cli_filter) and self.cli_filter == self.active_filter

    def dataset(self) -> Dataset:
        show = self.settings["docker_containers"]
        return Dataset(
            snapshot=self.snapshot,
            filter_text=self.filter_text(),
            exact_port=self.exact_port(),
            netio=self.netio_cache,
            docker_ports=self.docker_ports if show else {},
            virtual_containers=self.virtual_containers,
            show_containers=show,
        )

    def rows(self) -> list:
        return rows_for_view(self.current_view(), self.dataset())

    def current_status(self) -> str:
        if self.status and self.clock() - self.status_at < self.cfg.status_ttl:
            return self.status
        return ""

    def frame(self) -> Frame:
        view = self.current_view()
        return Frame(
            view=view.copy(),
            depth=len(self.stack),
            rows=tuple(self.rows()),
            snapshot=self.snapshot,
            changes=dict(self.ledger.items()),
            dns_cache=dict(self.dns_cache),
            netio=dict(self.netio_cache),
            settings=dict(self.settings),
            refresh_interval=self.refresh_interval,
            filter_text=self.filter_text(),
            exact_port=self.exact_port(),
            search_mode=self.search_mode,
            search_query=self.search_query,
            last_error=self.last_error or "",
            status=self.current_status(),
            kill_target=self.kill_target,
            update_available=self.update_available,
            generated_at=self.clock(),
        )

    def _validate(self) -> None:
        validate_selection(self.current_view(), self.rows())

    # ---- task factories ----
    def _tick_task(self) -> Task:
        return Task("tick", run=lambda: Tick(self.clock()), delay=self.refresh_interval)

    def _collect_tasks(self) -> List[Task]:
        timeout = self.cfg.collect_timeout
        tasks = [Task(
            "snapshot",
            run=lambda: SnapshotCollected(self.collector.collect(timeout=timeout)),
            timeout=timeout,
            fallback=lambda exc: SnapshotCollected(error=exc),
        )]
        if self.netio is not None:
            tasks.append(Task(
                "netio",
                run=lambda: NetIOCollected(self.netio.collect(timeout=timeout)),
                timeout=timeout,
                fallback=lambda exc: NetIOCollected(error=exc),
            ))
        return tasks

    def _docker_task(self) -> Optional[Task]:
        if self.docker is None or not self.settings["docker_containers"] or self.docker_pending:
            return None
        self.docker_pending = True
        timeout = self.cfg.docker_timeout

        def run():
            ports, containers = self.docker.resolve(timeout=timeout)
            return DockerResolved(ports=dict(ports), containers=tuple(containers))

        return Task("docker", run=run, timeout=timeout,
                    fallback=lambda exc: DockerResolved(error=exc))

    def _dns_tasks(self) -> List[Task]:
        if not self.settings["dns_enabled"] or self.dns_lookup is None:
            return []
        ips = plan_dns_lookups(self.snapshot, self.dns_cache, self.dns_pending, self.cfg.max_dns_per_tick)
        tasks = []
        for ip in ips:
            self.dns_pending.add(ip)
            tasks.append(Task(
                f"dns:{ip}",
                run=lambda ip=ip: DNSResolved(ip, self.dns_lookup(ip)),
                timeout=self.cfg.dns_timeout,
                fallback=lambda exc, ip=ip: DNSResolved(ip, error=exc),
                pool="dns",
            ))
        return tasks

    def _version_task(self) -> Task:
        checker = self.version_checker
        version = self.cfg.version
        return Task(
            "version",
            run=lambda: VersionChecked(checker(RELEASE_OWNER, RELEASE_REPO, version, VERSION_CHECK_TIMEOUT)),
            timeout=VERSION_CHECK_TIMEOUT,
            fallback=lambda exc: VersionChecked(error=exc),
        )

    def _kill_task(self, target: KillTarget) -> Task:
        signaller = self.signaller
        return Task(
            "kill",
            run=lambda: KillCompleted(execute_kill(target, signaller)),
            timeout=KILL_TIMEOUT + 5.0,
            fallback=lambda exc: KillCompleted(f"Failed to kill {target.process_name}: {_err_text(exc)}"),
        )

    # ---- message handlers ----
    def _on_tick(self, msg: Tick) -> List[Task]:
        if self.quitting:
            return []
        tasks = [self._tick_task()]
        self.ledger.prune(self.cfg.change_ttl)
        return tasks + self._collect_tasks()

    def _on_snapshot(self, msg: SnapshotCollected) -> List[Task]:
        if msg.error is not None or msg.snapshot is None:
            self.last_error = _err_text(msg.error) if msg.error is not None else "empty snapshot"
            self.last_error_at = self.clock()
            log.warning("snapshot collection failed: %s", self.last_error)
            return []
        self.last_error = None

        if self.settings["highlight_changes"]:
            self.ledger.merge(diff_snapshots(self.snapshot, msg.snapshot, self.clock()))
        self.ledger.prune(self.cfg.change_ttl)
        self.prev_snapshot, self.snapshot = self.snapshot, msg.snapshot

        self._drill_into_target_pid()
        self._validate()
        return self._dns_tasks()

    def _drill_into_target_pid(self) -> None:
        pid, self.pending_pid = self.pending_pid, 0
        if not pid or self.snapshot is None:
            return
        name = self.snapshot.process_name_for_pid(pid)
        if not name:
            log.info("pid %d has no connections; staying on the process list", pid)
            return
        root = process_list_view()
        root.selected = ProcessSelection(name)
        self.stack.reset(root)
        validate_selection(root, self.rows())
        self.stack.push(connections_view(name))

    def _on_netio(self, msg: NetIOCollected) -> List[Task]:
        if msg.error is not None:
            log.debug("netio collection failed: %s", msg.error)
            return []
        self.netio_cache.update(msg.stats)
        return []

    def _on_dns(self, msg: DNSResolved) -> List[Task]:
        self.dns_pending.discard(msg.ip)
        if msg.error is not None:
            log.debug("dns %s: %s", msg.ip, msg.error)
            self.dns_cache.setdefault(msg.ip, "")
            return []
        self.dns_cache[msg.ip] = msg.hostname
        return []

    def _on_docker(self, msg: DockerResolved) -> List[Task]:
        self.docker_pending = False
        if msg.error is not None:
            level = logging.DEBUG if isinstance(msg.error, CollectionCancelled) else logging.WARNING
            log.log(level, "docker resolution failed: %s", msg.error)
            return []
        self.docker_ports = dict(msg.ports)
        self.virtual_containers = tuple(msg.containers)
        self._validate()
        return []

    def _on_version(self, msg: VersionChecked) -> List[Task]:
        if msg.error is not None:
            log.debug("version check failed: %s", msg.error)
            return []
        if msg.info is not None and msg.info.update_available:
            self.update_available = msg.info.latest
        return []

    def _on_kill_completed(self, msg: KillCompleted) -> List[Task]:
        self.status = msg.result
        self.status_at = self.clock()
        return []

    def _on_dismiss(self, msg: DismissError) -> List[Task]:
        self.last_error = None
        return []

    def _on_quit(self, msg: Quit) -> List[Task]:
        self.quitting = True
        return []

    def _on_toggle(self, msg: ToggleSetting) -> List[Task]:
        if msg.name not in self.settings:
            log.warning("unknown setting %r", msg.name)
            return []
        enabled = not self.settings[msg.name]
        self.settings[msg.name] = enabled
        tasks: List[Task] = []
        if msg.name == "highlight_changes" and not enabled:
            self.ledger.clear()
        elif msg.name == "dns_enabled" and enabled:
            tasks = self._dns_tasks()
        elif msg.name == "docker_containers" and enabled:
            task = self._docker_task()
            if task is not None:
                tasks = [task]
        self._validate()
        return tasks

    # ---- keys ----
    def _on_key(self, msg: Key) -> List[Task]:
        key = msg.key
        if self.kill_target is not None:
            return self._kill_mode_key(key)
        if self.search_mode:
            self._search_mode_key(key)
            return []

        view = self.current_view()
        if key in ("q", "ctrl+c"):
            self.quitting = True
        elif key in ("up", "k"):
            self._move_cursor(view, -1)
        elif key in ("down", "j"):
            self._move_cursor(view, 1)
        elif key in ("left", "h"):
            self._move_column(view, -1)
        elif key in ("right", "l"):
            self._move_column(view, 1)
        elif key in ("enter", " ", "space"):
            self._enter(view)
        elif key in ("esc", "backspace"):
            if view.sort_mode:
                view.sort_mode = False
            else:
                self.stack.pop()
                self._validate()
        elif key in ("+", "="):
            if self.refresh_interval > MIN_REFRESH_INTERVAL:
                self.refresh_interval = clamp_interval(self.refresh_interval - REFRESH_STEP)
        elif key in ("-", "_"):
            if self.refresh_interval < MAX_REFRESH_INTERVAL:
                self.refresh_interval = clamp_interval(self.refresh_interval + REFRESH_STEP)
        elif key == "s":
            if not view.sort_mode:
                view.sort_mode = True
                view.selected_column = view.sort_column
        elif key == "v":
            if view.level == ViewLevel.ALL_CONNECTIONS:
                self.stack.reset(process_list_view())
            else:
                self.stack.reset(all_connections_view())
            self._validate()
        elif key == "/":
            self.search_mode = True
            self.search_query = self.active_filter
        elif key == "x":
            self._enter_kill_mode("SIGTERM")
        elif key == "X":
            self._enter_kill_mode("SIGKILL")
        return []

    def _move_cursor(self, view: ViewState, delta: int) -> None:
        rows = self.rows()
        if not rows:
            return
        idx = resolve_index(view, rows)
        view.cursor = max(0, min(len(rows) - 1, idx + delta))
        sync_selection(view, rows)

    def _move_column(self, view: ViewState, delta: int) -> None:
        if not view.sort_mode:
            return
        columns = columns_for_level(view.level)
        try:
            idx = columns.index(view.selected_column)
        except ValueError:
            idx = 0
        idx = max(0, min(len(columns) - 1, idx + delta))
        view.selected_column = columns[idx]

    def _enter(self, view: ViewState) -> None:
        if view.sort_mode:
            if view.sort_column == view.selected_column:
                view.sort_ascending = not view.sort_ascending
            else:
                view.sort_column = view.selected_column
                view.sort_ascending = True
            view.sort_mode = False
            self._validate()
            return
        if view.level != ViewLevel.PROCESS_LIST:
            return
        row = selected_row(view, self.rows())
        if isinstance(row, Application):
            view.selected = ProcessSelection(row.name)
            self.stack.push(connections_view(row.name))

    def _search_mode_key(self, key: str) -> None:
        if key == "enter":
            self.active_filter = self.search_query
            self.search_mode = False
        elif key == "esc":
            self.search_query = self.active_filter
            self.search_mode = False
        elif key == "backspace":
            self.search_query = self.search_query[:-1]
        elif key == "space":
            self.search_query += " "
        elif len(key) == 1 and key.isprintable():
            self.search_query += key
        else:
            return
        self._validate()

    def _enter_kill_mode(self, signal: str) -> None:
        if self.signaller is None or self.snapshot is None:
            return
        view = self.current_view()
        rows = self.rows()
        self.kill_target = target_for_row(view, selected_row(view, rows), self.dataset(), signal)

    def _kill_mode_key(self, key: str) -> List[Task]:
        if key in ("y", "Y"):
            target, self.kill_target = self.kill_target, None
            return [self._kill_task(target)]
        if key in ("n", "N", "esc"):
            self.kill_target = None
        return []
