from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..models import Application, Connection, ConnectionRow
from ..signals import is_force
from ..state.navigation import ViewLevel, ViewState
from ..state.rows import Dataset, find_virtual_container

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class KillTarget:
    process_name: str
    signal: str = "SIGTERM"
    pids: Tuple[int, ...] = ()
    exe: str = ""
    port: int = 0
    container_id: str = ""

    def describe(self) -> str:
        if self.container_id and not self.pids:
            return f"container {self.container_id} ({self.process_name})"
        if len(self.pids) == 1:
            return f"PID {self.pids[0]} ({self.process_name})"
        return f"{len(self.pids)} PIDs ({self.process_name})"

def target_for_row(view: ViewState, row: object, data: Dataset, signal: str) -> Optional[KillTarget]:
    if row is None:
        return None
    if view.level == ViewLevel.PROCESS_LIST and isinstance(row, Application):
        vc = find_virtual_container(row.name, data)
        if vc is not None:
            return KillTarget(process_name=row.name, signal=signal, exe=vc.info.image,
                              container_id=vc.info.id)
        if not row.pids:
            return None
        return KillTarget(process_name=row.name, signal=signal, pids=row.pids, exe=row.exe)
    if isinstance(row, ConnectionRow):
        exe = ""
        if data.snapshot is not None:
            app = data.snapshot.find_app(row.process_name)
            exe = app.exe if app is not None else ""
        return KillTarget(process_name=row.process_name, signal=signal, pids=(row.pid,),
                          exe=exe, port=row.connection.local_port)
    if isinstance(row, Connection):
        vc = find_virtual_container(view.process_name, data)
        return KillTarget(process_name=view.process_name, signal=signal, pids=(row.pid,),
                          port=row.local_port,
                          container_id=vc.info.id if vc is not None else "")
    return None

def execute_kill(target: KillTarget, signaller) -> str:
    """Deliver the signal and return the status line shown to the user."""
    if target.container_id:
        try:
            signaller.stop_container(target.container_id, force=is_force(target.signal))
        except Exception as exc:
            log.warning("stop container %s failed: %s", target.container_id, exc)
            return f"Failed to stop container {target.container_id}: {exc}"
        return f"Stopped container {target.container_id}"

    killed = failed = 0
    last_err: Optional[Exception] = None
    for pid in target.pids:
        try:
            signaller.send(pid, target.signal)
            killed += 1
        except Exception as exc:
            failed += 1
            last_err = exc
            log.warning("signal %s to pid %d failed: %s", target.signal, pid, exc)

    if failed == 0:
        if len(target.pids) == 1:
            return f"Killed PID {target.pids[0]} ({target.process_name})"
        return f"Killed {killed} PIDs ({target.process_name})"
    if killed == 0:
        return f"Failed to kill {target.process_name}: {last_err}"
    return f"Killed {killed} PIDs, {failed} failed ({target.process_name})"
