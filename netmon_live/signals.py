from __future__ import annotations
import logging
import os
import signal
from typing import Callable, Optional

try:
    import psutil  # type: ignore
except Exception:
    psutil = None

from .collectors.docker import Runner, kill_container, run_docker, stop_container
from .errors import UnknownSignal

log = logging.getLogger(__name__)

SIGNAL_MAP = {
    "SIGTERM": signal.SIGTERM, "TERM": signal.SIGTERM, "15": signal.SIGTERM,
    "SIGKILL": getattr(signal, "SIGKILL", signal.SIGTERM),
    "KILL": getattr(signal, "SIGKILL", signal.SIGTERM),
    "9": getattr(signal, "SIGKILL", signal.SIGTERM),
    "SIGHUP": getattr(signal, "SIGHUP", signal.SIGTERM),
    "HUP": getattr(signal, "SIGHUP", signal.SIGTERM),
    "SIGINT": signal.SIGINT, "INT": signal.SIGINT,
    "SIGQUIT": getattr(signal, "SIGQUIT", signal.SIGTERM),
    "QUIT": getattr(signal, "SIGQUIT", signal.SIGTERM),
}

def resolve_signal(name: str) -> int:
    sig = SIGNAL_MAP.get(name.strip().upper())
    if sig is None:
        raise UnknownSignal(name)
    return int(sig)

def is_force(name: str) -> bool:
    return resolve_signal(name) == SIGNAL_MAP["SIGKILL"]

class Signaller:
    """Deliver signals to PIDs and stop/kill containers."""

    def __init__(self, runner: Runner = run_docker,
                 os_kill: Optional[Callable[[int, int], None]] = None):
        self._run = runner
        self._os_kill = os_kill

    def send(self, pid: int, signal_name: str) -> None:
        sig = resolve_signal(signal_name)
        if self._os_kill is None and psutil is not None:
            try:
                psutil.Process(pid).send_signal(sig)
            except psutil.NoSuchProcess as exc:
                raise ProcessLookupError(f"no such process: {pid}") from exc
            except psutil.AccessDenied as exc:
                raise PermissionError(f"permission denied: {pid}") from exc
        else:
            (self._os_kill or os.kill)(pid, sig)
        log.info("sent %s to pid %d", signal_name, pid)

    def stop_container(self, container_id: str, force: bool = False) -> None:
        if force:
            kill_container(container_id, runner=self._run)
        else:
            stop_container(container_id, runner=self._run)
        log.info("%s container %s", "killed" if force else "stopped", container_id)
