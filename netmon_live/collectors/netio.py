from __future__ import annotations
import logging
import os
import platform
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

try:
    import psutil  # type: ignore
except Exception:
    psutil = None

from ..errors import CollectionError
from ..models import NetIOStats
from .base import Deadline

log = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")

def read_net_dev(text: str) -> Tuple[int, int]:
    """Sum (recv, sent) bytes over non-loopback interfaces of a net/dev table."""
    recv_total = sent_total = 0
    for lineno, line in enumerate(text.splitlines()):
        if lineno < 2:
            continue
        iface, sep, rest = line.strip().partition(":")
        if not sep or iface.strip() == "lo":
            continue
        fields = rest.split()
        if len(fields) < 10:
            continue
        try:
            recv_total += int(fields[0])
            sent_total += int(fields[8])
        except ValueError:
            continue
    return recv_total, sent_total

class ProcNetIOCollector:
    """
    Per-process byte counters from /proc/<pid>/net/dev.

    net/dev is per network namespace, not per process, so only the first PID
    seen in each namespace gets the counters.
    """

    def __init__(self, proc_root: Path = PROC_ROOT):
        self.proc_root = proc_root

    def _namespace(self, pid: int) -> str:
        try:
            return os.readlink(self.proc_root / str(pid) / "ns" / "net")
        except OSError:
            return ""

    def _pids(self) -> list[int]:
        if psutil is not None:
            return psutil.pids()
        return sorted(int(p.name) for p in self.proc_root.iterdir() if p.name.isdigit())

    def collect(self, timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None) -> Dict[int, NetIOStats]:
        stats: Dict[int, NetIOStats] = {}
        if platform.system() != "Linux":
            return stats
        deadline = Deadline(timeout, cancel)
        try:
            pids = self._pids()
        except OSError as exc:
            raise CollectionError(f"failed to list processes: {exc}") from exc

        now = time.time()
        seen_ns: set[str] = set()
        for pid in pids:
            deadline.check()
            ns = self._namespace(pid)
            if not ns or ns in seen_ns:
                continue
            seen_ns.add(ns)
            try:
                text = (self.proc_root / str(pid) / "net" / "dev").read_text()
            except OSError:
                continue
            recv, sent = read_net_dev(text)
            if recv or sent:
                stats[pid] = NetIOStats(bytes_sent=sent, bytes_recv=recv, updated_at=now)
        log.debug("netio: %d namespaces, %d pids with traffic", len(seen_ns), len(stats))
        return stats
