from __future__ import annotations
import sys
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Set

from .config import COLLECT_TIMEOUT
from .errors import CollectionError, UnknownSignal
from .models import Snapshot
from .signals import resolve_signal

@dataclass(frozen=True)
class PortTarget:
    pid: int
    name: str
    port: int

def parse_ports(values: Iterable[str]) -> List[int]:
    """'8080,3000' and repeated -p flags flatten into one list of ports."""
    ports = []
    for value in values:
        for piece in str(value).split(","):
            piece = piece.strip()
            if not piece:
                continue
            if not piece.isdigit():
                raise ValueError(f"invalid port: {piece}")
            ports.append(int(piece))
    return ports

def find_port_targets(snapshot: Snapshot, ports: Sequence[int]) -> List[PortTarget]:
    wanted: Set[int] = set(ports)
    seen = set()
    out = []
    for app in snapshot.applications:
        for c in app.connections:
            port = c.local_port
            if port <= 0 or port not in wanted or (c.pid, port) in seen:
                continue
            seen.add((c.pid, port))
            out.append(PortTarget(pid=c.pid, name=app.name, port=port))
    return out

def run_kill(args, collector, signaller, stdin=None, out=None) -> int:
    stdin = stdin or sys.stdin
    out = out or sys.stdout
    try:
        resolve_signal(args.signal)
        ports = parse_ports(args.port)
    except (UnknownSignal, ValueError) as exc:
        print(f"[error] {exc}", file=out)
        return 2
    try:
        snapshot = collector.collect(timeout=COLLECT_TIMEOUT)
    except CollectionError as exc:
        print(f"[error] failed to collect network data: {exc}", file=out)
        return 1

    targets = find_port_targets(snapshot, ports)
    if not targets:
        print("No processes found on specified port(s)", file=out)
        return 0

    print("Processes to kill:", file=out)
    for t in targets:
        print(f"  PID {t.pid} ({t.name}) on port {t.port}", file=out)
    print(f"Signal: {args.signal}", file=out)

    if not args.yes:
        print("\nProceed? [y/N] ", end="", file=out, flush=True)
        answer = (stdin.readline() or "").strip().lower()
        if answer not in ("y", "yes"):
            print("Aborted", file=out)
            return 0

    killed = failed = 0
    for t in targets:
        try:
            signaller.send(t.pid, args.signal)
        except Exception as exc:
            print(f"Failed to kill PID {t.pid} ({t.name}): {exc}", file=out)
            failed += 1
        else:
            print(f"Killed PID {t.pid} ({t.name})", file=out)
            killed += 1

    print(f"\nKilled: {killed}, Failed: {failed}", file=out)
    return 1 if failed else 0
