from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

try:
    import psutil  # type: ignore
except Exception:
    psutil = None

from . import __version__
from .collectors import DockerCLIResolver, ProcNetIOCollector, PsutilCollector, check_latest, resolve_one
from .config import CFG, DEFAULT_REFRESH_INTERVAL, init_cfg_from_args
from .engine import Engine, Orchestrator
from .errors import CollectionError
from .killcmd import run_kill
from .output import dumps, filter_snapshot_by_pid, filter_snapshot_by_port, snapshot_to_dict
from .signals import Signaller
from .web import create_app

log = logging.getLogger("netmon_live")

def parse_args(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(prog="netmon-live", description="Live network connections grouped by process")
    ap.add_argument("port_filter", nargs="?", default=None, help="only show connections on this port (exact match)")
    ap.add_argument("--interval", type=float, default=DEFAULT_REFRESH_INTERVAL, help="refresh interval in seconds (0.5-10)")
    ap.add_argument("--pid", type=int, default=0, help="drill into the connections of this process")
    ap.add_argument("--json", action="store_true", help="collect once and print JSON")
    ap.add_argument("--host", type=str, default="127.0.0.1", help="web UI bind address")
    ap.add_argument("--web-port", type=int, default=8765)
    ap.add_argument("--no-dns", action="store_true", help="do not reverse-resolve remote addresses")
    ap.add_argument("--no-service-names", action="store_true", help="show numeric ports")
    ap.add_argument("--no-highlight", action="store_true", help="do not highlight added/removed connections")
    ap.add_argument("--no-docker", action="store_true", help="do not map ports to Docker containers")
    ap.add_argument("--no-update-check", action="store_true")
    ap.add_argument("--log-level", type=str, default="WARNING")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = ap.parse_args(argv)
    args.version_string = __version__
    return args

def parse_kill_args(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(prog="netmon-live kill", description="Kill processes listening on the given ports")
    ap.add_argument("-p", "--port", action="append", required=True, help="port(s), comma separated or repeated")
    ap.add_argument("-s", "--signal", type=str, default="SIGTERM", help="SIGTERM, SIGKILL, SIGHUP, SIGINT, SIGQUIT or numeric")
    ap.add_argument("-y", "--yes", action="store_true", help="skip the confirmation prompt")
    ap.add_argument("--log-level", type=str, default="WARNING")
    return ap.parse_args(argv)

def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

def validate_args(args) -> Optional[str]:
    if args.port_filter is not None and not str(args.port_filter).isdigit():
        return f"invalid port: {args.port_filter}"
    if args.pid and args.port_filter:
        return "cannot specify both --pid and port filter"
    if args.pid and psutil is not None and not psutil.pid_exists(args.pid):
        return f"process {args.pid} not found"
    return None

def run_json(cfg: CFG, collector, netio) -> int:
    try:
        snapshot = collector.collect(timeout=cfg.collect_timeout)
    except CollectionError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    try:
        stats = netio.collect(timeout=cfg.collect_timeout)
    except CollectionError as exc:
        log.warning("network I/O stats unavailable: %s", exc)
        stats = {}
    if cfg.port_filter:
        snapshot = filter_snapshot_by_port(snapshot, cfg.port_filter)
    if cfg.target_pid:
        snapshot = filter_snapshot_by_pid(snapshot, cfg.target_pid)
    print(dumps(snapshot_to_dict(snapshot, stats), pretty=True))
    return 0

def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    if argv and argv[0] == "kill":
        kargs = parse_kill_args(argv[1:])
        setup_logging(kargs.log_level)
        return run_kill(kargs, PsutilCollector(), Signaller())

    args = parse_args(argv)
    setup_logging(args.log_level)
    problem = validate_args(args)
    if problem:
        print(f"[error] {problem}", file=sys.stderr)
        return 2
    cfg = init_cfg_from_args(args)

    collector = PsutilCollector()
    netio = ProcNetIOCollector()
    if args.json:
        return run_json(cfg, collector, netio)

    engine = Engine(
        cfg,
        collector,
        netio=netio,
        docker=DockerCLIResolver(),
        dns_lookup=resolve_one,
        signaller=Signaller(),
        version_checker=check_latest,
    )
    orchestrator = Orchestrator(engine)
    orchestrator.start()

    app = create_app(cfg, orchestrator)
    print(f"[*] Refreshing every {cfg.refresh_interval:.1f}s"
          + (f", filtered to port {cfg.port_filter}" if cfg.port_filter else ""))
    print(f"[*] Serving on http://{cfg.web_host}:{cfg.web_port}")
    try:
        app.run(host=cfg.web_host, port=cfg.web_port, debug=False, use_reloader=False)
    finally:
        orchestrator.stop()
    return 0

if __name__ == "__main__":
    sys.exit(main())
