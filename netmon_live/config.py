from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

MIN_REFRESH_INTERVAL = 0.5
MAX_REFRESH_INTERVAL = 10.0
DEFAULT_REFRESH_INTERVAL = 2.0
REFRESH_STEP = 0.5

COLLECT_TIMEOUT = 5.0
DNS_TIMEOUT = 2.0
DOCKER_TIMEOUT = 5.0
KILL_TIMEOUT = 10.0
VERSION_CHECK_TIMEOUT = 5.0

MAX_DNS_LOOKUPS_PER_TICK = 10
CHANGE_TTL = 3.0   # seconds a connection stays highlighted as added/removed
STATUS_TTL = 3.0   # seconds a kill result stays on screen

RELEASE_OWNER = "kostyay"
RELEASE_REPO = "netmon"

@dataclass
class CFG:
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    dns_enabled: bool = True
    service_names: bool = True
    highlight_changes: bool = True
    docker_containers: bool = True
    port_filter: str = ""         # exact-port filter from the command line
    target_pid: int = 0           # drill into this PID on the first snapshot
    version: str = "dev"
    check_updates: bool = True
    collect_timeout: float = COLLECT_TIMEOUT
    dns_timeout: float = DNS_TIMEOUT
    docker_timeout: float = DOCKER_TIMEOUT
    max_dns_per_tick: int = MAX_DNS_LOOKUPS_PER_TICK
    change_ttl: float = CHANGE_TTL
    status_ttl: float = STATUS_TTL
    web_host: str = "127.0.0.1"   # bind address; POSTs must name it or a loopback host
    web_port: int = 8765

def clamp_interval(value: float) -> float:
    return max(MIN_REFRESH_INTERVAL, min(MAX_REFRESH_INTERVAL, value))

def init_cfg_from_args(args) -> CFG:
    cfg = CFG()
    cfg.refresh_interval = clamp_interval(float(getattr(args, "interval", DEFAULT_REFRESH_INTERVAL)))
    cfg.dns_enabled = not bool(getattr(args, "no_dns", False))
    cfg.service_names = not bool(getattr(args, "no_service_names", False))
    cfg.highlight_changes = not bool(getattr(args, "no_highlight", False))
    cfg.docker_containers = not bool(getattr(args, "no_docker", False))
    cfg.check_updates = not bool(getattr(args, "no_update_check", False))
    port: Optional[str] = getattr(args, "port_filter", None)
    if port:
        cfg.port_filter = str(port).strip()
    cfg.target_pid = int(getattr(args, "pid", 0) or 0)
    cfg.web_host = str(getattr(args, "host", cfg.web_host) or cfg.web_host)
    cfg.web_port = int(getattr(args, "web_port", cfg.web_port) or cfg.web_port)
    version = getattr(args, "version_string", None)
    if version:
        cfg.version = version
    return cfg
