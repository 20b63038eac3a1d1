from __future__ import annotations
import json
import logging
import re
import subprocess
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import CollectionCancelled
from ..models import ContainerInfo, ContainerPort, PortMapping, VirtualContainer
from .base import Deadline

log = logging.getLogger(__name__)

DOCKER_PS = ["docker", "ps", "--no-trunc", "--format", "{{json .}}"]

DOCKER_PROCESS_NAMES = {
    "com.docker.backend", "dockerd", "docker-proxy", "containerd",
    "docker", "com.docker.vpnkit", "vpnkit-bridge",
}

# '0.0.0.0:8080->80/tcp', ':::8000-8001->8000-8001/tcp'; bare '80/tcp' is unpublished
PORT_RE = re.compile(
    r"(?P<host>\d+)(?:-(?P<host_end>\d+))?->(?P<cport>\d+)(?:-(?P<cport_end>\d+))?/(?P<proto>\w+)")

Runner = Callable[[Sequence[str], Optional[float]], str]

def run_docker(args: Sequence[str], timeout: Optional[float]) -> str:
    return subprocess.check_output(list(args), text=True, stderr=subprocess.DEVNULL, timeout=timeout)

def is_docker_process(name: str) -> bool:
    return name.lower() in DOCKER_PROCESS_NAMES

def short_id(container_id: str) -> str:
    return container_id[:12]

def clean_name(names: str) -> str:
    first = names.split(",")[0].strip() if names else ""
    return first.lstrip("/")

def parse_ports(ports: str) -> List[PortMapping]:
    out: List[PortMapping] = []
    seen = set()
    for m in PORT_RE.finditer(ports or ""):
        host = int(m.group("host"))
        host_end = int(m.group("host_end") or host)
        cport = int(m.group("cport"))
        for offset in range(host_end - host + 1):
            pm = PortMapping(host + offset, cport + offset if m.group("cport_end") else cport, m.group("proto"))
            if pm not in seen:
                seen.add(pm)
                out.append(pm)
    return out

def parse_ps_output(text: str) -> Tuple[Dict[int, ContainerPort], List[VirtualContainer]]:
    ports: Dict[int, ContainerPort] = {}
    containers: List[VirtualContainer] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            row = json.loads(line)
        except ValueError:
            log.debug("docker ps: unparseable line %r", line)
            continue
        info = ContainerInfo(
            name=clean_name(row.get("Names", "")),
            image=row.get("Image", ""),
            id=short_id(row.get("ID", "")),
        )
        mappings = parse_ports(row.get("Ports", ""))
        for pm in mappings:
            ports[pm.host_port] = ContainerPort(info, pm.host_port, pm.container_port, pm.protocol)
        containers.append(VirtualContainer(info=info, port_mappings=tuple(mappings)))
    return ports, containers

class DockerCLIResolver:
    """
    Map published host ports to running containers via the docker CLI.

    An absent or unreachable daemon degrades to an empty result. Only a
    cancelled request or an expired deadline is raised to the caller.
    """

    def __init__(self, runner: Runner = run_docker):
        self._run = runner

    def resolve(self, timeout: Optional[float] = None,
                cancel: Optional[threading.Event] = None
                ) -> Tuple[Dict[int, ContainerPort], List[VirtualContainer]]:
        deadline = Deadline(timeout, cancel)
        deadline.check()
        try:
            out = self._run(DOCKER_PS, deadline.remaining())
        except CollectionCancelled:
            raise
        except subprocess.TimeoutExpired as exc:
            raise CollectionCancelled("docker ps deadline exceeded") from exc
        except Exception as exc:
            if deadline.cancelled():
                raise CollectionCancelled("request cancelled") from exc
            log.debug("docker unavailable: %s", exc)
            return {}, []
        deadline.check()
        return parse_ps_output(out)

def stop_container(container_id: str, timeout_secs: int = 10, runner: Runner = run_docker) -> None:
    args = ["docker", "stop"]
    if timeout_secs > 0:
        args += ["-t", str(timeout_secs)]
    runner(args + [container_id], timeout_secs + 5.0 if timeout_secs > 0 else None)

def kill_container(container_id: str, runner: Runner = run_docker) -> None:
    runner(["docker", "kill", "--signal", "SIGKILL", container_id], 10.0)
