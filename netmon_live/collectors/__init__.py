from .base import Collector, Deadline, DockerResolver, NetIOCollector
from .connections import PsutilCollector
from .dns import resolve_one
from .docker import DockerCLIResolver, is_docker_process
from .netio import ProcNetIOCollector
from .release import ReleaseInfo, check_latest, is_newer
