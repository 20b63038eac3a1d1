from .loop import Orchestrator
from .messages import (
    DismissError, DNSResolved, DockerResolved, Key, KillCompleted, NetIOCollected,
    Quit, SnapshotCollected, Tick, ToggleSetting, VersionChecked,
)
from .model import Engine, Frame, Task
