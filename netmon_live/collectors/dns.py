from __future__ import annotations
import logging
import socket

from ..errors import CollectionError

log = logging.getLogger(__name__)

def resolve_one(ip: str) -> str:
    """Reverse-resolve one IP; raises CollectionError when there is no PTR name."""
    try:
        host, _aliases, _addrs = socket.gethostbyaddr(ip)
    except (OSError, UnicodeError) as exc:
        raise CollectionError(f"reverse lookup failed for {ip}: {exc}") from exc
    host = host.rstrip(".")
    if not host:
        raise CollectionError(f"reverse lookup returned no name for {ip}")
    return host
