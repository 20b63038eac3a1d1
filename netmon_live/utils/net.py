from __future__ import annotations
from typing import Tuple

WILDCARD_IPS = {"", "*", "0.0.0.0", "::"}

def _safe_int(s: str, default: int = 0) -> int:
    try:
        return int(s)
    except ValueError:
        return default

def split_addr(addr: str) -> Tuple[str, str]:
    """
    Split an address into (host, port) strings.
    Handles:
      - '1.2.3.4:5678'
      - '[::1]:443'
      - '::1:443' (bare v6 with trailing port)
      - '*', '*:*'
    """
    if not addr or addr == "*":
        return ("*", "")
    if addr.startswith("["):
        host, _, port = addr.partition("]")
        return (host.lstrip("["), port.lstrip(":"))
    if ":" not in addr:
        return (addr, "")
    host, port = addr.rsplit(":", 1)
    return (host, port)

def extract_port(addr: str) -> int:
    """Port of 'ip:port', 0 when missing or not numeric."""
    return _safe_int(split_addr(addr)[1], 0)

def extract_ip(addr: str) -> str:
    return split_addr(addr)[0]

def extract_ports(*addrs: str) -> list[int]:
    out = []
    for a in addrs:
        _, port = split_addr(a)
        if port.isdigit():
            out.append(int(port))
    return out

def is_wildcard_ip(ip: str) -> bool:
    return ip in WILDCARD_IPS

def format_addr(ip: str, port: int) -> str:
    if not ip:
        ip = "*"
    if ":" in ip:
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"
