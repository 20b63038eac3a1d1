from __future__ import annotations
from typing import AbstractSet, List, Mapping, Optional

from ..models import Snapshot
from ..utils.net import extract_ip, is_wildcard_ip

def remote_ips(snapshot: Optional[Snapshot]) -> List[str]:
    """Distinct remote IPs of a snapshot, in first-seen order."""
    if snapshot is None:
        return []
    seen = set()
    out = []
    for app in snapshot.applications:
        for c in app.connections:
            ip = extract_ip(c.remote_addr)
            if is_wildcard_ip(ip) or ip in seen:
                continue
            seen.add(ip)
            out.append(ip)
    return out

def plan_dns_lookups(snapshot: Optional[Snapshot], cache: Mapping[str, str],
                     pending: AbstractSet[str], limit: int) -> List[str]:
    """IPs to reverse-resolve this refresh: uncached, not in flight, at most `limit`."""
    if limit <= 0:
        return []
    out = []
    for ip in remote_ips(snapshot):
        if ip in cache or ip in pending:
            continue
        out.append(ip)
        if len(out) >= limit:
            break
    return out
