from __future__ import annotations
import json
import logging
import urllib.request
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import CollectionError

log = logging.getLogger(__name__)

API_URL = "https://api.github.com/repos/{owner}/{repo}/releases/latest"
USER_AGENT = "netmon-live-update-check"

@dataclass(frozen=True)
class ReleaseInfo:
    current: str
    latest: str
    url: str = ""

    @property
    def update_available(self) -> bool:
        return bool(self.latest) and is_newer(self.latest, self.current)

def _version_tuple(v: str) -> Tuple[int, ...]:
    parts = []
    for piece in v.strip().lstrip("vV").split("-")[0].split("."):
        digits = "".join(ch for ch in piece if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)

def is_newer(latest: str, current: str) -> bool:
    """True when `latest` is a later release than `current`; dev builds always lag."""
    if not current or current == "dev":
        return True
    a, b = _version_tuple(latest), _version_tuple(current)
    width = max(len(a), len(b))
    return a + (0,) * (width - len(a)) > b + (0,) * (width - len(b))

def fetch_latest(owner: str, repo: str, timeout: Optional[float] = 5.0) -> Tuple[str, str]:
    url = API_URL.format(owner=owner, repo=repo)
    req = urllib.request.Request(url, headers={
        "User-Agent": USER_AGENT,
        "Accept": "application/vnd.github+json",
    })
    try:
        with urllib.request.urlopen(req, timeout=timeout) as r:
            data = json.loads(r.read().decode("utf-8"))
    except (OSError, ValueError) as exc:
        raise CollectionError(f"release check failed: {exc}") from exc
    tag = data.get("tag_name") or ""
    if not tag:
        raise CollectionError("release check: response has no tag_name")
    return tag, data.get("html_url") or ""

def check_latest(owner: str, repo: str, current: str, timeout: Optional[float] = 5.0) -> ReleaseInfo:
    tag, url = fetch_latest(owner, repo, timeout)
    info = ReleaseInfo(current=current, latest=tag, url=url)
    log.debug("latest release %s (current %s, newer=%s)", tag, current, info.update_available)
    return info
