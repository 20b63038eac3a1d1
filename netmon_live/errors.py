from __future__ import annotations

class NetmonError(Exception):
    """Base class for errors raised by netmon_live."""

class CollectionError(NetmonError):
    """A data source failed transiently (permissions, missing tool, bad output)."""

class CollectionCancelled(NetmonError):
    """The caller cancelled the request or its deadline expired."""

class UnknownSignal(NetmonError):
    def __init__(self, name: str):
        super().__init__(f"unknown signal: {name}")
        self.name = name
