"""Status snapshots shown to the model before each decision."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from toolvote.util.logging import get_logger

logger = get_logger(__name__)


class StatusSource(ABC):
    """Read-only view of the world the tools act on."""

    @abstractmethod
    async def read_status(self) -> str | dict[str, Any] | None:
        raise NotImplementedError


class StaticStatusSource(StatusSource):
    def __init__(self, status: str | dict[str, Any] | None = None) -> None:
        self.status = status

    async def read_status(self) -> str | dict[str, Any] | None:
        return self.status


def format_status(status: Any) -> str:
    """Render a status payload as one line of text.

    Strings are trimmed, mappings prefer a ``formatted`` or ``summary`` entry
    and otherwise list their scalar fields. Payloads carrying ``error`` render
    as an empty string.
    """
    if not status:
        return ""
    if isinstance(status, str):
        return status.strip()
    if not isinstance(status, dict):
        return ""
    if "error" in status:
        return ""
    for key in ("formatted", "summary"):
        if isinstance(status.get(key), str):
            return status[key].strip()
    parts: list[str] = []
    for key, value in status.items():
        if value is None:
            continue
        if isinstance(value, list):
            if value:
                parts.append(f"{key}: {len(value)} items")
        elif isinstance(value, dict):
            parts.append(f"{key}: {{...}}")
        elif isinstance(value, bool):
            parts.append(f"{key}: {'true' if value else 'false'}")
        elif isinstance(value, (str, int, float)):
            parts.append(f"{key}: {value}")
    return ", ".join(parts)


async def fetch_status_info(source: StatusSource | None, prefix: str = "") -> str:
    """Read and format the current status; any failure yields ``""``."""
    if source is None:
        return ""
    try:
        data = await source.read_status()
    except Exception as exc:
        logger.warning("[status] %sread failed: %s", prefix, exc)
        return ""
    if not data:
        logger.info("[status] %sread returned nothing", prefix)
        return ""
    if isinstance(data, dict) and "error" in data:
        logger.info("[status] %sstatus error: %s", prefix, data["error"])
        return ""
    text = format_status(data)
    if not text:
        logger.info("[status] %sstatus formatted empty", prefix)
    return text
