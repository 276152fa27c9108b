"""Logging for onionnet nodes.

Every line logged while a node handles a request carries two context
fields: the node label (``registry``, ``router-3``, ``user-0``) and a
request correlation id. Both live in context variables, so concurrent
requests on one event loop never mix them up.

Hop details (next-hop kind, destination, byte counts) are attached as
structured fields through ``extra={"hop": {...}}``. Key material and
message plaintext are never logged.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

_node_label: ContextVar[str | None] = ContextVar("node_label", default=None)
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

NOISY_LOGGERS = ("aiohttp.access", "aiohttp.server", "asyncio")


def get_node_label() -> str | None:
    return _node_label.get()


def get_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def request_context(
    node: str | None = None,
    correlation_id: str | None = None,
) -> Generator[str, None, None]:
    """Scope the node label and a correlation id over one request.

    Args:
        node: Label of the node handling the request; inherited if None.
        correlation_id: Id supplied by the caller; a fresh one if None.

    Yields:
        The correlation id in effect.
    """
    cid = correlation_id or str(uuid.uuid4())
    node_token = _node_label.set(node if node is not None else _node_label.get())
    cid_token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(cid_token)
        _node_label.reset(node_token)


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    node = get_node_label()
    if node:
        fields["node"] = node
    cid = get_correlation_id()
    if cid:
        fields["correlation_id"] = cid
    hop = getattr(record, "hop", None)
    if isinstance(hop, dict):
        fields["hop"] = hop
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with node and hop fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class StandardFormatter(logging.Formatter):
    """Human-readable lines for a terminal.

    ``2026-01-01 12:00:00 INFO    onionnet.network.relay [router-2 1a2b3c4d] Relay 2 forwarding layer next=relay``
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        # Copy so other handlers see the original record
        record = logging.makeLogRecord(record.__dict__)
        fields = _context_fields(record)

        prefix = " ".join(
            part for part in (fields.get("node"), fields.get("correlation_id", "")[:8]) if part
        )
        message = record.getMessage()
        if prefix:
            message = f"[{prefix}] {message}"
        for key, value in fields.get("hop", {}).items():
            message += f" {key}={value}"

        record.msg, record.args = message, None
        return super().format(record)


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install onionnet's handlers on the root logger.

    Defaults come from ``OnionSettings`` (``log_level``, ``log_format``,
    ``log_file``). With ``log_format`` unset, JSON is used unless stderr is
    a terminal. The log file, if any, is always JSON.
    """
    from .config import get_settings

    settings = get_settings()

    level = settings.log_level if level is None else level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if json_format is None:
        fmt = settings.log_format.lower()
        json_format = fmt == "json" if fmt in ("json", "text") else not sys.stderr.isatty()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].setFormatter(JSONFormatter() if json_format else StandardFormatter())

    log_file = settings.log_file if log_file is None else log_file
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
