from __future__ import annotations

import logging
import os
import sys
from typing import Any, Mapping, MutableMapping, cast

import structlog

def _add_msg_from_event(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    """Mirror structlog's ``event`` into ``msg`` so every line carries both keys."""

    if "msg" not in event_dict and isinstance(event_dict.get("event"), str):
        event_dict["msg"] = event_dict["event"]
    return event_dict


_SENSITIVE_KEYS = {
    "private_key",
    "mnemonic",
    "seed",
    "signature",
    "password",
    "secret",
    "api_key",
    "rpc_url",
}


def _mask_sensitive_values(
    _: Any, __: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    """Redact secret-bearing keys (case-insensitive), recursing into dicts and lists."""

    def mask_value(key: str, value: Any) -> Any:
        if isinstance(value, Mapping):
            typed_mapping = cast(Mapping[str, Any], value)
            return {k: mask_value(k, v) for k, v in typed_mapping.items()}
        if isinstance(value, list):
            return [mask_value(key, item) for item in cast(list[Any], value)]
        if key.lower() in _SENSITIVE_KEYS:
            return "[REDACTED]"
        return value

    return {key: mask_value(key, value) for key, value in event_dict.items()}


def _stringify_wad_integers(
    _: Any, __: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    """Render integers wider than 53 bits as strings.

    WAD amounts routinely exceed what JSON consumers parse losslessly as numbers.
    """

    for key, value in list(event_dict.items()):
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) >= 2**53:
            event_dict[key] = str(value)
    return event_dict


def configure_logging(level: str | None = None, *, fmt: str | None = None) -> None:
    """Configure structlog over stdlib logging.

    - Keys: ts, level, msg, event
    - Timestamp: UTC ISO-8601
    - ``fmt="json"`` (default) prints one JSON object per line,
      ``fmt="console"`` prints structlog's human readable lines
    """

    raw_level: str = level if level is not None else os.getenv("GRANTFUND_LOG_LEVEL", "INFO")
    log_level = getattr(logging, raw_level.upper(), logging.INFO)
    raw_fmt = (fmt if fmt is not None else os.getenv("GRANTFUND_LOG_FORMAT", "json")).lower()

    # force=True lets tests using capsys rebind the handler to the swapped stdout.
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stdout,
        force=True,
    )

    renderer: Any
    if raw_fmt == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            _add_msg_from_event,
            _mask_sensitive_values,
            _stringify_wad_integers,
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
