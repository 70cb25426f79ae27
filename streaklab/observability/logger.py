"""
Structured logging for the simulator.

Loggers carry keyword fields alongside the message; `bind` attaches fields
(symbol, template, ...) that every later line from that logger repeats.
Output is JSON lines or a compact text form.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

_EXTRA_KEY = "extra_fields"


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, _EXTRA_KEY, None) or {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_fields(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Readable single-line output for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = _record_time(record).strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{stamp}] {record.levelname:8} {record.name}: {record.getMessage()}"

        fields = _fields(record)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in fields.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger:
    """
    Thin wrapper over logging.Logger that accepts keyword fields.

    Fields bound with `bind` are merged under the per-call ones.
    """

    def __init__(
        self,
        logger: logging.Logger,
        context: Optional[Dict[str, Any]] = None
    ):
        self._logger = logger
        self._context = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Return a logger that adds `fields` to every line."""
        return StructuredLogger(self._logger, {**self._context, **fields})

    def _log(self, level: int, msg: str, fields: Dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        merged = {**self._context, **fields}
        self._logger.log(level, msg, extra={_EXTRA_KEY: merged})

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, fields)

    # Simulation events are per-bar and high volume, so they go out at debug.

    def trade(
        self,
        symbol: str,
        side: str,
        entry_date: str,
        exit_date: str,
        exit_reason: str,
        pnl_usd: float,
        **fields: Any
    ) -> None:
        """Log a closed simulated trade."""
        self.debug(
            f"TRADE {side} {symbol} {entry_date}->{exit_date} {exit_reason} pnl={pnl_usd:.2f}",
            symbol=symbol,
            side=side,
            exit_reason=exit_reason,
            pnl_usd=round(pnl_usd, 6),
            **fields
        )

    def signal(self, template: str, symbol: str, side: str, reason: str, **fields: Any) -> None:
        """Log an entry signal."""
        self.debug(
            f"SIGNAL {template} {side} {symbol}: {reason}",
            template=template,
            symbol=symbol,
            side=side,
            **fields
        )

    def risk_event(self, event_type: str, details: str, **fields: Any) -> None:
        """Log a sizing decision such as a blocked martingale step."""
        self.debug(f"RISK {event_type}: {details}", event_type=event_type, **fields)


_loggers: Dict[str, StructuredLogger] = {}
_configured = False


def configure_logging(
    level: str = "INFO",
    format_type: str = "json",
    stream: Optional[TextIO] = None
) -> None:
    """
    Install a single stream handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        format_type: "json" or "text".
        stream: Output stream (defaults to stdout).
    """
    global _configured

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if format_type.lower() == "json" else TextFormatter())
    root.addHandler(handler)

    _configured = True


def get_logger(name: str) -> StructuredLogger:
    """
    Get the structured logger for a module, configuring defaults on first use.

    Args:
        name: Logger name (usually __name__).
    """
    if not _configured:
        configure_logging()

    if name not in _loggers:
        _loggers[name] = StructuredLogger(logging.getLogger(name))
    return _loggers[name]
