"""Structured logging for the readiness service.

Events are logged by name with keyword fields, e.g.
``logger.warn("artifact_missing", project_id=12, job_id=99)``. Output is one
JSON object per line when stdout is not a terminal (log aggregators), and a
coloured ``[LEVEL] event | k=v`` line when it is.
"""
import os
import sys
import json
from datetime import datetime, timezone
from typing import Optional


LEVELS = {'DEBUG': 0, 'INFO': 1, 'WARN': 2, 'ERROR': 3}

_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARN': '\033[33m',
    'ERROR': '\033[31m',
}
_RESET = '\033[0m'


class StructuredLogger:
    """Event logger: JSON lines in production, readable text in dev."""

    def __init__(self, level: str = 'INFO', fmt: Optional[str] = None, name: str = 'release_readiness'):
        """Initialize logger.

        Args:
            level: Minimum log level (DEBUG, INFO, WARN, ERROR)
            fmt: Force "json" or "text"; None picks text on a TTY
            name: Logger name written into every JSON entry
        """
        self.level = level.upper()
        self.name = name
        if fmt:
            self._as_text = fmt.lower() == 'text'
        else:
            self._as_text = sys.stdout.isatty()

    def is_enabled_for(self, level: str) -> bool:
        return LEVELS.get(level.upper(), 1) >= LEVELS.get(self.level, 1)

    def _format_text(self, level: str, message: str, fields: dict) -> str:
        parts = [f"{_COLORS.get(level, '')}[{level}]{_RESET} {message}"]
        kv_parts = []
        for k, v in fields.items():
            if isinstance(v, (dict, list)):
                v = json.dumps(v, default=str)[:100]
            kv_parts.append(f"{k}={v}")
        if kv_parts:
            parts.append("| " + " ".join(kv_parts))
        return " ".join(parts)

    def _log(self, level: str, message: str, **fields) -> None:
        level = level.upper()
        if not self.is_enabled_for(level):
            return

        # WARN/ERROR go to stderr so they survive stdout redirection
        stream = sys.stderr if level in ('WARN', 'ERROR') else sys.stdout

        if self._as_text:
            print(self._format_text(level, message, fields), file=stream)
            return

        entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level,
            'logger': self.name,
            'msg': message,
            **fields,
        }
        print(json.dumps(entry, default=str), file=stream)

    def debug(self, message: str, **fields) -> None:
        self._log('DEBUG', message, **fields)

    def info(self, message: str, **fields) -> None:
        self._log('INFO', message, **fields)

    def warn(self, message: str, **fields) -> None:
        self._log('WARN', message, **fields)

    def error(self, message: str, **fields) -> None:
        self._log('ERROR', message, **fields)


# Global logger instance, configured from LOG_LEVEL / LOG_FORMAT
logger = StructuredLogger(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    fmt=(os.getenv('LOG_FORMAT') or None),
)
