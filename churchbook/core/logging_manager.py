"""
Logging setup for ChurchBook
Console and rotating file output with secret redaction
"""

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class SecuritySafeFormatter(logging.Formatter):
    """Formatter that sanitizes sensitive information"""

    SENSITIVE_FIELDS = ('apikey', 'api_key', 'password', 'secret', 'token', 'authorization')

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._patterns = [
            re.compile(rf'({field}["\']?\s*[:=]\s*["\']?)([^"\'\s,}}]+)', re.IGNORECASE)
            for field in self.SENSITIVE_FIELDS
        ]
        self._bearer = re.compile(r'(Bearer\s+)[A-Za-z0-9\-._~+/]+=*')

    def format(self, record):
        """Format log record with sensitive data sanitized"""
        record.msg = self._sanitize_message(record.getMessage())
        record.args = None
        return super().format(record)

    def _sanitize_message(self, message: str) -> str:
        message = self._bearer.sub(r'\1***', message)
        for pattern in self._patterns:
            message = pattern.sub(r'\1***', message)
        return message


class JSONFormatter(SecuritySafeFormatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'component': record.name,
            'message': self._sanitize_message(record.getMessage()),
            'metadata': {
                'filename': record.filename,
                'lineno': record.lineno,
                'funcName': record.funcName
            }
        }

        if record.exc_info:
            log_data['stack_trace'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == 'json':
        return JSONFormatter()
    return SecuritySafeFormatter(TEXT_FORMAT)


def setup_logging(config: Optional[Dict[str, Any]] = None) -> List[logging.Handler]:
    """
    Configure the root logger from the ``logging`` config section.

    Returns:
        The handlers installed on the root logger.
    """
    settings = (config or {}).get('logging', {})
    level = getattr(logging, str(settings.get('level', 'INFO')).upper(), logging.INFO)
    log_format = settings.get('format', 'text')

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers
    root_logger.handlers.clear()
    handlers: List[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_build_formatter(log_format))
    handlers.append(console_handler)

    file_path = settings.get('file_path')
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=file_path,
            maxBytes=settings.get('file_max_size', 10 * 1024 * 1024),
            backupCount=settings.get('file_backup_count', 5),
            encoding='utf-8'
        )
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        root_logger.addHandler(handler)

    # Per-request lines from the HTTP client are noise at INFO
    logging.getLogger('httpx').setLevel(max(level, logging.WARNING))

    root_logger.debug(f"Logging configured (level={logging.getLevelName(level)}, format={log_format})")
    return handlers
