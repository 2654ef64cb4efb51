"""
Logging configuration with sensitive data filtering.

Provides a configured logger with automatic masking of Blink credentials
in log output (auth tokens, passwords and verification PINs).
"""

import logging
import os
import re

log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
numeric_level = getattr(logging, log_level, logging.INFO)

VERBOSE = os.getenv('VERBOSE', 'false').lower() in ('true', '1')


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that masks sensitive credentials in log output.

    Automatically detects and masks:
    - Blink auth tokens in TOKEN_AUTH / TOKEN-AUTH headers (shows first 4 chars)
    - "token" fields of JSON payloads (shows first 4 chars)
    - "password" and "pin" fields of JSON payloads (fully masked)

    Header dumps and JSON bodies are only logged in VERBOSE mode, but the
    filter is always installed so nothing slips through at debug level.
    """

    def __init__(self):
        super().__init__()
        self.patterns = [
            (re.compile(r"""(TOKEN[_-]AUTH['"]?\s*[:=]\s*['"]?)([A-Za-z0-9_\-]{4})[A-Za-z0-9_\-\.]+""", re.IGNORECASE),
             r'\1\2[blink-token-masked]'),
            (re.compile(r"""(['"]token['"]\s*:\s*['"])([A-Za-z0-9_\-]{4})[^'"]*"""), r'\1\2[blink-token-masked]'),
            (re.compile(r"""(['"]password['"]\s*:\s*['"])[^'"]*"""), r'\1[password-masked]'),
            (re.compile(r"""(['"]pin['"]\s*:\s*['"])[^'"]*"""), r'\1[pin-masked]'),
        ]

    def _mask(self, text):
        for pattern, replacement in self.patterns:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)

        if record.args:
            new_args = []
            for arg in record.args if isinstance(record.args, tuple) else [record.args]:
                if isinstance(arg, str):
                    arg = self._mask(arg)
                new_args.append(arg)
            record.args = tuple(new_args) if isinstance(record.args, tuple) else new_args[0]

        return True


logging.basicConfig(
    level=numeric_level,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

sensitive_filter = SensitiveDataFilter()
root_logger = logging.getLogger()
root_logger.addFilter(sensitive_filter)

# Add filter to all handlers to catch library loggers
for handler in root_logger.handlers:
    handler.addFilter(sensitive_filter)

logger = logging.getLogger(__name__)
