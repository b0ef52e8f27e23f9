"""Mask Tencent Cloud credentials and other build secrets in log output."""

import logging
import os
import re

SECRET_ENV_VARS = ("TENCENTCLOUD_SECRET_KEY", "TENCENTCLOUD_SESSION_TOKEN")
MASK = "***"

_MIN_SECRET_LENGTH = 8

_registered: set[str] = set()
_pattern: re.Pattern | None = None
_compiled = False


def register_secret(value: str) -> None:
    """Mask *value* in every log record emitted from now on."""
    global _compiled
    if value and value not in _registered:
        _registered.add(value)
        _compiled = False


def _secret_pattern() -> re.Pattern | None:
    """One alternation over all known secrets, longest first; ``None`` if there are none."""
    global _pattern, _compiled
    if not _compiled:
        values = set(_registered)
        values.update(os.environ.get(var, "") for var in SECRET_ENV_VARS)
        values = sorted((v for v in values if len(v) >= _MIN_SECRET_LENGTH), key=len, reverse=True)
        _pattern = re.compile("|".join(map(re.escape, values))) if values else None
        _compiled = True
    return _pattern


def reset() -> None:
    """Forget registered secrets and re-read the environment on next use."""
    global _compiled
    _registered.clear()
    _compiled = False


def redact_secrets(text: str) -> str:
    pattern = _secret_pattern()
    return pattern.sub(MASK, text) if pattern else text


class SecretRedactingFilter(logging.Filter):
    """Rewrite a record's message and string args with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _secret_pattern() is None:
            return True
        record.msg = redact_secrets(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(redact_secrets(a) if isinstance(a, str) else a for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: redact_secrets(v) if isinstance(v, str) else v for k, v in record.args.items()}
        return True
