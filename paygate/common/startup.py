"""Startup-time helpers for safe config logging."""

import os
import re

from paygate.common.logging import logger


SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")
_DSN_CREDENTIALS = re.compile(r"//([^:/@]+):([^@]+)@")


def _safe_env(name: str) -> str:
    """Return env value with redaction for secret-like names and DSN passwords."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in SECRET_MARKERS):
        return "<redacted>"
    if name.endswith("_DSN"):
        return _DSN_CREDENTIALS.sub(r"//\1:<redacted>@", value)
    return value


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    logger.info("startup_config=%s", config)
