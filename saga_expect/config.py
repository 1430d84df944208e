"""Process-wide defaults for ``expect_saga`` runs.

Values come from ``DEFAULT_CONFIG``, then ``SAGA_EXPECT_*`` environment
variables, then explicit overrides passed to ``load_config``.
"""
import os
from typing import Any, Optional

DEFAULT_CONFIG: dict[str, Any] = {
    "timeout": 0.25,  # seconds; None waits for forked sagas indefinitely
    "color": False,
    "warn_on_timeout": True,
}

ENV_PREFIX = "SAGA_EXPECT_"
_TRUTHY = ("1", "true", "yes")


def _parse_timeout(raw: str) -> Optional[float]:
    if raw.strip().lower() in ("", "none", "off"):
        return None
    return float(raw)


def _parse_flag(raw: str) -> bool:
    return raw.strip().lower() in _TRUTHY


_PARSERS = {
    "timeout": _parse_timeout,
    "color": _parse_flag,
    "warn_on_timeout": _parse_flag,
}


def load_config(overrides: Optional[dict[str, Any]] = None, environ=None) -> dict[str, Any]:
    environ = os.environ if environ is None else environ
    config = {**DEFAULT_CONFIG}
    for key, parse in _PARSERS.items():
        raw = environ.get(ENV_PREFIX + key.upper())
        if raw is not None:
            config[key] = parse(raw)
    if overrides:
        unknown = set(overrides) - set(DEFAULT_CONFIG)
        if unknown:
            raise KeyError(f"Unknown saga_expect config keys: {sorted(unknown)}")
        config.update(overrides)
    return config
