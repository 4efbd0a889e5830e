"""Flat environment variable names for nested settings.

pydantic-settings already understands the nested form (`RT__HOST`); this module maps
the shorter flat names (`RT_HOST`) onto the same settings paths.
"""
from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from typing import Any


def _set_nested(data: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    node = data
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = value


def _apply_alias_mappings(
    env: Mapping[str, str],
    data: dict[str, Any],
    mappings: Iterable[tuple[str, tuple[str, ...]]],
) -> None:
    for env_name, path in mappings:
        value = env.get(env_name)
        if value:
            _set_nested(data, path, value)


_CANONICAL_MAPPINGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    # RT
    ("RT_HOST", ("rt", "host")),
    ("RT_SCHEME", ("rt", "scheme")),
    ("RT_API_ROOT", ("rt", "api_root")),
    ("RT_AUTH_MODE", ("rt", "auth_mode")),
    ("RT_CREDENTIALS", ("rt", "credentials")),
    ("RT_TIMEOUT_SECONDS", ("rt", "timeout_seconds")),
    ("RT_VERIFY_TLS", ("rt", "verify_tls")),
    ("RT_USER_AGENT", ("rt", "user_agent")),
    ("RT_MAX_PAGES", ("rt", "max_pages")),
    # Observability
    ("LOG_LEVEL", ("observability", "log_level")),
    ("LOG_FORMAT", ("observability", "log_format")),
    ("LOG_JSON", ("observability", "json_logs")),
    ("LOG_REQUESTS", ("observability", "log_requests")),
    # Hardening
    ("HARDENING_TRANSPORT_TRUST_ENV", ("hardening", "transport", "trust_env")),
    (
        "HARDENING_TRANSPORT_ALLOW_INSECURE_HTTP",
        ("hardening", "transport", "allow_insecure_http"),
    ),
    (
        "HARDENING_TRANSPORT_ALLOW_INSECURE_TLS",
        ("hardening", "transport", "allow_insecure_tls"),
    ),
)

FLAT_ENV_NAMES: tuple[str, ...] = tuple(name for name, _ in _CANONICAL_MAPPINGS)

_FLAT_NAME_BY_PATH: dict[str, str] = {
    ".".join(path): name for name, path in _CANONICAL_MAPPINGS
}


def flat_env_name(path: str) -> str | None:
    """Flat env name for a dotted settings path (`rt.host` -> `RT_HOST`), if there is one."""
    return _FLAT_NAME_BY_PATH.get(path)


def get_flat_env_settings_source() -> dict[str, Any]:
    data: dict[str, Any] = {}
    _apply_alias_mappings(os.environ, data, _CANONICAL_MAPPINGS)
    return data
