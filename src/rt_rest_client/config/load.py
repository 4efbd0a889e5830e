"""Build `Settings` from a YAML file, `.env` and the process environment.

Precedence (highest first): nested env (`RT__HOST`), flat env (`RT_HOST`), YAML,
`.env`. Validation failures are reported per settings path, with the env variable
that sets it and, where the value came from the environment, which variable that was.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from rt_rest_client.config.env_aliases import flat_env_name
from rt_rest_client.config.settings import Settings
from rt_rest_client.config.validate import (
    ConfigValidationError,
    ConfigValidationIssue,
    issues_from_pydantic_error,
    validate_settings,
)
from rt_rest_client.domain.auth import AuthMode

DEFAULT_CONFIG_PATH = Path("config/config.yaml")

_ALLOWED_VALUES: dict[str, tuple[str, ...]] = {
    "rt.auth_mode": tuple(mode.value for mode in AuthMode),
    "rt.scheme": ("https", "http"),
    "observability.log_format": ("json", "human"),
}


def _resolve_config_path(config_path: str | Path | None) -> tuple[Path | None, bool]:
    """
    Returns (path, explicit) where `explicit` is True when the user asked for this path
    (via argument or CONFIG_PATH), in which case missing files are errors.
    """
    if config_path is not None:
        return Path(config_path), True

    if (env_path := os.environ.get("CONFIG_PATH")):
        return Path(env_path), True

    return (DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None), False


def _load_yaml_config(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigValidationError(
            [ConfigValidationIssue(path=str(path), message=f"Unable to read config file: {exc}")]
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigValidationError(
            [ConfigValidationIssue(path=str(path), message=f"Invalid YAML: {exc}")]
        ) from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(
            [ConfigValidationIssue(path=str(path), message="YAML root must be a mapping/object")]
        )
    return raw


def load_settings(*, config_path: str | Path | None = None) -> Settings:
    dotenv_path = Path(".env")
    if dotenv_path.is_file():
        load_dotenv(dotenv_path=dotenv_path, override=False)

    path, explicit = _resolve_config_path(config_path)
    yaml_data: dict[str, Any] = {}

    if path is not None:
        if path.exists():
            yaml_data = _load_yaml_config(path)
        elif explicit:
            raise ConfigValidationError(
                [ConfigValidationIssue(path="CONFIG_PATH", message=f"Config file not found: {path}")]
            )

    try:
        settings = Settings(**yaml_data)
    except ValidationError as exc:
        raise ConfigValidationError(explain_issues(issues_from_pydantic_error(exc))) from exc

    validate_settings(settings)
    return settings


def explain_issues(
    issues: list[ConfigValidationIssue],
    environ: Mapping[str, str] | None = None,
) -> list[ConfigValidationIssue]:
    """Attach "how to set it" hints and the originating env variable to each issue."""
    environ = os.environ if environ is None else environ
    explained: list[ConfigValidationIssue] = []
    for issue in issues:
        # A missing `rt` section only ever lacks its one required field.
        if issue.path == "rt" and "Field required" in issue.message:
            issue = ConfigValidationIssue("rt.host", issue.message)

        notes = [note for note in (_hint(issue.path), _origin(issue.path, environ)) if note]
        if notes:
            issue = ConfigValidationIssue(issue.path, " ".join([issue.message, *notes]))
        explained.append(issue)
    return explained


def _hint(path: str) -> str | None:
    env_name = flat_env_name(path)
    if env_name is None:
        return None
    allowed = _ALLOWED_VALUES.get(path)
    if allowed:
        return f"Set `{env_name}` (or YAML `{path}`) to one of: {', '.join(allowed)}."
    return f"Set `{env_name}` (or YAML `{path}`)."


def _origin(path: str, environ: Mapping[str, str]) -> str | None:
    nested = path.upper().replace(".", "__")
    for env_name in (nested, flat_env_name(path)):
        if env_name and environ.get(env_name):
            return f"(value taken from `{env_name}`)"
    return None
