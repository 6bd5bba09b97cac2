# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Configuration for audit runs.

Values are resolved in order: built-in defaults, ~/.ciaudit/config.json,
environment (a local .env file is loaded first), then CLI options.
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import bittensor as bt
from dotenv import load_dotenv

from ciaudit.constants import (
    DEFAULT_BASE_BRANCHES,
    DEFAULT_DATA_DIR,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REPOSITORY,
    GITHUB_TOKEN_ENV,
    GITHUB_TOKEN_HINT,
    GRACE_WINDOW_MINUTES,
    IGNORED_PULL_REQUESTS,
    MANIFEST_FORMATS,
    MIN_MANIFEST_SIZE,
    RELEASE_CACHE_DAYS,
    REQUIRED_MANIFEST_FORMATS,
    TAGS_SINCE,
)
from ciaudit.utils.datetime_utils import format_github_timestamp, parse_github_timestamp
from ciaudit.utils.utils import mask_secret, parse_repo_name

# Config file location
CIAUDIT_DIR = Path.home() / '.ciaudit'
CONFIG_FILE = CIAUDIT_DIR / 'config.json'

# Environment variables that override file values
ENV_PREFIX = 'CIAUDIT_'


class ConfigError(Exception):
    """Raised when the run cannot start because of missing or invalid configuration."""


@dataclass(frozen=True)
class AuditConfig:
    repository: str = DEFAULT_REPOSITORY
    tags_since: datetime = TAGS_SINCE
    grace_window_minutes: int = GRACE_WINDOW_MINUTES
    release_cache_days: int = RELEASE_CACHE_DAYS
    lookback_days: Optional[int] = None
    min_manifest_size: int = MIN_MANIFEST_SIZE
    manifest_formats: List[str] = field(default_factory=lambda: list(MANIFEST_FORMATS))
    required_formats: List[str] = field(default_factory=lambda: list(REQUIRED_MANIFEST_FORMATS))
    base_branches: List[str] = field(default_factory=lambda: list(DEFAULT_BASE_BRANCHES))
    ignore_prs: List[int] = field(default_factory=lambda: list(IGNORED_PULL_REQUESTS))
    data_dir: str = DEFAULT_DATA_DIR
    max_retries: int = DEFAULT_MAX_RETRIES

    @property
    def grace_window(self) -> timedelta:
        return timedelta(minutes=self.grace_window_minutes)

    def with_overrides(self, **overrides: Any) -> 'AuditConfig':
        """Return a copy with every non-None override applied and coerced."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **{key: coerce_config_value(key, value) for key, value in values.items()})


# Keys that hold lists of strings or ints
_LIST_KEYS = {'manifest_formats', 'required_formats', 'base_branches'}
_INT_LIST_KEYS = {'ignore_prs'}
_INT_KEYS = {'grace_window_minutes', 'release_cache_days', 'lookback_days', 'min_manifest_size', 'max_retries'}


def config_keys() -> List[str]:
    return [f.name for f in fields(AuditConfig)]


def _split(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(',') if item.strip()]


def coerce_config_value(key: str, value: Any) -> Any:
    """Convert a raw file/env/CLI value to the type of the AuditConfig field."""
    try:
        if key == 'tags_since':
            return value if isinstance(value, datetime) else parse_github_timestamp(str(value))
        if key == 'repository':
            parse_repo_name(str(value))
            return str(value)
        if key in _LIST_KEYS:
            return _split(value)
        if key in _INT_LIST_KEYS:
            return [int(item) for item in _split(value)]
        if key in _INT_KEYS:
            return int(value)
    except ValueError as e:
        raise ConfigError(f'Invalid value for {key}: {value!r} ({e})') from e
    return str(value)


def load_config_file(path: Path = CONFIG_FILE) -> Dict[str, Any]:
    """Load configuration from file."""
    if not path.exists():
        return {}
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise ConfigError(f'Could not read config file {path}: {e}') from e
    if not isinstance(data, dict):
        raise ConfigError(f'Config file {path} must contain a JSON object')
    return data


def save_config_file(data: Dict[str, Any], path: Path = CONFIG_FILE) -> None:
    """Save configuration to file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(data, f, indent=2, sort_keys=True)


def load_config(path: Path = CONFIG_FILE, env: Optional[Dict[str, str]] = None, **overrides: Any) -> AuditConfig:
    """Build the effective AuditConfig.

    Args:
        path: JSON config file, missing is fine
        env: Environment mapping, defaults to os.environ after loading .env
        overrides: CLI option values; None means "not given"

    Raises:
        ConfigError: on unknown keys, values that cannot be coerced, or required
            formats missing from manifest_formats
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    values: Dict[str, Any] = {}
    known = set(config_keys())

    for key, value in load_config_file(path).items():
        if key not in known:
            raise ConfigError(f'Unknown config key in {path}: {key}')
        values[key] = value

    for key in known:
        env_value = env.get(f'{ENV_PREFIX}{key.upper()}')
        if env_value is not None:
            values[key] = env_value

    values.update({key: value for key, value in overrides.items() if value is not None})

    config = AuditConfig().with_overrides(**values)
    unknown_required = [ext for ext in config.required_formats if ext not in config.manifest_formats]
    if unknown_required:
        raise ConfigError(
            f'required_formats {unknown_required} must also be listed in manifest_formats {config.manifest_formats}'
        )
    bt.logging.debug(
        f'Config: repository={config.repository} tags_since={format_github_timestamp(config.tags_since)} '
        f'grace={config.grace_window_minutes}m min_size={config.min_manifest_size}'
    )
    return config


def require_github_token(env: Optional[Dict[str, str]] = None) -> str:
    """Return the GitHub token from the environment.

    Raises:
        ConfigError: with a remediation hint when the token is missing
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    token = env.get(GITHUB_TOKEN_ENV, '').strip()
    if not token:
        raise ConfigError(f'Please set the {GITHUB_TOKEN_ENV} environment variable.\n{GITHUB_TOKEN_HINT}')

    bt.logging.debug(f'Using {GITHUB_TOKEN_ENV} {mask_secret(token)}')
    return token
