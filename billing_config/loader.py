"""
YAML loader for ledger settings.

Resolution order (later wins):
    1. LedgerSettings defaults
    2. the YAML file (explicit path, else $BILLING_LEDGER_CONFIG)
    3. environment overrides: $BILLING_DATABASE_URL, $BILLING_LOG_LEVEL

Failure modes:
    - FileNotFoundError if an explicit or env-named file does not exist.
    - yaml.YAMLError on malformed YAML.
    - ValueError on a YAML document that is not a mapping, or any value
      LedgerSettings rejects.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import LedgerSettings

CONFIG_PATH_ENV = "BILLING_LEDGER_CONFIG"
DATABASE_URL_ENV = "BILLING_DATABASE_URL"
LOG_LEVEL_ENV = "BILLING_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    # Allow the settings to live under a "ledger:" key
    if set(data) == {"ledger"} and isinstance(data["ledger"], dict):
        data = data["ledger"]
    return data


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if environ.get(DATABASE_URL_ENV):
        overrides["database_url"] = environ[DATABASE_URL_ENV]
    if environ.get(LOG_LEVEL_ENV):
        overrides["log_level"] = environ[LOG_LEVEL_ENV]
    return overrides


def resolve_config_path(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """The YAML file to read: ``path``, else $BILLING_LEDGER_CONFIG, else None."""
    environ = os.environ if environ is None else environ
    config_path = path or environ.get(CONFIG_PATH_ENV)
    return Path(config_path) if config_path else None


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """Resolve settings from defaults, YAML and environment."""
    environ = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    config_path = resolve_config_path(path, environ)
    if config_path is not None:
        data = load_yaml_file(config_path)

    data.update(env_overrides(environ))
    return LedgerSettings.from_dict(data)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
