import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_CONFIG_PATH = Path("metastore.config.yaml")

ENV_DATABASE_URL = "METASTORE_DATABASE_URL"
ENV_PAGINATION_KEY = "METASTORE_PAGINATION_KEY"

BASE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "database": {
        "url": "sqlite:///metastore.db",
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 3600,
        "echo": False,
    },
    "pagination": {
        "key": "",
        "strict_tokens": False,
        "default_page_size": 100,
    },
}


def _merge_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve every section with built-in fallbacks."""
    merged: Dict[str, Any] = deepcopy(config)
    for section, defaults in BASE_DEFAULTS.items():
        user_section = config.get(section) or {}
        if not isinstance(user_section, dict):
            raise ValueError(f"Config section '{section}' must be a dictionary")
        merged[section] = {**defaults, **user_section}
    return merged


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    url = os.getenv(ENV_DATABASE_URL)
    if url:
        config["database"]["url"] = url
    key = os.getenv(ENV_PAGINATION_KEY)
    if key:
        config["pagination"]["key"] = key
    return config


def _validate(config: Dict[str, Any]) -> None:
    database = config["database"]
    if not isinstance(database.get("url"), str) or not database["url"]:
        raise ValueError("Config 'database.url' must be a non-empty string")
    for field in ("pool_size", "max_overflow", "pool_recycle"):
        if not isinstance(database.get(field), int) or database[field] < 0:
            raise ValueError(f"Config 'database.{field}' must be a non-negative integer")

    pagination = config["pagination"]
    if pagination.get("key") is None:
        pagination["key"] = ""
    if not isinstance(pagination["key"], str):
        raise ValueError("Config 'pagination.key' must be a string")
    if not isinstance(pagination.get("strict_tokens"), bool):
        raise ValueError("Config 'pagination.strict_tokens' must be a boolean")
    page_size = pagination.get("default_page_size")
    if not isinstance(page_size, int) or page_size <= 0:
        raise ValueError("Config 'pagination.default_page_size' must be a positive integer")


def normalize_config(config: Dict[str, Any] | None) -> Dict[str, Any]:
    """
    Apply defaults, environment overrides and validation to a raw config dict.

    Environment overrides:
    - METASTORE_DATABASE_URL replaces database.url
    - METASTORE_PAGINATION_KEY replaces pagination.key

    Raises:
        ValueError: If the config structure is invalid
    """
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError("Config must be a dictionary")
    normalized = _apply_env_overrides(_merge_defaults(config))
    _validate(normalized)
    return normalized


def load_config(path: Path | None = None) -> Dict[str, Any]:
    """
    Load store configuration from a YAML file.

    Args:
        path: Optional path to the config file. Defaults to metastore.config.yaml

    Returns:
        Normalized configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config structure is invalid
    """
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f)
    return normalize_config(config)
