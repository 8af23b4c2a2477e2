"""
Configuration management for the RTD schedule cache.
Handles loading and accessing configuration values from local.py (if present)
with fallback to default.py.
"""

import importlib.util
import logging
from logging.config import dictConfig
from typing import Any, Optional


def _import_config(module_name: str) -> Optional[Any]:
    """
    Dynamically import a configuration module.

    Args:
        module_name: Name of the module to import (e.g., 'local' or 'default')

    Returns:
        Module object if successful, None otherwise
    """
    try:
        spec = importlib.util.find_spec(f"{__name__}.{module_name}")
        if spec is None:
            return None
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)  # type: ignore
        return module
    except Exception as e:
        print(
            f"Could not import {__name__}.{module_name}: {str(e)}"
        )  # Use print since logging is not set up yet
        return None


local_config = _import_config("local")
default_config = _import_config("default")


def get_config(key: str, default_value: Any = None) -> Any:
    """
    Get a configuration value, checking local.py first, then default.py.

    Args:
        key: The configuration key to look up
        default_value: Value to return if key is not found in either config

    Returns:
        The configuration value, or default_value if not found

    Example:
        >>> cache_dir = get_config('CACHE_DIR')
        >>> probe = get_config('PROBE_ROUTE', 'B')
    """
    if local_config and hasattr(local_config, key):
        return getattr(local_config, key)

    if default_config and hasattr(default_config, key):
        return getattr(default_config, key)

    return default_value


def get_required_config(key: str) -> Any:
    """
    Get a required configuration value. Raises an error if not found.

    Raises:
        ValueError: If the configuration key is not found
    """
    value = get_config(key)
    if value is None:
        raise ValueError(
            f"Required configuration key '{key}' not found in either local.py or default.py"
        )
    return value


def setup_logging() -> None:
    """Apply LOGGING_CONFIG once, creating the log directory first."""
    logging_config = get_config("LOGGING_CONFIG")
    if not logging_config:
        return
    log_dir = logging_config.get("log_dir")
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
    dictConfig(logging_config)


setup_logging()

logger = logging.getLogger(__name__)

__all__ = ["get_config", "get_required_config", "setup_logging"]
