"""Configuration file loader for clients.

This module provides functionality to load client configuration from TOML files,
with support for environment variable expansion.
"""

import logging
import os
import re
import tomllib
from pathlib import Path
from typing import Any

from valkeywire.exceptions import ClientAlreadyConfiguredError, ConfigValidationError
from valkeywire.registry import _registry

logger = logging.getLogger(__name__)

_CONFIG_FILE_NAME = "valkey-wire.toml"
_CONFIG_ENV_VAR = "VALKEY_WIRE_CONFIG"


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration keys and values.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax (bash-like default values).
    Automatically converts numeric strings to appropriate types (int/float).

    Args:
        obj: Configuration object (dict, list, str, or other)

    Returns:
        Object with environment variables expanded and types converted

    Example:
        >>> _expand_env_vars("${VALKEY_HOST:-localhost}")
        "localhost"  # If VALKEY_HOST is not set
        >>> _expand_env_vars("${VALKEY_PORT:-6379}")
        6379  # Converted to int
        >>> _expand_env_vars({"clients": {"${CLIENT_NAME:-default}": {...}}})
        {"clients": {"cache": {...}}}  # If CLIENT_NAME=cache
    """
    if isinstance(obj, dict):
        expanded_dict = {}
        for key, value in obj.items():
            # Keys are expanded too (dynamic client names); they stay strings
            expanded_key = str(_expand_env_vars(key)) if isinstance(key, str) else key
            expanded_dict[expanded_key] = _expand_env_vars(value)
        return expanded_dict

    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]

    if isinstance(obj, str):

        def replace_with_default(match):
            var_name = match.group(1)
            default_value = match.group(2)
            return os.environ.get(var_name, default_value)

        # Pattern: ${VAR_NAME:-default_value}
        result = re.sub(r"\$\{([^}:]+):-([^}]+)\}", replace_with_default, obj)

        # Then expand remaining ${VAR} and $VAR using standard expandvars
        result = os.path.expandvars(result)

        # "1.5" becomes float 1.5, "6379" becomes int 6379
        try:
            if "." in result or "e" in result.lower():
                return float(result)
            return int(result)
        except ValueError:
            return result

    return obj


def _validate_config_structure(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration structure and extract the clients section.

    Args:
        config: Configuration dictionary loaded from TOML

    Returns:
        The clients dictionary

    Raises:
        ConfigValidationError: If configuration structure is invalid
    """
    if not isinstance(config, dict):
        raise ConfigValidationError(
            "Configuration must be a dictionary",
            field="config",
            expected="dict",
            received=type(config).__name__,
        )

    clients = config.get("clients", {})
    if not isinstance(clients, dict):
        raise ConfigValidationError(
            "clients section must be a dictionary",
            field="clients",
            expected="dict",
            received=type(clients).__name__,
        )

    return clients


def _load_clients(clients: dict[str, Any], config_path: Path, replace: bool) -> None:
    """Configure all clients from configuration.

    Args:
        clients: Dictionary of client configurations
        config_path: Path to configuration file (for logging)
        replace: Replace clients that are already registered

    Raises:
        ConfigValidationError: If a client configuration is invalid
    """
    logger.info("Loading %d clients from config file %s", len(clients), config_path)

    for name, client_config in clients.items():
        if not isinstance(client_config, dict):
            raise ConfigValidationError(
                f"Client '{name}' configuration must be a dictionary",
                field=f"clients.{name}",
                expected="dict",
                received=type(client_config).__name__,
            )

        params = dict(client_config)
        address = params.pop("address", None)
        if not address:
            raise ConfigValidationError(
                f"Client '{name}' missing required field 'address'",
                field=f"clients.{name}.address",
                expected="hostname, unix or sentinel",
                received="missing",
            )

        try:
            _registry.configure_client(name, address, replace=replace, **params)
        except (ConfigValidationError, ClientAlreadyConfiguredError) as e:
            raise ConfigValidationError(
                f"Failed to configure client '{name}': {e}",
                field=f"clients.{name}",
                expected="valid client config",
                received=str(client_config),
            ) from e
        logger.info("Client '%s' configured from file (address=%s)", name, address)


def load_config(config_path: str | Path, replace: bool = False) -> None:
    """Load client configuration from TOML file.

    Example TOML:
        [clients.cache]
        address = "hostname"
        host = "${VALKEY_HOST:-localhost}"
        port = 6379
        database = 1
        command_timeout = 2.0

        [clients.local]
        address = "unix"
        path = "/var/run/valkey/valkey.sock"

        [clients.ha]
        address = "sentinel"
        primary_name = "mymaster"
        sentinels = ["sentinel-1:26379", "sentinel-2:26379"]

    Args:
        config_path: Path to TOML configuration file
        replace: Replace clients already registered under the same names

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If configuration is invalid

    Example:
        >>> load_config("valkey-wire.toml")
        >>> client = get_client("cache")
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(
            f"Failed to parse TOML file: {e}",
            field="config_file",
            expected="valid TOML",
            received=str(config_path),
        ) from e

    config = _expand_env_vars(config)
    clients = _validate_config_structure(config)
    _load_clients(clients, config_path, replace)

    logger.info("Configuration loaded successfully: %d clients", len(clients))


def _auto_load_config() -> None:
    """Automatically load configuration from standard locations.

    Searches for valkey-wire.toml in the following order:
    1. Environment variable VALKEY_WIRE_CONFIG
    2. ./valkey-wire.toml (current directory)
    3. ./config/valkey-wire.toml (config subdirectory)

    If found, loads the configuration. Errors are logged and never raised,
    so a broken file does not prevent importing the package.

    This function is called automatically when valkeywire is imported.
    """
    env_config = os.getenv(_CONFIG_ENV_VAR)
    if env_config:
        config_path = Path(env_config)
        if config_path.exists():
            try:
                load_config(config_path)
                logger.debug("Configuration auto-loaded from %s: %s", _CONFIG_ENV_VAR, config_path)
                return
            except (ConfigValidationError, OSError) as e:
                logger.warning(
                    "Failed to load config from %s (%s): %s",
                    _CONFIG_ENV_VAR,
                    config_path,
                    e,
                )
        else:
            logger.warning("%s points to non-existent file: %s", _CONFIG_ENV_VAR, config_path)

    search_paths = [
        Path.cwd() / _CONFIG_FILE_NAME,
        Path.cwd() / "config" / _CONFIG_FILE_NAME,
    ]

    for config_path in search_paths:
        if config_path.exists():
            try:
                load_config(config_path)
                logger.debug("Configuration auto-loaded from: %s", config_path)
            except (ConfigValidationError, OSError) as e:
                logger.warning("Failed to auto-load config from %s: %s", config_path, e)
            # Don't try other paths once a file was found
            return

    logger.debug(
        "No %s found in standard locations. Using programmatic configuration.", _CONFIG_FILE_NAME
    )
