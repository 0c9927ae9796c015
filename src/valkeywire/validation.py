"""
Centralized validation for client configurations.

This module provides validation functions that use dataclass schemas to validate
configuration parameters for addresses and clients loaded from files or dicts.
"""

from __future__ import annotations

from dataclasses import MISSING, fields, is_dataclass
from typing import Any, Literal, get_args, get_origin, get_type_hints

from valkeywire.exceptions import ConfigValidationError
from valkeywire.schemas import (
    ADDRESS_SCHEMAS,
    ClientConfiguration,
    HostnameAddress,
    SentinelAddress,
    ServerAddress,
)


def _get_type_name(type_hint: Any) -> str:
    """Get a human-readable name for a type hint."""
    origin = get_origin(type_hint)

    if origin is None:
        # Simple type like str, int, float
        if hasattr(type_hint, "__name__"):
            return type_hint.__name__
        return str(type_hint)

    if origin is Literal:
        return f"Literal{get_args(type_hint)}"

    # Union types (e.g., str | None)
    args = get_args(type_hint)
    type_names = [_get_type_name(arg) for arg in args if arg is not type(None)]
    if type(None) in args:
        return " | ".join(type_names) + " | None"
    return " | ".join(type_names)


def _matches(value: Any, expected_type: Any) -> bool:
    """Check a value against a (possibly generic) type hint."""
    origin = get_origin(expected_type)
    args = get_args(expected_type)

    if expected_type is type(None):
        return value is None

    if origin is Literal:
        return value in args

    if origin is tuple:
        return isinstance(value, (tuple, list))

    if args:
        # Union: any member may match
        return any(_matches(value, arg) for arg in args)

    # bool is an int subclass; do not accept True for a numeric field
    if expected_type in (int, float) and isinstance(value, bool):
        return False

    # TOML integers are valid floats
    if expected_type is float:
        return isinstance(value, (int, float))

    return isinstance(value, expected_type)


def _validate_type(value: Any, expected_type: Any, field_name: str) -> None:
    """Validate that a value matches the expected type."""
    if value is None:
        if _matches(None, expected_type):
            return
        raise ConfigValidationError(
            f"Field '{field_name}' cannot be None",
            field=field_name,
            expected=_get_type_name(expected_type),
            received="None",
        )

    if not _matches(value, expected_type):
        if get_origin(expected_type) is Literal:
            raise ConfigValidationError(
                f"Field '{field_name}' must be one of {get_args(expected_type)}",
                field=field_name,
                expected=_get_type_name(expected_type),
                received=repr(value),
            )
        raise ConfigValidationError(
            f"Field '{field_name}' has incorrect type",
            field=field_name,
            expected=_get_type_name(expected_type),
            received=type(value).__name__,
        )


def _validate_fields(schema: type, params: dict[str, Any], context: str) -> dict[str, Any]:
    """Check required fields and field types of params against a dataclass schema."""
    if not is_dataclass(schema):
        raise ConfigValidationError(
            f"Schema for {context} is not a dataclass",
            field=context,
            expected="dataclass",
            received=str(type(schema)),
        )

    hints = get_type_hints(schema)
    schema_fields = {f.name: f for f in fields(schema)}

    # Check for required fields (fields without defaults)
    for field_name, field_obj in schema_fields.items():
        has_default = field_obj.default is not MISSING or field_obj.default_factory is not MISSING

        if not has_default and field_name not in params:
            raise ConfigValidationError(
                f"Missing required field '{field_name}' for {context}",
                field=field_name,
                expected="required",
                received="missing",
            )

    for field_name, value in params.items():
        if field_name not in schema_fields:
            raise ConfigValidationError(
                f"Unknown field '{field_name}' for {context}",
                field=field_name,
                expected=f"one of {sorted(schema_fields)}",
                received=field_name,
            )
        _validate_type(value, hints[field_name], field_name)

    return params


def _parse_sentinel_endpoint(endpoint: Any) -> HostnameAddress:
    """Accept "host:port" strings or {host, port} tables for sentinel endpoints."""
    if isinstance(endpoint, HostnameAddress):
        return endpoint
    if isinstance(endpoint, str):
        host, _, port = endpoint.rpartition(":")
        if not host or not port.isdigit():
            raise ConfigValidationError(
                f"Invalid sentinel endpoint '{endpoint}'",
                field="sentinels",
                expected="host:port",
                received=endpoint,
            )
        return HostnameAddress(host=host, port=int(port))
    if isinstance(endpoint, dict):
        params = _validate_fields(HostnameAddress, dict(endpoint), "sentinel endpoint")
        return HostnameAddress(**params)
    raise ConfigValidationError(
        "Sentinel endpoint must be 'host:port' or a table",
        field="sentinels",
        expected="str | dict",
        received=type(endpoint).__name__,
    )


def validate_address_config(kind: str, params: dict[str, Any]) -> ServerAddress:
    """Validate address parameters and return the address dataclass instance.

    Args:
        kind: Address kind ("hostname", "unix", "sentinel")
        params: Address parameters as a dictionary

    Returns:
        Address dataclass instance

    Raises:
        ConfigValidationError: If kind is unknown or parameters are invalid
    """
    if kind not in ADDRESS_SCHEMAS:
        available = ", ".join(ADDRESS_SCHEMAS.keys())
        raise ConfigValidationError(
            f"Unknown address kind '{kind}'. Available kinds: {available}",
            field="address",
            expected=available,
            received=kind,
        )

    params = dict(params)
    params.setdefault("address", kind)

    if kind == "sentinel":
        endpoints = params.get("sentinels", ())
        if not isinstance(endpoints, (list, tuple)) or not endpoints:
            raise ConfigValidationError(
                "Sentinel address requires a non-empty 'sentinels' list",
                field="sentinels",
                expected="list of endpoints",
                received=repr(endpoints),
            )
        params["sentinels"] = tuple(_parse_sentinel_endpoint(e) for e in endpoints)
        if "primary_name" not in params:
            raise ConfigValidationError(
                "Missing required field 'primary_name' for address 'sentinel'",
                field="primary_name",
                expected="required",
                received="missing",
            )
        _validate_type(params["primary_name"], str, "primary_name")
        return SentinelAddress(**params)

    schema = ADDRESS_SCHEMAS[kind]
    validated = _validate_fields(schema, params, f"address '{kind}'")
    try:
        return schema(**validated)
    except TypeError as e:
        raise ConfigValidationError(
            f"Failed to create address '{kind}': {e}",
            field="address",
            expected="valid parameters",
            received=str(params),
        ) from e


def validate_client_config(params: dict[str, Any]) -> ClientConfiguration:
    """Validate client configuration and return ClientConfiguration instance.

    Args:
        params: Client configuration dictionary (address fields excluded)

    Returns:
        ClientConfiguration instance

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    validated = _validate_fields(ClientConfiguration, params, "client configuration")

    try:
        return ClientConfiguration(**validated)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(
            f"Failed to create client configuration: {e}",
            field="client_config",
            expected="valid parameters",
            received=str(params),
        ) from e
