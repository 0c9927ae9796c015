"""Global registry of named clients.

Clients are configured once (in code, or from a TOML file through
valkeywire.config) and looked up by name wherever they are needed. The
registry only creates ValkeyClient objects; running them stays with the
application:

    configure_client("cache", "hostname", host="localhost", port=6379)
    client = get_client("cache")
    run_task = asyncio.create_task(client.run())
"""

from __future__ import annotations

import logging
from dataclasses import asdict, fields
from typing import Any

from valkeywire.client import ValkeyClient
from valkeywire.exceptions import (
    ClientAlreadyConfiguredError,
    ClientNotFoundError,
    ConfigValidationError,
)
from valkeywire.schemas import (
    ADDRESS_SCHEMAS,
    ClientConfiguration,
    ClientReadOnlyConfig,
    ServerAddress,
)
from valkeywire.validation import validate_address_config, validate_client_config

logger = logging.getLogger(__name__)

_CONFIGURATION_FIELDS = frozenset(f.name for f in fields(ClientConfiguration))


def _split_params(kind: str, params: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Separate address fields from configuration fields."""
    schema = ADDRESS_SCHEMAS.get(kind)
    if schema is None:
        available = ", ".join(ADDRESS_SCHEMAS)
        raise ConfigValidationError(
            f"Unknown address kind '{kind}'. Available kinds: {available}",
            field="address",
            expected=available,
            received=kind,
        )
    address_fields = {f.name for f in fields(schema)} - {"address"}

    address_params: dict[str, Any] = {}
    config_params: dict[str, Any] = {}
    for key, value in params.items():
        if key in address_fields:
            address_params[key] = value
        elif key in _CONFIGURATION_FIELDS:
            config_params[key] = value
        else:
            raise ConfigValidationError(
                f"Unknown field '{key}' for client with address '{kind}'",
                field=key,
                expected=f"one of {sorted(address_fields | _CONFIGURATION_FIELDS)}",
                received=key,
            )
    return address_params, config_params


class ClientRegistry:
    """Registry of named clients.

    Example:
        >>> registry = ClientRegistry()
        >>> registry.configure_client("primary", "hostname", host="localhost")
        >>> registry.configure_client(
        ...     "ha", "sentinel", primary_name="mymaster", sentinels=["s1:26379", "s2:26379"]
        ... )
        >>> client = registry.get_client("primary")
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._clients: dict[str, ValkeyClient] = {}

    def configure_client(
        self,
        name: str,
        address: str | ServerAddress,
        configuration: ClientConfiguration | None = None,
        replace: bool = False,
        **params: Any,
    ) -> ValkeyClient:
        """Create and register a client.

        Args:
            name: Unique name of the client
            address: Address kind ("hostname", "unix", "sentinel") or an
                     address instance
            configuration: Connection policy; built from params if None
            replace: Replace an existing client with the same name. The old
                     client is not closed.
            **params: Address fields (when address is a kind name) and
                      ClientConfiguration fields

        Returns:
            The registered client (not running)

        Raises:
            ClientAlreadyConfiguredError: If name is taken and replace is False
            ConfigValidationError: If address or parameters are invalid
        """
        if name in self._clients and not replace:
            raise ClientAlreadyConfiguredError(name)

        if isinstance(address, str):
            address_params, config_params = _split_params(address, params)
            server_address = validate_address_config(address, address_params)
        else:
            server_address = address
            config_params = params

        if configuration is not None and config_params:
            raise ConfigValidationError(
                "Pass either a ClientConfiguration or configuration fields, not both",
                field="configuration",
                expected="one source of configuration",
                received=", ".join(sorted(config_params)),
            )
        if configuration is None:
            configuration = validate_client_config(config_params)

        client = ValkeyClient(server_address, configuration, name=name)
        self._clients[name] = client
        logger.info("Client '%s' configured (address=%s)", name, server_address)
        return client

    def get_client(self, name: str) -> ValkeyClient:
        """Return the client registered under name.

        Raises:
            ClientNotFoundError: If no such client is configured
        """
        try:
            return self._clients[name]
        except KeyError:
            raise ClientNotFoundError(name) from None

    def has_client(self, name: str) -> bool:
        """Check whether a client is registered under name."""
        return name in self._clients

    def get_client_config(self, name: str) -> ClientReadOnlyConfig:
        """Return a read-only view of a client's configuration.

        Raises:
            ClientNotFoundError: If no such client is configured
        """
        client = self.get_client(name)
        return ClientReadOnlyConfig(
            name=name, address=client.address, configuration=client.configuration
        )

    def list_clients(self) -> dict[str, dict[str, Any]]:
        """Describe every registered client.

        Returns:
            Dict mapping client name to its address and configuration fields
        """
        return {
            name: {
                "address": str(client.address),
                "kind": client.address.address,
                "connected": client.is_connected,
                **asdict(client.configuration),
            }
            for name, client in self._clients.items()
        }

    def remove_client(self, name: str) -> ValkeyClient:
        """Unregister a client and return it (the caller closes it).

        Raises:
            ClientNotFoundError: If no such client is configured
        """
        try:
            client = self._clients.pop(name)
        except KeyError:
            raise ClientNotFoundError(name) from None
        logger.info("Client '%s' removed", name)
        return client

    def clear(self) -> None:
        """Forget every registered client."""
        self._clients.clear()


# Global registry instance
_registry = ClientRegistry()


def configure_client(
    name: str,
    address: str | ServerAddress,
    configuration: ClientConfiguration | None = None,
    replace: bool = False,
    **params: Any,
) -> ValkeyClient:
    """Configure a client in the global registry.

    See ClientRegistry.configure_client().

    Example:
        >>> configure_client("cache", "hostname", host="localhost", database=2)
    """
    return _registry.configure_client(name, address, configuration, replace, **params)


def get_client(name: str) -> ValkeyClient:
    """Get a client from the global registry.

    Example:
        >>> client = get_client("cache")
        >>> await client.get(key)
    """
    return _registry.get_client(name)


def list_clients() -> dict[str, dict[str, Any]]:
    """List all configured clients from global registry.

    Example:
        >>> list_clients()
        {'cache': {'address': 'localhost:6379', 'kind': 'hostname', ...}}
    """
    return _registry.list_clients()


def remove_client(name: str) -> ValkeyClient:
    """Remove a client from the global registry and return it."""
    return _registry.remove_client(name)
