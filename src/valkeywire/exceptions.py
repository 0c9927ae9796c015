"""Client specific exceptions."""

from __future__ import annotations


class ValkeyError(Exception):
    """Base exception for valkey-wire errors."""


class ProtocolError(ValkeyError):
    """Exception raised when bytes on the wire cannot be framed.

    A protocol error is fatal for the connection it happened on: once the
    framing is lost no later byte can be trusted.
    """


class ServerError(ValkeyError):
    """Exception raised when the server replies with an error value."""

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Full error message as sent by the server
                     (e.g. "WRONGTYPE Operation against a key holding...")
        """
        self.message = message
        prefix, _, _rest = message.partition(" ")
        # Server errors start with an upper case code, e.g. ERR, WRONGTYPE, NOSCRIPT
        self.kind = prefix if prefix.isupper() else "ERR"
        super().__init__(message)


class DecodeError(ValkeyError):
    """Exception raised when a reply does not have the requested shape."""

    def __init__(
        self,
        message: str,
        expected: str | None = None,
        received: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            expected: Name of the requested shape
            received: Name of the wire value that was received
        """
        self.expected = expected
        self.received = received

        full_message = message
        if expected and received:
            full_message = f"{message} (expected={expected}, received={received})"

        super().__init__(full_message)


class ValkeyConnectionError(ValkeyError, ConnectionError):
    """Exception raised when the connection is closed, reset or cancelled.

    Every request outstanding on the connection at that moment fails with
    this error. Whether the server applied a written command is unknown.
    """


class CommandTimeoutError(ValkeyError, TimeoutError):
    """Exception raised when a reply did not arrive within command_timeout."""

    def __init__(self, command: str, timeout: float) -> None:
        """Initialize the exception.

        Args:
            command: Name of the command that timed out
            timeout: Timeout that elapsed, in seconds
        """
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command '{command}' did not complete within {timeout}s")


class ConfigValidationError(ValkeyError):
    """Exception raised when configuration validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        expected: str | None = None,
        received: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            field: Field name that failed validation
            expected: Expected value or type
            received: Received value or type
        """
        self.field = field
        self.expected = expected
        self.received = received

        full_message = message
        if field and expected and received:
            full_message = f"{message} (field='{field}', expected={expected}, received={received})"

        super().__init__(full_message)


class ClientNotFoundError(ValkeyError):
    """Exception raised when a named client is not registered."""

    def __init__(self, name: str) -> None:
        """Initialize the exception.

        Args:
            name: Name of the client that was not found
        """
        self.name = name
        super().__init__(
            f"Client '{name}' not found. "
            f"Configure it first using configure_client() or load_config()."
        )


class ClientAlreadyConfiguredError(ValkeyError):
    """Exception raised when a named client was already configured."""

    def __init__(self, name: str) -> None:
        """Initialize the exception.

        Args:
            name: Name of the already configured client
        """
        self.name = name
        super().__init__(
            f"Client '{name}' was already configured. "
            f"To reconfigure, remove the existing client first."
        )
