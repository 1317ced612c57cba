"""Exception classes for the gateway.

Configuration and storage problems raise subclasses of
:class:`ConfigError`; serial transport problems live in
:mod:`pyrtubridge.transports.exceptions`. Everything derives from
:class:`RtuBridgeError` so callers can catch a single base class.
"""

from __future__ import annotations


class RtuBridgeError(Exception):
    """Base exception for all gateway errors."""

    pass


class CodecError(RtuBridgeError):
    """Register words could not be combined (index or width out of range)."""

    pass


class ConfigError(RtuBridgeError):
    """Base exception for configuration problems."""

    pass


class ConfigMissingError(ConfigError):
    """A required configuration file is absent."""

    pass


class ConfigInvalidError(ConfigError):
    """A configuration document parsed but violates its constraints."""

    pass


class StorageError(ConfigError):
    """The configuration store could not be read or written."""

    pass


class TemplateNotFoundError(ConfigError):
    """No stored template exists for a device model."""

    def __init__(self, model: str) -> None:
        """Initialize with the missing model name.

        Args:
            model: Device model name that was looked up
        """
        self.model = model
        super().__init__(f"No template stored for device model '{model}'")


class MergeTooDeepError(ConfigError):
    """Template merge or diff exceeded the maximum nesting depth."""

    pass


class SlaveConfigError(ConfigInvalidError):
    """A single slave entry failed validation.

    Attributes:
        index: Position of the entry in the slave list (None if unknown)
        slave_id: Modbus address from the entry (None if missing)
    """

    def __init__(
        self,
        message: str,
        *,
        index: int | None = None,
        slave_id: int | None = None,
    ) -> None:
        self.index = index
        self.slave_id = slave_id
        self.reason = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable description of the failure."""
        return {"index": self.index, "id": self.slave_id, "message": self.reason}


class DecodeError(RtuBridgeError):
    """A register block is too short for the slave's channel layout."""

    pass
