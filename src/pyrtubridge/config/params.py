"""Persistent network and MQTT endpoint parameters.

The gateway core only reads ``mqtt_server`` and ``mqtt_port``; the
station/access point credentials are stored for the link manager and the
admin surface. Updates are partial: an empty value leaves the stored
value untouched, so a form that omits the password does not erase it.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from pyrtubridge.config.store import ConfigStore
from pyrtubridge.constants import DEFAULT_MQTT_PORT
from pyrtubridge.exceptions import ConfigInvalidError, ConfigMissingError

_LOGGER = logging.getLogger(__name__)


@dataclass
class PersistentParams:
    """Network credentials and MQTT endpoint."""

    sta_ssid: str = ""
    sta_password: str = ""
    ap_ssid: str = "pyrtubridge"
    ap_password: str = ""
    mqtt_server: str = ""
    mqtt_port: int = DEFAULT_MQTT_PORT

    def validate(self) -> None:
        """Validate the parameters.

        Raises:
            ValueError: If the MQTT port is out of range
        """
        if isinstance(self.mqtt_port, bool) or not isinstance(self.mqtt_port, int):
            raise ValueError("mqtt_port must be an integer")
        if not 1 <= self.mqtt_port <= 65535:
            raise ValueError("mqtt_port must be between 1 and 65535")

    def update(self, changes: dict[str, Any]) -> bool:
        """Apply non-empty values from ``changes``.

        Unknown keys are ignored. Returns True if the MQTT endpoint changed.

        Raises:
            ValueError: If the resulting parameters are invalid
        """
        endpoint = (self.mqtt_server, self.mqtt_port)
        known = {f.name for f in fields(self)}
        values: dict[str, Any] = {}
        for key, value in changes.items():
            if key not in known or value in ("", None):
                continue
            if key == "mqtt_port":
                try:
                    value = int(value)
                except (TypeError, ValueError) as err:
                    raise ValueError("mqtt_port must be an integer") from err
            elif not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
            values[key] = value

        # Nothing is applied unless the result is valid
        replace(self, **values).validate()
        for key, value in values.items():
            setattr(self, key, value)
        return (self.mqtt_server, self.mqtt_port) != endpoint

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored document shape."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersistentParams:
        """Create from a stored document, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        params = cls(**{key: value for key, value in data.items() if key in known})
        params.validate()
        return params

    @classmethod
    def load(cls, store: ConfigStore) -> PersistentParams:
        """Load from the store; a missing or unusable document yields defaults."""
        try:
            return cls.from_dict(store.load_params())
        except ConfigMissingError:
            _LOGGER.info("No stored network parameters, using defaults")
        except (ConfigInvalidError, ValueError, TypeError) as err:
            _LOGGER.warning("Ignoring invalid network parameters: %s", err)
        return cls()

    def save(self, store: ConfigStore) -> None:
        """Persist to the store."""
        store.save_params(self.to_dict())
