"""Registry of the slaves currently being polled.

The registry is rebuilt from the configuration store on :meth:`reload`.
Each slave-list entry is resolved to its device class, merged with its
template, validated, and turned into an immutable :class:`Slave`.
Invalid entries are skipped and reported; the others still load. If the
documents cannot be read at all, the previous registry stays in place.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from .codec import RegisterSize
from .config.store import ConfigStore
from .config.templates import TemplateStore
from .constants import (
    MAX_READ_COUNT,
    MAX_REGISTER_ADDRESS,
    MAX_SLAVE_ID,
    MIN_SLAVE_ID,
    POLLING_PATH,
    SLAVES_PATH,
)
from .exceptions import (
    ConfigError,
    ConfigInvalidError,
    ConfigMissingError,
    SlaveConfigError,
    StorageError,
)
from .models import (
    DEVICE_CHANNELS,
    SCALES_BY_TYPE,
    DeviceType,
    PollingConfig,
    Slave,
    device_type_for,
    positive_number,
)
from .registers import ENERGY_MIN_REGISTER_SIZE

_LOGGER = logging.getLogger(__name__)

_MISSING = object()


def _integer(entry: Mapping[str, Any], key: str, default: Any = _MISSING) -> int:
    value = entry.get(key, default)
    if value is _MISSING:
        raise ConfigInvalidError(f"'{key}' is required")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigInvalidError(f"'{key}' must be an integer, got {value!r}")
    return value


def _text(entry: Mapping[str, Any], key: str) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigInvalidError(f"'{key}' must be a non-empty string")
    return value


def _topic(entry: Mapping[str, Any]) -> str:
    topic = _text(entry, "mqttTopic")
    # Wildcards and NUL are only legal in subscriptions
    if any(char in topic for char in ("+", "#", "\x00")):
        raise ConfigInvalidError(f"'mqttTopic' may not contain '+', '#' or NUL, got {topic!r}")
    return topic


def parse_slave(
    entry: Any,
    templates: TemplateStore,
    *,
    index: int | None = None,
) -> Slave:
    """Validate one slave-list entry and materialise it.

    Args:
        entry: Raw entry from the slave list document
        templates: Template source for the entry's device model
        index: Position of the entry, used in error reports

    Returns:
        Materialised slave

    Raises:
        SlaveConfigError: If the entry violates any slave constraint
        StorageError: If the templates document cannot be read
    """
    if not isinstance(entry, Mapping):
        raise SlaveConfigError("Slave entry must be an object", index=index)

    raw_id = entry.get("id")
    slave_id = raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else None

    try:
        slave_id = _integer(entry, "id")
        if not MIN_SLAVE_ID <= slave_id <= MAX_SLAVE_ID:
            raise ConfigInvalidError(
                f"'id' must be between {MIN_SLAVE_ID} and {MAX_SLAVE_ID}, got {slave_id}"
            )
        name = _text(entry, "name")
        topic = _topic(entry)

        model = entry.get("deviceType")
        device_type = device_type_for(model) if isinstance(model, str) else None
        if device_type is None:
            raise ConfigInvalidError(f"Unknown device type {model!r}")

        start = _integer(entry, "startReg")
        if not 0 <= start <= MAX_REGISTER_ADDRESS:
            raise ConfigInvalidError(f"'startReg' must be between 0 and {MAX_REGISTER_ADDRESS}")

        count = _integer(entry, "numReg")
        if not 0 < count <= MAX_READ_COUNT:
            raise ConfigInvalidError(f"'numReg' must be between 1 and {MAX_READ_COUNT}, got {count}")
        if start + count - 1 > MAX_REGISTER_ADDRESS:
            raise ConfigInvalidError("'startReg' + 'numReg' exceeds the register address space")

        size_value = _integer(entry, "registerSize", 1)
        try:
            size = RegisterSize(size_value)
        except ValueError as err:
            raise ConfigInvalidError(f"'registerSize' must be 1-4, got {size_value}") from err
        if count % size:
            raise ConfigInvalidError(
                f"'numReg' ({count}) must be a multiple of 'registerSize' ({int(size)})"
            )
        if device_type is DeviceType.ENERGY_METER and size < ENERGY_MIN_REGISTER_SIZE:
            raise ConfigInvalidError("Energy meters require 'registerSize' of at least 2")

        needed = len(DEVICE_CHANNELS[device_type])
        if count // size < needed:
            raise ConfigInvalidError(
                f"{model} needs {needed} value(s) but 'numReg'/'registerSize' "
                f"yields {count // size}"
            )

        ct = positive_number(entry.get("ct", 1.0), "ct")
        pt = positive_number(entry.get("pt", 1.0), "pt")

        override = entry.get("override") or {}
        if not isinstance(override, Mapping):
            raise ConfigInvalidError("'override' must be an object")
        materialised = templates.materialise(model, override)
        scales = SCALES_BY_TYPE[device_type].from_template(materialised)
    except StorageError:
        raise
    except SlaveConfigError:
        raise
    except ConfigError as err:
        raise SlaveConfigError(str(err), index=index, slave_id=slave_id) from err

    return Slave(
        id=slave_id,
        start_register=start,
        register_count=count,
        name=name,
        mqtt_topic=topic,
        model=model,
        device_type=device_type,
        scales=scales,
        register_size=size,
        ct=ct,
        pt=pt,
    )


def parse_slaves(
    entries: list[Any], templates: TemplateStore
) -> tuple[list[Slave], list[SlaveConfigError]]:
    """Parse a whole slave list, skipping invalid and duplicate entries.

    Raises:
        StorageError: If the templates document cannot be read
    """
    slaves: list[Slave] = []
    errors: list[SlaveConfigError] = []
    seen: set[int] = set()
    for index, entry in enumerate(entries):
        try:
            slave = parse_slave(entry, templates, index=index)
            if slave.id in seen:
                raise SlaveConfigError(
                    f"Duplicate slave id {slave.id}", index=index, slave_id=slave.id
                )
        except SlaveConfigError as err:
            errors.append(err)
            continue
        seen.add(slave.id)
        slaves.append(slave)
    return slaves, errors


class SlaveRegistry:
    """Ordered, atomically replaced list of materialised slaves.

    Example:
        registry = SlaveRegistry(store, templates)
        registry.reload()
        for slave in registry.list():
            print(slave.id, slave.name)
    """

    def __init__(self, store: ConfigStore, templates: TemplateStore) -> None:
        self._store = store
        self._templates = templates
        self._slaves: tuple[Slave, ...] = ()
        self._polling = PollingConfig()
        self._errors: tuple[SlaveConfigError, ...] = ()
        self._missing_logged = False

    @property
    def polling(self) -> PollingConfig:
        """Polling configuration from the last successful reload."""
        return self._polling

    @property
    def errors(self) -> tuple[SlaveConfigError, ...]:
        """Entries skipped by the last successful reload."""
        return self._errors

    def list(self) -> tuple[Slave, ...]:
        """Return a snapshot of the current slaves."""
        return self._slaves

    def find(self, slave_id: int, name: str) -> Slave | None:
        """Return the slave with the given id and name, if loaded."""
        for slave in self._slaves:
            if slave.id == slave_id and slave.name == name:
                return slave
        return None

    def __len__(self) -> int:
        return len(self._slaves)

    def __iter__(self) -> Iterator[Slave]:
        return iter(self._slaves)

    def _load_entries(self) -> list[Any]:
        try:
            entries = self._store.load_slaves()
        except ConfigMissingError:
            if not self._missing_logged:
                _LOGGER.info("No %s found, registry is empty", SLAVES_PATH)
                self._missing_logged = True
            return []
        self._missing_logged = False
        return entries

    def _load_polling(self) -> PollingConfig:
        try:
            return PollingConfig.from_dict(self._store.load_polling())
        except ConfigMissingError:
            _LOGGER.debug("No %s found, using default polling settings", POLLING_PATH)
        except (ConfigInvalidError, ValueError) as err:
            _LOGGER.warning("Invalid %s, using defaults: %s", POLLING_PATH, err)
        return PollingConfig()

    def reload(self) -> bool:
        """Rebuild the registry from the configuration store.

        Returns:
            True if the registry was replaced, False if the documents could
            not be read and the previous registry was kept
        """
        try:
            entries = self._load_entries()
            polling = self._load_polling()
            # An unreadable templates document fails the whole reload
            self._templates.all()
            slaves, errors = parse_slaves(entries, self._templates)
        except (StorageError, ConfigInvalidError) as err:
            _LOGGER.error("Reload failed, keeping %d slave(s): %s", len(self._slaves), err)
            return False

        for error in errors:
            _LOGGER.warning(
                "Skipping slave entry %s (id %s): %s", error.index, error.slave_id, error.reason
            )

        self._slaves = tuple(slaves)
        self._polling = polling
        self._errors = tuple(errors)
        _LOGGER.info(
            "Loaded %d slave(s), %d skipped; poll interval %ds, timeout %ds",
            len(slaves),
            len(errors),
            polling.poll_interval,
            polling.timeout,
        )
        return True
