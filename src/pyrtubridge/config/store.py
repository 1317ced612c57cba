"""JSON document store backed by a data directory.

Documents are addressed by stable absolute-looking names such as
``/slaves.json``; the leading slash is stripped and the name resolved
under the store's data directory. Writes go to a temporary file in the
same directory and are renamed into place so a reader never sees a
partially written document.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pyrtubridge.constants import PARAMS_PATH, POLLING_PATH, SLAVES_PATH, TEMPLATES_PATH
from pyrtubridge.exceptions import ConfigInvalidError, ConfigMissingError, StorageError

_LOGGER = logging.getLogger(__name__)


class ConfigStore:
    """Read and write JSON configuration documents.

    Example:
        store = ConfigStore("/var/lib/pyrtubridge")
        slaves = store.read_json("/slaves.json")
        store.write_json("/polling.json", {"pollInterval": 10, "timeout": 1})
    """

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        """Directory holding the documents."""
        return self._data_dir

    def path_for(self, name: str) -> Path:
        """Resolve a document name to a file path."""
        relative = name.lstrip("/")
        if not relative or ".." in Path(relative).parts:
            raise ValueError(f"Invalid document name: {name!r}")
        return self._data_dir / relative

    def exists(self, name: str) -> bool:
        """Return True if the document is present."""
        return self.path_for(name).is_file()

    def read_json(self, name: str) -> Any:
        """Load and parse a document.

        Raises:
            ConfigMissingError: If the document does not exist
            ConfigInvalidError: If the document is not valid JSON
            StorageError: If the file cannot be read
        """
        path = self.path_for(name)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as err:
            raise ConfigMissingError(f"{name} not found") from err
        except OSError as err:
            raise StorageError(f"Failed to read {name}: {err}") from err

        try:
            return json.loads(text)
        except json.JSONDecodeError as err:
            raise ConfigInvalidError(f"{name} is not valid JSON: {err}") from err

    def write_json(self, name: str, document: Any) -> None:
        """Serialize and atomically replace a document.

        Raises:
            StorageError: If the file cannot be written
        """
        path = self.path_for(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as err:
            raise StorageError(f"Failed to write {name}: {err}") from err
        _LOGGER.debug("Wrote %s", path)

    def delete(self, name: str) -> bool:
        """Remove a document; returns False if it did not exist."""
        try:
            self.path_for(name).unlink()
        except FileNotFoundError:
            return False
        except OSError as err:
            raise StorageError(f"Failed to delete {name}: {err}") from err
        return True

    # =========================================================================
    # Named documents
    # =========================================================================

    def load_slaves(self) -> list[Any]:
        """Return the ``slaves`` array of the slave list document.

        Raises:
            ConfigMissingError: If the document does not exist
            ConfigInvalidError: If the document is not ``{"slaves": [...]}``
            StorageError: If the file cannot be read
        """
        document = self.read_json(SLAVES_PATH)
        if not isinstance(document, dict):
            raise ConfigInvalidError(f"{SLAVES_PATH} must contain an object")
        slaves = document.get("slaves", [])
        if not isinstance(slaves, list):
            raise ConfigInvalidError(f"{SLAVES_PATH}: 'slaves' must be an array")
        return slaves

    def save_slaves(self, slaves: list[dict[str, Any]]) -> None:
        """Persist the slave list."""
        self.write_json(SLAVES_PATH, {"slaves": slaves})

    def load_polling(self) -> dict[str, Any]:
        """Return the polling document.

        Raises:
            ConfigMissingError: If the document does not exist
            ConfigInvalidError: If the document is not an object
        """
        document = self.read_json(POLLING_PATH)
        if not isinstance(document, dict):
            raise ConfigInvalidError(f"{POLLING_PATH} must contain an object")
        return document

    def save_polling(self, document: dict[str, Any]) -> None:
        """Persist the polling document."""
        self.write_json(POLLING_PATH, document)

    def load_templates(self) -> dict[str, Any]:
        """Return the templates document.

        Raises:
            ConfigMissingError: If the document does not exist
            ConfigInvalidError: If the document is not an object
        """
        document = self.read_json(TEMPLATES_PATH)
        if not isinstance(document, dict):
            raise ConfigInvalidError(f"{TEMPLATES_PATH} must contain an object")
        return document

    def save_templates(self, document: dict[str, Any]) -> None:
        """Persist the templates document."""
        self.write_json(TEMPLATES_PATH, document)

    def load_params(self) -> dict[str, Any]:
        """Return the persistent network/MQTT parameters document."""
        document = self.read_json(PARAMS_PATH)
        if not isinstance(document, dict):
            raise ConfigInvalidError(f"{PARAMS_PATH} must contain an object")
        return document

    def save_params(self, document: dict[str, Any]) -> None:
        """Persist the network/MQTT parameters document."""
        self.write_json(PARAMS_PATH, document)
