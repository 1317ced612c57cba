"""HTTP admin surface.

JSON endpoints used by the configuration UI. Handlers run on the same
event loop as the core loop, so they may touch gateway state directly;
anything that changes the registry or the polling pace only writes the
configuration store and asks the poll engine to reload on its next tick.

Responses follow one shape::

    {"status": "success", ...}
    {"status": "error", "message": "...", "errors": [...]}

Validation problems answer 400, unknown slaves 404 and storage failures
500.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from aiohttp import web

from .config.params import PersistentParams
from .config.store import ConfigStore
from .config.templates import TemplateStore, default_templates, diff
from .constants import SLAVES_PATH
from .debug import DebugLog
from .engine import PollEngine
from .exceptions import (
    ConfigInvalidError,
    ConfigMissingError,
    MergeTooDeepError,
    SlaveConfigError,
    StorageError,
    TemplateNotFoundError,
)
from .models import PollingConfig
from .publisher import MqttPublisher
from .registry import SlaveRegistry, parse_slave, parse_slaves
from .stats import StatsLedger, TimingLedger

_LOGGER = logging.getLogger(__name__)

# Slave-list fields that are not part of the scale tree
BASIC_FIELDS = (
    "id",
    "name",
    "deviceType",
    "startReg",
    "numReg",
    "mqttTopic",
    "registerSize",
    "ct",
    "pt",
)


def success(**extra: Any) -> web.Response:
    """Build a success response."""
    return web.json_response({"status": "success", **extra})


def error(message: str, status: int = 400, errors: list[dict[str, Any]] | None = None) -> web.Response:
    """Build an error response."""
    body: dict[str, Any] = {"status": "error", "message": message}
    if errors is not None:
        body["errors"] = errors
    return web.json_response(body, status=status)


class RequestError(Exception):
    """Raised by handlers to answer with an error response."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse the request body as a JSON object.

    Raises:
        RequestError: If the body is empty, malformed or not an object
    """
    text = await request.text()
    if not text.strip():
        raise RequestError("Empty request body")
    try:
        body = json.loads(text)
    except json.JSONDecodeError as err:
        raise RequestError("Invalid JSON") from err
    if not isinstance(body, dict):
        raise RequestError("Request body must be a JSON object")
    return body


@web.middleware
async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Translate gateway exceptions into JSON error responses."""
    try:
        return await handler(request)
    except RequestError as err:
        return error(err.message, err.status)
    except (StorageError, ConfigInvalidError) as err:
        _LOGGER.error("Storage failure handling %s: %s", request.path, err)
        return error(str(err), 500)


class AdminAPI:
    """Admin endpoints bound to one gateway's state.

    Example:
        admin = AdminAPI(store, templates, registry, engine, stats, timing, debug, params)
        web.run_app(admin.app)
    """

    def __init__(
        self,
        store: ConfigStore,
        templates: TemplateStore,
        registry: SlaveRegistry,
        engine: PollEngine,
        stats: StatsLedger,
        timing: TimingLedger,
        debug: DebugLog,
        params: PersistentParams,
        publisher: MqttPublisher | None = None,
    ) -> None:
        self._store = store
        self._templates = templates
        self._registry = registry
        self._engine = engine
        self._stats = stats
        self._timing = timing
        self._debug = debug
        self._params = params
        self._publisher = publisher
        self._app = self._build_app()

    @property
    def app(self) -> web.Application:
        return self._app

    def _build_app(self) -> web.Application:
        app = web.Application(middlewares=[error_middleware])
        app.router.add_get("/getslaves", self.get_slaves)
        app.router.add_post("/saveslaves", self.save_slaves)
        app.router.add_post("/getslaveconfig", self.get_slave_config)
        app.router.add_post("/updateslaveconfig", self.update_slave_config)
        app.router.add_get("/getpollingconfig", self.get_polling_config)
        app.router.add_post("/savepollingconfig", self.save_polling_config)
        app.router.add_get("/gettemplates", self.get_templates)
        app.router.add_post("/savetemplates", self.save_templates)
        app.router.add_get("/getstatistics", self.get_statistics)
        app.router.add_post("/removeslavestats", self.remove_slave_stats)
        app.router.add_post("/toggledebug", self.toggle_debug)
        app.router.add_get("/getdebugstate", self.get_debug_state)
        app.router.add_get("/getdebugmessages", self.get_debug_messages)
        app.router.add_post("/cleartable", self.clear_table)
        app.router.add_get("/getwifi", self.get_wifi)
        app.router.add_post("/savewifi", self.save_wifi)
        app.router.add_get("/status", self.status)
        return app

    def _stored_slaves(self) -> list[Any]:
        try:
            return self._store.load_slaves()
        except ConfigMissingError:
            return []
        except ConfigInvalidError as err:
            raise StorageError(str(err)) from err

    @staticmethod
    def _find_entry(entries: list[Any], slave_id: Any, name: Any) -> int:
        for index, entry in enumerate(entries):
            if isinstance(entry, Mapping) and entry.get("id") == slave_id and entry.get("name") == name:
                return index
        return -1

    def _changed(self) -> None:
        self._templates.invalidate()
        self._engine.request_reload()

    # =========================================================================
    # Slaves
    # =========================================================================

    async def get_slaves(self, request: web.Request) -> web.Response:
        """Return the stored slave list document."""
        try:
            document = self._store.read_json(SLAVES_PATH)
        except ConfigMissingError:
            document = {"slaves": []}
        except ConfigInvalidError as err:
            raise StorageError(str(err)) from err
        return web.json_response(document)

    async def save_slaves(self, request: web.Request) -> web.Response:
        """Replace the slave list.

        Entries without an ``override`` keep the override stored for the
        same ``(id, name)``.
        """
        body = await read_json(request)
        entries = body.get("slaves")
        if not isinstance(entries, list):
            raise RequestError("'slaves' must be an array")

        existing = self._stored_slaves()
        for entry in entries:
            if not isinstance(entry, dict) or "override" in entry:
                continue
            index = self._find_entry(existing, entry.get("id"), entry.get("name"))
            if index >= 0 and isinstance(existing[index].get("override"), dict):
                entry["override"] = existing[index]["override"]
                _LOGGER.debug("Preserved override for slave %s (%s)", entry.get("id"), entry.get("name"))

        _, errors = parse_slaves(entries, self._templates)
        if errors:
            return error("Invalid slave configuration", errors=[e.to_dict() for e in errors])

        self._store.save_slaves(entries)
        self._changed()
        _LOGGER.info("Saved %d slave(s)", len(entries))
        return success(count=len(entries))

    async def get_slave_config(self, request: web.Request) -> web.Response:
        """Return one slave's template merged with its override."""
        body = await read_json(request)
        entries = self._stored_slaves()
        index = self._find_entry(entries, body.get("slaveId"), body.get("slaveName"))
        if index < 0:
            return error("Slave not found", 404)

        entry = entries[index]
        try:
            merged = self._templates.materialise(entry.get("deviceType"), entry.get("override"))
        except TemplateNotFoundError:
            return web.json_response(entry)
        except MergeTooDeepError as err:
            return error(str(err), 400)

        for key in BASIC_FIELDS:
            if key in entry:
                merged[key] = entry[key]
        return web.json_response(merged)

    async def update_slave_config(self, request: web.Request) -> web.Response:
        """Store an edited slave, keeping only the leaves that differ from its template."""
        body = await read_json(request)
        if isinstance(body.get("id"), bool) or not isinstance(body.get("id"), int):
            raise RequestError("Missing required fields: id or name")
        if not isinstance(body.get("name"), str):
            raise RequestError("Missing required fields: id or name")

        entries = self._stored_slaves()
        index = self._find_entry(entries, body["id"], body["name"])
        if index < 0:
            return error("Slave not found", 404)

        current = entries[index]
        model = current.get("deviceType")
        try:
            template = self._templates.template_for(model)
        except TemplateNotFoundError:
            return error("Template not found for device type", 404)

        params = {key: value for key, value in body.items() if key not in BASIC_FIELDS}
        try:
            override = diff(params, template)
        except MergeTooDeepError as err:
            return error(str(err), 400)

        updated: dict[str, Any] = {"id": body["id"], "name": body["name"], "deviceType": model}
        for key in BASIC_FIELDS[3:]:
            if key in body:
                updated[key] = body[key]
            elif key in current:
                updated[key] = current[key]
        if override:
            updated["override"] = override

        try:
            parse_slave(updated, self._templates, index=index)
        except SlaveConfigError as err:
            return error("Invalid slave configuration", errors=[err.to_dict()])

        entries[index] = updated
        self._store.save_slaves(entries)
        self._changed()
        _LOGGER.info(
            "Updated slave %d (%s) with %d override section(s)", body["id"], body["name"], len(override)
        )
        return success(message="Slave configuration updated successfully", override=override)

    # =========================================================================
    # Polling and templates
    # =========================================================================

    async def get_polling_config(self, request: web.Request) -> web.Response:
        """Return the stored polling configuration."""
        try:
            polling = PollingConfig.from_dict(self._store.load_polling())
        except (ConfigMissingError, ConfigInvalidError, ValueError):
            polling = PollingConfig()
        return web.json_response(polling.to_dict())

    async def save_polling_config(self, request: web.Request) -> web.Response:
        """Validate and store the polling configuration."""
        body = await read_json(request)
        try:
            polling = PollingConfig.from_dict(body)
        except ValueError as err:
            return error(str(err))
        self._store.save_polling(polling.to_dict())
        self._engine.request_reload()
        _LOGGER.info(
            "Polling config saved: interval=%ds, timeout=%ds", polling.poll_interval, polling.timeout
        )
        return success(**polling.to_dict())

    async def get_templates(self, request: web.Request) -> web.Response:
        """Return the stored templates, or the built-in ones if none are stored."""
        try:
            document = self._templates.all()
        except ConfigInvalidError as err:
            raise StorageError(str(err)) from err
        return web.json_response(document or default_templates())

    async def save_templates(self, request: web.Request) -> web.Response:
        """Replace the templates document."""
        body = await read_json(request)
        try:
            self._templates.save(body)
        except ConfigInvalidError as err:
            return error(str(err))
        self._engine.request_reload()
        return success(count=len(body))

    # =========================================================================
    # Statistics and debug
    # =========================================================================

    async def get_statistics(self, request: web.Request) -> web.Response:
        """Return the per-slave statistics."""
        return web.json_response(self._stats.snapshot())

    async def remove_slave_stats(self, request: web.Request) -> web.Response:
        """Forget one slave's statistics."""
        body = await read_json(request)
        removed = self._stats.remove(body.get("slaveId"), body.get("slaveName"))
        _LOGGER.info(
            "Removed statistics for slave %s (%s): %s", body.get("slaveId"), body.get("slaveName"), removed
        )
        return success(removed=removed)

    async def toggle_debug(self, request: web.Request) -> web.Response:
        """Turn debug message capture on or off."""
        body = await read_json(request)
        self._debug.set_enabled(bool(body.get("enabled", False)))
        return success(enabled=self._debug.enabled)

    async def get_debug_state(self, request: web.Request) -> web.Response:
        """Return whether debug capture is on."""
        return web.json_response({"enabled": self._debug.enabled})

    async def get_debug_messages(self, request: web.Request) -> web.Response:
        """Return and clear the captured messages."""
        return web.json_response(self._debug.drain())

    async def clear_table(self, request: web.Request) -> web.Response:
        """Reset the timing ledger and the captured messages."""
        self._timing.reset()
        self._debug.clear()
        return success(message="Table cleared and timing reset")

    # =========================================================================
    # Network parameters
    # =========================================================================

    async def get_wifi(self, request: web.Request) -> web.Response:
        """Return the stored network and MQTT parameters."""
        return web.json_response(self._params.to_dict())

    async def save_wifi(self, request: web.Request) -> web.Response:
        """Update network and MQTT parameters; empty fields keep their value.

        Accepts a JSON object or form fields.
        """
        if request.content_type == "application/json":
            changes: dict[str, Any] = await read_json(request)
        else:
            changes = dict(await request.post())

        try:
            endpoint_changed = self._params.update(changes)
        except ValueError as err:
            return error(str(err))
        self._params.save(self._store)

        if endpoint_changed and self._publisher is not None:
            self._publisher.set_endpoint(self._params.mqtt_server, self._params.mqtt_port)
        return success()

    async def status(self, request: web.Request) -> web.Response:
        """Return the engine position, registry size and MQTT state."""
        return web.json_response(
            {
                "engine": self._engine.status(),
                "registry": {
                    "slaves": len(self._registry),
                    "errors": [err.to_dict() for err in self._registry.errors],
                },
                "mqtt": {
                    "connected": self._publisher.connected if self._publisher else False,
                    "server": self._params.mqtt_server,
                    "port": self._params.mqtt_port,
                },
            }
        )
