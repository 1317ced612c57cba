"""MQTT publishing session.

The session is driven from the core loop: :meth:`MqttPublisher.service`
runs one non-blocking network iteration while connected and retries the
broker connection at a fixed interval while disconnected. Messages
published while disconnected are logged and dropped.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

import paho.mqtt.client as mqtt

from .constants import MQTT_CONNECT_TIMEOUT, MQTT_KEEPALIVE, MQTT_RECONNECT_INTERVAL

_LOGGER = logging.getLogger(__name__)


class Publisher(Protocol):
    """Anything that can publish a JSON document to a topic."""

    def publish(self, topic: str, document: dict[str, Any]) -> bool: ...


class MqttPublisher:
    """paho-mqtt client with interval-based reconnects.

    Args:
        server: Broker host; an empty value disables the session
        port: Broker TCP port
        client_id: MQTT client identifier
        reconnect_interval: Seconds between connection attempts
        clock: Monotonic clock in seconds
        client: Pre-built client (tests inject a mock here)
    """

    def __init__(
        self,
        server: str,
        port: int,
        *,
        client_id: str = "pyrtubridge",
        reconnect_interval: float = MQTT_RECONNECT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        client: mqtt.Client | None = None,
    ) -> None:
        self._server = server
        self._port = port
        self._reconnect_interval = reconnect_interval
        self._clock = clock
        self._last_attempt: float | None = None
        self._session_open = False
        self._connected = False

        if client is None:
            client = mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                client_id=client_id,
            )
        self._client = client
        self._client.connect_timeout = MQTT_CONNECT_TIMEOUT
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

    @property
    def server(self) -> str:
        return self._server

    @property
    def port(self) -> int:
        return self._port

    @property
    def connected(self) -> bool:
        """True once the broker has acknowledged the connection."""
        return self._connected

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if reason_code.is_failure:
            _LOGGER.error("MQTT broker %s refused connection: %s", self._server, reason_code)
            self._connected = False
            return
        self._connected = True
        _LOGGER.info("Connected to MQTT broker %s:%d", self._server, self._port)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if self._connected:
            _LOGGER.warning("Disconnected from MQTT broker %s: %s", self._server, reason_code)
        self._connected = False
        self._session_open = False

    def _connect(self, now: float) -> None:
        self._last_attempt = now
        _LOGGER.info("Connecting to MQTT broker %s:%d", self._server, self._port)
        try:
            self._client.connect(self._server, self._port, MQTT_KEEPALIVE)
        except (OSError, ValueError) as err:
            _LOGGER.warning(
                "MQTT connection to %s:%d failed, retrying in %.0fs: %s",
                self._server,
                self._port,
                self._reconnect_interval,
                err,
            )
            return
        self._session_open = True

    def service(self, connect: bool = True) -> None:
        """Run one iteration of the session.

        Dialling the broker is the only step that can block (up to
        ``MQTT_CONNECT_TIMEOUT``); pass ``connect=False`` to postpone it.
        """
        if not self._server:
            return

        if not self._session_open:
            if not connect:
                return
            now = self._clock()
            if self._last_attempt is None or now - self._last_attempt >= self._reconnect_interval:
                self._connect(now)
            return

        rc = self._client.loop(timeout=0)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            _LOGGER.warning("MQTT network loop failed: %s", mqtt.error_string(rc))
            self._session_open = False
            self._connected = False

    def publish(self, topic: str, document: dict[str, Any]) -> bool:
        """Publish ``document`` as JSON (QoS 0, not retained).

        Returns:
            True if the message was handed to the client
        """
        if not self._connected:
            _LOGGER.warning("MQTT not connected, dropping message for %s", topic)
            return False

        try:
            info = self._client.publish(topic, json.dumps(document), qos=0, retain=False)
        except (ValueError, TypeError) as err:
            _LOGGER.warning("Cannot publish to %r: %s", topic, err)
            return False
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            _LOGGER.warning("Failed to publish to %s: %s", topic, mqtt.error_string(info.rc))
            return False
        _LOGGER.debug("Published to %s", topic)
        return True

    def set_endpoint(self, server: str, port: int) -> None:
        """Switch brokers; the new one is dialled on the next service call."""
        if (server, port) == (self._server, self._port):
            return
        self.close()
        self._server = server
        self._port = port
        self._last_attempt = None
        _LOGGER.info("MQTT endpoint set to %s:%d", server, port)

    def close(self) -> None:
        """Disconnect from the broker."""
        if self._session_open:
            self._client.disconnect()
        self._session_open = False
        self._connected = False
