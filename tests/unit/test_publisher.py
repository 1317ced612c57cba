"""Unit tests for the MQTT publishing session."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt

from pyrtubridge.constants import MQTT_CONNECT_TIMEOUT, MQTT_KEEPALIVE
from pyrtubridge.models import PollingConfig
from pyrtubridge.publisher import MqttPublisher


def accept(client: MagicMock) -> None:
    """Fire the client's connect callback with a successful reason code."""
    client.on_connect(client, None, None, MagicMock(is_failure=False), None)


class TestConnection:
    """Tests for connecting and reconnecting."""

    def test_no_server_is_idle(self, mqtt_client: MagicMock, clock: Any) -> None:
        """Test an empty broker host disables the session."""
        publisher = MqttPublisher("", 1883, client=mqtt_client, clock=clock)
        publisher.service()
        mqtt_client.connect.assert_not_called()

    def test_connect_on_first_service(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test the first service call dials the broker."""
        mqtt_publisher.service()
        mqtt_client.connect.assert_called_once_with("broker.local", 1883, MQTT_KEEPALIVE)
        assert mqtt_publisher.connected is False

        accept(mqtt_client)
        assert mqtt_publisher.connected is True

    def test_loop_runs_while_open(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test the network loop runs without blocking once the session is open."""
        mqtt_publisher.service()
        mqtt_publisher.service()
        mqtt_client.loop.assert_called_once_with(timeout=0)

    def test_retry_interval(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock, clock: Any
    ) -> None:
        """Test failed connections are retried at the reconnect interval."""
        mqtt_client.connect.side_effect = OSError("connection refused")
        mqtt_publisher.service()
        clock.advance(19.0)
        mqtt_publisher.service()
        assert mqtt_client.connect.call_count == 1
        clock.advance(1.0)
        mqtt_publisher.service()
        assert mqtt_client.connect.call_count == 2

    def test_refused(self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock) -> None:
        """Test a refused connection leaves the publisher disconnected."""
        mqtt_publisher.service()
        mqtt_client.on_connect(mqtt_client, None, None, MagicMock(is_failure=True), None)
        assert mqtt_publisher.connected is False

    def test_loop_failure_closes_session(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock, clock: Any
    ) -> None:
        """Test a failed network loop drops the session and reconnects later."""
        mqtt_publisher.service()
        accept(mqtt_client)
        mqtt_client.loop.return_value = mqtt.MQTT_ERR_CONN_LOST
        mqtt_publisher.service()
        assert mqtt_publisher.connected is False

        clock.advance(20.0)
        mqtt_publisher.service()
        assert mqtt_client.connect.call_count == 2

    def test_disconnect_callback(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test a broker disconnect marks the session closed."""
        mqtt_publisher.service()
        accept(mqtt_client)
        mqtt_client.on_disconnect(mqtt_client, None, None, MagicMock(), None)
        assert mqtt_publisher.connected is False


class TestPublish:
    """Tests for publishing documents."""

    def test_dropped_while_disconnected(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test messages are dropped while disconnected."""
        assert mqtt_publisher.publish("env/room1", {"id": 3}) is False
        mqtt_client.publish.assert_not_called()

    def test_publish_json(self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock) -> None:
        """Test the document is sent as JSON at QoS 0 without retain."""
        mqtt_publisher.service()
        accept(mqtt_client)
        assert mqtt_publisher.publish("env/room1", {"id": 3, "humidity": 50.0}) is True

        topic, payload = mqtt_client.publish.call_args.args
        assert topic == "env/room1"
        assert json.loads(payload) == {"id": 3, "humidity": 50.0}
        assert mqtt_client.publish.call_args.kwargs == {"qos": 0, "retain": False}

    def test_publish_error(self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock) -> None:
        """Test a client-side publish failure returns False."""
        mqtt_publisher.service()
        accept(mqtt_client)
        mqtt_client.publish.return_value.rc = mqtt.MQTT_ERR_NO_CONN
        assert mqtt_publisher.publish("env/room1", {}) is False


class TestEndpoint:
    """Tests for switching brokers."""

    def test_set_endpoint(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock, clock: Any
    ) -> None:
        """Test a new endpoint closes the session and dials immediately."""
        mqtt_publisher.service()
        accept(mqtt_client)

        mqtt_publisher.set_endpoint("other.local", 8883)
        mqtt_client.disconnect.assert_called_once()
        assert mqtt_publisher.connected is False
        assert (mqtt_publisher.server, mqtt_publisher.port) == ("other.local", 8883)

        mqtt_publisher.service()
        mqtt_client.connect.assert_called_with("other.local", 8883, MQTT_KEEPALIVE)

    def test_same_endpoint_is_noop(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test setting the current endpoint keeps the session."""
        mqtt_publisher.service()
        accept(mqtt_client)
        mqtt_publisher.set_endpoint("broker.local", 1883)
        mqtt_client.disconnect.assert_not_called()
        assert mqtt_publisher.connected is True

    def test_close(self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock) -> None:
        """Test close disconnects an open session only."""
        mqtt_publisher.close()
        mqtt_client.disconnect.assert_not_called()
        mqtt_publisher.service()
        mqtt_publisher.close()
        mqtt_client.disconnect.assert_called_once()


class TestInvalidTopics:
    """Tests for topics the client refuses."""

    def test_client_error_dropped(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test a topic rejected by the client returns False instead of raising."""
        mqtt_publisher.service()
        accept(mqtt_client)
        mqtt_client.publish.side_effect = ValueError("Publish topic cannot contain wildcards.")
        assert mqtt_publisher.publish("env/#", {"id": 3}) is False

    def test_wildcard_with_paho_client(self, clock: Any) -> None:
        """Test a real client's wildcard rejection is logged and dropped."""
        client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)
        publisher = MqttPublisher("broker.local", 1883, client=client, clock=clock)
        client.on_connect(client, None, None, MagicMock(is_failure=False), None)
        assert publisher.connected is True
        assert publisher.publish("env/#", {"id": 3}) is False


class TestBlockingDial:
    """Tests for bounding the blocking broker dial."""

    def test_connect_timeout_bounded(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test the client's dial timeout is shorter than any query deadline."""
        assert mqtt_client.connect_timeout == MQTT_CONNECT_TIMEOUT
        assert MQTT_CONNECT_TIMEOUT < PollingConfig().timeout

    def test_dial_postponed(self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock) -> None:
        """Test connect=False skips the dial but keeps the retry due."""
        mqtt_publisher.service(connect=False)
        mqtt_client.connect.assert_not_called()
        mqtt_publisher.service()
        mqtt_client.connect.assert_called_once()

    def test_open_session_still_serviced(
        self, mqtt_publisher: MqttPublisher, mqtt_client: MagicMock
    ) -> None:
        """Test an open session runs its network loop even when dials are postponed."""
        mqtt_publisher.service()
        mqtt_publisher.service(connect=False)
        mqtt_client.loop.assert_called_once_with(timeout=0)
