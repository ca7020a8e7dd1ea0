"""MQTT publisher that mirrors dashboard snapshots into a Unified Namespace."""

import json
import logging
import threading
import time
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .config import MQTTConfig, UNSConfig
from .simulator import DashboardSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """MQTT message to be published."""

    topic: str
    payload: Any
    retain: bool = False
    qos: int = 1


class SnapshotPublisher:
    """Queues snapshot messages and publishes them from a background thread."""

    def __init__(self, mqtt_config: MQTTConfig, uns_config: UNSConfig):
        self.mqtt_config = mqtt_config
        self.uns_config = uns_config

        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._publish_queue: "Queue[Message]" = Queue()
        self._publish_thread: Optional[threading.Thread] = None
        self._running = False
        self._dry_run = False

        # Stats
        self._messages_published = 0
        self._messages_dropped = 0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def messages_published(self) -> int:
        return self._messages_published

    @property
    def messages_dropped(self) -> int:
        return self._messages_dropped

    @property
    def base_topic(self) -> str:
        """Get the base topic path."""
        return f"{self.uns_config.topic_prefix}/{self.uns_config.enterprise}/{self.uns_config.site}"

    def connect(self, dry_run: bool = False) -> bool:
        """Connect to the MQTT broker."""
        self._dry_run = dry_run

        if dry_run:
            logger.info("Dry run mode - not connecting to MQTT broker")
            self._connected = True
            self._start_publish_thread()
            return True

        try:
            self._client = mqtt.Client(
                client_id=self.mqtt_config.client_id,
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            )

            if self.mqtt_config.username:
                self._client.username_pw_set(
                    self.mqtt_config.username, self.mqtt_config.password
                )

            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect

            logger.info(
                f"Connecting to MQTT broker {self.mqtt_config.broker}:{self.mqtt_config.port}"
            )
            self._client.connect(self.mqtt_config.broker, self.mqtt_config.port)
            self._client.loop_start()

            # Wait for connection
            timeout = 10
            start = time.time()
            while not self._connected and (time.time() - start) < timeout:
                time.sleep(0.1)

            if self._connected:
                self._start_publish_thread()

            return self._connected

        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            return False

    def disconnect(self) -> None:
        """Disconnect from the MQTT broker."""
        self._running = False

        if self._publish_thread:
            self._publish_thread.join(timeout=2)

        if self._client and not self._dry_run:
            self._client.loop_stop()
            self._client.disconnect()

        self._connected = False
        logger.info("Disconnected from MQTT broker")

    def publish(self, topic: str, payload: Any, retain: bool = False) -> bool:
        """Queue a message under the base topic."""
        if not self._connected:
            self._messages_dropped += 1
            return False

        full_topic = f"{self.base_topic}/{topic}"
        self._publish_queue.put(
            Message(topic=full_topic, payload=payload, retain=retain, qos=self.mqtt_config.qos)
        )
        return True

    def publish_snapshot(self, snapshot: DashboardSnapshot) -> int:
        """Queue every view of ``snapshot``; returns the number of messages queued."""
        data = snapshot.to_dict()
        messages = [
            ("_dashboard/summary", data["dashboard_summary"], True),
            ("_dashboard/selection", {"user": data["user"], **data["selection"]}, True),
            ("_alarms/active", data["alerts"], True),
            ("_analytics/energy", data["energy_data"], True),
            ("_analytics/insights", data["production_insights"], True),
            ("_analytics/plants", data["plant_overview"], True),
        ]
        for machine in data["machine_status"]:
            messages.append((f"_state/machines/{machine['machine_id']}", machine, True))

        queued = 0
        for topic, payload, retain in messages:
            if self.publish(topic, payload, retain=retain):
                queued += 1
        return queued

    def status(self) -> Dict[str, Any]:
        return {
            "enterprise": self.uns_config.enterprise,
            "site": self.uns_config.site,
            "messages_published": self._messages_published,
            "messages_dropped": self._messages_dropped,
            "timestamp_ms": int(time.time() * 1000),
        }

    def _start_publish_thread(self) -> None:
        """Start the background publish thread."""
        self._running = True
        self._publish_thread = threading.Thread(target=self._publish_loop, daemon=True)
        self._publish_thread.start()

    def _publish_loop(self) -> None:
        """Background thread that publishes queued messages."""
        while self._running:
            try:
                msg = self._publish_queue.get(timeout=0.1)
                self._do_publish(msg)
            except Empty:
                continue

    def _do_publish(self, msg: Message) -> None:
        """Actually publish a message."""
        payload_str = json.dumps(msg.payload)

        if self._dry_run:
            logger.debug(f"[DRY RUN] {msg.topic}: {payload_str[:100]}")
            self._messages_published += 1
            return

        if self._client and self._connected:
            try:
                result = self._client.publish(
                    msg.topic, payload_str, qos=msg.qos, retain=msg.retain
                )
                if result.rc == mqtt.MQTT_ERR_SUCCESS:
                    self._messages_published += 1
                else:
                    self._messages_dropped += 1
                    logger.warning(f"Failed to publish to {msg.topic}: {result.rc}")
            except Exception as e:
                self._messages_dropped += 1
                logger.error(f"Error publishing to {msg.topic}: {e}")

    def _on_connect(self, client, userdata, flags, rc, properties=None) -> None:
        """Handle connection callback."""
        if rc == 0:
            self._connected = True
            logger.info("Connected to MQTT broker")
        else:
            logger.error(f"Connection failed with code {rc}")

    def _on_disconnect(self, client, userdata, flags, rc, properties=None) -> None:
        """Handle disconnection callback."""
        self._connected = False
        if rc != 0:
            logger.warning(f"Unexpected disconnection (rc={rc})")
