"""
Downstream event publishing for sql-scalerctl

Publishes SCALING and SCALING_FAILURE events to the instance's downstream
Pub/Sub topic so other systems can react to resizes. Publishing is best
effort: failures are logged and never affect the scaling decision.
"""

import json
from typing import Any

from google.cloud import pubsub_v1

from .constants import PUBLISH_TIMEOUT_SECONDS
from .log import get_logger
from .models import InstanceConfig

logger = get_logger(__name__)


def build_event_message(config: InstanceConfig, suggested_size: int) -> dict[str, Any]:
    return {
        "projectId": config.project_id,
        "instanceId": config.instance_id,
        "currentSize": config.current_size,
        "suggestedSize": suggested_size,
        "units": config.units,
        "metrics": [metric.to_payload() for metric in config.metrics],
    }


class DownstreamPublisher:
    """Publishes scaling events as JSON messages with an eventType attribute"""

    def __init__(
        self,
        client: pubsub_v1.PublisherClient | None = None,
        timeout: float = PUBLISH_TIMEOUT_SECONDS,
    ):
        self._client = client
        self.timeout = timeout

    @property
    def client(self) -> pubsub_v1.PublisherClient:
        if self._client is None:
            self._client = pubsub_v1.PublisherClient()
        return self._client

    def publish(
        self, event_type: str, config: InstanceConfig, suggested_size: int
    ) -> None:
        topic = config.downstream_pubsub_topic
        if not topic:
            logger.debug(
                "No downstream topic configured, not publishing event",
                extra={"event_type": event_type},
            )
            return

        message = build_event_message(config, suggested_size)
        try:
            future = self.client.publish(
                topic, json.dumps(message).encode("utf-8"), eventType=event_type
            )
            message_id = future.result(timeout=self.timeout)
            logger.debug(
                "Published downstream event",
                extra={"event_type": event_type, "topic": topic, "message_id": message_id},
            )
        except Exception as e:
            logger.error(
                "Failed to publish downstream event",
                extra={"event_type": event_type, "topic": topic, "error": str(e)},
            )
