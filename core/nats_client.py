"""
NATS JetStream Client for Python Microservices

Event-driven communication between the contract platform services, on top
of nats-py with JetStream persistence.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import nats
from nats.js.errors import BadRequestError

from core.postgres_client import ExtendedJSONEncoder

if TYPE_CHECKING:
    from core.config_manager import ConfigManager

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types published on the bus"""

    # Contract Events
    CONTRACT_CREATED = "contract.created"
    CONTRACT_UPDATED = "contract.updated"
    CONTRACT_DELETED = "contract.deleted"
    CONTRACT_STATUS_CHANGED = "contract.status.changed"

    # Term Template Events
    TERM_TEMPLATE_CREATED = "contract.term_template.created"
    TERM_TEMPLATE_UPDATED = "contract.term_template.updated"
    TERM_TEMPLATE_DELETED = "contract.term_template.deleted"

    # Dynamic Term Events
    TERM_CREATED = "contract.term.created"
    TERM_UPDATED = "contract.term.updated"
    TERM_DELETED = "contract.term.deleted"


class ServiceSource(Enum):
    """Services that publish events"""
    CONTRACT_SERVICE = "contract_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """NATS JetStream event bus"""

    def __init__(
        self,
        service_name: str,
        config: Optional["ConfigManager"] = None,
        servers: Optional[List[str]] = None,
    ):
        from core.config import get_settings
        from core.config_manager import ConfigManager

        self.service_name = service_name

        if servers is None:
            infra = get_settings().infrastructure
            if infra.nats_url:
                servers = [infra.nats_url]
            else:
                # Priority: environment variables → Consul → default fallback
                if config is None:
                    config = ConfigManager(service_name)
                host, port = config.discover_service(
                    service_name="nats",
                    default_host=infra.nats_host,
                    default_port=infra.nats_port,
                    env_host_key="NATS_HOST",
                    env_port_key="NATS_PORT",
                )
                servers = [f"nats://{host}:{port}"]

        self.servers = servers
        self._nc = None
        self._js = None
        self._known_streams: set = set()

        logger.info(f"NATS EventBus initialized: {', '.join(self.servers)}")

    async def connect(self):
        try:
            self._nc = await nats.connect(servers=self.servers, name=self.service_name)
            self._js = self._nc.jetstream()
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    @staticmethod
    def _get_stream_name_for_event(event_type: str) -> str:
        """contract.term.created -> contract-stream"""
        return f"{event_type.split('.')[0]}-stream"

    async def _ensure_stream(self, stream_name: str, prefix: str) -> None:
        if stream_name in self._known_streams:
            return
        try:
            await self._js.add_stream(name=stream_name, subjects=[f"{prefix}.>"], max_msgs=100000)
        except BadRequestError as e:
            # Stream already exists with a different configuration
            logger.debug(f"Stream creation note: {e}")
        self._known_streams.add(stream_name)

    async def publish_event(self, event: Event) -> bool:
        """Publish an event to the JetStream stream of its subject prefix"""
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            stream_name = self._get_stream_name_for_event(event.type)
            await self._ensure_stream(stream_name, event.type.split('.')[0])

            data = json.dumps(event.to_dict(), cls=ExtendedJSONEncoder).encode()
            ack = await self._js.publish(event.type, data, stream=stream_name)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True
        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def close(self):
        if self._nc is not None and not self._nc.is_closed:
            await self._nc.drain()
        self._nc = None
        self._js = None
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected and self._js is not None


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(
    service_name: str,
    config: Optional["ConfigManager"] = None,
) -> NATSEventBus:
    """Get or create the connected event bus of this process"""
    global _event_bus

    if _event_bus is None:
        bus = NATSEventBus(service_name=service_name, config=config)
        await bus.connect()
        _event_bus = bus

    return _event_bus
