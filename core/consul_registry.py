"""
Consul Service Registry Module

Registers a microservice with Consul (TTL health check kept alive by a
background task) and discovers healthy instances of other services.
"""

import consul
import logging
import asyncio
import os
import socket
from typing import Optional, List, Dict, Any

logger = logging.getLogger(__name__)


class ConsulRegistry:
    """Consul registration and discovery client"""

    def __init__(
        self,
        service_name: str = None,
        service_port: int = None,
        consul_host: str = "localhost",
        consul_port: int = 8500,
        service_host: Optional[str] = None,
        tags: Optional[List[str]] = None,
        ttl_seconds: int = 30,
        meta: Optional[Dict[str, str]] = None,
    ):
        self.consul = consul.Consul(host=consul_host, port=consul_port)
        self.service_name = service_name
        self.service_port = service_port
        if service_host and service_host != "0.0.0.0":
            self.service_host = service_host
        else:
            self.service_host = os.getenv('HOSTNAME', socket.gethostname())
        self.service_id = f"{service_name}-{self.service_host}-{service_port}" if service_name and service_port else "discovery-client"
        self.tags = tags or []
        self.ttl_seconds = ttl_seconds
        self.meta = meta or {}
        self._maintenance_task: Optional[asyncio.Task] = None
        logger.info(f"Consul client initialized: {consul_host}:{consul_port}")

    @property
    def check_id(self) -> str:
        return f"service:{self.service_id}"

    # ========================================
    # Registration
    # ========================================

    def register(self) -> bool:
        """Register this service with a TTL health check"""
        if not self.service_name or not self.service_port:
            logger.warning("Service name and port are required for Consul registration")
            return False
        try:
            self.consul.agent.service.register(
                self.service_name,
                service_id=self.service_id,
                address=self.service_host,
                port=self.service_port,
                tags=self.tags,
                meta=self.meta,
                check=consul.Check.ttl(f"{self.ttl_seconds}s"),
            )
            self.consul.agent.check.ttl_pass(self.check_id)
            logger.info(f"Registered {self.service_id} with Consul")
            return True
        except Exception as e:
            logger.error(f"Failed to register {self.service_id} with Consul: {e}")
            return False

    def deregister(self) -> bool:
        try:
            self.consul.agent.service.deregister(self.service_id)
            logger.info(f"Deregistered {self.service_id} from Consul")
            return True
        except Exception as e:
            logger.error(f"Failed to deregister {self.service_id}: {e}")
            return False

    async def maintain_registration(self):
        """Keep the TTL check passing until cancelled"""
        interval = max(self.ttl_seconds / 2, 1)
        while True:
            try:
                self.consul.agent.check.ttl_pass(self.check_id)
            except Exception as e:
                logger.warning(f"Consul TTL update failed for {self.service_id}: {e}")
                self.register()
            await asyncio.sleep(interval)

    def start_maintenance(self):
        if self._maintenance_task is None or self._maintenance_task.done():
            self._maintenance_task = asyncio.create_task(self.maintain_registration())

    def stop_maintenance(self):
        if self._maintenance_task and not self._maintenance_task.done():
            self._maintenance_task.cancel()
        self._maintenance_task = None

    # ========================================
    # Service Discovery
    # ========================================

    def discover_service(self, service_name: str) -> List[Dict[str, Any]]:
        """Discover healthy instances of a service"""
        try:
            index, services = self.consul.health.service(service_name, passing=True)

            instances = []
            for service in services:
                instances.append({
                    'id': service['Service']['ID'],
                    'address': service['Service']['Address'],
                    'port': service['Service']['Port'],
                    'tags': service['Service'].get('Tags', []),
                })
            return instances
        except Exception as e:
            logger.error(f"Failed to discover service {service_name}: {e}")
            return []

