"""
Configuration Manager

Per-service entry point into the configuration system. Resolves the runtime
settings of a service and the address of the infrastructure it depends on.

Usage:
    from core.config_manager import ConfigManager

    config = ConfigManager("contract_service")
    service_config = config.get_service_config()

    host, port = config.discover_service(
        service_name="postgres_service",
        default_host="localhost",
        default_port=5432,
        env_host_key="POSTGRES_HOST",
        env_port_key="POSTGRES_PORT",
    )
"""

import logging
import os
from typing import Optional, Tuple

from core.config import ContractConfig, ServiceConfig, get_settings

logger = logging.getLogger(__name__)

# Default ports of the services hosted in this repository
DEFAULT_SERVICE_PORTS = {
    "contract_service": 8260,
}


class ConfigManager:
    """Configuration access for a single microservice"""

    def __init__(self, service_name: str, default_port: Optional[int] = None):
        self.service_name = service_name
        self.default_port = default_port or DEFAULT_SERVICE_PORTS.get(service_name, 8000)
        self._service_config: Optional[ServiceConfig] = None
        self._consul = None

    @property
    def settings(self) -> ContractConfig:
        return get_settings()

    def get_service_config(self) -> ServiceConfig:
        """Runtime settings of this service, loaded once from the environment"""
        if self._service_config is None:
            self._service_config = ServiceConfig.from_env(self.service_name, self.default_port)
        return self._service_config

    def _consul_registry(self):
        if self._consul is None:
            from core.consul_registry import ConsulRegistry

            service_config = self.get_service_config()
            self._consul = ConsulRegistry(
                service_name=self.service_name,
                service_port=service_config.service_port,
                consul_host=service_config.consul_host,
                consul_port=service_config.consul_port,
            )
        return self._consul

    def discover_service(
        self,
        service_name: str,
        default_host: str,
        default_port: int,
        env_host_key: Optional[str] = None,
        env_port_key: Optional[str] = None,
    ) -> Tuple[str, int]:
        """
        Resolve host and port of a dependency.

        Priority: environment variables, then Consul (when enabled), then defaults.
        """
        env_host = os.getenv(env_host_key) if env_host_key else None
        if env_host:
            env_port = os.getenv(env_port_key) if env_port_key else None
            try:
                port = int(env_port) if env_port else default_port
            except ValueError:
                logger.warning(f"Invalid port in {env_port_key}: {env_port!r}, using {default_port}")
                port = default_port
            logger.debug(f"Resolved {service_name} from environment: {env_host}:{port}")
            return env_host, port

        if self.get_service_config().consul_enabled:
            instances = self._consul_registry().discover_service(service_name)
            if instances:
                instance = instances[0]
                logger.debug(f"Resolved {service_name} from Consul: {instance['address']}:{instance['port']}")
                return instance["address"], int(instance["port"])
            logger.warning(f"No healthy {service_name} instance in Consul, using default")

        return default_host, default_port
