#!/usr/bin/env python3
"""Per-service runtime configuration

What a single microservice needs to start: where to bind, whether to
register with Consul and whether to publish events.
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Runtime settings of one microservice"""
    service_name: str
    service_host: str = "0.0.0.0"
    service_port: int = 8000
    debug: bool = False

    consul_enabled: bool = False
    consul_host: str = "localhost"
    consul_port: int = 8500

    nats_enabled: bool = True

    @classmethod
    def from_env(cls, service_name: str, default_port: int = 8000) -> 'ServiceConfig':
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            service_name=service_name,
            service_host=os.getenv("SERVICE_HOST", os.getenv("HOST", "0.0.0.0")),
            service_port=_int(os.getenv("SERVICE_PORT", ""), default_port),
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            consul_enabled=_bool(os.getenv("CONSUL_ENABLED", "false")),
            consul_host=os.getenv("CONSUL_HOST", "localhost"),
            consul_port=_int(os.getenv("CONSUL_PORT", "8500"), 8500),
            nats_enabled=_bool(os.getenv("NATS_ENABLED", "true")),
        )
