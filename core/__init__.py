#!/usr/bin/env python3
"""
Core Module for the Contract Platform

Shared infrastructure components for the microservices in this repository.

COMPONENTS:
    - config/: Modular dataclass configuration loaded from the environment
    - config_manager.py: Per-service configuration and dependency discovery
    - logger.py: Service logging setup
    - postgres_client.py: asyncpg-backed PostgreSQL client
    - nats_client.py: NATS JetStream event bus
    - consul_registry.py: Consul registration and discovery
    - filtering.py: Filter request to SQL translation and pagination envelope

USAGE:
    from core.config_manager import ConfigManager
    from core.logger import setup_service_logger

    config = ConfigManager("contract_service")
    logger = setup_service_logger("contract_service")
"""

__version__ = "1.0.0"
