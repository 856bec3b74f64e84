#!/usr/bin/env python3
"""Contract platform main configuration

Combines all sub-configs and the settings specific to contract management.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class ContractConfig:
    """Main contract platform configuration with all sub-configs"""

    # Environment
    environment: str = "development"
    debug: bool = False

    # Persistence
    db_schema: str = "contract"

    # Header that marks a request as an administrative override
    admin_override_header: str = "X-Admin-Override"

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)

    @classmethod
    def from_env(cls) -> 'ContractConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            db_schema=os.getenv("CONTRACT_DB_SCHEMA", "contract"),
            admin_override_header=os.getenv("CONTRACT_ADMIN_OVERRIDE_HEADER", "X-Admin-Override"),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
        )
