"""
Contract Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_contract_term_service
    service = create_contract_term_service(config, event_bus)
"""
from typing import Optional

from core.config_manager import ConfigManager

from .contract_service import ContractService
from .models import ContractResource
from .term_service import ContractTermService


def create_contract_term_service(
    config: Optional[ConfigManager] = None,
    event_bus=None,
) -> ContractTermService:
    """
    Create ContractTermService with real dependencies.

    This function imports the real repository (which has I/O dependencies).
    Use this in production, NOT in tests.
    """
    # Import real repository here (not at module level)
    from .term_repository import TermRepository

    repository = TermRepository(config=config)

    return ContractTermService(
        repository=repository,
        event_bus=event_bus,
    )


def create_contract_service(
    config: Optional[ConfigManager] = None,
    event_bus=None,
) -> ContractService:
    """Create ContractService with one repository per contract resource"""
    from .contract_repository import RESOURCE_DESCRIPTORS, ResourceRepository, StatusHistoryRepository

    repositories = {
        resource: ResourceRepository(descriptor, config=config)
        for resource, descriptor in RESOURCE_DESCRIPTORS.items()
        if resource is not ContractResource.CONTRACT_STATUS_HISTORY
    }
    repositories[ContractResource.CONTRACT_STATUS_HISTORY] = StatusHistoryRepository(config=config)

    return ContractService(
        repositories=repositories,
        event_bus=event_bus,
    )
