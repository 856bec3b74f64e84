"""
Contract Service Events Module

Events published by contract_service on the contract-stream.
"""

from .models import (
    ContractBusEventType,
    ContractChangedEventData,
    ContractStatusChangedEventData,
    ContractStreamConfig,
    DynamicTermEventData,
    TermTemplateEventData,
    create_contract_event_data,
    create_template_event_data,
    create_term_event_data,
)
from .publishers import (
    publish_contract_changed,
    publish_contract_status_changed,
    publish_term_changed,
    publish_term_template_changed,
)

__all__ = [
    # Models
    "ContractBusEventType",
    "ContractStreamConfig",
    "ContractChangedEventData",
    "ContractStatusChangedEventData",
    "TermTemplateEventData",
    "DynamicTermEventData",
    "create_contract_event_data",
    "create_template_event_data",
    "create_term_event_data",
    # Publishers
    "publish_contract_changed",
    "publish_contract_status_changed",
    "publish_term_template_changed",
    "publish_term_changed",
]
