"""
Contract Service Event Publishers

Publish events for contracts, term templates and dynamic terms.
Publishing failures are logged and never propagate to the caller.
"""

import logging
from typing import Any, Dict, List, Optional

from core.nats_client import Event, EventType, ServiceSource

from .models import (
    ContractStatusChangedEventData,
    create_contract_event_data,
    create_template_event_data,
    create_term_event_data,
)

logger = logging.getLogger(__name__)


async def _publish(event_bus, event_type: EventType, data: Dict[str, Any], subject: str) -> bool:
    if event_bus is None:
        return False
    try:
        event = Event(
            event_type=event_type,
            source=ServiceSource.CONTRACT_SERVICE,
            data=data,
            subject=subject,
        )
        published = await event_bus.publish_event(event)
        if published is False:
            logger.warning(f"Event {event_type.value} for {subject} was not accepted by the bus")
            return False
        logger.info(f"Published {event_type.value} for {subject}")
        return True
    except Exception as e:
        logger.error(f"Failed to publish {event_type.value}: {e}")
        return False


# ============================================================================
# Contract Event Publishers
# ============================================================================


async def publish_contract_changed(
    event_bus, event_type: EventType, contract: Dict[str, Any], updated_fields: Optional[List[str]] = None
) -> bool:
    """
    Publish contract.created / contract.updated / contract.deleted

    Args:
        event_bus: NATS event bus instance
        event_type: One of the CONTRACT_* event types
        contract: Contract row
        updated_fields: Fields changed by an update
    """
    data = create_contract_event_data(contract, updated_fields)
    return await _publish(event_bus, event_type, data.model_dump(mode="json"), data.contract_id)


async def publish_contract_status_changed(
    event_bus, contract_id: Any, old_status: Optional[str], new_status: str
) -> bool:
    """Publish contract.status.changed"""
    data = ContractStatusChangedEventData(
        contract_id=str(contract_id), old_status=old_status, new_status=new_status
    )
    return await _publish(
        event_bus, EventType.CONTRACT_STATUS_CHANGED, data.model_dump(mode="json"), data.contract_id
    )


# ============================================================================
# Term Event Publishers
# ============================================================================


async def publish_term_template_changed(event_bus, event_type: EventType, template: Any) -> bool:
    """Publish contract.term_template.created / updated / deleted"""
    data = create_template_event_data(template)
    return await _publish(event_bus, event_type, data.model_dump(mode="json"), data.term_template_id)


async def publish_term_changed(
    event_bus, event_type: EventType, term: Any, superseded_term_ids: Optional[List[Any]] = None
) -> bool:
    """
    Publish contract.term.created / updated / deleted

    Args:
        event_bus: NATS event bus instance
        event_type: One of the TERM_* event types
        term: DynamicTerm
        superseded_term_ids: Open-ended terms expired by this term
    """
    data = create_term_event_data(term, superseded_term_ids)
    return await _publish(event_bus, event_type, data.model_dump(mode="json"), data.term_id)
