"""
Contract Service Event Models

Event data models for contract, term template and dynamic term events.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import utc_now

# =============================================================================
# Event Type Definitions (Service-Specific)
# =============================================================================

class ContractBusEventType(str, Enum):
    """
    Events published by contract_service.

    Stream: contract-stream
    Subjects: contract.>
    """
    CONTRACT_CREATED = "contract.created"
    CONTRACT_UPDATED = "contract.updated"
    CONTRACT_DELETED = "contract.deleted"
    CONTRACT_STATUS_CHANGED = "contract.status.changed"
    TERM_TEMPLATE_CREATED = "contract.term_template.created"
    TERM_TEMPLATE_UPDATED = "contract.term_template.updated"
    TERM_TEMPLATE_DELETED = "contract.term_template.deleted"
    TERM_CREATED = "contract.term.created"
    TERM_UPDATED = "contract.term.updated"
    TERM_DELETED = "contract.term.deleted"


class ContractStreamConfig:
    """Stream configuration for contract_service"""
    STREAM_NAME = "contract-stream"
    SUBJECTS = ["contract.>"]
    MAX_MESSAGES = 100000
    CONSUMER_PREFIX = "contract"


# ============================================================================
# Contract Event Models
# ============================================================================


class ContractChangedEventData(BaseModel):
    """
    Event: contract.created / contract.updated / contract.deleted
    """

    contract_id: str = Field(..., description="Contract ID")
    contract_number: Optional[str] = Field(None, description="Contract number")
    contract_status: Optional[str] = Field(None, description="Contract status")
    updated_fields: List[str] = Field(default_factory=list, description="Fields changed by an update")
    timestamp: datetime = Field(default_factory=utc_now)


class ContractStatusChangedEventData(BaseModel):
    """
    Event: contract.status.changed
    Triggered when a contract moves to another status
    """

    contract_id: str = Field(..., description="Contract ID")
    old_status: Optional[str] = Field(None, description="Previous status")
    new_status: str = Field(..., description="New status")
    changed_at: datetime = Field(default_factory=utc_now)

    class Config:
        json_schema_extra = {
            "example": {
                "contract_id": "5b0e4c0e-8f57-4a43-9d33-5b9f0d2f6a11",
                "old_status": "DRAFT",
                "new_status": "ACTIVE",
                "changed_at": "2025-06-01T00:00:00Z",
            }
        }


# ============================================================================
# Term Event Models
# ============================================================================


class TermTemplateEventData(BaseModel):
    """
    Event: contract.term_template.created / updated / deleted
    """

    term_template_id: str = Field(..., description="Term template ID")
    code: str = Field(..., description="Template code")
    data_type: Optional[str] = Field(None, description="Declared data type")
    is_active: Optional[bool] = Field(None, description="Whether new terms are accepted")
    timestamp: datetime = Field(default_factory=utc_now)


class DynamicTermEventData(BaseModel):
    """
    Event: contract.term.created / updated / deleted
    """

    term_id: str = Field(..., description="Dynamic term ID")
    contract_id: str = Field(..., description="Contract ID")
    term_template_id: str = Field(..., description="Term template ID")
    effective_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    superseded_term_ids: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)

    class Config:
        json_schema_extra = {
            "example": {
                "term_id": "0d0f3f7e-2a2e-4a8b-a3c2-0c7f5b6c2e90",
                "contract_id": "5b0e4c0e-8f57-4a43-9d33-5b9f0d2f6a11",
                "term_template_id": "9f1c4d5e-6a7b-4c8d-9e0f-1a2b3c4d5e6f",
                "effective_date": "2025-06-01T00:00:00Z",
                "expiration_date": None,
                "is_active": True,
                "superseded_term_ids": [],
                "timestamp": "2025-06-01T00:00:00Z",
            }
        }


# ============================================================================
# Helper Functions
# ============================================================================


def create_term_event_data(term: Any, superseded_term_ids: Optional[List[Any]] = None) -> DynamicTermEventData:
    """Create dynamic term event data from a DynamicTerm"""
    return DynamicTermEventData(
        term_id=str(term.term_id),
        contract_id=str(term.contract_id),
        term_template_id=str(term.term_template_id),
        effective_date=term.effective_date,
        expiration_date=term.expiration_date,
        is_active=term.is_active,
        superseded_term_ids=[str(t) for t in superseded_term_ids or []],
    )


def create_template_event_data(template: Any) -> TermTemplateEventData:
    """Create term template event data from a TermTemplate"""
    return TermTemplateEventData(
        term_template_id=str(template.term_template_id),
        code=template.code,
        data_type=template.data_type.value if template.data_type else None,
        is_active=template.is_active,
    )


def create_contract_event_data(contract: Dict[str, Any], updated_fields: Optional[List[str]] = None) -> ContractChangedEventData:
    """Create contract event data from a contract row"""
    status = contract.get("contract_status")
    return ContractChangedEventData(
        contract_id=str(contract["contract_id"]),
        contract_number=contract.get("contract_number"),
        contract_status=status.value if isinstance(status, Enum) else status,
        updated_fields=updated_fields or [],
    )
