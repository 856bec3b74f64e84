"""
Contract Service Models

Wire and persisted models for contracts and their satellite resources
(parties, events, documents, risk assessments, status history) and for the
dynamic term subsystem (term templates, validation rules, dynamic terms).
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Type, get_args
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def null_fields(model: Type[BaseModel], updates: Dict[str, Any]) -> List[str]:
    """Fields set to None in ``updates`` that ``model`` does not allow to be None"""
    rejected = []
    for name, value in updates.items():
        field = model.model_fields.get(name)
        if value is not None or field is None:
            continue
        if field.annotation is Any or type(None) in get_args(field.annotation):
            continue
        rejected.append(name)
    return rejected


# =============================================================================
# Enums
# =============================================================================

class TermCategory(str, Enum):
    """Business domain of a term template"""
    FINANCIAL = "FINANCIAL"
    LEGAL = "LEGAL"
    OPERATIONAL = "OPERATIONAL"
    COMPLIANCE = "COMPLIANCE"


class TermDataType(str, Enum):
    """Declared type of a term value; selects the value slot and applicable rules"""
    TEXT = "text"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    DATE = "date"
    JSON = "json"


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"
    EXPIRED = "EXPIRED"


class ContractEventType(str, Enum):
    CONTRACT_CREATED = "CONTRACT_CREATED"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    CONTRACT_ACTIVATED = "CONTRACT_ACTIVATED"
    CONTRACT_AMENDED = "CONTRACT_AMENDED"
    CONTRACT_RENEWED = "CONTRACT_RENEWED"
    CONTRACT_SUSPENDED = "CONTRACT_SUSPENDED"
    CONTRACT_TERMINATED = "CONTRACT_TERMINATED"
    CONTRACT_EXPIRED = "CONTRACT_EXPIRED"
    MILESTONE_REACHED = "MILESTONE_REACHED"
    PAYMENT_DUE = "PAYMENT_DUE"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    BREACH_REPORTED = "BREACH_REPORTED"
    DISPUTE_RAISED = "DISPUTE_RAISED"
    AUDIT_COMPLETED = "AUDIT_COMPLETED"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RejectionCode(str, Enum):
    """Why a proposed or amended dynamic term was refused"""
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INACTIVE_TEMPLATE = "INACTIVE_TEMPLATE"
    MISSING_VALUE = "MISSING_VALUE"
    INVALID_VALUE = "INVALID_VALUE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    OPEN_TERM_CONFLICT = "OPEN_TERM_CONFLICT"


# =============================================================================
# Term Templates
# =============================================================================

class TermTemplate(BaseModel):
    """Reusable definition of a contract term's shape"""
    model_config = ConfigDict(from_attributes=True)

    term_template_id: UUID
    code: str
    name: str
    description: Optional[str] = None
    term_category: TermCategory
    data_type: TermDataType
    is_required: bool = False
    is_active: bool = True
    default_value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class TermTemplateCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    term_category: TermCategory
    data_type: TermDataType
    is_required: bool = False
    is_active: bool = True
    default_value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class TermTemplateUpdateRequest(BaseModel):
    """Partial update; ``code`` may be repeated but never changed"""
    code: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    term_category: Optional[TermCategory] = None
    data_type: Optional[TermDataType] = None
    is_required: Optional[bool] = None
    is_active: Optional[bool] = None
    default_value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# Validation Rules
# =============================================================================

class ValidationRule(BaseModel):
    """
    One constraint attached to a term template.

    ``validation_type`` stays a raw string so a stored row with an unknown
    type still loads and is reported as a configuration error when evaluated.
    """
    model_config = ConfigDict(from_attributes=True)

    validation_rule_id: UUID
    term_template_id: UUID
    validation_type: str
    validation_criteria: Any = None
    error_message: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ValidationRuleCreateRequest(BaseModel):
    term_template_id: UUID
    validation_type: str = Field(..., min_length=1)
    validation_criteria: Any = None
    error_message: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = None


class ValidationRuleUpdateRequest(BaseModel):
    validation_type: Optional[str] = Field(None, min_length=1)
    validation_criteria: Any = None
    error_message: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = None


# =============================================================================
# Validation Verdicts
# =============================================================================

class RuleFailure(BaseModel):
    """A rule that rejected the candidate value"""
    model_config = ConfigDict(frozen=True)

    validation_rule_id: Optional[UUID] = None
    validation_type: str
    message: str


class ValidationVerdict(BaseModel):
    """Aggregated result of evaluating a candidate against all rules of a template"""
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    failures: List[RuleFailure] = Field(default_factory=list)


class ValidateTermRequest(BaseModel):
    """Dry-run validation of a candidate value against a template"""
    value: Any = None


class RejectionReason(BaseModel):
    code: RejectionCode
    message: str
    failures: List[RuleFailure] = Field(default_factory=list)


# =============================================================================
# Dynamic Terms
# =============================================================================

class DynamicTerm(BaseModel):
    """
    A dated value of a term template attached to one contract.

    Exactly one of the value columns is used, chosen by the template's
    data type (boolean and date values are kept in ``term_value_text``).
    """
    model_config = ConfigDict(from_attributes=True)

    term_id: UUID
    contract_id: UUID
    term_template_id: UUID
    term_value_text: Optional[str] = None
    term_value_numeric: Optional[Decimal] = None
    term_value_json: Any = None
    effective_date: UtcDatetime
    expiration_date: Optional[UtcDatetime] = None
    is_active: bool = True
    notes: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    @property
    def is_open_ended(self) -> bool:
        return self.expiration_date is None

    def is_effective_at(self, moment: datetime) -> bool:
        moment = ensure_utc(moment)
        return (
            self.is_active
            and self.effective_date <= moment
            and (self.expiration_date is None or self.expiration_date >= moment)
        )


class DynamicTermCreateRequest(BaseModel):
    contract_id: UUID
    term_template_id: UUID
    value: Any = None
    effective_date: UtcDatetime
    expiration_date: Optional[UtcDatetime] = None
    notes: Optional[str] = None
    supersede: bool = False


class DynamicTermUpdateRequest(BaseModel):
    """Only the lifecycle fields of a term may change; its value never does"""
    model_config = ConfigDict(extra="forbid")

    expiration_date: Optional[UtcDatetime] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


# =============================================================================
# Contracts and satellite resources
# =============================================================================

class Contract(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_id: UUID
    contract_number: Optional[str] = Field(None, max_length=255)
    contract_status: ContractStatus
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    product_catalog_id: Optional[UUID] = None
    product_id: Optional[UUID] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ContractCreateRequest(BaseModel):
    contract_number: Optional[str] = Field(None, max_length=255)
    contract_status: ContractStatus
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    product_catalog_id: Optional[UUID] = None
    product_id: Optional[UUID] = None


class ContractUpdateRequest(BaseModel):
    contract_number: Optional[str] = Field(None, max_length=255)
    contract_status: Optional[ContractStatus] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    product_catalog_id: Optional[UUID] = None
    product_id: Optional[UUID] = None


class ContractParty(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_party_id: UUID
    contract_id: UUID
    party_id: UUID
    role_in_contract_id: UUID
    date_joined: Optional[UtcDatetime] = None
    date_left: Optional[UtcDatetime] = None
    is_active: Optional[bool] = True
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ContractPartyCreateRequest(BaseModel):
    contract_id: UUID
    party_id: UUID
    role_in_contract_id: UUID
    date_joined: Optional[UtcDatetime] = None
    date_left: Optional[UtcDatetime] = None
    is_active: Optional[bool] = True


class ContractPartyUpdateRequest(BaseModel):
    role_in_contract_id: Optional[UUID] = None
    date_joined: Optional[UtcDatetime] = None
    date_left: Optional[UtcDatetime] = None
    is_active: Optional[bool] = None


class ContractEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_event_id: UUID
    contract_id: UUID
    event_type: ContractEventType
    event_date: Optional[UtcDatetime] = None
    event_description: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ContractEventCreateRequest(BaseModel):
    contract_id: UUID
    event_type: ContractEventType
    event_date: Optional[UtcDatetime] = None
    event_description: Optional[str] = None


class ContractEventUpdateRequest(BaseModel):
    event_type: Optional[ContractEventType] = None
    event_date: Optional[UtcDatetime] = None
    event_description: Optional[str] = None


class ContractDocument(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_document_id: UUID
    contract_id: UUID
    document_type_id: UUID
    document_id: UUID
    date_added: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ContractDocumentCreateRequest(BaseModel):
    contract_id: UUID
    document_type_id: UUID
    document_id: UUID
    date_added: Optional[UtcDatetime] = None


class ContractDocumentUpdateRequest(BaseModel):
    document_type_id: Optional[UUID] = None
    document_id: Optional[UUID] = None
    date_added: Optional[UtcDatetime] = None


class ContractRiskAssessment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_risk_assessment_id: UUID
    contract_id: UUID
    risk_score: Optional[Decimal] = Field(None, ge=0, le=100)
    risk_level: RiskLevel
    assessment_date: Optional[UtcDatetime] = None
    assessor: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ContractRiskAssessmentCreateRequest(BaseModel):
    contract_id: UUID
    risk_score: Optional[Decimal] = Field(None, ge=0, le=100)
    risk_level: RiskLevel
    assessment_date: Optional[UtcDatetime] = None
    assessor: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class ContractRiskAssessmentUpdateRequest(BaseModel):
    risk_score: Optional[Decimal] = Field(None, ge=0, le=100)
    risk_level: Optional[RiskLevel] = None
    assessment_date: Optional[UtcDatetime] = None
    assessor: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class ContractStatusHistory(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_status_history_id: UUID
    contract_id: UUID
    status_code: ContractStatus
    status_start_date: UtcDatetime
    status_end_date: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class ContractStatusHistoryCreateRequest(BaseModel):
    contract_id: UUID
    status_code: ContractStatus
    status_start_date: UtcDatetime
    status_end_date: Optional[UtcDatetime] = None


class ContractStatusHistoryUpdateRequest(BaseModel):
    status_end_date: Optional[UtcDatetime] = None


class ContractResource(str, Enum):
    """Pass-through resources, valued by their REST path segment"""
    CONTRACT = "contracts"
    CONTRACT_PARTY = "contract-parties"
    CONTRACT_EVENT = "contract-events"
    CONTRACT_DOCUMENT = "contract-documents"
    CONTRACT_RISK_ASSESSMENT = "contract-risk-assessments"
    CONTRACT_STATUS_HISTORY = "contract-status-history"
