"""
Contract Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable
from uuid import UUID

from core.filtering import FilterRequest

# Import only models (no I/O dependencies)
from .models import (
    DynamicTerm,
    RejectionReason,
    TermTemplate,
    ValidationRule,
)


# =============================================================================
# Custom exceptions - defined here to avoid importing repository
# =============================================================================

class ContractServiceError(Exception):
    """Base exception for contract service errors"""
    pass


class ContractServiceValidationError(ContractServiceError):
    """Request violates a field-level rule"""
    pass


class RuleConfigurationError(ContractServiceError):
    """A validation rule is malformed or not applicable to its template"""

    def __init__(self, message: str, validation_rule_id: Optional[UUID] = None):
        super().__init__(message)
        self.message = message
        self.validation_rule_id = validation_rule_id


class TermValueMismatchError(ContractServiceError):
    """Candidate value does not carry the template's data type"""
    pass


class TermValueCoercionError(ContractServiceError):
    """Wire value cannot be read as the template's data type"""
    pass


class TermRejectedError(ContractServiceError):
    """Proposed or amended dynamic term refused by the lifecycle manager"""

    def __init__(self, reason: RejectionReason):
        super().__init__(reason.message)
        self.reason = reason


class NotFoundError(ContractServiceError):
    """Requested entity does not exist"""
    pass


class TermTemplateNotFoundError(NotFoundError):
    pass


class ValidationRuleNotFoundError(NotFoundError):
    pass


class DynamicTermNotFoundError(NotFoundError):
    pass


class ResourceNotFoundError(NotFoundError):
    pass


class DuplicateTemplateCodeError(ContractServiceError):
    """Another template already uses this code"""
    pass


class OpenIntervalConflictError(ContractServiceError):
    """A second open-ended row would exist for the same history key"""
    pass


# =============================================================================
# Repository protocols
# =============================================================================

@runtime_checkable
class TermRepositoryProtocol(Protocol):
    """
    Interface for the dynamic term repository (templates, rules, terms).

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    """

    # Templates
    async def create_template(self, template_data: Dict[str, Any]) -> TermTemplate:
        ...

    async def get_template(self, term_template_id: UUID) -> Optional[TermTemplate]:
        ...

    async def get_template_by_code(self, code: str) -> Optional[TermTemplate]:
        ...

    async def update_template(self, term_template_id: UUID, updates: Dict[str, Any]) -> Optional[TermTemplate]:
        ...

    async def delete_template(self, term_template_id: UUID) -> bool:
        """Delete a template and its rules together"""
        ...

    async def filter_templates(self, request: FilterRequest) -> Tuple[List[TermTemplate], int]:
        ...

    # Validation rules
    async def create_rule(self, rule_data: Dict[str, Any]) -> ValidationRule:
        ...

    async def get_rule(self, validation_rule_id: UUID) -> Optional[ValidationRule]:
        ...

    async def list_rules(self, term_template_id: UUID) -> List[ValidationRule]:
        ...

    async def update_rule(self, validation_rule_id: UUID, updates: Dict[str, Any]) -> Optional[ValidationRule]:
        ...

    async def delete_rule(self, validation_rule_id: UUID) -> bool:
        ...

    async def filter_rules(self, request: FilterRequest) -> Tuple[List[ValidationRule], int]:
        ...

    # Dynamic terms
    async def create_term(
        self,
        term_data: Dict[str, Any],
        supersede_term_ids: Sequence[UUID] = (),
    ) -> DynamicTerm:
        """
        Insert a term; expire the superseded terms at its effective date in
        the same transaction. Raises OpenIntervalConflictError when an
        open-ended term would be left next to the new open-ended one.
        """
        ...

    async def get_term(self, term_id: UUID) -> Optional[DynamicTerm]:
        ...

    async def update_term(self, term_id: UUID, updates: Dict[str, Any]) -> Optional[DynamicTerm]:
        ...

    async def delete_term(self, term_id: UUID) -> bool:
        ...

    async def find_open_terms(
        self, contract_id: UUID, term_template_id: UUID, exclude_term_id: Optional[UUID] = None
    ) -> List[DynamicTerm]:
        """Active terms with no expiration date for the pair"""
        ...

    async def find_effective_terms(self, contract_id: UUID, at: datetime) -> List[DynamicTerm]:
        ...

    async def find_latest_term(self, contract_id: UUID, term_template_id: UUID) -> Optional[DynamicTerm]:
        ...

    async def filter_terms(self, request: FilterRequest) -> Tuple[List[DynamicTerm], int]:
        ...


@runtime_checkable
class ResourceRepositoryProtocol(Protocol):
    """Interface for a plain CRUD resource repository"""

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def get(self, resource_id: UUID) -> Optional[Dict[str, Any]]:
        ...

    async def update(self, resource_id: UUID, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    async def delete(self, resource_id: UUID) -> bool:
        ...

    async def filter(self, request: FilterRequest) -> Tuple[List[Dict[str, Any]], int]:
        ...


@runtime_checkable
class StatusHistoryRepositoryProtocol(ResourceRepositoryProtocol, Protocol):
    """Status history rows keep at most one open interval per contract"""

    async def find_open(self, contract_id: UUID, exclude_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> Any:
        """Publish an event"""
        ...

    async def close(self) -> None:
        """Close the event bus connection"""
        ...
