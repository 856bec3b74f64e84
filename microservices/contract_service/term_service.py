"""
Contract Term Service - Business logic layer

Term templates, their validation rules and the dynamic terms attached to
contracts. Validation of term values goes through the rule evaluator and
the validation orchestrator; creation and amendment of dynamic terms go
through the TermLifecycleManager.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from core.filtering import FilterRequest, PaginationResponse
from core.nats_client import EventType

from .events.publishers import publish_term_changed, publish_term_template_changed
from .models import (
    DynamicTerm,
    DynamicTermCreateRequest,
    DynamicTermUpdateRequest,
    TermTemplate,
    TermTemplateCreateRequest,
    TermTemplateUpdateRequest,
    ValidationRule,
    ValidationRuleCreateRequest,
    ValidationRuleUpdateRequest,
    ValidationVerdict,
    null_fields,
    utc_now,
)
from .protocols import (
    ContractServiceValidationError,
    DuplicateTemplateCodeError,
    DynamicTermNotFoundError,
    EventBusProtocol,
    TermRepositoryProtocol,
    TermTemplateNotFoundError,
    TermValueCoercionError,
    ValidationRuleNotFoundError,
)
from .rule_criteria import parse_criteria
from .rule_evaluator import check_applicable
from .term_lifecycle import TermLifecycleManager
from .term_validation import validate
from .term_values import coerce_term_value

logger = logging.getLogger(__name__)


class ContractTermService:
    """
    Term template, validation rule and dynamic term operations

    Repository and event bus are injected; publishing failures never fail
    the operation that triggered them.
    """

    def __init__(
        self,
        repository: Optional[TermRepositoryProtocol] = None,
        event_bus: Optional[EventBusProtocol] = None,
    ):
        self.repo = repository
        self.event_bus = event_bus
        self.lifecycle = TermLifecycleManager(repository)

    # ====================
    # Term templates
    # ====================

    @staticmethod
    def _check_default_value(data_type, default_value: Optional[str]) -> None:
        if default_value is None:
            return
        try:
            coerce_term_value(data_type, default_value)
        except TermValueCoercionError as e:
            raise ContractServiceValidationError(
                f"default_value is not a valid {data_type.value} value: {e}"
            )

    @staticmethod
    def _check_nulls(model, updates: Dict[str, Any]) -> None:
        rejected = null_fields(model, updates)
        if rejected:
            raise ContractServiceValidationError(f"Fields cannot be null: {', '.join(rejected)}")

    async def _require_template(self, term_template_id: UUID) -> TermTemplate:
        template = await self.repo.get_template(term_template_id)
        if not template:
            raise TermTemplateNotFoundError(f"Term template not found: {term_template_id}")
        return template

    async def create_template(self, request: TermTemplateCreateRequest) -> TermTemplate:
        self._check_default_value(request.data_type, request.default_value)

        if await self.repo.get_template_by_code(request.code):
            raise DuplicateTemplateCodeError(f"Term template code already exists: {request.code}")

        now = utc_now()
        template_data = {
            "term_template_id": uuid.uuid4(),
            **request.model_dump(),
            "created_at": now,
            "updated_at": now,
        }
        template = await self.repo.create_template(template_data)
        logger.info(f"Term template created: {template.code} ({template.term_template_id})")

        await publish_term_template_changed(self.event_bus, EventType.TERM_TEMPLATE_CREATED, template)
        return template

    async def get_template(self, term_template_id: UUID) -> TermTemplate:
        return await self._require_template(term_template_id)

    async def get_template_by_code(self, code: str) -> TermTemplate:
        template = await self.repo.get_template_by_code(code)
        if not template:
            raise TermTemplateNotFoundError(f"Term template not found: {code}")
        return template

    async def update_template(self, term_template_id: UUID, request: TermTemplateUpdateRequest) -> TermTemplate:
        existing = await self._require_template(term_template_id)

        updates = request.model_dump(exclude_unset=True)
        code = updates.pop("code", None)
        self._check_nulls(TermTemplate, updates)
        if code is not None and code != existing.code:
            raise ContractServiceValidationError(
                f"Term template code is immutable: {existing.code}"
            )

        data_type = updates.get("data_type") or existing.data_type
        if "default_value" in updates or "data_type" in updates:
            self._check_default_value(data_type, updates.get("default_value", existing.default_value))

        if not updates:
            return existing

        updates["updated_at"] = utc_now()
        template = await self.repo.update_template(term_template_id, updates)
        if not template:
            raise TermTemplateNotFoundError(f"Term template not found: {term_template_id}")

        if "is_active" in updates and updates["is_active"] != existing.is_active:
            logger.info(f"Term template {template.code} is_active -> {template.is_active}")
        await publish_term_template_changed(self.event_bus, EventType.TERM_TEMPLATE_UPDATED, template)
        return template

    async def delete_template(self, term_template_id: UUID) -> None:
        """Delete a template together with its validation rules"""
        template = await self._require_template(term_template_id)
        if not await self.repo.delete_template(term_template_id):
            raise TermTemplateNotFoundError(f"Term template not found: {term_template_id}")
        logger.info(f"Term template deleted: {template.code}")
        await publish_term_template_changed(self.event_bus, EventType.TERM_TEMPLATE_DELETED, template)

    async def filter_templates(self, request: FilterRequest) -> PaginationResponse[TermTemplate]:
        templates, total = await self.repo.filter_templates(request)
        return PaginationResponse[TermTemplate].of(templates, total, request.pagination)

    # ====================
    # Validation rules
    # ====================

    def _normalize_rule(
        self,
        template: TermTemplate,
        validation_type: str,
        raw_criteria: Any,
        validation_rule_id: Optional[UUID] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        """Parse criteria against their type and the template's data type"""
        criteria = parse_criteria(validation_type, raw_criteria, validation_rule_id)
        check_applicable(criteria, template.data_type)
        return (
            criteria.validation_type.value,
            criteria.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    async def create_rule(self, request: ValidationRuleCreateRequest) -> ValidationRule:
        template = await self._require_template(request.term_template_id)
        validation_type, criteria = self._normalize_rule(
            template, request.validation_type, request.validation_criteria
        )

        now = utc_now()
        rule = await self.repo.create_rule({
            "validation_rule_id": uuid.uuid4(),
            "term_template_id": request.term_template_id,
            "validation_type": validation_type,
            "validation_criteria": criteria,
            "error_message": request.error_message,
            "sort_order": request.sort_order,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"{validation_type} rule {rule.validation_rule_id} added to template {template.code}")
        return rule

    async def get_rule(self, validation_rule_id: UUID) -> ValidationRule:
        rule = await self.repo.get_rule(validation_rule_id)
        if not rule:
            raise ValidationRuleNotFoundError(f"Validation rule not found: {validation_rule_id}")
        return rule

    async def update_rule(self, validation_rule_id: UUID, request: ValidationRuleUpdateRequest) -> ValidationRule:
        existing = await self.get_rule(validation_rule_id)
        updates = request.model_dump(exclude_unset=True)
        self._check_nulls(ValidationRule, updates)
        if not updates:
            return existing

        if "validation_type" in updates or "validation_criteria" in updates:
            template = await self._require_template(existing.term_template_id)
            validation_type, criteria = self._normalize_rule(
                template,
                updates.get("validation_type") or existing.validation_type,
                updates.get("validation_criteria", existing.validation_criteria),
                validation_rule_id,
            )
            updates["validation_type"] = validation_type
            updates["validation_criteria"] = criteria

        updates["updated_at"] = utc_now()
        rule = await self.repo.update_rule(validation_rule_id, updates)
        if not rule:
            raise ValidationRuleNotFoundError(f"Validation rule not found: {validation_rule_id}")
        return rule

    async def delete_rule(self, validation_rule_id: UUID) -> None:
        if not await self.repo.delete_rule(validation_rule_id):
            raise ValidationRuleNotFoundError(f"Validation rule not found: {validation_rule_id}")

    async def list_rules(self, term_template_id: UUID) -> List[ValidationRule]:
        await self._require_template(term_template_id)
        return await self.repo.list_rules(term_template_id)

    async def filter_rules(self, request: FilterRequest) -> PaginationResponse[ValidationRule]:
        rules, total = await self.repo.filter_rules(request)
        return PaginationResponse[ValidationRule].of(rules, total, request.pagination)

    async def validate_value(self, term_template_id: UUID, raw_value: Any) -> ValidationVerdict:
        """
        Dry run: validate a wire value against a template without storing it.

        A value that cannot be read as the template's data type is a
        ContractServiceValidationError; broken rules surface as
        RuleConfigurationError.
        """
        template = await self._require_template(term_template_id)
        try:
            candidate = coerce_term_value(template.data_type, raw_value)
        except TermValueCoercionError as e:
            raise ContractServiceValidationError(f"Invalid {template.data_type.value} value: {e}")

        rules = await self.repo.list_rules(term_template_id)
        verdict = validate(template, rules, candidate)
        logger.debug(
            f"Validated value for {template.code}: valid={verdict.is_valid}, failures={len(verdict.failures)}"
        )
        return verdict

    # ====================
    # Dynamic terms
    # ====================

    async def propose_term(self, request: DynamicTermCreateRequest, admin_override: bool = False) -> DynamicTerm:
        proposal = await self.lifecycle.propose(
            request.contract_id,
            request.term_template_id,
            request.value,
            request.effective_date,
            request.expiration_date,
            admin_override=admin_override,
            supersede=request.supersede,
            notes=request.notes,
        )
        term = proposal.term
        logger.info(f"Dynamic term {term.term_id} created for contract {term.contract_id}")

        await publish_term_changed(
            self.event_bus, EventType.TERM_CREATED, term, proposal.superseded_term_ids
        )
        return term

    async def get_term(self, term_id: UUID) -> DynamicTerm:
        term = await self.repo.get_term(term_id)
        if not term:
            raise DynamicTermNotFoundError(f"Dynamic term not found: {term_id}")
        return term

    async def amend_term(self, term_id: UUID, request: DynamicTermUpdateRequest) -> DynamicTerm:
        term = await self.lifecycle.amend_term(term_id, request)
        await publish_term_changed(self.event_bus, EventType.TERM_UPDATED, term)
        return term

    async def delete_term(self, term_id: UUID) -> None:
        term = await self.get_term(term_id)
        if not await self.repo.delete_term(term_id):
            raise DynamicTermNotFoundError(f"Dynamic term not found: {term_id}")
        await publish_term_changed(self.event_bus, EventType.TERM_DELETED, term)

    async def filter_terms(self, request: FilterRequest) -> PaginationResponse[DynamicTerm]:
        terms, total = await self.repo.filter_terms(request)
        return PaginationResponse[DynamicTerm].of(terms, total, request.pagination)

    async def get_effective_terms(self, contract_id: UUID, at: Optional[datetime] = None) -> List[DynamicTerm]:
        """Terms in force for a contract at ``at`` (default now)"""
        return await self.repo.find_effective_terms(contract_id, at or utc_now())

    async def get_current_term(self, contract_id: UUID, term_template_id: UUID) -> DynamicTerm:
        """Latest term of a (contract, template) history by effective date"""
        term = await self.repo.find_latest_term(contract_id, term_template_id)
        if not term:
            raise DynamicTermNotFoundError(
                f"No term of template {term_template_id} for contract {contract_id}"
            )
        return term
