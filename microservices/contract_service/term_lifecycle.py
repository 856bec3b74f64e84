"""
Term Lifecycle Manager

Creates and amends dynamic terms. A new value always becomes a new row;
existing rows only ever change their lifecycle fields (expiration date,
active flag, notes). Every refusal is raised as TermRejectedError with a
RejectionReason.

Invariants enforced here:
- expiration_date >= effective_date whenever both are set
- inactive templates accept new terms only as an administrative override
- at most one active, open-ended term per (contract, template)
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from .models import (
    DynamicTerm,
    DynamicTermUpdateRequest,
    RejectionCode,
    RejectionReason,
    RuleFailure,
    ensure_utc,
    utc_now,
)
from .protocols import (
    DynamicTermNotFoundError,
    OpenIntervalConflictError,
    TermRejectedError,
    TermRepositoryProtocol,
    TermTemplateNotFoundError,
    TermValueCoercionError,
)
from .rule_evaluator import is_present
from .term_validation import validate
from .term_values import coerce_term_value, to_storage

logger = logging.getLogger(__name__)


@dataclass
class TermProposal:
    """An accepted term and the open-ended terms it expired"""
    term: DynamicTerm
    superseded_term_ids: List[UUID] = field(default_factory=list)


def _reject(code: RejectionCode, message: str, failures: Optional[List[RuleFailure]] = None) -> TermRejectedError:
    return TermRejectedError(RejectionReason(code=code, message=message, failures=failures or []))


class TermLifecycleManager:
    """Guards creation and amendment of dynamic terms"""

    def __init__(self, repository: TermRepositoryProtocol):
        self.repo = repository

    async def propose(
        self,
        contract_id: UUID,
        term_template_id: UUID,
        candidate: Any,
        effective_date: datetime,
        expiration_date: Optional[datetime] = None,
        *,
        admin_override: bool = False,
        supersede: bool = False,
        notes: Optional[str] = None,
    ) -> TermProposal:
        """
        Validate and persist a new dynamic term.

        ``candidate`` is a raw wire value (or a TermValue) read as the
        template's data type. With ``supersede`` an existing open-ended term
        for the pair is expired at the new effective date in the same
        transaction as the insert; without it such a term is a conflict.
        """
        effective_date = ensure_utc(effective_date)
        expiration_date = ensure_utc(expiration_date)

        # Date ordering is checked before any lookup or rule evaluation
        if expiration_date is not None and expiration_date < effective_date:
            raise _reject(
                RejectionCode.INVALID_DATE_RANGE,
                f"expiration_date {expiration_date.isoformat()} is before effective_date {effective_date.isoformat()}",
            )

        template = await self.repo.get_template(term_template_id)
        if not template:
            raise TermTemplateNotFoundError(f"Term template not found: {term_template_id}")

        if not template.is_active:
            if not admin_override:
                raise _reject(RejectionCode.INACTIVE_TEMPLATE, f"Term template {template.code} is inactive")
            logger.info(f"Administrative override: term for inactive template {template.code}")

        try:
            value = coerce_term_value(template.data_type, candidate)
            if not is_present(value) and template.default_value is not None:
                value = coerce_term_value(template.data_type, template.default_value)
        except TermValueCoercionError as e:
            raise _reject(RejectionCode.INVALID_VALUE, f"Invalid {template.data_type.value} value: {e}")

        if not is_present(value) and template.is_required:
            raise _reject(RejectionCode.MISSING_VALUE, f"A value is required for term {template.code}")

        rules = await self.repo.list_rules(term_template_id)
        verdict = validate(template, rules, value)
        if not verdict.is_valid:
            raise _reject(
                RejectionCode.VALIDATION_FAILED,
                f"Value rejected by {len(verdict.failures)} validation rule(s) of {template.code}",
                verdict.failures,
            )

        superseded: List[UUID] = []
        if expiration_date is None:
            open_terms = await self.repo.find_open_terms(contract_id, term_template_id)
            if open_terms and not supersede:
                raise _reject(
                    RejectionCode.OPEN_TERM_CONFLICT,
                    f"Contract {contract_id} already has an open-ended {template.code} term",
                )
            for term in open_terms:
                if term.effective_date > effective_date:
                    raise _reject(
                        RejectionCode.OPEN_TERM_CONFLICT,
                        f"Open-ended term {term.term_id} starts after {effective_date.isoformat()}",
                    )
                superseded.append(term.term_id)

        now = utc_now()
        term_data: Dict[str, Any] = {
            "term_id": uuid.uuid4(),
            "contract_id": contract_id,
            "term_template_id": term_template_id,
            **to_storage(template.data_type, value),
            "effective_date": effective_date,
            "expiration_date": expiration_date,
            "is_active": True,
            "notes": notes,
            "created_at": now,
            "updated_at": now,
        }

        try:
            term = await self.repo.create_term(term_data, supersede_term_ids=superseded)
        except OpenIntervalConflictError as e:
            raise _reject(RejectionCode.OPEN_TERM_CONFLICT, str(e))

        if superseded:
            logger.info(f"Term {term.term_id} superseded {len(superseded)} open term(s) of contract {contract_id}")
        return TermProposal(term=term, superseded_term_ids=superseded)

    async def propose_term(self, *args: Any, **kwargs: Any) -> DynamicTerm:
        """Same as ``propose``, returning only the new term"""
        proposal = await self.propose(*args, **kwargs)
        return proposal.term

    async def amend_term(self, term_id: UUID, request: DynamicTermUpdateRequest) -> DynamicTerm:
        """Change lifecycle fields of an existing term; its value is never edited"""
        existing = await self.repo.get_term(term_id)
        if not existing:
            raise DynamicTermNotFoundError(f"Dynamic term not found: {term_id}")

        updates = request.model_dump(exclude_unset=True)
        if not updates:
            return existing

        expiration_date = updates.get("expiration_date", existing.expiration_date)
        is_active = updates.get("is_active", existing.is_active)
        if is_active is None:
            is_active = existing.is_active
            updates["is_active"] = is_active

        if expiration_date is not None and expiration_date < existing.effective_date:
            raise _reject(
                RejectionCode.INVALID_DATE_RANGE,
                f"expiration_date {expiration_date.isoformat()} is before effective_date "
                f"{existing.effective_date.isoformat()}",
            )

        if is_active and expiration_date is None:
            others = await self.repo.find_open_terms(
                existing.contract_id, existing.term_template_id, exclude_term_id=term_id
            )
            if others:
                raise _reject(
                    RejectionCode.OPEN_TERM_CONFLICT,
                    f"Contract {existing.contract_id} already has an open-ended term for this template",
                )

        updates["updated_at"] = utc_now()
        try:
            updated = await self.repo.update_term(term_id, updates)
        except OpenIntervalConflictError as e:
            raise _reject(RejectionCode.OPEN_TERM_CONFLICT, str(e))
        if not updated:
            raise DynamicTermNotFoundError(f"Dynamic term not found: {term_id}")
        return updated
