"""
Contract Service Component Test Mocks

In-memory implementations of the contract service repository protocols.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from core.filtering import FilterRequest
from microservices.contract_service.models import (
    DynamicTerm,
    TermTemplate,
    ValidationRule,
    utc_now,
)
from microservices.contract_service.protocols import DuplicateTemplateCodeError, OpenIntervalConflictError


def _page(items: List[Any], request: FilterRequest) -> Tuple[List[Any], int]:
    """Equality filters only; enough for service-level tests"""
    selected = [
        item for item in items
        if all(getattr(item, k, None) == v or str(getattr(item, k, None)) == str(v) for k, v in request.filters.items())
    ]
    start = request.pagination.page_number * request.pagination.page_size
    return selected[start:start + request.pagination.page_size], len(selected)


class MockTermRepository:
    """
    Mock implementation of TermRepositoryProtocol for testing.

    Keeps templates, rules and terms in dicts and enforces the same
    open-ended term invariant as the real repository.
    """

    def __init__(self):
        self.templates: Dict[UUID, TermTemplate] = {}
        self.rules: Dict[UUID, ValidationRule] = {}
        self.terms: Dict[UUID, DynamicTerm] = {}

        # Track method calls for verification
        self.method_calls: List[tuple] = []

    # Test helpers

    def add_template(self, template_data: Dict[str, Any]) -> TermTemplate:
        template = TermTemplate.model_validate(template_data)
        self.templates[template.term_template_id] = template
        return template

    def add_rule(self, rule_data: Dict[str, Any]) -> ValidationRule:
        rule = ValidationRule.model_validate(rule_data)
        self.rules[rule.validation_rule_id] = rule
        return rule

    def add_term(self, term_data: Dict[str, Any]) -> DynamicTerm:
        term = DynamicTerm.model_validate(term_data)
        self.terms[term.term_id] = term
        return term

    def calls(self, method: str) -> List[tuple]:
        return [c for c in self.method_calls if c[0] == method]

    # Templates

    async def create_template(self, template_data: Dict[str, Any]) -> TermTemplate:
        self.method_calls.append(("create_template", template_data))
        if any(t.code == template_data["code"] for t in self.templates.values()):
            raise DuplicateTemplateCodeError(f"Term template code already exists: {template_data['code']}")
        return self.add_template(template_data)

    async def get_template(self, term_template_id: UUID) -> Optional[TermTemplate]:
        self.method_calls.append(("get_template", term_template_id))
        return self.templates.get(term_template_id)

    async def get_template_by_code(self, code: str) -> Optional[TermTemplate]:
        self.method_calls.append(("get_template_by_code", code))
        return next((t for t in self.templates.values() if t.code == code), None)

    async def update_template(self, term_template_id: UUID, updates: Dict[str, Any]) -> Optional[TermTemplate]:
        self.method_calls.append(("update_template", term_template_id, updates))
        existing = self.templates.get(term_template_id)
        if not existing:
            return None
        updated = existing.model_copy(update=updates)
        self.templates[term_template_id] = updated
        return updated

    async def delete_template(self, term_template_id: UUID) -> bool:
        self.method_calls.append(("delete_template", term_template_id))
        if term_template_id not in self.templates:
            return False
        del self.templates[term_template_id]
        for rule_id in [r.validation_rule_id for r in self.rules.values() if r.term_template_id == term_template_id]:
            del self.rules[rule_id]
        return True

    async def filter_templates(self, request: FilterRequest) -> Tuple[List[TermTemplate], int]:
        self.method_calls.append(("filter_templates", request))
        return _page(list(self.templates.values()), request)

    # Rules

    async def create_rule(self, rule_data: Dict[str, Any]) -> ValidationRule:
        self.method_calls.append(("create_rule", rule_data))
        return self.add_rule(rule_data)

    async def get_rule(self, validation_rule_id: UUID) -> Optional[ValidationRule]:
        self.method_calls.append(("get_rule", validation_rule_id))
        return self.rules.get(validation_rule_id)

    async def list_rules(self, term_template_id: UUID) -> List[ValidationRule]:
        self.method_calls.append(("list_rules", term_template_id))
        return [r for r in self.rules.values() if r.term_template_id == term_template_id]

    async def update_rule(self, validation_rule_id: UUID, updates: Dict[str, Any]) -> Optional[ValidationRule]:
        self.method_calls.append(("update_rule", validation_rule_id, updates))
        existing = self.rules.get(validation_rule_id)
        if not existing:
            return None
        updated = existing.model_copy(update=updates)
        self.rules[validation_rule_id] = updated
        return updated

    async def delete_rule(self, validation_rule_id: UUID) -> bool:
        self.method_calls.append(("delete_rule", validation_rule_id))
        return self.rules.pop(validation_rule_id, None) is not None

    async def filter_rules(self, request: FilterRequest) -> Tuple[List[ValidationRule], int]:
        self.method_calls.append(("filter_rules", request))
        return _page(list(self.rules.values()), request)

    # Terms

    def _open_terms(self, contract_id: UUID, term_template_id: UUID,
                    exclude_term_id: Optional[UUID] = None) -> List[DynamicTerm]:
        return [
            t for t in self.terms.values()
            if t.contract_id == contract_id
            and t.term_template_id == term_template_id
            and t.is_active
            and t.expiration_date is None
            and t.term_id != exclude_term_id
        ]

    async def create_term(self, term_data: Dict[str, Any], supersede_term_ids: Sequence[UUID] = ()) -> DynamicTerm:
        self.method_calls.append(("create_term", term_data, list(supersede_term_ids)))
        for term_id in supersede_term_ids:
            term = self.terms[term_id]
            if term.is_active and term.expiration_date is None:
                self.terms[term_id] = term.model_copy(
                    update={"expiration_date": term_data["effective_date"], "updated_at": utc_now()}
                )
        if term_data.get("expiration_date") is None and term_data.get("is_active", True):
            if self._open_terms(term_data["contract_id"], term_data["term_template_id"]):
                raise OpenIntervalConflictError("open-ended term already exists")
        return self.add_term(term_data)

    async def get_term(self, term_id: UUID) -> Optional[DynamicTerm]:
        self.method_calls.append(("get_term", term_id))
        return self.terms.get(term_id)

    async def update_term(self, term_id: UUID, updates: Dict[str, Any]) -> Optional[DynamicTerm]:
        self.method_calls.append(("update_term", term_id, updates))
        existing = self.terms.get(term_id)
        if not existing:
            return None
        updated = existing.model_copy(update=updates)
        self.terms[term_id] = updated
        return updated

    async def delete_term(self, term_id: UUID) -> bool:
        self.method_calls.append(("delete_term", term_id))
        return self.terms.pop(term_id, None) is not None

    async def find_open_terms(self, contract_id: UUID, term_template_id: UUID,
                              exclude_term_id: Optional[UUID] = None) -> List[DynamicTerm]:
        self.method_calls.append(("find_open_terms", contract_id, term_template_id, exclude_term_id))
        return self._open_terms(contract_id, term_template_id, exclude_term_id)

    async def find_effective_terms(self, contract_id: UUID, at: datetime) -> List[DynamicTerm]:
        self.method_calls.append(("find_effective_terms", contract_id, at))
        return [t for t in self.terms.values() if t.contract_id == contract_id and t.is_effective_at(at)]

    async def find_latest_term(self, contract_id: UUID, term_template_id: UUID) -> Optional[DynamicTerm]:
        self.method_calls.append(("find_latest_term", contract_id, term_template_id))
        history = [
            t for t in self.terms.values()
            if t.contract_id == contract_id and t.term_template_id == term_template_id
        ]
        return max(history, key=lambda t: t.effective_date, default=None)

    async def filter_terms(self, request: FilterRequest) -> Tuple[List[DynamicTerm], int]:
        self.method_calls.append(("filter_terms", request))
        return _page(list(self.terms.values()), request)


class MockResourceRepository:
    """Mock implementation of ResourceRepositoryProtocol over one id column"""

    def __init__(self, id_column: str):
        self.id_column = id_column
        self.rows: Dict[UUID, Dict[str, Any]] = {}
        self.method_calls: List[tuple] = []

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.method_calls.append(("create", data))
        now = utc_now()
        row = {**data, "created_at": now, "updated_at": now}
        self.rows[row[self.id_column]] = row
        return dict(row)

    async def get(self, resource_id: UUID) -> Optional[Dict[str, Any]]:
        self.method_calls.append(("get", resource_id))
        row = self.rows.get(resource_id)
        return dict(row) if row else None

    async def update(self, resource_id: UUID, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.method_calls.append(("update", resource_id, updates))
        if resource_id not in self.rows:
            return None
        self.rows[resource_id].update({**updates, "updated_at": utc_now()})
        return dict(self.rows[resource_id])

    async def delete(self, resource_id: UUID) -> bool:
        self.method_calls.append(("delete", resource_id))
        return self.rows.pop(resource_id, None) is not None

    async def filter(self, request: FilterRequest) -> Tuple[List[Dict[str, Any]], int]:
        self.method_calls.append(("filter", request))
        selected = [
            row for row in self.rows.values()
            if all(str(row.get(k)) == str(v) for k, v in request.filters.items())
        ]
        return selected, len(selected)


class MockStatusHistoryRepository(MockResourceRepository):
    """Status history rows with open-period lookup"""

    def __init__(self):
        super().__init__("contract_status_history_id")

    async def find_open(self, contract_id: UUID, exclude_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        self.method_calls.append(("find_open", contract_id, exclude_id))
        return [
            dict(row) for row in self.rows.values()
            if row["contract_id"] == contract_id
            and row.get("status_end_date") is None
            and row["contract_status_history_id"] != exclude_id
        ]