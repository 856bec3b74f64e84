"""
Contract Service API Tests

HTTP contract of the contract service: routes, status codes, error
bodies and the administrative override header. Services are mocked.

Usage:
    pytest tests/api/contract_service/test_contract_api.py -v
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from core.filtering import PaginationRequest, PaginationResponse
from microservices.contract_service.models import (
    Contract,
    ContractParty,
    ContractResource,
    DynamicTerm,
    RejectionCode,
    RejectionReason,
    RuleFailure,
    TermTemplate,
    ValidationVerdict,
)
from microservices.contract_service.protocols import (
    ContractServiceValidationError,
    DuplicateTemplateCodeError,
    DynamicTermNotFoundError,
    OpenIntervalConflictError,
    ResourceNotFoundError,
    RuleConfigurationError,
    TermRejectedError,
    TermTemplateNotFoundError,
)

pytestmark = [pytest.mark.api, pytest.mark.asyncio]

JAN = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def mock_microservice():
    """Patch the global microservice with mocked services"""
    with patch("microservices.contract_service.main.contract_microservice") as mock_ms:
        mock_ms.term_service = AsyncMock()
        mock_ms.contract_service = AsyncMock()
        yield mock_ms


@pytest.fixture
def term_service(mock_microservice):
    return mock_microservice.term_service


@pytest.fixture
def contract_service(mock_microservice):
    return mock_microservice.contract_service


def make_template(data_factory, **overrides) -> TermTemplate:
    return TermTemplate.model_validate(data_factory.make_template_data(**overrides))


def make_term(**overrides) -> DynamicTerm:
    data = {
        "term_id": uuid.uuid4(),
        "contract_id": uuid.uuid4(),
        "term_template_id": uuid.uuid4(),
        "term_value_numeric": Decimal("12.5"),
        "effective_date": JAN,
        "is_active": True,
        "created_at": JAN,
        "updated_at": JAN,
    }
    data.update(overrides)
    return DynamicTerm.model_validate(data)


def rejection(code: RejectionCode, failures=()) -> TermRejectedError:
    return TermRejectedError(RejectionReason(code=code, message=code.value, failures=list(failures)))


# ============================================================================
# Health
# ============================================================================

class TestHealth:
    """Health endpoints"""

    @pytest.mark.parametrize("path", ["/health", "/api/v1/contracts/health"])
    async def test_health(self, client, path):
        response = await client.get(path)
        assert response.status_code == 200
        assert response.json()["service"] == "contract_service"


# ============================================================================
# Term Templates
# ============================================================================

class TestTermTemplateEndpoints:
    """/api/v1/contract-term-templates"""

    async def test_create_returns_201(self, client, term_service, data_factory):
        template = make_template(data_factory, code="PAYMENT_TERMS")
        term_service.create_template.return_value = template

        response = await client.post("/api/v1/contract-term-templates", json={
            "code": "PAYMENT_TERMS", "name": "Payment Terms", "term_category": "FINANCIAL", "data_type": "text",
        })

        assert response.status_code == 201
        assert response.json()["term_template_id"] == str(template.term_template_id)

    async def test_create_with_unknown_data_type_is_422(self, client, term_service):
        response = await client.post("/api/v1/contract-term-templates", json={
            "code": "X", "name": "X", "term_category": "FINANCIAL", "data_type": "money",
        })
        assert response.status_code == 422
        term_service.create_template.assert_not_called()

    async def test_duplicate_code_is_409(self, client, term_service):
        term_service.create_template.side_effect = DuplicateTemplateCodeError("Term template code already exists: X")
        response = await client.post("/api/v1/contract-term-templates", json={
            "code": "X", "name": "X", "term_category": "FINANCIAL", "data_type": "text",
        })
        assert response.status_code == 409

    async def test_get_by_code(self, client, term_service, data_factory):
        term_service.get_template_by_code.return_value = make_template(data_factory, code="NET")
        response = await client.get("/api/v1/contract-term-templates/by-code/NET")
        assert response.status_code == 200
        term_service.get_template_by_code.assert_awaited_once_with("NET")

    async def test_get_missing_is_404(self, client, term_service):
        term_service.get_template.side_effect = TermTemplateNotFoundError("Term template not found")
        response = await client.get(f"/api/v1/contract-term-templates/{uuid.uuid4()}")
        assert response.status_code == 404

    async def test_invalid_uuid_is_422(self, client, term_service):
        response = await client.get("/api/v1/contract-term-templates/not-a-uuid")
        assert response.status_code == 422

    async def test_code_change_is_400(self, client, term_service):
        term_service.update_template.side_effect = ContractServiceValidationError("Term template code is immutable")
        response = await client.put(f"/api/v1/contract-term-templates/{uuid.uuid4()}", json={"code": "NEW"})
        assert response.status_code == 400

    async def test_delete_returns_204(self, client, term_service):
        template_id = uuid.uuid4()
        response = await client.delete(f"/api/v1/contract-term-templates/{template_id}")
        assert response.status_code == 204
        term_service.delete_template.assert_awaited_once_with(template_id)

    async def test_filter_returns_page(self, client, term_service, data_factory):
        term_service.filter_templates.return_value = PaginationResponse[TermTemplate].of(
            [make_template(data_factory)], 1, PaginationRequest()
        )
        response = await client.post("/api/v1/contract-term-templates/filter", json={
            "filters": {"term_category": "FINANCIAL"},
            "pagination": {"page_number": 0, "page_size": 20},
        })
        assert response.status_code == 200
        body = response.json()
        assert body["total_elements"] == 1
        assert len(body["content"]) == 1


class TestValidateEndpoint:
    """Dry-run validation"""

    async def test_verdict_is_returned(self, client, term_service):
        rule_id = uuid.uuid4()
        term_service.validate_value.return_value = ValidationVerdict(
            is_valid=False,
            failures=[RuleFailure(validation_rule_id=rule_id, validation_type="RANGE", message="too high")],
        )
        template_id = uuid.uuid4()

        response = await client.post(f"/api/v1/contract-term-templates/{template_id}/validate", json={"value": 75})

        assert response.status_code == 200
        body = response.json()
        assert body["is_valid"] is False
        assert body["failures"][0]["validation_rule_id"] == str(rule_id)
        term_service.validate_value.assert_awaited_once_with(template_id, 75)

    async def test_broken_rule_is_422_with_rule_id(self, client, term_service):
        rule_id = uuid.uuid4()
        term_service.validate_value.side_effect = RuleConfigurationError("Unknown validation type: 'MAGIC'", rule_id)

        response = await client.post(f"/api/v1/contract-term-templates/{uuid.uuid4()}/validate", json={"value": "x"})

        assert response.status_code == 422
        assert response.json()["detail"]["validation_rule_id"] == str(rule_id)


class TestValidationRuleEndpoints:
    """/api/v1/contract-term-validation-rules"""

    async def test_bad_criteria_on_write_is_400(self, client, term_service):
        term_service.create_rule.side_effect = RuleConfigurationError("Invalid RANGE criteria: min: bad")
        response = await client.post("/api/v1/contract-term-validation-rules", json={
            "term_template_id": str(uuid.uuid4()), "validation_type": "RANGE", "validation_criteria": {"min": "x"},
        })
        assert response.status_code == 400
        assert "RANGE" in response.json()["detail"]["message"]

    async def test_list_rules_of_template(self, client, term_service):
        term_service.list_rules.return_value = []
        template_id = uuid.uuid4()
        response = await client.get(f"/api/v1/contract-term-templates/{template_id}/validation-rules")
        assert response.status_code == 200
        assert response.json() == []


# ============================================================================
# Dynamic Terms
# ============================================================================

class TestDynamicTermEndpoints:
    """/api/v1/contract-term-dynamics"""

    def _payload(self, **overrides):
        payload = {
            "contract_id": str(uuid.uuid4()),
            "term_template_id": str(uuid.uuid4()),
            "value": "12.5",
            "effective_date": "2025-01-01T00:00:00Z",
        }
        payload.update(overrides)
        return payload

    async def test_propose_returns_201(self, client, term_service):
        term = make_term()
        term_service.propose_term.return_value = term

        response = await client.post("/api/v1/contract-term-dynamics", json=self._payload())

        assert response.status_code == 201
        assert response.json()["term_id"] == str(term.term_id)
        assert term_service.propose_term.await_args.kwargs["admin_override"] is False

    async def test_admin_override_header(self, client, term_service):
        term_service.propose_term.return_value = make_term()

        response = await client.post(
            "/api/v1/contract-term-dynamics", json=self._payload(), headers={"X-Admin-Override": "true"}
        )

        assert response.status_code == 201
        assert term_service.propose_term.await_args.kwargs["admin_override"] is True

    async def test_validation_failure_is_400_with_failures(self, client, term_service):
        term_service.propose_term.side_effect = rejection(
            RejectionCode.VALIDATION_FAILED,
            [RuleFailure(validation_rule_id=uuid.uuid4(), validation_type="RANGE", message="too high")],
        )

        response = await client.post("/api/v1/contract-term-dynamics", json=self._payload())

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "VALIDATION_FAILED"
        assert detail["failures"][0]["message"] == "too high"

    @pytest.mark.parametrize("code", [
        RejectionCode.INVALID_DATE_RANGE,
        RejectionCode.INACTIVE_TEMPLATE,
        RejectionCode.MISSING_VALUE,
        RejectionCode.INVALID_VALUE,
    ])
    async def test_other_rejections_are_400(self, client, term_service, code):
        term_service.propose_term.side_effect = rejection(code)
        response = await client.post("/api/v1/contract-term-dynamics", json=self._payload())
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == code.value

    async def test_open_term_conflict_is_409(self, client, term_service):
        term_service.propose_term.side_effect = rejection(RejectionCode.OPEN_TERM_CONFLICT)
        response = await client.post("/api/v1/contract-term-dynamics", json=self._payload())
        assert response.status_code == 409

    async def test_unknown_template_is_404(self, client, term_service):
        term_service.propose_term.side_effect = TermTemplateNotFoundError("Term template not found")
        response = await client.post("/api/v1/contract-term-dynamics", json=self._payload())
        assert response.status_code == 404

    async def test_amend_rejects_value_field(self, client, term_service):
        response = await client.put(
            f"/api/v1/contract-term-dynamics/{uuid.uuid4()}", json={"term_value_text": "NET60"}
        )
        assert response.status_code == 422
        term_service.amend_term.assert_not_called()

    async def test_delete_missing_is_404(self, client, term_service):
        term_service.delete_term.side_effect = DynamicTermNotFoundError("Dynamic term not found")
        response = await client.delete(f"/api/v1/contract-term-dynamics/{uuid.uuid4()}")
        assert response.status_code == 404

    async def test_effective_terms_at(self, client, term_service):
        term_service.get_effective_terms.return_value = [make_term()]
        contract_id = uuid.uuid4()

        response = await client.get(
            f"/api/v1/contracts/{contract_id}/terms/effective", params={"at": "2025-03-01T00:00:00Z"}
        )

        assert response.status_code == 200
        assert len(response.json()) == 1
        called_contract, called_at = term_service.get_effective_terms.await_args.args
        assert called_contract == contract_id
        assert called_at == datetime(2025, 3, 1, tzinfo=timezone.utc)

    async def test_current_term_missing_is_404(self, client, term_service):
        term_service.get_current_term.side_effect = DynamicTermNotFoundError("No term")
        response = await client.get(f"/api/v1/contracts/{uuid.uuid4()}/terms/{uuid.uuid4()}/current")
        assert response.status_code == 404


# ============================================================================
# Contract Resources
# ============================================================================

class TestContractResourceEndpoints:
    """Generic CRUD routes of the contract resources"""

    async def test_create_contract(self, client, contract_service):
        contract = Contract(contract_id=uuid.uuid4(), contract_status="DRAFT", created_at=JAN, updated_at=JAN)
        contract_service.create.return_value = contract

        response = await client.post("/api/v1/contracts", json={"contract_status": "DRAFT"})

        assert response.status_code == 201
        assert response.json()["contract_id"] == str(contract.contract_id)
        resource, _ = contract_service.create.await_args.args
        assert resource is ContractResource.CONTRACT

    async def test_health_is_not_a_contract_id(self, client, contract_service):
        response = await client.get("/api/v1/contracts/health")
        assert response.status_code == 200
        contract_service.get.assert_not_called()

    @pytest.mark.parametrize("resource", list(ContractResource))
    async def test_every_resource_has_get_route(self, client, contract_service, resource):
        contract_service.get.side_effect = ResourceNotFoundError("not found")
        response = await client.get(f"/api/v1/{resource.value}/{uuid.uuid4()}")
        assert response.status_code == 404
        assert contract_service.get.await_args.args[0] is resource

    async def test_date_order_violation_is_400(self, client, contract_service):
        contract_service.create.side_effect = ContractServiceValidationError("date_left must not be before date_joined")
        response = await client.post("/api/v1/contract-parties", json={
            "contract_id": str(uuid.uuid4()), "party_id": str(uuid.uuid4()), "role_in_contract_id": str(uuid.uuid4()),
        })
        assert response.status_code == 400

    async def test_open_status_period_conflict_is_409(self, client, contract_service):
        contract_service.create.side_effect = OpenIntervalConflictError("already has an open status period")
        response = await client.post("/api/v1/contract-status-history", json={
            "contract_id": str(uuid.uuid4()), "status_code": "ACTIVE", "status_start_date": "2025-01-01T00:00:00Z",
        })
        assert response.status_code == 409

    async def test_delete_resource_returns_204(self, client, contract_service):
        response = await client.delete(f"/api/v1/contract-documents/{uuid.uuid4()}")
        assert response.status_code == 204

    async def test_unexpected_error_is_500(self, client, contract_service):
        contract_service.filter.side_effect = RuntimeError("boom")
        response = await client.post("/api/v1/contract-events/filter", json={})
        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"

    async def test_null_required_field_is_400(self, client, contract_service):
        contract_service.update.side_effect = ContractServiceValidationError("Fields cannot be null: contract_status")
        response = await client.put(f"/api/v1/contracts/{uuid.uuid4()}", json={"contract_status": None})

        assert response.status_code == 400
        request = contract_service.update.await_args.args[2]
        assert "contract_status" in request.model_fields_set


class TestPartyLookupEndpoint:
    """GET /api/v1/contract-parties?partyId=&isActive="""

    async def test_active_parties_by_default(self, client, contract_service):
        party_id = uuid.uuid4()
        contract_service.find_parties_by_party.return_value = PaginationResponse[ContractParty].of(
            [], 0, PaginationRequest()
        )

        response = await client.get("/api/v1/contract-parties", params={"partyId": str(party_id)})

        assert response.status_code == 200
        assert response.json()["total_elements"] == 0
        args = contract_service.find_parties_by_party.await_args
        assert args.args[0] == party_id
        assert args.kwargs["is_active"] is True
        assert args.kwargs["pagination"].page_number == 0

    async def test_inactive_and_paging(self, client, contract_service):
        contract_service.find_parties_by_party.return_value = PaginationResponse[ContractParty].of(
            [], 0, PaginationRequest(page_number=2, page_size=5)
        )
        response = await client.get("/api/v1/contract-parties", params={
            "partyId": str(uuid.uuid4()), "isActive": "false", "page_number": 2, "page_size": 5,
        })

        assert response.status_code == 200
        kwargs = contract_service.find_parties_by_party.await_args.kwargs
        assert kwargs["is_active"] is False
        assert kwargs["pagination"].page_size == 5

    async def test_party_id_is_required(self, client, contract_service):
        response = await client.get("/api/v1/contract-parties")
        assert response.status_code == 422
        contract_service.find_parties_by_party.assert_not_called()
