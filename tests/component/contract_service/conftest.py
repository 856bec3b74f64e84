"""
Contract Service Component Test Fixtures

Provides:
- MockTermRepository: in-memory TermRepositoryProtocol
- MockResourceRepository / MockStatusHistoryRepository: in-memory resource stores
- term_service / contract_service wired to those mocks and the mock event bus
"""
import pytest

from microservices.contract_service.contract_service import ContractService
from microservices.contract_service.models import ContractResource
from microservices.contract_service.term_service import ContractTermService

from tests.component.contract_service.mocks import MockResourceRepository, MockStatusHistoryRepository, MockTermRepository

ID_COLUMNS = {
    ContractResource.CONTRACT: "contract_id",
    ContractResource.CONTRACT_PARTY: "contract_party_id",
    ContractResource.CONTRACT_EVENT: "contract_event_id",
    ContractResource.CONTRACT_DOCUMENT: "contract_document_id",
    ContractResource.CONTRACT_RISK_ASSESSMENT: "contract_risk_assessment_id",
}


@pytest.fixture
def mock_term_repository():
    """Create mock term repository"""
    return MockTermRepository()


@pytest.fixture
def term_service(mock_term_repository, mock_event_bus):
    """Create term service with mocked dependencies"""
    return ContractTermService(repository=mock_term_repository, event_bus=mock_event_bus)


@pytest.fixture
def resource_repositories():
    """One in-memory repository per contract resource"""
    repositories = {resource: MockResourceRepository(id_column) for resource, id_column in ID_COLUMNS.items()}
    repositories[ContractResource.CONTRACT_STATUS_HISTORY] = MockStatusHistoryRepository()
    return repositories


@pytest.fixture
def contract_service(resource_repositories, mock_event_bus):
    """Create contract service with mocked dependencies"""
    return ContractService(repositories=resource_repositories, event_bus=mock_event_bus)
