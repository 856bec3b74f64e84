"""
Contract Service - Business logic layer

CRUD and filtering for contracts and their satellite resources (parties,
events, documents, risk assessments, status history). These resources
carry no derived behaviour beyond field checks and the status history
open-period rule.
"""

import logging
import uuid
from typing import Any, Dict, Optional, Tuple, Type
from uuid import UUID

from pydantic import BaseModel

from core.filtering import FilterRequest, PaginationRequest, PaginationResponse
from core.nats_client import EventType

from .events.publishers import publish_contract_changed, publish_contract_status_changed
from .models import (
    Contract,
    ContractDocument,
    ContractEvent,
    ContractParty,
    ContractResource,
    ContractRiskAssessment,
    ContractStatusHistory,
    ensure_utc,
    null_fields,
)
from .protocols import (
    ContractServiceValidationError,
    EventBusProtocol,
    OpenIntervalConflictError,
    ResourceNotFoundError,
    ResourceRepositoryProtocol,
    StatusHistoryRepositoryProtocol,
)

logger = logging.getLogger(__name__)

# resource -> (model, id field, (start field, end field) checked for ordering)
RESOURCE_MODELS: Dict[ContractResource, Tuple[Type[BaseModel], str, Optional[Tuple[str, str]]]] = {
    ContractResource.CONTRACT: (Contract, "contract_id", ("start_date", "end_date")),
    ContractResource.CONTRACT_PARTY: (ContractParty, "contract_party_id", ("date_joined", "date_left")),
    ContractResource.CONTRACT_EVENT: (ContractEvent, "contract_event_id", None),
    ContractResource.CONTRACT_DOCUMENT: (ContractDocument, "contract_document_id", None),
    ContractResource.CONTRACT_RISK_ASSESSMENT: (ContractRiskAssessment, "contract_risk_assessment_id", None),
    ContractResource.CONTRACT_STATUS_HISTORY: (
        ContractStatusHistory, "contract_status_history_id", ("status_start_date", "status_end_date")
    ),
}


def _label(resource: ContractResource) -> str:
    return resource.name.lower().replace("_", " ")


def _status_value(status: Any) -> Optional[str]:
    return status.value if hasattr(status, "value") else status


class ContractService:
    """
    Pass-through CRUD over the contract resources

    ``repositories`` maps every ContractResource to its repository; the
    status history repository must also provide ``find_open``.
    """

    def __init__(
        self,
        repositories: Optional[Dict[ContractResource, ResourceRepositoryProtocol]] = None,
        event_bus: Optional[EventBusProtocol] = None,
    ):
        self.repositories = repositories or {}
        self.event_bus = event_bus

    def _repo(self, resource: ContractResource) -> ResourceRepositoryProtocol:
        return self.repositories[resource]

    @property
    def status_history_repo(self) -> StatusHistoryRepositoryProtocol:
        return self.repositories[ContractResource.CONTRACT_STATUS_HISTORY]

    @staticmethod
    def _check_dates(resource: ContractResource, data: Dict[str, Any]) -> None:
        bounds = RESOURCE_MODELS[resource][2]
        if not bounds:
            return
        start, end = (ensure_utc(data.get(field)) for field in bounds)
        if start is not None and end is not None and end < start:
            raise ContractServiceValidationError(f"{bounds[1]} must not be before {bounds[0]}")

    def _to_model(self, resource: ContractResource, row: Dict[str, Any]) -> BaseModel:
        return RESOURCE_MODELS[resource][0].model_validate(row)

    async def create(self, resource: ContractResource, request: BaseModel) -> BaseModel:
        model, id_field, _ = RESOURCE_MODELS[resource]
        data = request.model_dump()
        self._check_dates(resource, data)

        if resource is ContractResource.CONTRACT_STATUS_HISTORY and data.get("status_end_date") is None:
            if await self.status_history_repo.find_open(data["contract_id"]):
                raise OpenIntervalConflictError(
                    f"Contract {data['contract_id']} already has an open status period"
                )

        row = await self._repo(resource).create({id_field: uuid.uuid4(), **data})
        created = model.model_validate(row)
        logger.info(f"Created {_label(resource)} {getattr(created, id_field)}")

        if resource is ContractResource.CONTRACT:
            await publish_contract_changed(self.event_bus, EventType.CONTRACT_CREATED, row)
        return created

    async def get(self, resource: ContractResource, resource_id: UUID) -> BaseModel:
        row = await self._repo(resource).get(resource_id)
        if not row:
            raise ResourceNotFoundError(f"{_label(resource).capitalize()} not found: {resource_id}")
        return self._to_model(resource, row)

    async def update(self, resource: ContractResource, resource_id: UUID, request: BaseModel) -> BaseModel:
        existing = await self._repo(resource).get(resource_id)
        if not existing:
            raise ResourceNotFoundError(f"{_label(resource).capitalize()} not found: {resource_id}")

        updates = request.model_dump(exclude_unset=True)
        if not updates:
            return self._to_model(resource, existing)
        rejected = null_fields(RESOURCE_MODELS[resource][0], updates)
        if rejected:
            raise ContractServiceValidationError(f"Fields cannot be null: {', '.join(rejected)}")
        self._check_dates(resource, {**existing, **updates})

        if (
            resource is ContractResource.CONTRACT_STATUS_HISTORY
            and "status_end_date" in updates
            and updates["status_end_date"] is None
        ):
            if await self.status_history_repo.find_open(existing["contract_id"], exclude_id=resource_id):
                raise OpenIntervalConflictError(
                    f"Contract {existing['contract_id']} already has an open status period"
                )

        row = await self._repo(resource).update(resource_id, updates)
        if not row:
            raise ResourceNotFoundError(f"{_label(resource).capitalize()} not found: {resource_id}")

        if resource is ContractResource.CONTRACT:
            await publish_contract_changed(self.event_bus, EventType.CONTRACT_UPDATED, row, list(updates))
            old_status = _status_value(existing.get("contract_status"))
            new_status = _status_value(row.get("contract_status"))
            if new_status != old_status:
                logger.info(f"Contract {resource_id} status {old_status} -> {new_status}")
                await publish_contract_status_changed(self.event_bus, resource_id, old_status, new_status)
        return self._to_model(resource, row)

    async def delete(self, resource: ContractResource, resource_id: UUID) -> None:
        existing = await self._repo(resource).get(resource_id)
        if not existing:
            raise ResourceNotFoundError(f"{_label(resource).capitalize()} not found: {resource_id}")
        await self._repo(resource).delete(resource_id)
        logger.info(f"Deleted {_label(resource)} {resource_id}")

        if resource is ContractResource.CONTRACT:
            await publish_contract_changed(self.event_bus, EventType.CONTRACT_DELETED, existing)

    async def filter(self, resource: ContractResource, request: FilterRequest) -> PaginationResponse:
        rows, total = await self._repo(resource).filter(request)
        model = RESOURCE_MODELS[resource][0]
        return PaginationResponse[model].of([model.model_validate(r) for r in rows], total, request.pagination)

    async def find_parties_by_party(
        self,
        party_id: UUID,
        is_active: Optional[bool] = True,
        pagination: Optional[PaginationRequest] = None,
    ) -> PaginationResponse:
        """
        Contract parties of one party across all contracts.

        Only active memberships by default; pass ``is_active=None`` for all.
        """
        filters: Dict[str, Any] = {"party_id": party_id}
        if is_active is not None:
            filters["is_active"] = is_active
        request = FilterRequest(filters=filters, pagination=pagination or PaginationRequest())
        return await self.filter(ContractResource.CONTRACT_PARTY, request)
