"""
Contract Repository

Generic CRUD persistence for the contract resources that carry no derived
behaviour (contracts, parties, events, documents, risk assessments, status
history) - PostgreSQL (asyncpg)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID

from pydantic import BaseModel

from core.config import get_settings
from core.config_manager import ConfigManager
from core.filtering import FilterRequest, build_filter_query, columns_of
from core.postgres_client import AsyncPostgresClient, get_postgres_client, insert_sql, update_sql

from .models import (
    Contract,
    ContractDocument,
    ContractEvent,
    ContractParty,
    ContractResource,
    ContractRiskAssessment,
    ContractStatusHistory,
    utc_now,
)
from .protocols import OpenIntervalConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceDescriptor:
    """Where a resource lives and how its rows are read back"""
    name: str
    table: str
    id_column: str
    model: Type[BaseModel]

    @property
    def columns(self) -> Dict[str, Any]:
        return columns_of(self.model)


RESOURCE_DESCRIPTORS: Dict[ContractResource, ResourceDescriptor] = {
    ContractResource.CONTRACT: ResourceDescriptor("contract", "contract", "contract_id", Contract),
    ContractResource.CONTRACT_PARTY: ResourceDescriptor(
        "contract party", "contract_party", "contract_party_id", ContractParty
    ),
    ContractResource.CONTRACT_EVENT: ResourceDescriptor(
        "contract event", "contract_event", "contract_event_id", ContractEvent
    ),
    ContractResource.CONTRACT_DOCUMENT: ResourceDescriptor(
        "contract document", "contract_document", "contract_document_id", ContractDocument
    ),
    ContractResource.CONTRACT_RISK_ASSESSMENT: ResourceDescriptor(
        "contract risk assessment", "contract_risk_assessment", "contract_risk_assessment_id", ContractRiskAssessment
    ),
    ContractResource.CONTRACT_STATUS_HISTORY: ResourceDescriptor(
        "contract status history", "contract_status_history", "contract_status_history_id", ContractStatusHistory
    ),
}


class ResourceRepository:
    """CRUD and filtering over one resource table"""

    def __init__(
        self,
        descriptor: ResourceDescriptor,
        config: Optional[ConfigManager] = None,
        db: Optional[AsyncPostgresClient] = None,
    ):
        if db is None:
            db = get_postgres_client("contract_service", config=config)
        self.db = db
        self.descriptor = descriptor
        self.table = f"{get_settings().db_schema}.{descriptor.table}"

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            now = utc_now()
            row_data = {**data, "created_at": now, "updated_at": now}
            sql, params = insert_sql(self.table, row_data)
            async with self.db:
                return await self.db.query_row(sql, params=params)
        except Exception as e:
            logger.error(f"Failed to create {self.descriptor.name}: {e}", exc_info=True)
            raise

    async def get(self, resource_id: UUID) -> Optional[Dict[str, Any]]:
        try:
            async with self.db:
                return await self.db.query_row(
                    f"SELECT * FROM {self.table} WHERE {self.descriptor.id_column} = $1",
                    params=[resource_id],
                )
        except Exception as e:
            logger.error(f"Failed to get {self.descriptor.name} {resource_id}: {e}", exc_info=True)
            raise

    async def update(self, resource_id: UUID, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            sql, params = update_sql(
                self.table, self.descriptor.id_column, resource_id, {**updates, "updated_at": utc_now()}
            )
            async with self.db:
                return await self.db.query_row(sql, params=params)
        except Exception as e:
            logger.error(f"Failed to update {self.descriptor.name} {resource_id}: {e}", exc_info=True)
            raise

    async def delete(self, resource_id: UUID) -> bool:
        try:
            async with self.db:
                deleted = await self.db.execute(
                    f"DELETE FROM {self.table} WHERE {self.descriptor.id_column} = $1",
                    params=[resource_id],
                )
            return deleted > 0
        except Exception as e:
            logger.error(f"Failed to delete {self.descriptor.name} {resource_id}: {e}", exc_info=True)
            raise

    async def filter(self, request: FilterRequest) -> Tuple[List[Dict[str, Any]], int]:
        try:
            query = build_filter_query(request, self.descriptor.columns)
            sql, params = query.select_sql(self.table)
            count_sql, count_params = query.count_sql(self.table)
            async with self.db:
                rows = await self.db.query(sql, params=params)
                count_row = await self.db.query_row(count_sql, params=count_params)
            return rows, int(count_row["count"]) if count_row else 0
        except Exception as e:
            logger.error(f"Failed to filter {self.descriptor.name}: {e}", exc_info=True)
            raise


class StatusHistoryRepository(ResourceRepository):
    """Status history rows; at most one open row (no end date) per contract"""

    def __init__(self, config: Optional[ConfigManager] = None, db: Optional[AsyncPostgresClient] = None):
        super().__init__(RESOURCE_DESCRIPTORS[ContractResource.CONTRACT_STATUS_HISTORY], config=config, db=db)

    async def _lock_contract(self, tx, contract_id: UUID) -> None:
        await tx.execute(
            "SELECT pg_advisory_xact_lock(hashtext($1))",
            params=[f"{self.table}:{contract_id}"],
        )

    async def _has_other_open(self, tx, contract_id: UUID, exclude_id: Optional[UUID]) -> bool:
        row = await tx.query_row(
            f"""
            SELECT COUNT(*) AS count FROM {self.table}
            WHERE contract_id = $1 AND status_end_date IS NULL
              AND ($2::uuid IS NULL OR contract_status_history_id <> $2::uuid)
            """,
            params=[contract_id, exclude_id],
        )
        return bool(row and row["count"])

    async def find_open(self, contract_id: UUID, exclude_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        try:
            async with self.db:
                return await self.db.query(
                    f"""
                    SELECT * FROM {self.table}
                    WHERE contract_id = $1 AND status_end_date IS NULL
                      AND ($2::uuid IS NULL OR contract_status_history_id <> $2::uuid)
                    ORDER BY status_start_date DESC
                    """,
                    params=[contract_id, exclude_id],
                )
        except Exception as e:
            logger.error(f"Failed to find open status of contract {contract_id}: {e}", exc_info=True)
            raise

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if data.get("status_end_date") is not None:
            return await super().create(data)
        try:
            now = utc_now()
            async with self.db.transaction() as tx:
                await self._lock_contract(tx, data["contract_id"])
                if await self._has_other_open(tx, data["contract_id"], None):
                    raise OpenIntervalConflictError(
                        f"Contract {data['contract_id']} already has an open status period"
                    )
                sql, params = insert_sql(self.table, {**data, "created_at": now, "updated_at": now})
                return await tx.query_row(sql, params=params)
        except OpenIntervalConflictError:
            raise
        except Exception as e:
            logger.error(f"Failed to create contract status history: {e}", exc_info=True)
            raise

    async def update(self, resource_id: UUID, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if "status_end_date" not in updates or updates["status_end_date"] is not None:
            return await super().update(resource_id, updates)
        try:
            async with self.db.transaction() as tx:
                current = await tx.query_row(
                    f"SELECT * FROM {self.table} WHERE contract_status_history_id = $1 FOR UPDATE",
                    params=[resource_id],
                )
                if not current:
                    return None
                await self._lock_contract(tx, current["contract_id"])
                if await self._has_other_open(tx, current["contract_id"], resource_id):
                    raise OpenIntervalConflictError(
                        f"Contract {current['contract_id']} already has an open status period"
                    )
                sql, params = update_sql(
                    self.table, "contract_status_history_id", resource_id, {**updates, "updated_at": utc_now()}
                )
                return await tx.query_row(sql, params=params)
        except OpenIntervalConflictError:
            raise
        except Exception as e:
            logger.error(f"Failed to update contract status history {resource_id}: {e}", exc_info=True)
            raise
