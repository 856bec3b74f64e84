"""
Term Repository

Data access layer for term templates, validation rules and dynamic terms -
PostgreSQL (asyncpg)
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import asyncpg

from core.config import get_settings
from core.config_manager import ConfigManager
from core.filtering import FilterRequest, build_filter_query, columns_of
from core.postgres_client import AsyncPostgresClient, get_postgres_client, insert_sql, update_sql

from .models import DynamicTerm, TermTemplate, ValidationRule, ensure_utc, utc_now
from .protocols import DuplicateTemplateCodeError, OpenIntervalConflictError

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = columns_of(TermTemplate, exclude=("metadata",))
RULE_COLUMNS = columns_of(ValidationRule, exclude=("validation_criteria",))
TERM_COLUMNS = columns_of(DynamicTerm, exclude=("term_value_json",))


class TermRepository:
    """Term template, validation rule and dynamic term persistence"""

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        db: Optional[AsyncPostgresClient] = None,
    ):
        if db is None:
            db = get_postgres_client("contract_service", config=config)
        self.db = db
        self.schema = get_settings().db_schema
        self.templates_table = f"{self.schema}.contract_term_template"
        self.rules_table = f"{self.schema}.contract_term_validation_rule"
        self.terms_table = f"{self.schema}.contract_term_dynamic"

    # ====================
    # Row mapping
    # ====================

    @staticmethod
    def _row_to_rule(row: Dict[str, Any]) -> ValidationRule:
        data = dict(row)
        data["validation_criteria"] = data.pop("validation_value", None)
        return ValidationRule.model_validate(data)

    @staticmethod
    def _rule_to_row(rule_data: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(rule_data)
        if "validation_criteria" in data:
            data["validation_value"] = data.pop("validation_criteria")
        return data

    async def _filter(self, table: str, columns: Dict[str, Any], request: FilterRequest) -> Tuple[List[Dict[str, Any]], int]:
        query = build_filter_query(request, columns)
        sql, params = query.select_sql(table)
        count_sql, count_params = query.count_sql(table)
        async with self.db:
            rows = await self.db.query(sql, params=params)
            count_row = await self.db.query_row(count_sql, params=count_params)
        return rows, int(count_row["count"]) if count_row else 0

    # ====================
    # Term templates
    # ====================

    async def create_template(self, template_data: Dict[str, Any]) -> TermTemplate:
        try:
            sql, params = insert_sql(self.templates_table, template_data)
            async with self.db:
                row = await self.db.query_row(sql, params=params)
            return TermTemplate.model_validate(row)
        except asyncpg.UniqueViolationError:
            raise DuplicateTemplateCodeError(f"Term template code already exists: {template_data.get('code')}")
        except Exception as e:
            logger.error(f"Failed to create term template: {e}", exc_info=True)
            raise

    async def get_template(self, term_template_id: UUID) -> Optional[TermTemplate]:
        try:
            async with self.db:
                row = await self.db.query_row(
                    f"SELECT * FROM {self.templates_table} WHERE term_template_id = $1",
                    params=[term_template_id],
                )
            return TermTemplate.model_validate(row) if row else None
        except Exception as e:
            logger.error(f"Failed to get term template {term_template_id}: {e}", exc_info=True)
            raise

    async def get_template_by_code(self, code: str) -> Optional[TermTemplate]:
        try:
            async with self.db:
                row = await self.db.query_row(
                    f"SELECT * FROM {self.templates_table} WHERE code = $1",
                    params=[code],
                )
            return TermTemplate.model_validate(row) if row else None
        except Exception as e:
            logger.error(f"Failed to get term template by code {code}: {e}", exc_info=True)
            raise

    async def update_template(self, term_template_id: UUID, updates: Dict[str, Any]) -> Optional[TermTemplate]:
        try:
            sql, params = update_sql(self.templates_table, "term_template_id", term_template_id, updates)
            async with self.db:
                row = await self.db.query_row(sql, params=params)
            return TermTemplate.model_validate(row) if row else None
        except Exception as e:
            logger.error(f"Failed to update term template {term_template_id}: {e}", exc_info=True)
            raise

    async def delete_template(self, term_template_id: UUID) -> bool:
        """Delete a template and cascade to its validation rules"""
        try:
            async with self.db.transaction() as tx:
                rules_deleted = await tx.execute(
                    f"DELETE FROM {self.rules_table} WHERE term_template_id = $1",
                    params=[term_template_id],
                )
                deleted = await tx.execute(
                    f"DELETE FROM {self.templates_table} WHERE term_template_id = $1",
                    params=[term_template_id],
                )
            if deleted:
                logger.debug(f"Deleted template {term_template_id} with {rules_deleted} rule(s)")
            return deleted > 0
        except Exception as e:
            logger.error(f"Failed to delete term template {term_template_id}: {e}", exc_info=True)
            raise

    async def filter_templates(self, request: FilterRequest) -> Tuple[List[TermTemplate], int]:
        try:
            rows, total = await self._filter(self.templates_table, TEMPLATE_COLUMNS, request)
            return [TermTemplate.model_validate(row) for row in rows], total
        except Exception as e:
            logger.error(f"Failed to filter term templates: {e}", exc_info=True)
            raise

    # ====================
    # Validation rules
    # ====================

    async def create_rule(self, rule_data: Dict[str, Any]) -> ValidationRule:
        try:
            sql, params = insert_sql(self.rules_table, self._rule_to_row(rule_data))
            async with self.db:
                row = await self.db.query_row(sql, params=params)
            return self._row_to_rule(row)
        except Exception as e:
            logger.error(f"Failed to create validation rule: {e}", exc_info=True)
            raise

    async def get_rule(self, validation_rule_id: UUID) -> Optional[ValidationRule]:
        try:
            async with self.db:
                row = await self.db.query_row(
                    f"SELECT * FROM {self.rules_table} WHERE validation_rule_id = $1",
                    params=[validation_rule_id],
                )
            return self._row_to_rule(row) if row else None
        except Exception as e:
            logger.error(f"Failed to get validation rule {validation_rule_id}: {e}", exc_info=True)
            raise

    async def list_rules(self, term_template_id: UUID) -> List[ValidationRule]:
        try:
            async with self.db:
                rows = await self.db.query(
                    f"""
                    SELECT * FROM {self.rules_table}
                    WHERE term_template_id = $1
                    ORDER BY sort_order ASC NULLS LAST, created_at ASC, validation_rule_id ASC
                    """,
                    params=[term_template_id],
                )
            return [self._row_to_rule(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to list rules of template {term_template_id}: {e}", exc_info=True)
            raise

    async def update_rule(self, validation_rule_id: UUID, updates: Dict[str, Any]) -> Optional[ValidationRule]:
        try:
            sql, params = update_sql(self.rules_table, "validation_rule_id", validation_rule_id, self._rule_to_row(updates))
            async with self.db:
                row = await self.db.query_row(sql, params=params)
            return self._row_to_rule(row) if row else None
        except Exception as e:
            logger.error(f"Failed to update validation rule {validation_rule_id}: {e}", exc_info=True)
            raise

    async def delete_rule(self, validation_rule_id: UUID) -> bool:
        try:
            async with self.db:
                deleted = await self.db.execute(
                    f"DELETE FROM {self.rules_table} WHERE validation_rule_id = $1",
                    params=[validation_rule_id],
                )
            return deleted > 0
        except Exception as e:
            logger.error(f"Failed to delete validation rule {validation_rule_id}: {e}", exc_info=True)
            raise

    async def filter_rules(self, request: FilterRequest) -> Tuple[List[ValidationRule], int]:
        try:
            rows, total = await self._filter(self.rules_table, RULE_COLUMNS, request)
            return [self._row_to_rule(row) for row in rows], total
        except Exception as e:
            logger.error(f"Failed to filter validation rules: {e}", exc_info=True)
            raise

    # ====================
    # Dynamic terms
    # ====================

    async def _lock_pair(self, tx, contract_id: UUID, term_template_id: UUID) -> None:
        """Serialise writers of one (contract, template) history until commit"""
        await tx.execute(
            "SELECT pg_advisory_xact_lock(hashtext($1))",
            params=[f"{self.terms_table}:{contract_id}:{term_template_id}"],
        )

    async def _count_open(self, tx, contract_id: UUID, term_template_id: UUID, exclude_term_id: Optional[UUID]) -> int:
        row = await tx.query_row(
            f"""
            SELECT COUNT(*) AS count FROM {self.terms_table}
            WHERE contract_id = $1 AND term_template_id = $2
              AND is_active = true AND expiration_date IS NULL
              AND ($3::uuid IS NULL OR term_id <> $3::uuid)
            """,
            params=[contract_id, term_template_id, exclude_term_id],
        )
        return int(row["count"]) if row else 0

    async def create_term(
        self,
        term_data: Dict[str, Any],
        supersede_term_ids: Sequence[UUID] = (),
    ) -> DynamicTerm:
        contract_id = term_data["contract_id"]
        term_template_id = term_data["term_template_id"]
        try:
            async with self.db.transaction() as tx:
                await self._lock_pair(tx, contract_id, term_template_id)

                if supersede_term_ids:
                    await tx.execute(
                        f"""
                        UPDATE {self.terms_table}
                        SET expiration_date = $1, updated_at = $2
                        WHERE term_id = ANY($3::uuid[])
                          AND is_active = true AND expiration_date IS NULL
                        """,
                        params=[term_data["effective_date"], utc_now(), list(supersede_term_ids)],
                    )

                if term_data.get("is_active", True) and term_data.get("expiration_date") is None:
                    if await self._count_open(tx, contract_id, term_template_id, None):
                        raise OpenIntervalConflictError(
                            f"Contract {contract_id} already has an open-ended term for template {term_template_id}"
                        )

                sql, params = insert_sql(self.terms_table, term_data)
                row = await tx.query_row(sql, params=params)
            return DynamicTerm.model_validate(row)
        except OpenIntervalConflictError:
            raise
        except Exception as e:
            logger.error(f"Failed to create dynamic term: {e}", exc_info=True)
            raise

    async def get_term(self, term_id: UUID) -> Optional[DynamicTerm]:
        try:
            async with self.db:
                row = await self.db.query_row(
                    f"SELECT * FROM {self.terms_table} WHERE term_id = $1",
                    params=[term_id],
                )
            return DynamicTerm.model_validate(row) if row else None
        except Exception as e:
            logger.error(f"Failed to get dynamic term {term_id}: {e}", exc_info=True)
            raise

    async def update_term(self, term_id: UUID, updates: Dict[str, Any]) -> Optional[DynamicTerm]:
        try:
            async with self.db.transaction() as tx:
                current = await tx.query_row(
                    f"SELECT * FROM {self.terms_table} WHERE term_id = $1 FOR UPDATE",
                    params=[term_id],
                )
                if not current:
                    return None

                await self._lock_pair(tx, current["contract_id"], current["term_template_id"])
                is_active = updates.get("is_active", current["is_active"])
                expiration_date = updates.get("expiration_date", current["expiration_date"])
                if is_active and expiration_date is None:
                    if await self._count_open(tx, current["contract_id"], current["term_template_id"], term_id):
                        raise OpenIntervalConflictError(
                            f"Contract {current['contract_id']} already has an open-ended term for this template"
                        )

                sql, params = update_sql(self.terms_table, "term_id", term_id, updates)
                row = await tx.query_row(sql, params=params)
            return DynamicTerm.model_validate(row) if row else None
        except OpenIntervalConflictError:
            raise
        except Exception as e:
            logger.error(f"Failed to update dynamic term {term_id}: {e}", exc_info=True)
            raise

    async def delete_term(self, term_id: UUID) -> bool:
        try:
            async with self.db:
                deleted = await self.db.execute(
                    f"DELETE FROM {self.terms_table} WHERE term_id = $1",
                    params=[term_id],
                )
            return deleted > 0
        except Exception as e:
            logger.error(f"Failed to delete dynamic term {term_id}: {e}", exc_info=True)
            raise

    async def find_open_terms(
        self, contract_id: UUID, term_template_id: UUID, exclude_term_id: Optional[UUID] = None
    ) -> List[DynamicTerm]:
        try:
            async with self.db:
                rows = await self.db.query(
                    f"""
                    SELECT * FROM {self.terms_table}
                    WHERE contract_id = $1 AND term_template_id = $2
                      AND is_active = true AND expiration_date IS NULL
                      AND ($3::uuid IS NULL OR term_id <> $3::uuid)
                    ORDER BY effective_date DESC
                    """,
                    params=[contract_id, term_template_id, exclude_term_id],
                )
            return [DynamicTerm.model_validate(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to find open terms of contract {contract_id}: {e}", exc_info=True)
            raise

    async def find_effective_terms(self, contract_id: UUID, at: datetime) -> List[DynamicTerm]:
        try:
            async with self.db:
                rows = await self.db.query(
                    f"""
                    SELECT * FROM {self.terms_table}
                    WHERE contract_id = $1 AND is_active = true
                      AND effective_date <= $2
                      AND (expiration_date IS NULL OR expiration_date >= $2)
                    ORDER BY term_template_id, effective_date DESC
                    """,
                    params=[contract_id, ensure_utc(at)],
                )
            return [DynamicTerm.model_validate(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to find effective terms of contract {contract_id}: {e}", exc_info=True)
            raise

    async def find_latest_term(self, contract_id: UUID, term_template_id: UUID) -> Optional[DynamicTerm]:
        try:
            async with self.db:
                row = await self.db.query_row(
                    f"""
                    SELECT * FROM {self.terms_table}
                    WHERE contract_id = $1 AND term_template_id = $2
                    ORDER BY effective_date DESC, created_at DESC
                    LIMIT 1
                    """,
                    params=[contract_id, term_template_id],
                )
            return DynamicTerm.model_validate(row) if row else None
        except Exception as e:
            logger.error(f"Failed to find latest term of contract {contract_id}: {e}", exc_info=True)
            raise

    async def filter_terms(self, request: FilterRequest) -> Tuple[List[DynamicTerm], int]:
        try:
            rows, total = await self._filter(self.terms_table, TERM_COLUMNS, request)
            return [DynamicTerm.model_validate(row) for row in rows], total
        except Exception as e:
            logger.error(f"Failed to filter dynamic terms: {e}", exc_info=True)
            raise
