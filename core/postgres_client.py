"""
PostgreSQL Client for the contract platform

Async PostgreSQL access on top of an asyncpg connection pool, with service
discovery for the database address and retries while the database comes up.

Usage:
    from core.postgres_client import get_postgres_client

    db = get_postgres_client("contract_service")

    async with db:
        rows = await db.query("SELECT * FROM contract.contract WHERE contract_id = $1", [contract_id])

    async with db.transaction() as tx:
        await tx.execute("UPDATE ...", [...])
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from uuid import UUID

import asyncpg
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class ExtendedJSONEncoder(json.JSONEncoder):
    """JSON encoder for Decimal, datetime and UUID values"""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        return super().default(obj)


def json_dumps(value: Any) -> str:
    return json.dumps(value, cls=ExtendedJSONEncoder)


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def insert_sql(table: str, data: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """INSERT ... RETURNING * for the columns of ``data``"""
    columns = list(data.keys())
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"
    return sql, [_db_value(data[c]) for c in columns]


def update_sql(table: str, key_column: str, key: Any, updates: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """UPDATE ... RETURNING * setting the columns of ``updates`` on one row"""
    assignments = []
    params: List[Any] = []
    for column, value in updates.items():
        params.append(_db_value(value))
        assignments.append(f"{column} = ${len(params)}")
    params.append(key)
    sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE {key_column} = ${len(params)} RETURNING *"
    return sql, params


def _rows(records) -> List[Dict[str, Any]]:
    return [dict(record) for record in records]


def _affected(status: str) -> int:
    """Row count from a command tag such as 'UPDATE 3'"""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0


async def _init_connection(conn: asyncpg.Connection) -> None:
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json_dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class PostgresTransaction:
    """Statements bound to a single connection inside a transaction"""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        return _rows(await self._conn.fetch(sql, *(params or [])))

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        record = await self._conn.fetchrow(sql, *(params or []))
        return dict(record) if record else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        return _affected(await self._conn.execute(sql, *(params or [])))


class AsyncPostgresClient:
    """
    asyncpg pool wrapper.

    The pool is created lazily on first use and shared by every call; the
    async context manager only guarantees the pool exists.
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        username: str,
        password: str,
        min_size: int = 1,
        max_size: int = 10,
        application_name: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.username = username
        self.password = password
        self.min_size = min_size
        self.max_size = max_size
        self.application_name = application_name
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=0.5, max=8),
        retry=retry_if_exception_type((
            OSError,
            asyncio.TimeoutError,
            asyncpg.exceptions.CannotConnectNowError,
            asyncpg.exceptions.PostgresConnectionError,
        )),
        reraise=True,
    )
    async def _create_pool(self) -> asyncpg.Pool:
        server_settings = {"application_name": self.application_name} if self.application_name else None
        return await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.username,
            password=self.password,
            min_size=self.min_size,
            max_size=self.max_size,
            init=_init_connection,
            server_settings=server_settings,
        )

    async def connect(self) -> None:
        if self._pool is not None:
            return
        async with self._lock:
            if self._pool is None:
                self._pool = await self._create_pool()
                logger.info(f"PostgreSQL pool ready: {self.host}:{self.port}/{self.database}")

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return all rows"""
        await self.connect()
        async with self._pool.acquire() as conn:
            return _rows(await conn.fetch(sql, *(params or [])))

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return the first row"""
        await self.connect()
        async with self._pool.acquire() as conn:
            record = await conn.fetchrow(sql, *(params or []))
        return dict(record) if record else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute a statement and return the number of affected rows"""
        await self.connect()
        async with self._pool.acquire() as conn:
            return _affected(await conn.execute(sql, *(params or [])))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresTransaction]:
        """Run statements on one connection, committed together or not at all"""
        await self.connect()
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresTransaction(conn)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL pool closed")


# Singleton instances per service
_postgres_clients: Dict[str, AsyncPostgresClient] = {}


def get_postgres_client(
    service_name: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    config=None,
) -> AsyncPostgresClient:
    """
    Get or create the PostgreSQL client of a service.

    Host and port are resolved through ConfigManager (environment, Consul,
    then defaults); credentials and pool sizes come from the infrastructure
    settings.
    """
    from core.config import get_settings
    from core.config_manager import ConfigManager

    if service_name not in _postgres_clients:
        infra = get_settings().infrastructure
        if config is None:
            config = ConfigManager(service_name)
        discovered_host, discovered_port = config.discover_service(
            service_name="postgres_service",
            default_host=infra.postgres_host,
            default_port=infra.postgres_port,
            env_host_key="POSTGRES_HOST",
            env_port_key="POSTGRES_PORT",
        )
        _postgres_clients[service_name] = AsyncPostgresClient(
            host=host or discovered_host,
            port=port or discovered_port,
            database=database or infra.postgres_db,
            username=infra.postgres_user,
            password=infra.postgres_password,
            min_size=infra.postgres_min_pool,
            max_size=infra.postgres_max_pool,
            application_name=service_name,
        )
        logger.info(f"PostgreSQL client initialized for {service_name}")

    return _postgres_clients[service_name]


async def close_postgres_clients() -> None:
    """Close every pool opened through get_postgres_client"""
    for client in list(_postgres_clients.values()):
        await client.close()
    _postgres_clients.clear()
