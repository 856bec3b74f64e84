"""
Database Mock for Component Testing

Mocks AsyncPostgresClient for testing repositories without a database.
Statements are recorded; responses are scripted per call.
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional


class MockAsyncPostgresClient:
    """Mock for core.postgres_client.AsyncPostgresClient"""

    def __init__(self):
        self.queries: List[tuple] = []
        self.transactions = 0
        self._row_responses: List[Optional[Dict[str, Any]]] = []
        self._row_response: Optional[Dict[str, Any]] = None
        self._rows_response: List[Dict[str, Any]] = []
        self._execute_response: int = 1
        self._should_raise: Optional[Exception] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    @asynccontextmanager
    async def transaction(self):
        """Statements inside the block are recorded on this same mock"""
        self.transactions += 1
        yield self

    async def query_row(self, query: str, params: List[Any] = None) -> Optional[Dict[str, Any]]:
        """Mock single row query"""
        self.queries.append(("query_row", query, params or []))

        if self._should_raise:
            raise self._should_raise

        if self._row_responses:
            return self._row_responses.pop(0)
        return self._row_response

    async def query(self, query: str, params: List[Any] = None) -> List[Dict[str, Any]]:
        """Mock multi-row query"""
        self.queries.append(("query", query, params or []))

        if self._should_raise:
            raise self._should_raise

        return self._rows_response

    async def execute(self, query: str, params: List[Any] = None) -> int:
        """Mock execute (INSERT/UPDATE/DELETE), returns the affected row count"""
        self.queries.append(("execute", query, params or []))

        if self._should_raise:
            raise self._should_raise

        return self._execute_response

    # Test helper methods

    def set_row_response(self, row: Optional[Dict[str, Any]]):
        """Set the response for every query_row call"""
        self._row_response = row

    def queue_row_responses(self, *rows: Optional[Dict[str, Any]]):
        """Responses for the next query_row calls, in order"""
        self._row_responses.extend(rows)

    def set_rows_response(self, rows: List[Dict[str, Any]]):
        """Set the response for query calls"""
        self._rows_response = rows

    def set_execute_response(self, affected: int):
        """Set the affected row count returned by execute calls"""
        self._execute_response = affected

    def set_error(self, error: Exception):
        """Set an error to be raised on next call"""
        self._should_raise = error

    def get_queries(self, method: Optional[str] = None) -> List[tuple]:
        """Get recorded queries, optionally filtered by method"""
        if method:
            return [q for q in self.queries if q[0] == method]
        return self.queries

    def get_last_query(self) -> Optional[tuple]:
        """Get the last recorded query"""
        return self.queries[-1] if self.queries else None

    def assert_query_executed(self, pattern: str, method: Optional[str] = None):
        """Assert that a query matching pattern was executed"""
        queries = self.get_queries(method)
        for q in queries:
            if pattern.lower() in q[1].lower():
                return True
        raise AssertionError(f"No query matching '{pattern}' was executed. Queries: {queries}")
