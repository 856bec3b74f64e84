"""
API Test Layer Configuration

HTTP contract tests: the FastAPI app is driven in-process through
httpx's ASGI transport with the microservice's services mocked.

Usage:
    pytest tests/api -v
    pytest tests/api -v -k "terms"
"""

import os
import sys

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

os.environ.setdefault("NATS_ENABLED", "false")
os.environ.setdefault("CONSUL_ENABLED", "false")


@pytest_asyncio.fixture
async def client():
    """Async HTTP client bound to the contract service app"""
    from microservices.contract_service.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
