"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - api/        : API contract tests (FastAPI app, mocked services)
    - component/  : Component tests (services with in-memory repositories)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

os.environ.setdefault("ENV", "testing")
os.environ.setdefault("NATS_ENABLED", "false")
os.environ.setdefault("CONSUL_ENABLED", "false")


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register the markers of every test layer"""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "component: marks tests as component tests")
    config.addinivalue_line("markers", "api: marks tests as API contract tests")


# =============================================================================
# Test Data Factory
# =============================================================================

class ContractTestDataFactory:
    """Build term templates, rules and terms for tests"""

    @staticmethod
    def make_id() -> uuid.UUID:
        return uuid.uuid4()

    @staticmethod
    def make_code(prefix: str = "TERM") -> str:
        return f"{prefix}_{uuid.uuid4().hex[:8].upper()}"

    @staticmethod
    def at(year: int, month: int = 1, day: int = 1) -> datetime:
        return datetime(year, month, day, tzinfo=timezone.utc)

    @classmethod
    def make_template_data(cls, **overrides: Any) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        data = {
            "term_template_id": cls.make_id(),
            "code": cls.make_code(),
            "name": "Payment Terms",
            "description": None,
            "term_category": "FINANCIAL",
            "data_type": "text",
            "is_required": False,
            "is_active": True,
            "default_value": None,
            "metadata": None,
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return data

    @classmethod
    def make_rule_data(cls, term_template_id: uuid.UUID, validation_type: str, criteria: Any,
                       **overrides: Any) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        data = {
            "validation_rule_id": cls.make_id(),
            "term_template_id": term_template_id,
            "validation_type": validation_type,
            "validation_criteria": criteria,
            "error_message": None,
            "sort_order": None,
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return data


@pytest.fixture
def data_factory() -> type:
    """Provide test data factory"""
    return ContractTestDataFactory
