"""
Contract Service Routes Registry
Defines all API routes for Consul service registration
"""

from typing import Any, Dict, List

from .events.models import ContractStreamConfig
from .models import ContractResource

BASE_PATH = "/api/v1"

TERM_RESOURCES = [
    "contract-term-templates",
    "contract-term-validation-rules",
    "contract-term-dynamics",
]


def _crud_routes(segment: str) -> List[Dict[str, Any]]:
    return [
        {
            "path": f"{BASE_PATH}/{segment}",
            "methods": ["POST"],
            "auth_required": True,
            "description": f"Create {segment}",
        },
        {
            "path": f"{BASE_PATH}/{segment}/{{id}}",
            "methods": ["GET", "PUT", "DELETE"],
            "auth_required": True,
            "description": f"Get/update/delete {segment}",
        },
        {
            "path": f"{BASE_PATH}/{segment}/filter",
            "methods": ["POST"],
            "auth_required": True,
            "description": f"Filter {segment}",
        },
    ]


SERVICE_ROUTES = [
    {
        "path": "/health",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Service health check"
    },
    {
        "path": f"{BASE_PATH}/contracts/health",
        "methods": ["GET"],
        "auth_required": False,
        "description": "Service health check (API path)"
    },
    # Contract resources
    *[route for resource in ContractResource for route in _crud_routes(resource.value)],
    # Term subsystem
    *[route for segment in TERM_RESOURCES for route in _crud_routes(segment)],
    {
        "path": f"{BASE_PATH}/contract-term-templates/by-code/{{code}}",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Get term template by code"
    },
    {
        "path": f"{BASE_PATH}/contract-term-templates/{{id}}/validation-rules",
        "methods": ["GET"],
        "auth_required": True,
        "description": "List validation rules of a term template"
    },
    {
        "path": f"{BASE_PATH}/contract-term-templates/{{id}}/validate",
        "methods": ["POST"],
        "auth_required": True,
        "description": "Validate a candidate value against a term template"
    },
    {
        "path": f"{BASE_PATH}/contract-parties",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Contract parties of one party (partyId, isActive)"
    },
    {
        "path": f"{BASE_PATH}/contracts/{{contract_id}}/terms/effective",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Terms in force for a contract"
    },
    {
        "path": f"{BASE_PATH}/contracts/{{contract_id}}/terms/{{template_id}}/current",
        "methods": ["GET"],
        "auth_required": True,
        "description": "Latest term of a template for a contract"
    },
]


def get_routes_for_consul() -> Dict[str, Any]:
    """
    Compact route metadata for Consul
    Consul meta values are limited to 512 characters
    """
    health_routes = [r for r in SERVICE_ROUTES if "health" in r["path"]]
    term_routes = [r for r in SERVICE_ROUTES if "/contract-term-" in r["path"] or "/terms/" in r["path"]]
    filter_routes = [r for r in SERVICE_ROUTES if r["path"].endswith("/filter")]

    return {
        "route_count": str(len(SERVICE_ROUTES)),
        "base_path": BASE_PATH,
        "health": str(len(health_routes)),
        "terms": str(len(term_routes)),
        "filters": str(len(filter_routes)),
        "resources": str(len(ContractResource) + len(TERM_RESOURCES)),
        "methods": "GET,POST,PUT,DELETE",
        "public_count": str(sum(1 for r in SERVICE_ROUTES if not r["auth_required"])),
        "protected_count": str(sum(1 for r in SERVICE_ROUTES if r["auth_required"])),
        "event_stream": ContractStreamConfig.STREAM_NAME,
    }


SERVICE_METADATA = {
    "service_name": "contract_service",
    "version": "1.0.0",
    "tags": ["v1", "contract-microservice", "contract-management"],
    "capabilities": [
        "contract_management",
        "term_templates",
        "term_validation",
        "dynamic_terms",
        "status_history",
        "filtering"
    ]
}
