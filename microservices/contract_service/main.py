"""
Contract Service - Main Application

Contract management microservice: contracts and their satellite resources,
term templates with validation rules, and dynamic terms validated against
those rules.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List, Optional, Type
from uuid import UUID

from fastapi import Body, FastAPI, Header, HTTPException, Path, Query, Response
from pydantic import BaseModel

from core.config_manager import ConfigManager
from core.consul_registry import ConsulRegistry
from core.filtering import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    FilterRequest,
    InvalidFilterError,
    PaginationRequest,
    PaginationResponse,
)
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from core.postgres_client import close_postgres_clients

from .factory import create_contract_service, create_contract_term_service
from .models import (
    Contract,
    ContractCreateRequest,
    ContractDocument,
    ContractDocumentCreateRequest,
    ContractDocumentUpdateRequest,
    ContractEvent,
    ContractEventCreateRequest,
    ContractEventUpdateRequest,
    ContractParty,
    ContractPartyCreateRequest,
    ContractPartyUpdateRequest,
    ContractResource,
    ContractRiskAssessment,
    ContractRiskAssessmentCreateRequest,
    ContractRiskAssessmentUpdateRequest,
    ContractStatusHistory,
    ContractStatusHistoryCreateRequest,
    ContractStatusHistoryUpdateRequest,
    ContractUpdateRequest,
    DynamicTerm,
    DynamicTermCreateRequest,
    DynamicTermUpdateRequest,
    RejectionCode,
    TermTemplate,
    TermTemplateCreateRequest,
    TermTemplateUpdateRequest,
    ValidateTermRequest,
    ValidationRule,
    ValidationRuleCreateRequest,
    ValidationRuleUpdateRequest,
    ValidationVerdict,
)
from .protocols import (
    ContractServiceValidationError,
    DuplicateTemplateCodeError,
    NotFoundError,
    OpenIntervalConflictError,
    RuleConfigurationError,
    TermRejectedError,
    TermValueMismatchError,
)
from .routes_registry import SERVICE_METADATA, get_routes_for_consul

# Initialize config
config_manager = ConfigManager("contract_service")
config = config_manager.get_service_config()
settings = config_manager.settings

# Setup logger
app_logger = setup_service_logger("contract_service")
logger = app_logger

ADMIN_OVERRIDE_HEADER = settings.admin_override_header


# Service instance
class ContractMicroservice:
    def __init__(self):
        self.term_service = None
        self.contract_service = None
        self.event_bus = None

    async def initialize(self):
        # Initialize event bus
        if config.nats_enabled:
            try:
                self.event_bus = await get_event_bus("contract_service", config=config_manager)
                logger.info("Event bus initialized successfully")
            except Exception as e:
                logger.warning(
                    f"Failed to initialize event bus: {e}. Continuing without event publishing."
                )
                self.event_bus = None

        # Create services with real dependencies using factory
        self.term_service = create_contract_term_service(config=config_manager, event_bus=self.event_bus)
        self.contract_service = create_contract_service(config=config_manager, event_bus=self.event_bus)
        logger.info("Contract service initialized")

    async def shutdown(self):
        if self.event_bus:
            try:
                await self.event_bus.close()
                logger.info("Contract event bus closed")
            except Exception as e:
                logger.error(f"Error closing event bus: {e}")
        try:
            await close_postgres_clients()
        except Exception as e:
            logger.error(f"Error closing PostgreSQL pools: {e}")
        logger.info("Contract service shutting down")


# Global instance
contract_microservice = ContractMicroservice()
consul_registry: Optional[ConsulRegistry] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    global consul_registry

    # Startup
    await contract_microservice.initialize()

    # Consul registration
    if config.consul_enabled:
        try:
            route_meta = get_routes_for_consul()
            consul_meta = {
                "version": SERVICE_METADATA["version"],
                "capabilities": ",".join(SERVICE_METADATA["capabilities"]),
                **route_meta,
            }

            consul_registry = ConsulRegistry(
                service_name=SERVICE_METADATA["service_name"],
                service_port=config.service_port,
                consul_host=config.consul_host,
                consul_port=config.consul_port,
                service_host=config.service_host,
                tags=SERVICE_METADATA["tags"],
                meta=consul_meta,
            )
            if consul_registry.register():
                consul_registry.start_maintenance()
                logger.info(f"Service registered with Consul: {route_meta.get('route_count')} routes")
            else:
                consul_registry = None
        except Exception as e:
            logger.warning(f"Failed to register with Consul: {e}")
            consul_registry = None

    yield

    # Shutdown
    if consul_registry:
        consul_registry.stop_maintenance()
        consul_registry.deregister()

    await contract_microservice.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Contract Service",
    description="Contract management with dynamic, rule-validated contract terms",
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Error mapping
# =============================================================================


def http_error(error: Exception, rule_config_status: int = 422) -> HTTPException:
    """
    Map a service exception to its HTTP response.

    A broken validation rule is the server's configuration problem while
    validating (422) but the caller's mistake while writing the rule (400).
    """
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, TermRejectedError):
        status = 409 if error.reason.code == RejectionCode.OPEN_TERM_CONFLICT else 400
        return HTTPException(status_code=status, detail=error.reason.model_dump(mode="json"))
    if isinstance(error, RuleConfigurationError):
        return HTTPException(
            status_code=rule_config_status,
            detail={
                "message": error.message,
                "validation_rule_id": str(error.validation_rule_id) if error.validation_rule_id else None,
            },
        )
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (DuplicateTemplateCodeError, OpenIntervalConflictError)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (ContractServiceValidationError, TermValueMismatchError, InvalidFilterError)):
        return HTTPException(status_code=400, detail=str(error))

    logger.error(f"Unhandled contract service error: {error}", exc_info=error)
    return HTTPException(status_code=500, detail="Internal server error")


def _is_admin_override(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/v1/contracts/health")
@app.get("/health")
async def health_check():
    """Service health check"""
    return {"status": "healthy", "service": "contract_service", "version": "1.0.0"}


# =============================================================================
# Term Template Endpoints
# =============================================================================


@app.post("/api/v1/contract-term-templates", response_model=TermTemplate, status_code=201)
async def create_term_template(request: TermTemplateCreateRequest = Body(...)):
    """Create a term template; its code must be unique"""
    try:
        return await contract_microservice.term_service.create_template(request)
    except Exception as e:
        raise http_error(e)


@app.post("/api/v1/contract-term-templates/filter", response_model=PaginationResponse[TermTemplate])
async def filter_term_templates(request: FilterRequest = Body(...)):
    try:
        return await contract_microservice.term_service.filter_templates(request)
    except Exception as e:
        raise http_error(e)


@app.get("/api/v1/contract-term-templates/by-code/{code}", response_model=TermTemplate)
async def get_term_template_by_code(code: str = Path(..., description="Template code")):
    try:
        return await contract_microservice.term_service.get_template_by_code(code)
    except Exception as e:
        raise http_error(e)


@app.get("/api/v1/contract-term-templates/{term_template_id}", response_model=TermTemplate)
async def get_term_template(term_template_id: UUID = Path(...)):
    try:
        return await contract_microservice.term_service.get_template(term_template_id)
    except Exception as e:
        raise http_error(e)


@app.put("/api/v1/contract-term-templates/{term_template_id}", response_model=TermTemplate)
async def update_term_template(
    term_template_id: UUID = Path(...),
    request: TermTemplateUpdateRequest = Body(...),
):
    """Update a term template; the code cannot change"""
    try:
        return await contract_microservice.term_service.update_template(term_template_id, request)
    except Exception as e:
        raise http_error(e)


@app.delete("/api/v1/contract-term-templates/{term_template_id}", status_code=204)
async def delete_term_template(term_template_id: UUID = Path(...)):
    """Delete a term template together with its validation rules"""
    try:
        await contract_microservice.term_service.delete_template(term_template_id)
        return Response(status_code=204)
    except Exception as e:
        raise http_error(e)


@app.get(
    "/api/v1/contract-term-templates/{term_template_id}/validation-rules",
    response_model=List[ValidationRule],
)
async def list_template_validation_rules(term_template_id: UUID = Path(...)):
    try:
        return await contract_microservice.term_service.list_rules(term_template_id)
    except Exception as e:
        raise http_error(e)


@app.post("/api/v1/contract-term-templates/{term_template_id}/validate", response_model=ValidationVerdict)
async def validate_term_value(
    term_template_id: UUID = Path(...),
    request: ValidateTermRequest = Body(...),
):
    """
    Validate a candidate value against every rule of a template.

    Nothing is stored; the verdict lists every failing rule.
    """
    try:
        return await contract_microservice.term_service.validate_value(term_template_id, request.value)
    except Exception as e:
        raise http_error(e)


# =============================================================================
# Validation Rule Endpoints
# =============================================================================


@app.post("/api/v1/contract-term-validation-rules", response_model=ValidationRule, status_code=201)
async def create_validation_rule(request: ValidationRuleCreateRequest = Body(...)):
    try:
        return await contract_microservice.term_service.create_rule(request)
    except Exception as e:
        raise http_error(e, rule_config_status=400)


@app.post("/api/v1/contract-term-validation-rules/filter", response_model=PaginationResponse[ValidationRule])
async def filter_validation_rules(request: FilterRequest = Body(...)):
    try:
        return await contract_microservice.term_service.filter_rules(request)
    except Exception as e:
        raise http_error(e)


@app.get("/api/v1/contract-term-validation-rules/{validation_rule_id}", response_model=ValidationRule)
async def get_validation_rule(validation_rule_id: UUID = Path(...)):
    try:
        return await contract_microservice.term_service.get_rule(validation_rule_id)
    except Exception as e:
        raise http_error(e)


@app.put("/api/v1/contract-term-validation-rules/{validation_rule_id}", response_model=ValidationRule)
async def update_validation_rule(
    validation_rule_id: UUID = Path(...),
    request: ValidationRuleUpdateRequest = Body(...),
):
    try:
        return await contract_microservice.term_service.update_rule(validation_rule_id, request)
    except Exception as e:
        raise http_error(e, rule_config_status=400)


@app.delete("/api/v1/contract-term-validation-rules/{validation_rule_id}", status_code=204)
async def delete_validation_rule(validation_rule_id: UUID = Path(...)):
    try:
        await contract_microservice.term_service.delete_rule(validation_rule_id)
        return Response(status_code=204)
    except Exception as e:
        raise http_error(e)


# =============================================================================
# Dynamic Term Endpoints
# =============================================================================


@app.post("/api/v1/contract-term-dynamics", response_model=DynamicTerm, status_code=201)
async def propose_dynamic_term(
    request: DynamicTermCreateRequest = Body(...),
    admin_override: Optional[str] = Header(None, alias=ADMIN_OVERRIDE_HEADER),
):
    """
    Propose a new dynamic term for a contract.

    The value is validated against the template's rules. Set ``supersede``
    to expire the current open-ended term at the new effective date.
    """
    try:
        return await contract_microservice.term_service.propose_term(
            request, admin_override=_is_admin_override(admin_override)
        )
    except Exception as e:
        raise http_error(e)


@app.post("/api/v1/contract-term-dynamics/filter", response_model=PaginationResponse[DynamicTerm])
async def filter_dynamic_terms(request: FilterRequest = Body(...)):
    try:
        return await contract_microservice.term_service.filter_terms(request)
    except Exception as e:
        raise http_error(e)


@app.get("/api/v1/contract-term-dynamics/{term_id}", response_model=DynamicTerm)
async def get_dynamic_term(term_id: UUID = Path(...)):
    try:
        return await contract_microservice.term_service.get_term(term_id)
    except Exception as e:
        raise http_error(e)


@app.put("/api/v1/contract-term-dynamics/{term_id}", response_model=DynamicTerm)
async def amend_dynamic_term(
    term_id: UUID = Path(...),
    request: DynamicTermUpdateRequest = Body(...),
):
    """Change expiration date, active flag or notes; the value never changes"""
    try:
        return await contract_microservice.term_service.amend_term(term_id, request)
    except Exception as e:
        raise http_error(e)


@app.delete("/api/v1/contract-term-dynamics/{term_id}", status_code=204)
async def delete_dynamic_term(term_id: UUID = Path(...)):
    try:
        await contract_microservice.term_service.delete_term(term_id)
        return Response(status_code=204)
    except Exception as e:
        raise http_error(e)


@app.get("/api/v1/contracts/{contract_id}/terms/effective", response_model=List[DynamicTerm])
async def get_effective_terms(
    contract_id: UUID = Path(...),
    at: Optional[datetime] = Query(None, description="Point in time (default now)"),
):
    try:
        return await contract_microservice.term_service.get_effective_terms(contract_id, at)
    except Exception as e:
        raise http_error(e)


@app.get("/api/v1/contracts/{contract_id}/terms/{term_template_id}/current", response_model=DynamicTerm)
async def get_current_term(contract_id: UUID = Path(...), term_template_id: UUID = Path(...)):
    try:
        return await contract_microservice.term_service.get_current_term(contract_id, term_template_id)
    except Exception as e:
        raise http_error(e)


# =============================================================================
# Contract Resource Endpoints
# =============================================================================


def register_resource_routes(
    resource: ContractResource,
    model: Type[BaseModel],
    create_request: Type[BaseModel],
    update_request: Type[BaseModel],
) -> None:
    """POST, GET, PUT, DELETE and filter endpoints of one contract resource"""
    base = f"/api/v1/{resource.value}"

    async def create_resource(request: create_request = Body(...)) -> Any:
        try:
            return await contract_microservice.contract_service.create(resource, request)
        except Exception as e:
            raise http_error(e)

    async def filter_resources(request: FilterRequest = Body(...)) -> Any:
        try:
            return await contract_microservice.contract_service.filter(resource, request)
        except Exception as e:
            raise http_error(e)

    async def get_resource(resource_id: UUID = Path(...)) -> Any:
        try:
            return await contract_microservice.contract_service.get(resource, resource_id)
        except Exception as e:
            raise http_error(e)

    async def update_resource(resource_id: UUID = Path(...), request: update_request = Body(...)) -> Any:
        try:
            return await contract_microservice.contract_service.update(resource, resource_id, request)
        except Exception as e:
            raise http_error(e)

    async def delete_resource(resource_id: UUID = Path(...)) -> Response:
        try:
            await contract_microservice.contract_service.delete(resource, resource_id)
            return Response(status_code=204)
        except Exception as e:
            raise http_error(e)

    name = resource.name.lower()
    app.add_api_route(base, create_resource, methods=["POST"], response_model=model,
                      status_code=201, name=f"create_{name}")
    app.add_api_route(f"{base}/filter", filter_resources, methods=["POST"],
                      response_model=PaginationResponse[model], name=f"filter_{name}")
    app.add_api_route(f"{base}/{{resource_id}}", get_resource, methods=["GET"],
                      response_model=model, name=f"get_{name}")
    app.add_api_route(f"{base}/{{resource_id}}", update_resource, methods=["PUT"],
                      response_model=model, name=f"update_{name}")
    app.add_api_route(f"{base}/{{resource_id}}", delete_resource, methods=["DELETE"],
                      status_code=204, name=f"delete_{name}")


register_resource_routes(ContractResource.CONTRACT, Contract, ContractCreateRequest, ContractUpdateRequest)
register_resource_routes(
    ContractResource.CONTRACT_PARTY, ContractParty, ContractPartyCreateRequest, ContractPartyUpdateRequest
)


@app.get("/api/v1/contract-parties", response_model=PaginationResponse[ContractParty])
async def get_contract_parties_by_party(
    party_id: UUID = Query(..., alias="partyId"),
    is_active: bool = Query(True, alias="isActive"),
    page_number: int = Query(0, ge=0),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    """Every contract a party takes part in, active memberships only unless isActive=false"""
    try:
        return await contract_microservice.contract_service.find_parties_by_party(
            party_id,
            is_active=is_active,
            pagination=PaginationRequest(page_number=page_number, page_size=page_size),
        )
    except Exception as e:
        raise http_error(e)


register_resource_routes(
    ContractResource.CONTRACT_EVENT, ContractEvent, ContractEventCreateRequest, ContractEventUpdateRequest
)
register_resource_routes(
    ContractResource.CONTRACT_DOCUMENT, ContractDocument, ContractDocumentCreateRequest, ContractDocumentUpdateRequest
)
register_resource_routes(
    ContractResource.CONTRACT_RISK_ASSESSMENT,
    ContractRiskAssessment,
    ContractRiskAssessmentCreateRequest,
    ContractRiskAssessmentUpdateRequest,
)
register_resource_routes(
    ContractResource.CONTRACT_STATUS_HISTORY,
    ContractStatusHistory,
    ContractStatusHistoryCreateRequest,
    ContractStatusHistoryUpdateRequest,
)


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "microservices.contract_service.main:app",
        host=config.service_host,
        port=config.service_port,
        reload=config.debug,
    )
