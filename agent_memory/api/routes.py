"""API routes for short-term, long-term, extraction, and service operations."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Query, Request

from ..core.schemas import ServiceConfig
from ..memory.orchestrator import MemoryOrchestrator
from .schemas import (
    ApiResponse,
    CreateServiceRequest,
    ExtractRequest,
    StoreLongTermRequest,
    StoreShortTermRequest,
    UpdateServiceRequest,
)

logger = structlog.get_logger()
router = APIRouter(tags=["memory"])


def get_orchestrator(request: Request) -> MemoryOrchestrator:
    """Get memory orchestrator from app state."""
    return request.app.state.orchestrator


def _service_payload(config: ServiceConfig) -> dict:
    return config.model_dump(mode="json", by_alias=True)


@router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(UTC).isoformat()}


# ---- Short-term memory ----


@router.post("/memory/short-term/store", response_model=ApiResponse, response_model_exclude_none=True)
async def store_short_term(
    body: StoreShortTermRequest,
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
):
    """Append a turn to its session transcript; extraction may be scheduled in the background."""
    result = await orchestrator.store_short_term(body.service_id, body.data)
    return ApiResponse(success=True, data=result)


@router.get("/memory/short-term/retrieve", response_model=ApiResponse, response_model_exclude_none=True)
async def retrieve_short_term(
    service_id: str = Query(min_length=1),
    session_id: str = Query(min_length=1),
    limit: int | None = Query(default=None, ge=1),
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
):
    session = await orchestrator.read_short_term(service_id, session_id, limit=limit)
    return ApiResponse(
        success=True,
        data={
            "session_id": session.session_id,
            "metadata": session.metadata.model_dump(mode="json"),
            "messages": [m.model_dump(mode="json", exclude_none=True) for m in session.messages],
            "count": len(session.messages),
        },
    )


# ---- Long-term memory ----


@router.post("/memory/long-term/store", response_model=ApiResponse, response_model_exclude_none=True)
async def store_long_term(
    body: StoreLongTermRequest,
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
):
    record = await orchestrator.store_long_term(body.service_id, body.user_id, body.bucket_name, body.data)
    return ApiResponse(
        success=True,
        data={"id": record.record_id, "bucket": record.category, "stored_at": record.created_at},
    )


@router.get("/memory/long-term/retrieve", response_model=ApiResponse, response_model_exclude_none=True)
async def retrieve_long_term(
    service_id: str = Query(min_length=1),
    user_id: str = Query(min_length=1),
    bucket_name: str | None = Query(default=None),
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
):
    memories = await orchestrator.read_long_term(service_id, user_id, category=bucket_name)
    return ApiResponse(
        success=True,
        data={
            "user_id": user_id,
            "memories": {
                category: [r.model_dump(mode="json", exclude_none=True) for r in records]
                for category, records in memories.items()
            },
        },
    )


# ---- Extraction ----


@router.post("/memory/extract", response_model=ApiResponse, response_model_exclude_none=True)
async def extract(
    body: ExtractRequest,
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
):
    """Run one extraction cycle inline and return its report."""
    report = await orchestrator.run_extraction(body.service_id, body.session_id, body.user_id)
    return ApiResponse(success=report.success, data=report.to_dict(), error=report.error)


# ---- Services ----


@router.post("/services", response_model=ApiResponse, response_model_exclude_none=True)
async def create_service(
    body: CreateServiceRequest,
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
):
    config = await orchestrator.services.create(ServiceConfig.model_validate(body.model_dump()))
    return ApiResponse(success=True, data=_service_payload(config))


@router.get("/services", response_model=ApiResponse, response_model_exclude_none=True)
async def list_services(orchestrator: MemoryOrchestrator = Depends(get_orchestrator)):
    configs = await orchestrator.services.list()
    return ApiResponse(success=True, data=[_service_payload(c) for c in configs])


@router.get("/services/{service_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def get_service(service_id: str, orchestrator: MemoryOrchestrator = Depends(get_orchestrator)):
    config = await orchestrator.services.get(service_id)
    return ApiResponse(success=True, data=_service_payload(config))


@router.put("/services/{service_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def update_service(
    service_id: str,
    body: UpdateServiceRequest,
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
):
    patch = body.model_dump(mode="json", by_alias=True, exclude_unset=True)
    config = await orchestrator.services.update(service_id, patch)
    return ApiResponse(success=True, data=_service_payload(config))


@router.delete("/services/{service_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def delete_service(service_id: str, orchestrator: MemoryOrchestrator = Depends(get_orchestrator)):
    await orchestrator.services.delete(service_id)
    logger.info("service_delete_requested", service_id=service_id)
    return ApiResponse(success=True, data={"id": service_id, "deleted": True})
