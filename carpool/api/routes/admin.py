"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health    -- simple health check
POST /api/v1/admin/reconcile -- run one reconciliation tick now
"""

from fastapi import APIRouter, Depends, Request

from carpool.api.dependencies import get_services
from carpool.api.middleware import limiter
from carpool.api.schemas import HealthResponse, ReconciliationResponse
from carpool.container import Services

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(services: Services = Depends(get_services)):
    return HealthResponse(worker_running=services.worker.running)


@router.post(
    "/reconcile",
    response_model=ReconciliationResponse,
    summary="Run a reconciliation tick immediately",
)
@limiter.limit("10/minute")
async def reconcile(
    request: Request,
    services: Services = Depends(get_services),
):
    return ReconciliationResponse.model_validate(await services.worker.run_once())
