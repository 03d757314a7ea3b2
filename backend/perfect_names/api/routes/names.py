"""Name resolution endpoints."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from perfect_names.api.dependencies import get_resolution_context, get_resolution_service
from perfect_names.services.resolver import (
    NameResolutionService,
    ResolutionContext,
    ResolveOptions,
)
from perfect_names.services.validation import (
    validate_api_address_param,
    validate_api_batch_params,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class BatchResolveRequest(BaseModel):
    """Batch resolution request body."""

    addresses: Optional[Any] = None
    ensEnabled: bool = True
    baseNamesEnabled: bool = True


class MaintenanceRequest(BaseModel):
    """Maintenance request body."""

    refreshWithin: float = Field(0.0, ge=0)


@router.get("/resolve-name")
async def resolve_name(
    address: Optional[str] = Query(None),
    ensEnabled: bool = Query(True),
    baseNamesEnabled: bool = Query(True),
    service: NameResolutionService = Depends(get_resolution_service),
):
    """Resolve the display name of one address."""
    validation = validate_api_address_param(address)
    if not validation.is_valid:
        return JSONResponse(
            status_code=400,
            content={"name": None, "source": None, "error": validation.error},
        )

    resolved = await service.resolve(
        validation.normalized,
        ResolveOptions(ens_enabled=ensEnabled, basenames_enabled=baseNamesEnabled),
    )
    return resolved.to_dict()


@router.post("/batch-resolve")
async def batch_resolve(
    request: BatchResolveRequest,
    context: ResolutionContext = Depends(get_resolution_context),
):
    """Resolve display names for many addresses."""
    validation = validate_api_batch_params(
        request.addresses,
        max_batch_size=context.settings.batch_size_limit,
    )
    if not validation.is_valid:
        return JSONResponse(
            status_code=400,
            content={"results": {}, "error": validation.error},
        )

    batch = await context.service.resolve_batch(
        validation.addresses,
        ResolveOptions(
            ens_enabled=request.ensEnabled,
            basenames_enabled=request.baseNamesEnabled,
        ),
    )

    return {
        "results": {address: resolved.to_dict() for address, resolved in batch.results.items()},
        "totalRequested": len(validation.addresses),
        "cached": batch.cached,
        "resolved": batch.resolved,
    }


@router.get("/names/stats")
async def name_stats(service: NameResolutionService = Depends(get_resolution_service)):
    """Cache, circuit breaker and error history statistics."""
    return service.get_stats()


@router.post("/names/maintenance")
async def name_maintenance(
    request: Optional[MaintenanceRequest] = None,
    service: NameResolutionService = Depends(get_resolution_service),
):
    """Drop expired cache entries and stale error history."""
    refresh_within = request.refreshWithin if request else 0.0
    result = await service.maintenance(refresh_within=refresh_within)
    logger.info(f"Name cache maintenance: {result}")
    return result
