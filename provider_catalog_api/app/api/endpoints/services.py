"""
Service endpoints.

Services always belong to a provider: ``POST /api/services`` requires
``providerId`` and answers 404 when it is unknown.  The provider
cannot be changed through ``PUT``.
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from provider_catalog_api.app.api.dependencies import get_service_service
from provider_catalog_api.app.schemas.service import (
    ServiceRead,
    ServiceRequest,
    ServiceUpdateRequest,
)
from provider_catalog_api.app.services.service_service import ServiceService

router = APIRouter()


@router.get("/services", response_model=List[ServiceRead])
async def list_services(
    service: ServiceService = Depends(get_service_service),
) -> Response:
    """Return all services with a summary of their provider."""
    snapshot = await service.list_services()
    return Response(content=snapshot, media_type="application/json")


@router.post("/services", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def create_service(
    service_in: ServiceRequest,
    service: ServiceService = Depends(get_service_service),
) -> ServiceRead:
    return await service.create_service(service_in)


@router.put("/services/{service_id}", response_model=ServiceRead)
async def update_service(
    service_id: int,
    service_in: ServiceUpdateRequest,
    service: ServiceService = Depends(get_service_service),
) -> ServiceRead:
    return await service.update_service(service_id, service_in)


@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: int,
    service: ServiceService = Depends(get_service_service),
) -> None:
    await service.delete_service(service_id)
    return None
