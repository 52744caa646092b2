"""
Provider endpoints.

``GET /api/providers`` returns the cached JSON snapshot as-is; the
write endpoints return the affected provider.  Failures are raised by
``ProviderService`` as ``ApiException`` subclasses and rendered by the
handlers in ``core.exceptions``.
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from provider_catalog_api.app.api.dependencies import get_provider_service
from provider_catalog_api.app.schemas.provider import ProviderRead, ProviderRequest
from provider_catalog_api.app.services.provider_service import ProviderService

router = APIRouter()


@router.get("/providers", response_model=List[ProviderRead])
async def list_providers(
    service: ProviderService = Depends(get_provider_service),
) -> Response:
    """Return all providers with a summary of their services."""
    snapshot = await service.list_providers()
    return Response(content=snapshot, media_type="application/json")


@router.post("/providers", response_model=ProviderRead, status_code=status.HTTP_201_CREATED)
async def create_provider(
    provider_in: ProviderRequest,
    service: ProviderService = Depends(get_provider_service),
) -> ProviderRead:
    """Create a provider.

    Returns 400 when a field is invalid and 422 (``DUPLICATE_EMAIL``)
    when another provider already uses the email.
    """
    return await service.create_provider(provider_in)


@router.put("/providers/{provider_id}", response_model=ProviderRead)
async def update_provider(
    provider_id: int,
    provider_in: ProviderRequest,
    service: ProviderService = Depends(get_provider_service),
) -> ProviderRead:
    """Replace a provider's name, email, phone and address."""
    return await service.update_provider(provider_id, provider_in)


@router.delete("/providers/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_provider(
    provider_id: int,
    service: ProviderService = Depends(get_provider_service),
) -> None:
    """Delete a provider and its services."""
    await service.delete_provider(provider_id)
    return None
