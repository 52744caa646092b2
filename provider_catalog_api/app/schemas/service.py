"""
Pydantic models for service data.

Clients send ``providerId`` in camelCase; the model stores it as
``provider_id`` and dumps it back under the alias.  Prices are accepted
as JSON numbers or strings and rendered as fixed-point strings with two
fractional digits (``"10.50"``).
"""

from typing import Optional, Union

from pydantic import BaseModel, Field


class ServiceRequest(BaseModel):
    """Schema for creating a service."""

    name: Optional[str] = Field(None, examples=["Plumbing inspection"])
    description: Optional[str] = Field(None, examples=["Full inspection of pipes and fittings"])
    price: Optional[Union[str, int, float]] = Field(None, examples=["49.90"])
    provider_id: Optional[int] = Field(None, alias="providerId", examples=[1])

    model_config = {
        "populate_by_name": True,
    }


class ServiceUpdateRequest(BaseModel):
    """Schema for updating a service.

    The owning provider is fixed at creation, so there is no
    ``providerId`` here; if a client sends one it is ignored.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Union[str, int, float]] = None


class ServiceProviderSummary(BaseModel):
    """The owning provider as embedded in the service read view."""

    id: int
    name: str
    email: str
    phone: Optional[str]
    address: Optional[str]


class ServiceRead(BaseModel):
    """Schema for reading a service from the API."""

    id: int
    name: str
    description: Optional[str]
    price: str
    provider: ServiceProviderSummary
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }
