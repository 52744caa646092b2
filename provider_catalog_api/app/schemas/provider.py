"""
Pydantic models for provider data.

``ProviderRequest`` is the body accepted by ``POST /api/providers`` and
``PUT /api/providers/{id}``.  Its fields are optional at the schema
level; missing or malformed values are reported by
``core.validation.PROVIDER_RULES`` together with every other
violation.  ``ProviderRead`` is the view returned by the API and
cached in the ``providers_list`` snapshot; it embeds a summary of the
provider's services, which is why any service write has to invalidate
the providers snapshot too.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ProviderRequest(BaseModel):
    """Schema for creating or updating a provider."""

    name: Optional[str] = Field(None, examples=["Jane Doe"])
    email: Optional[str] = Field(None, examples=["jane@acme.com"])
    phone: Optional[str] = Field(None, examples=["+15551234567"])
    address: Optional[str] = Field(None, examples=["123 Main St"])


class ProviderServiceSummary(BaseModel):
    """A service as embedded in the provider read view."""

    id: int
    name: str
    description: Optional[str]
    price: str
    created_at: str
    updated_at: str


class ProviderRead(BaseModel):
    """Schema for reading a provider from the API."""

    id: int
    name: str
    email: str
    phone: Optional[str]
    address: Optional[str]
    created_at: str
    updated_at: str
    services: List[ProviderServiceSummary] = []

    model_config = {
        "from_attributes": True,
    }
