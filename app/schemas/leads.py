"""
app/schemas/leads.py

Pydantic models for lead capture forms and admin lead management.
"""

from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Literal, List, Dict, Any


class GuideLeadRequest(BaseModel):
    """Guide download form."""

    first_name: str = Field(..., min_length=2, max_length=100, description="Prénom")
    email: EmailStr
    city: str = Field(..., min_length=2, max_length=100)
    guide_slug: str = Field(..., min_length=1, max_length=200)
    persona: Optional[str] = Field(default=None, description="Overrides the guide persona for the email sequence")
    accept_terms: bool = Field(..., description="Must be true")

    @field_validator("first_name", "city")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Au moins 2 caractères")
        return v

    @field_validator("accept_terms")
    @classmethod
    def terms_accepted(cls, v: bool) -> bool:
        if v is not True:
            raise ValueError("Vous devez accepter les conditions")
        return v


class FinancingLeadRequest(BaseModel):
    """Financing form."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=30)
    financing_project_type: str = Field(..., min_length=1, max_length=100, description="e.g. achat, rachat de crédit")
    project_amount: str = Field(..., min_length=1, max_length=50)


class Lead(BaseModel):
    id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    property_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    surface: Optional[float] = None
    rooms: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    has_garden: Optional[bool] = None
    has_parking: Optional[bool] = None
    has_balcony: Optional[bool] = None
    construction_year: Optional[int] = None
    estimated_value: Optional[float] = None
    financing_project_type: Optional[str] = None
    project_amount: Optional[str] = None
    source: Optional[str] = None
    lead_type: Optional[str] = None
    status: str
    consent_at: Optional[datetime] = None
    consent_source: Optional[str] = None
    guide_slug: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class GuideLeadResponse(BaseModel):
    success: bool
    message: str
    lead: Lead
    lead_token: str


class FinancingLeadResponse(BaseModel):
    success: bool
    message: str
    lead: Lead


class LeadListResponse(BaseModel):
    leads: List[Lead]
    total: int
    limit: int
    offset: int


class LeadStatusUpdate(BaseModel):
    status: Literal["new", "contacted", "converted", "archived"]
    notes: Optional[str] = Field(default=None, max_length=2000)


class LeadContextResponse(BaseModel):
    lead_id: str
    context: Dict[str, Any]
