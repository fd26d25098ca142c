"""
app/schemas/sequences.py

Pydantic models for email sequence administration and unsubscribe.
"""

from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict


class EmailSequence(BaseModel):
    id: str
    guide_id: str
    lead_email: str
    lead_first_name: Optional[str] = None
    lead_city: Optional[str] = None
    persona: str
    sequence_step: int
    email_type: str
    scheduled_for: datetime
    sent_at: Optional[datetime] = None
    status: str
    error_message: Optional[str] = None
    created_at: datetime


class SequenceListResponse(BaseModel):
    sequences: List[EmailSequence]
    total: int
    limit: int
    offset: int


class SequenceStatsResponse(BaseModel):
    total: int
    scheduled: int
    sent: int
    failed: int
    cancelled: int
    by_persona: Dict[str, int]


class SequenceUpdateRequest(BaseModel):
    # Free string: unknown values are answered with 400 "Invalid status"
    status: Optional[str] = None
    scheduled_for: Optional[datetime] = None


class TriggerSequenceRequest(BaseModel):
    guide_id: str = Field(..., min_length=1)
    lead_email: EmailStr
    lead_first_name: str = Field(..., min_length=1, max_length=100)
    persona: str = Field(..., min_length=1)
    lead_city: Optional[str] = Field(default=None, max_length=100)


class TriggerSequenceResponse(BaseModel):
    success: bool
    sequence_ids: List[str]


class ProcessResponse(BaseModel):
    sent: int
    failed: int


class SetupTemplatesResponse(BaseModel):
    success: bool
    created: int
    deleted: int
    errors: List[str]


class UnsubscribeRequest(BaseModel):
    token: str = Field(..., min_length=1)


class UnsubscribeResponse(BaseModel):
    success: bool
    message: str
    cancelled: int


class UnsubscribeInfoResponse(BaseModel):
    email: str
    active_sequences: int
    personas: List[str]
