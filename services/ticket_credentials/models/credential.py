"""Modelos Pydantic para emisión de credenciales QR"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from services.ticket_validation.models.ticket import EventSummary


class IssueCredentialRequest(BaseModel):
    confirmation_code: Optional[str] = Field(None, alias="confirmationCode", max_length=64)

    class Config:
        populate_by_name = True


class IssueCredentialResponse(BaseModel):
    qr_payload: str = Field(..., alias="qrPayload")
    expires_at: datetime = Field(..., alias="expiresAt")
    status: str
    refresh_after_seconds: int = Field(..., alias="refreshAfterSeconds")
    qr_image: Optional[str] = Field(None, alias="qrImage")  # data:image/png;base64,...

    class Config:
        populate_by_name = True


class ConfirmedTicket(BaseModel):
    id: str
    confirmation_code: str = Field(..., alias="confirmationCode")
    holder_name: str = Field(..., alias="holderName")
    quantity: int
    price_per_ticket: float = Field(..., alias="pricePerTicket")
    total_paid: float = Field(..., alias="totalPaid")
    status: str
    used_at: Optional[datetime] = Field(None, alias="usedAt")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True


class ConfirmationResponse(BaseModel):
    ticket: ConfirmedTicket
    gig: Optional[EventSummary] = None
