"""Modelos Pydantic para escaneo y admisión de tickets"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class ScanOutcome(str, Enum):
    VALID = "valid"
    MALFORMED_PAYLOAD = "malformed_payload"
    INVALID_SIGNATURE = "invalid_signature"
    CREDENTIAL_EXPIRED = "credential_expired"
    NOT_FOUND = "not_found"
    WRONG_EVENT = "wrong_event"
    ALREADY_USED = "already_used"
    NOT_ADMITTABLE = "not_admittable"


class ScanCategory(str, Enum):
    OK = "ok"
    CLIENT_RECOVERABLE = "client_recoverable"  # el titular debe refrescar su QR
    OPERATOR_EXPECTED = "operator_expected"  # duplicado, otro evento, cancelado
    HARD = "hard"  # lectura corrupta o credencial ajena


OUTCOME_CATEGORY = {
    ScanOutcome.VALID: ScanCategory.OK,
    ScanOutcome.CREDENTIAL_EXPIRED: ScanCategory.CLIENT_RECOVERABLE,
    ScanOutcome.WRONG_EVENT: ScanCategory.OPERATOR_EXPECTED,
    ScanOutcome.ALREADY_USED: ScanCategory.OPERATOR_EXPECTED,
    ScanOutcome.NOT_ADMITTABLE: ScanCategory.OPERATOR_EXPECTED,
    ScanOutcome.MALFORMED_PAYLOAD: ScanCategory.HARD,
    ScanOutcome.INVALID_SIGNATURE: ScanCategory.HARD,
    ScanOutcome.NOT_FOUND: ScanCategory.HARD,
}


class ScanRequest(BaseModel):
    qr_payload: str = Field(..., alias="qrPayload", min_length=1, max_length=5000)
    event_id: Optional[str] = Field(None, alias="eventId")

    class Config:
        populate_by_name = True


class TicketSummary(BaseModel):
    id: str
    confirmation_code: str = Field(..., alias="confirmationCode")
    holder_name: str = Field(..., alias="holderName")
    quantity: int
    status: str
    used_at: Optional[datetime] = Field(None, alias="usedAt")

    class Config:
        populate_by_name = True


class EventSummary(BaseModel):
    id: str
    title: str
    starts_at: Optional[datetime] = Field(None, alias="startsAt")
    location: Optional[str] = None

    class Config:
        populate_by_name = True


class ScanResponse(BaseModel):
    valid: bool
    outcome: ScanOutcome
    category: ScanCategory
    message: Optional[str] = None
    ticket: Optional[TicketSummary] = None
    gig: Optional[EventSummary] = None
    used_at: Optional[datetime] = Field(None, alias="usedAt")
    rescan_delay_ms: int = Field(0, alias="rescanDelayMs")

    class Config:
        populate_by_name = True


class AdmitResponse(BaseModel):
    success: bool = True
    ticket: TicketSummary


class EventTicketRow(BaseModel):
    id: str
    confirmation_code: str = Field(..., alias="confirmationCode")
    holder_name: str = Field(..., alias="holderName")
    email: str
    quantity: int
    total_paid: float = Field(..., alias="totalPaid")
    status: str
    used_at: Optional[datetime] = Field(None, alias="usedAt")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True


class EventTicketStats(BaseModel):
    """Conteos suman quantity, no filas"""
    total: int
    valid: int
    used: int
    cancelled: int
    revenue: float


class EventTicketsResponse(BaseModel):
    gig: EventSummary
    tickets: List[EventTicketRow]
    stats: EventTicketStats
