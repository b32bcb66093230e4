"""Modelos SQLAlchemy para eventos y tickets"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from shared.database.connection import Base


TICKET_STATUSES = ("valid", "used", "cancelled", "expired")


class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    location_text = Column(String, nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    created_by_user_id = Column(String, nullable=True, index=True)  # Host que puede escanear su evento
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relaciones
    tickets = relationship("Ticket", back_populates="event")


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)  # NULL para compras como invitado
    email = Column(String, nullable=False, index=True)
    holder_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price_per_ticket = Column(Numeric(12, 2), nullable=False, server_default="0")
    total_paid = Column(Numeric(12, 2), nullable=False, server_default="0")
    status = Column(String, nullable=False, server_default="valid", index=True)  # valid, used, cancelled, expired
    confirmation_code = Column(String, unique=True, index=True, nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)  # Solo se asigna una vez
    scanned_by_user_id = Column(String, nullable=True)  # Usuario que admitió el ticket
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relaciones
    event = relationship("Event", back_populates="tickets")
