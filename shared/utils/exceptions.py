"""Excepciones de dominio para emisión y admisión de tickets"""
from datetime import datetime
from typing import Optional


class TicketError(Exception):
    """Base: los routers la traducen a HTTPException con status_code"""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TicketNotFound(TicketError):
    status_code = 404

    def __init__(self, message: str = "Ticket not found"):
        super().__init__(message)


class TicketNotValid(TicketError):
    """No se emiten credenciales para tickets usados/cancelados/expirados"""
    status_code = 400

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Ticket is {status}")


class AlreadyAdmitted(TicketError):
    status_code = 409

    def __init__(self, used_at: Optional[datetime]):
        self.used_at = used_at
        super().__init__("Ticket is already used")


class NotAdmittable(TicketError):
    status_code = 409

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Ticket is already {status}")
