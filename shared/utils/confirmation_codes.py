"""Generación de códigos de confirmación legibles"""
import secrets
from typing import Optional

from app.core.config import settings

# Sin 0/O/1/I para evitar confusiones al dictarlo
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6


def generate_confirmation_code(prefix: Optional[str] = None) -> str:
    """Código tipo TAM-ABC123"""
    prefix = prefix or settings.CONFIRMATION_CODE_PREFIX
    code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    return f"{prefix}-{code}"
