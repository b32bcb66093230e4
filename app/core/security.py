from datetime import datetime, timedelta
from typing import Optional
from jose import jwt

from app.core.config import settings


def create_access_token(subject: str, role: str = "user", email: Optional[str] = None,
                        expires_minutes: Optional[int] = None) -> str:
    """Emitir un bearer token local (scripts de prueba y tests)"""
    minutes = expires_minutes or settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.utcnow() + timedelta(minutes=minutes)
    payload = {
        "sub": subject,
        "email": email or f"{subject}@example.com",
        "role": role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
