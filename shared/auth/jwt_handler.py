"""Manejo de JWT tokens"""
from typing import Optional, Dict
from jose import JWTError, jwt
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def decode_token(token: str) -> Optional[Dict]:
    '''Decodificar y validar token JWT'''
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None


def claims_to_user(payload: Dict) -> Optional[Dict]:
    '''Normalizar claims del token al dict de usuario usado por las rutas'''
    user_id = payload.get('sub') or payload.get('user_id')
    if not user_id:
        return None

    role = payload.get('role') or payload.get('app_metadata', {}).get('role', 'user')
    return {
        'user_id': str(user_id),
        'email': payload.get('email'),
        'role': role,
    }
