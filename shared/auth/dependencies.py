"""Dependencies de autenticación para FastAPI"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional, Dict
from shared.auth.jwt_handler import decode_token, claims_to_user


security = HTTPBearer()

SCANNER_ROLES = ('scanner', 'admin', 'coordinator')


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Dict:
    '''Obtener usuario actual desde token JWT'''
    payload = decode_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Invalid or expired token',
            headers={'WWW-Authenticate': 'Bearer'},
        )

    user = claims_to_user(payload)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Invalid token: missing user id',
        )

    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False))
) -> Optional[Dict]:
    '''Obtener usuario opcional (para endpoints públicos)'''
    if not credentials:
        return None

    payload = decode_token(credentials.credentials)
    if payload is None:
        return None

    return claims_to_user(payload)


def is_scanner(user: Dict) -> bool:
    '''Roles de staff que pueden escanear cualquier evento'''
    return user.get('role') in SCANNER_ROLES
