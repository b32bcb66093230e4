"""
Rate limiting con slowapi

Los contadores viven en Redis para que todas las instancias del API y todas
las puertas del recinto compartan el mismo límite.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from starlette.responses import JSONResponse
import logging

from app.core.config import settings
from shared.auth.jwt_handler import decode_token

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """IP del cliente detrás del proxy del recinto / load balancer"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """
    Clave de rate limiting

    Los scanners comparten la red del recinto, así que con token válido se
    limita por usuario; las vistas públicas del titular, por IP.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        payload = decode_token(auth_header[len("Bearer "):])
        subject = payload and (payload.get("sub") or payload.get("user_id"))
        if subject:
            return f"user:{subject}"

    return f"ip:{get_real_client_ip(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    storage_uri=settings.rate_limit_storage,
    strategy="fixed-window",
    headers_enabled=False,  # Deshabilitado para compatibilidad con response_model de FastAPI
)
logger.info(f"Rate limiter storage: {settings.rate_limit_storage.split('@')[-1]}")


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    retry_after = exc.limit.limit.get_expiry()

    logger.warning(
        f"Rate limit exceeded - key: {get_user_identifier(request)}, "
        f"path: {request.url.path}, limit: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Too many requests. Please wait before trying again.",
            "retry_after_seconds": retry_after,
        },
        headers={"Retry-After": str(retry_after)}
    )


RATE_LIMITS = {
    # Verify + admit desde un dispositivo de puerta
    "validation": "120/minute",

    # Emisión de QR y consulta por código: una vista abierta pide ~3/min
    "public": "60/minute",

    # Listado/estadísticas del evento (resync del scanner)
    "stats": "30/minute",
}
