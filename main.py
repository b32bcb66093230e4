"""API Gateway principal - Punto de entrada de la aplicación"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.responses import JSONResponse
import logging
from contextlib import asynccontextmanager

from app.core.config import settings
from shared.database import connection
from shared.database.connection import init_db, close_db
from shared.cache.redis_client import init_redis, close_redis, get_redis
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler
from services.ticket_validation.routes.validation import router as validation_router
from services.ticket_credentials.routes.credentials import router as credentials_router

# Configurar logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events de la aplicación"""
    logger.info("Starting ticket check-in API...")
    await init_db()
    await init_redis()
    logger.info("Ticket check-in API started")
    yield
    logger.info("Shutting down ticket check-in API...")
    await close_db()
    await close_redis()
    logger.info("Ticket check-in API stopped")


app = FastAPI(
    title="Ticket Check-in API",
    description="Rotating QR credentials and door check-in for concert tickets",
    version="1.0.0",
    lifespan=lifespan
)

# CORS antes de rate limiting
if settings.APP_ENV == "development":
    logger.info("Development mode: CORS allows all origins")
    allow_origins = ["*"]
    allow_credentials = False  # No se puede usar credentials con allow_origins=["*"]
else:
    allow_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    allow_credentials = True
    logger.info(f"CORS origins: {allow_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.include_router(credentials_router, prefix="/api/v1/tickets", tags=["credentials"])
app.include_router(validation_router, prefix="/api/v1/tickets", tags=["validation"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "ticket-checkin-api"}


@app.get("/ready")
async def ready():
    """Ready check endpoint - verifica conexiones"""
    try:
        async with connection.async_session_maker() as session:
            await session.execute(text("SELECT 1"))

        redis = await get_redis()
        await redis.ping()
    except Exception as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e)})

    return {"status": "ready", "database": "connected", "redis": "connected"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
