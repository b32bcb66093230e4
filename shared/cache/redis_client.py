"""Cliente Redis: cache de tickets y estadísticas por evento"""
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
import json
from typing import Optional, Dict
from uuid import UUID
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None
redis_pool: Optional[ConnectionPool] = None

EVENT_TICKETS_KEY = "tickets:event:{event_id}"


async def init_redis():
    """Crear el pool compartido por los workers de la API"""
    global redis_client, redis_pool

    redis_pool = ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=20,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    redis_client = redis.Redis(connection_pool=redis_pool)

    try:
        await redis_client.ping()
        logger.info(f"Redis connected: {settings.REDIS_URL.split('@')[-1]}")
    except redis.RedisError as e:
        # El API arranca igual; /ready reporta el fallo
        logger.error(f"Error connecting to Redis: {e}")


async def get_redis() -> redis.Redis:
    if redis_client is None:
        await init_redis()
    return redis_client


def set_redis(client: Optional[redis.Redis]):
    """Reemplazar el cliente (tests con fakeredis)"""
    global redis_client
    redis_client = client


async def close_redis():
    global redis_client, redis_pool
    if redis_client:
        await redis_client.aclose()
        redis_client = None
    if redis_pool:
        await redis_pool.disconnect()
        redis_pool = None
    logger.info("Redis disconnected")


def event_tickets_key(event_id: UUID) -> str:
    return EVENT_TICKETS_KEY.format(event_id=event_id)


async def get_cached_event_tickets(event_id: UUID) -> Optional[Dict]:
    """Listado + stats de un evento si sigue en cache"""
    redis_conn = await get_redis()
    value = await redis_conn.get(event_tickets_key(event_id))
    if value is None:
        return None
    return json.loads(value)


async def cache_event_tickets(event_id: UUID, data: Dict, expire: Optional[int] = None):
    """Guardar por STATS_CACHE_SECONDS; es una vista corta, no la fuente de verdad"""
    redis_conn = await get_redis()
    await redis_conn.setex(
        event_tickets_key(event_id),
        expire or settings.STATS_CACHE_SECONDS,
        json.dumps(data),
    )


async def invalidate_event_tickets(event_id: UUID):
    """Llamado tras cada admisión para que el scanner resincronice datos frescos"""
    redis_conn = await get_redis()
    await redis_conn.delete(event_tickets_key(event_id))
