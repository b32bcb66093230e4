"""Utilidades para retry con backoff exponencial"""
import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
) -> T:
    """
    Ejecutar corrutina con retry y backoff exponencial

    Solo para operaciones idempotentes (lecturas, verify); nunca para admit.

    Args:
        func: Función async sin argumentos a ejecutar
        max_retries: Número máximo de reintentos
        initial_delay: Delay inicial en segundos
        max_delay: Delay máximo en segundos
        exponential_base: Base para cálculo exponencial
        exceptions: Excepciones que deben trigger retry

    Returns:
        Resultado de la función
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except exceptions as e:
            if attempt == max_retries:
                raise
            logger.warning(f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. Retrying in {delay:.1f}s")
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)

    raise RuntimeError("Max retries exceeded")
