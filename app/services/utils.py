
import httpx
from contextlib import asynccontextmanager
from typing import Optional
from aiolimiter import AsyncLimiter
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

@asynccontextmanager
async def backoff_client(transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 20):
    async with httpx.AsyncClient(transport=transport, timeout=timeout) as client:
        yield client

def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return isinstance(exc, httpx.TransportError)

async def limited_get(
    client: httpx.AsyncClient,
    limiter: AsyncLimiter,
    url: str,
    max_attempts: int = 4,
    **kwargs,
) -> httpx.Response:
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(is_retryable),
        wait=wait_exponential(multiplier=0.5, min=1, max=8),
        stop=stop_after_attempt(max(1, max_attempts)),
        reraise=True,
    ):
        with attempt:
            async with limiter:
                resp = await client.get(url, **kwargs)
            resp.raise_for_status()
            return resp
