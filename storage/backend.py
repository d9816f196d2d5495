"""Backend RPC clients for the insert procedures."""

import asyncio
import logging
import re
from typing import Any, Dict, Optional, Protocol

import asyncpg
import httpx
from asyncpg import Pool

from core.errors import WriteError

logger = logging.getLogger(__name__)

# PostgREST status codes worth retrying
TRANSIENT_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}

TRANSIENT_PG_ERRORS = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TransactionRollbackError,
    OSError,
    asyncio.TimeoutError,
)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


class RpcBackend(Protocol):
    """A remote procedure interface taking flat named parameters."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def call(self, procedure: str, params: Dict[str, Any]) -> Any: ...


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a PostgREST error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or str(body)
        details = body.get("details")
        return f"{message} ({details})" if details else message
    return str(body)


class SupabaseRpcClient:
    """
    Supabase PostgREST RPC client.

    Calls `POST {url}/rest/v1/rpc/<procedure>` authenticated with the
    service role key.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.rpc_url = f"{url.rstrip('/')}/rest/v1/rpc"
        self.service_role_key = service_role_key
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

        # Stats
        self._calls = 0
        self._errors = 0

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    async def start(self):
        """Start the Supabase client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        logger.info("Supabase RPC client started")

    async def stop(self):
        """Stop the Supabase client."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Supabase RPC client stopped")

    async def call(self, procedure: str, params: Dict[str, Any]) -> Any:
        """
        Invoke a stored procedure.

        Raises:
            WriteError: transient for timeouts, network errors, 408/429/5xx;
                permanent for any other rejection
        """
        if self._http_client is None:
            raise WriteError("Supabase client not started", procedure=procedure)

        self._calls += 1
        try:
            response = await self._http_client.post(
                f"{self.rpc_url}/{procedure}",
                json=params,
                headers=self.headers,
            )
        except (httpx.TimeoutException, httpx.TransportError) as e:
            self._errors += 1
            raise WriteError(
                f"{type(e).__name__}: {e}", procedure=procedure, transient=True
            ) from e

        if response.status_code >= 400:
            self._errors += 1
            raise WriteError(
                _error_message(response),
                procedure=procedure,
                transient=response.status_code in TRANSIENT_STATUS_CODES,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get_stats(self) -> dict:
        return {"calls": self._calls, "errors": self._errors}


class PostgresRpcClient:
    """
    Calls the insert procedures directly over an asyncpg pool.

    For deployments that reach PostgreSQL without going through PostgREST.
    """

    def __init__(self, url: str, timeout: float = 15.0, pool: Optional[Pool] = None):
        self.url = url
        self.timeout = timeout
        self._pool: Optional[Pool] = pool

        # Stats
        self._calls = 0
        self._errors = 0

    async def start(self):
        """Connect to PostgreSQL."""
        if self._pool is None:
            self._pool = await asyncpg.create_pool(self.url, min_size=2, max_size=10)
            logger.info("Connected to PostgreSQL")

    async def stop(self):
        """Close PostgreSQL connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @property
    def pool(self) -> Pool:
        """Get connection pool (must be connected first)."""
        if self._pool is None:
            raise RuntimeError("Not connected to PostgreSQL")
        return self._pool

    @staticmethod
    def build_query(procedure: str, params: Dict[str, Any]) -> str:
        """Build `SELECT proc(p_a => $1, ...)` with named arguments."""
        names = [procedure, *params.keys()]
        for name in names:
            if not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid SQL identifier: {name!r}")

        args = ", ".join(f"{name} => ${i}" for i, name in enumerate(params, start=1))
        return f"SELECT {procedure}({args})"

    async def call(self, procedure: str, params: Dict[str, Any]) -> Any:
        """
        Invoke a stored procedure.

        Raises:
            WriteError: transient for connection and timeout failures,
                permanent for constraint and data errors
        """
        query = self.build_query(procedure, params)
        self._calls += 1

        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(query, *params.values(), timeout=self.timeout)
        except TRANSIENT_PG_ERRORS as e:
            self._errors += 1
            raise WriteError(
                f"{type(e).__name__}: {e}", procedure=procedure, transient=True
            ) from e
        except asyncpg.PostgresError as e:
            self._errors += 1
            raise WriteError(str(e), procedure=procedure, transient=False) from e

    def get_stats(self) -> dict:
        return {"calls": self._calls, "errors": self._errors}
