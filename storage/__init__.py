"""Storage module for the backend insert procedures."""

from .backend import PostgresRpcClient, RpcBackend, SupabaseRpcClient
from .gateway import PersistenceGateway

__all__ = [
    "PostgresRpcClient",
    "RpcBackend",
    "SupabaseRpcClient",
    "PersistenceGateway",
]
