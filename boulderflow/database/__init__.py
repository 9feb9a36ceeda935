"""Database layer for Supabase integration.

This package provides Supabase client management, the explicit auth
session and the remote data gateway.
"""

from boulderflow.database.exceptions import (
    AuthenticationRequiredError,
    GatewayError,
    SupabaseClientError,
)
from boulderflow.database.gateway import RemoteDataGateway, compute_user_stats
from boulderflow.database.session import AuthSession, SessionManager
from boulderflow.database.supabase_client import (
    get_supabase_client,
    reset_supabase_client_cache,
)

__all__ = [
    "AuthSession",
    "AuthenticationRequiredError",
    "GatewayError",
    "RemoteDataGateway",
    "SessionManager",
    "SupabaseClientError",
    "compute_user_stats",
    "get_supabase_client",
    "reset_supabase_client_cache",
]
