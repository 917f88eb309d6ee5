"""Database module for Supabase integration."""

from tradecopilot.db.supabase_client import (
    get_service_client,
    get_supabase_client,
    is_supabase_configured,
)

__all__ = ["get_supabase_client", "get_service_client", "is_supabase_configured"]
