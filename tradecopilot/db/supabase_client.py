"""
Supabase client initialization.

Provides both anon (token validation) and service (server-side store) clients.
Row ownership is enforced by the stores filtering on user_id, mirroring the
row-level-security policies on the Supabase tables.
"""

import logging
import os
from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)


def get_supabase_url() -> str:
    """Get Supabase project URL."""
    url = os.getenv("SUPABASE_URL", "").strip()
    if not url:
        raise ValueError("SUPABASE_URL environment variable is required")
    return url


def get_supabase_anon_key() -> str:
    """Get Supabase anonymous/public key."""
    key = os.getenv("SUPABASE_ANON_KEY", "").strip()
    if not key:
        raise ValueError("SUPABASE_ANON_KEY environment variable is required")
    return key


def get_supabase_service_key() -> Optional[str]:
    """Get Supabase service role key (for server-side operations)."""
    return os.getenv("SUPABASE_SERVICE_KEY", "").strip() or None


def is_supabase_configured() -> bool:
    """
    Check if Supabase should be used.

    Returns True only if running in production (ENVIRONMENT=production) or
    FORCE_SUPABASE=true is set, AND the URL and anon key are available.
    Otherwise the local SQLite store is used.
    """
    is_production = os.getenv("ENVIRONMENT", "").lower() == "production"
    force_supabase = os.getenv("FORCE_SUPABASE", "").lower() == "true"

    if not (is_production or force_supabase):
        return False

    url = os.getenv("SUPABASE_URL", "").strip()
    key = os.getenv("SUPABASE_ANON_KEY", "").strip()
    return bool(url and key)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the Supabase client with anonymous key.

    Used to validate user access tokens. The client is cached for reuse.
    """
    url = get_supabase_url()
    logger.info(f"Initializing Supabase client with URL: {url[:30]}...")
    client = create_client(url, get_supabase_anon_key())
    logger.info("Supabase client initialized successfully")
    return client


@lru_cache(maxsize=1)
def get_service_client() -> Client:
    """
    Get the Supabase client with service role key.

    Bypasses RLS, so every query made with it must filter on the owning user.
    """
    url = get_supabase_url()
    key = get_supabase_service_key()
    if not key:
        raise ValueError(
            "SUPABASE_SERVICE_KEY environment variable is required for service client"
        )
    client = create_client(url, key)
    logger.info("Supabase service client initialized")
    return client
