"""
Meez - Supabase access.

The supabase client is synchronous; queries run in a worker thread with
an explicit timeout so they never block the event loop or hang a
pipeline run.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import TypeVar

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean "storage is unavailable" rather than a bug
STORAGE_ERRORS = (APIError, httpx.HTTPError, TimeoutError, ConnectionError)


def build_client(url: str, service_role_key: str) -> Client:
    """Create a service-role Supabase client (bypasses RLS)."""
    return create_client(url, service_role_key)


async def run_query(query: Callable[[], T], *, timeout: float) -> T:
    """Run a blocking supabase query in a thread, bounded by ``timeout``."""
    return await asyncio.wait_for(asyncio.to_thread(query), timeout)
