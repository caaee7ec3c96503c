"""
Supabase clients.

The anon client verifies credentials against Supabase Auth. Table access goes
through the service-role client once the auth gateway has admitted the caller.
"""

import logging
from typing import Optional

from supabase import create_client, Client
from rbac_console.config.settings import settings

logger = logging.getLogger(__name__)


class SupabaseClients:
    _auth_client: Optional[Client] = None
    _data_client: Optional[Client] = None

    @classmethod
    def auth(cls) -> Client:
        if cls._auth_client is None:
            cls._auth_client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._auth_client

    @classmethod
    def data(cls) -> Client:
        """Client with service_role key; bypasses RLS. Falls back to the anon client."""
        if cls._data_client is None:
            if settings.supabase_service_role_key:
                cls._data_client = create_client(settings.supabase_url, settings.supabase_service_role_key)
            else:
                logger.warning("SUPABASE_SERVICE_ROLE_KEY is not set; table access uses the anon key")
                cls._data_client = cls.auth()
        return cls._data_client


def get_supabase() -> Client:
    return SupabaseClients.data()


def get_auth_client() -> Client:
    return SupabaseClients.auth()
