import logging
from typing import Optional

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from app.config import settings

logger = logging.getLogger(__name__)


class SupabaseClient:
    _client: Optional[AsyncClient] = None
    _service_client: Optional[AsyncClient] = None

    @classmethod
    async def get_client(cls) -> AsyncClient:
        """Shared anon client. Only for public reads and health checks; never signed in."""
        if cls._client is None:
            settings.require_backing_store()
            cls._client = await acreate_client(
                settings.supabase_url,
                settings.supabase_key,
                options=AsyncClientOptions(persist_session=False, auto_refresh_token=False),
            )
        return cls._client

    @classmethod
    async def get_service_client(cls) -> AsyncClient:
        """Client with service_role key; bypasses RLS. Use in maintenance scripts only."""
        if cls._service_client is None and settings.supabase_service_role_key:
            settings.require_backing_store()
            cls._service_client = await acreate_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or await cls.get_client()

    @classmethod
    async def create_user_client(cls, access_token: Optional[str] = None, auto_refresh: bool = False) -> AsyncClient:
        """Fresh client acting as the caller, so row-level policies see auth.uid().

        Without a token the client acts as the anonymous role.
        """
        settings.require_backing_store()
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        options = AsyncClientOptions(
            headers=headers,
            persist_session=False,
            auto_refresh_token=auto_refresh,
        )
        return await acreate_client(settings.supabase_url, settings.supabase_key, options=options)

    @classmethod
    async def close_client(cls, client: AsyncClient) -> None:
        try:
            await client.remove_all_channels()
            await client.postgrest.aclose()
        except Exception as e:
            logger.debug(f"Error closing per-request client: {e}")

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


async def get_supabase() -> AsyncClient:
    return await SupabaseClient.get_client()
