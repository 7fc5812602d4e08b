"""
WebSocket endpoint for the live back-office screens.

The browser passes its session tokens as query parameters. Each connection
gets its own client (so realtime and reads run under the caller's
row-level policies), its own SessionResolver and its own screen.
"""

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, WebSocketException, status
from supabase import AsyncClient

from app.core.session import SessionResolver, SupabaseIdentityStore
from app.database.supabase_client import SupabaseClient
from app.modules.live.screens import CLOSE_SOCKET, SCREENS, LiveScreen
from app.modules.users.service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])

ACCESS_DENIED_CLOSE_CODE = 4403
UNKNOWN_SCREEN_CLOSE_CODE = 4404


async def get_live_client(
    access_token: str = Query(...),
    refresh_token: str = Query(...),
) -> AsyncIterator[AsyncClient]:
    """Client holding the caller's session for the lifetime of the socket."""
    client = await SupabaseClient.create_user_client(access_token, auto_refresh=True)
    try:
        await client.auth.set_session(access_token, refresh_token)
    except Exception as e:
        logger.info(f"Rejecting live connection with invalid session: {e}")
        await SupabaseClient.close_client(client)
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid or expired session")
    try:
        yield client
    finally:
        await SupabaseClient.close_client(client)


def get_session_resolver(client: AsyncClient = Depends(get_live_client)) -> SessionResolver:
    return SessionResolver(SupabaseIdentityStore(client), UserService(client).find_profile)


async def _pump(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        frame = await outbox.get()
        if frame is None:
            return
        try:
            if frame is CLOSE_SOCKET:
                await websocket.close(code=ACCESS_DENIED_CLOSE_CODE)
                return
            await websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Live socket gone while sending: {e}")
            return


@router.websocket("/ws/{screen_name}")
async def live_screen(
    websocket: WebSocket,
    screen_name: str,
    client: AsyncClient = Depends(get_live_client),
    resolver: SessionResolver = Depends(get_session_resolver),
):
    screen_cls = SCREENS.get(screen_name)
    if screen_cls is None:
        await websocket.close(code=UNKNOWN_SCREEN_CLOSE_CODE)
        return

    await websocket.accept()
    screen: LiveScreen = screen_cls(client, resolver)
    sender = asyncio.create_task(_pump(websocket, screen.outbox))
    try:
        if await screen.open():
            while not screen.closed:
                try:
                    message = await websocket.receive_json()
                except ValueError:
                    screen.notify("warning", "Unknown message type: invalid JSON")
                    continue
                await screen.handle_message(message)
    except WebSocketDisconnect:
        logger.info(f"{screen_name} screen disconnected")
    except RuntimeError as e:
        # receive after a server-side close
        logger.debug(f"{screen_name} screen receive stopped: {e}")
    finally:
        await screen.close()
        await resolver.stop()
        screen.outbox.put_nowait(None)
        await sender
