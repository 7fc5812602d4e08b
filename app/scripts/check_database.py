"""
Database Check Script
Checks that the backing store answers and that the get_all_users RPC exists.
Prints the SQL to create the RPC when it is missing.
"""

import asyncio
import logging
import sys

from supabase import AsyncClient

from app.config import settings
from app.database.supabase_client import get_supabase
from app.scripts.render_policies import render_get_all_users_rpc

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MISSING_FUNCTION_CODES = {"PGRST202", "42883"}


async def check_connection(supabase: AsyncClient) -> bool:
    """Simple query to check if the connection works"""
    try:
        await supabase.table("menu_items").select("id").limit(1).execute()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def check_rpc_function(supabase: AsyncClient, function_name: str) -> bool:
    """True unless calling the function reports that it does not exist.

    An anonymous caller is refused by the function itself, which still
    proves it is installed.
    """
    try:
        await supabase.rpc(function_name, {}).execute()
        return True
    except Exception as e:
        code = getattr(e, "code", None)
        message = str(getattr(e, "message", "") or e)
        if code in MISSING_FUNCTION_CODES or "does not exist" in message or "Could not find" in message:
            logger.error(f"RPC function {function_name} is missing: {message}")
            return False
        return True


async def run_checks() -> bool:
    settings.require_backing_store()
    supabase = await get_supabase()

    if not await check_connection(supabase):
        return False
    logger.info("Database connection OK")

    if not await check_rpc_function(supabase, "get_all_users"):
        print("-- Run this SQL in the Supabase SQL Editor to create the missing RPC function:\n")
        print(render_get_all_users_rpc())
        return False
    logger.info("RPC get_all_users OK")
    return True


def main():
    try:
        ok = asyncio.run(run_checks())
    except Exception as e:
        logger.error(f"Error during database check: {e}")
        sys.exit(1)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
