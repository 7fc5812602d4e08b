import logging
from supabase import AsyncClient
from app.core.exceptions import translate_backing_store_error
from app.database.rows import ensure_rows_written
from app.modules.menu_items.schemas import MenuItemCreate, MenuItemUpdate, MenuItemResponse
from typing import List, Optional

logger = logging.getLogger(__name__)

TABLE = "menu_items"


class MenuItemService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def list_menu_items(
        self,
        category: Optional[str] = None,
        available_only: bool = False
    ) -> List[MenuItemResponse]:
        """List menu items ordered by category then name"""
        try:
            query = self.supabase.table(TABLE).select("*")
            if category:
                query = query.eq("category", category)
            if available_only:
                query = query.eq("available", True)
            result = await query.order("category").order("name").execute()
        except Exception as e:
            raise translate_backing_store_error(e, "Menu items")
        return [MenuItemResponse(**item) for item in (result.data or [])]

    async def get_menu_item(self, item_id: str) -> MenuItemResponse:
        """Get menu item by ID"""
        try:
            result = await self.supabase.table(TABLE)\
                .select("*")\
                .eq("id", item_id)\
                .single()\
                .execute()
        except Exception as e:
            raise translate_backing_store_error(e, "Menu item", item_id)
        return MenuItemResponse(**result.data)

    async def create_menu_item(self, item_data: MenuItemCreate) -> MenuItemResponse:
        """Create a menu item (admin only, enforced by policy)"""
        try:
            result = await self.supabase.table(TABLE)\
                .insert(item_data.model_dump(mode="json"))\
                .execute()
        except Exception as e:
            raise translate_backing_store_error(e, "Menu item")
        logger.info(f"Created menu item {result.data[0]['id']}")
        return MenuItemResponse(**result.data[0])

    async def update_menu_item(self, item_id: str, item_data: MenuItemUpdate) -> MenuItemResponse:
        """Update a menu item (admin only, enforced by policy)"""
        update_data = item_data.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            return await self.get_menu_item(item_id)
        try:
            result = await self.supabase.table(TABLE)\
                .update(update_data)\
                .eq("id", item_id)\
                .execute()
            row = await ensure_rows_written(self.supabase, TABLE, "Menu item", item_id, result.data)
        except Exception as e:
            raise translate_backing_store_error(e, "Menu item", item_id)
        return MenuItemResponse(**row)

    async def delete_menu_item(self, item_id: str) -> None:
        """Delete a menu item (admin only, enforced by policy)"""
        try:
            result = await self.supabase.table(TABLE)\
                .delete()\
                .eq("id", item_id)\
                .execute()
            await ensure_rows_written(self.supabase, TABLE, "Menu item", item_id, result.data)
        except Exception as e:
            raise translate_backing_store_error(e, "Menu item", item_id)
        logger.info(f"Deleted menu item {item_id}")
