from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from app.modules.menu_items.schemas import (
    MenuItemCreate, MenuItemUpdate, MenuItemResponse, ImageUploadResponse
)
from app.modules.menu_items.service import MenuItemService
from app.modules.menu_items.storage import ImageStorage
from app.modules.users.schemas import ProfileResponse
from app.core.dependencies import get_user_supabase, require_role
from app.core.roles import Role
from supabase import AsyncClient
from typing import List, Optional

router = APIRouter(prefix="/menu-items", tags=["menu-items"])

MAX_IMAGE_BYTES = 5 * 1024 * 1024


def get_menu_item_service(supabase: AsyncClient = Depends(get_user_supabase)) -> MenuItemService:
    return MenuItemService(supabase)


def get_image_storage(supabase: AsyncClient = Depends(get_user_supabase)) -> ImageStorage:
    return ImageStorage(supabase)


@router.get("", response_model=List[MenuItemResponse])
async def list_menu_items(
    category: Optional[str] = None,
    available_only: bool = False,
    service: MenuItemService = Depends(get_menu_item_service),
):
    """List menu items (public)"""
    return await service.list_menu_items(category=category, available_only=available_only)


@router.get("/{item_id}", response_model=MenuItemResponse)
async def get_menu_item(
    item_id: str,
    service: MenuItemService = Depends(get_menu_item_service),
):
    """Get a menu item (public)"""
    return await service.get_menu_item(item_id)


@router.post("", response_model=MenuItemResponse, status_code=201)
async def create_menu_item(
    item_data: MenuItemCreate,
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: MenuItemService = Depends(get_menu_item_service),
):
    """Create a menu item (admin only)"""
    return await service.create_menu_item(item_data)


@router.put("/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    item_id: str,
    item_data: MenuItemUpdate,
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: MenuItemService = Depends(get_menu_item_service),
):
    """Update a menu item (admin only)"""
    return await service.update_menu_item(item_id, item_data)


@router.post("/{item_id}/image", response_model=ImageUploadResponse, status_code=201)
async def upload_menu_item_image(
    item_id: str,
    file: UploadFile = File(...),
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: MenuItemService = Depends(get_menu_item_service),
    storage: ImageStorage = Depends(get_image_storage),
):
    """Upload an image to the storage bucket and attach its public URL to the item"""
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files are accepted")
    content = await file.read()
    if len(content) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image is larger than 5 MB")
    image_url = await storage.upload_file(content, file.filename or "image", file.content_type)
    await service.update_menu_item(item_id, MenuItemUpdate(image_url=image_url))
    return ImageUploadResponse(image_url=image_url)


@router.delete("/{item_id}", status_code=204)
async def delete_menu_item(
    item_id: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: MenuItemService = Depends(get_menu_item_service),
):
    """Delete a menu item (admin only, explicit confirmation required)"""
    if not confirm:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Deletion must be confirmed with confirm=true")
    await service.delete_menu_item(item_id)
    return None
