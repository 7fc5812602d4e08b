from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from typing import Annotated, Optional
from datetime import datetime

from app.config import settings
from app.core.types import Money


def _check_category(value: str) -> str:
    allowed = settings.get_menu_categories_list()
    if value not in allowed:
        raise ValueError(f"category must be one of: {', '.join(allowed)}")
    return value


Category = Annotated[str, AfterValidator(_check_category)]


class MenuItemCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: Money
    category: Category
    image_url: Optional[str] = None
    available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Money] = None
    category: Optional[Category] = None
    image_url: Optional[str] = None
    available: Optional[bool] = None


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    price: Money
    category: str
    image_url: Optional[str] = None
    available: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ImageUploadResponse(BaseModel):
    image_url: str
