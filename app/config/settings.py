from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List

from app.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Only used by maintenance scripts

    # Backing store layout
    profiles_table: str = "profiles"  # "users" in the extended (customer/admin/superadmin) schema
    menu_categories: str = "appetizer,main,dessert,beverage"
    storage_bucket: str = "restaurant-images"

    # Live screens
    refresh_debounce_seconds: float = 1.0
    public_route: str = "/"

    # App
    app_name: str = "kitchen-backoffice"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_menu_categories_list(self) -> List[str]:
        return [c.strip() for c in self.menu_categories.split(",") if c.strip()]

    def require_backing_store(self) -> None:
        """Fail fast when the backing store URL or public key is missing."""
        missing = [
            name.upper()
            for name in ("supabase_url", "supabase_key")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}",
                resource=missing[0],
            )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
