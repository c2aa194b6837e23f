from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DEBUG: bool = False
    APP_NAME: str = "Storefront Pricing"
    version: str = "0.1.0"
    APP_DATABASE_DSN: str = "sqlite:////tmp/storefront.db"
    REDIS_URL: str = "redis://localhost:6379"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Cache (optional acceleration, never a source of truth for usage counters)
    CACHE_ENABLED: bool = True
    SHIPPING_CONFIG_CACHE_TTL_SECONDS: int = 900
    ACTIVE_EVENTS_CACHE_TTL_SECONDS: int = 60

    # Pricing
    PRICING_PREVIEW_TIMEOUT_SECONDS: float = 2.0
    CART_RESERVATION_TTL_MINUTES: int = 30

    # Civil time is a fixed offset from UTC (Nepal, +05:45)
    LOCAL_UTC_OFFSET_MINUTES: int = 345

    # Shipping
    SHIPPING_HOLIDAYS: str = "01-01,04-14"  # MM-DD civil dates
    STORE_LATITUDE: float = 27.7172
    STORE_LONGITUDE: float = 85.3240

    @property
    def shipping_holidays(self) -> set[tuple[int, int]]:
        holidays: set[tuple[int, int]] = set()
        for entry in self.SHIPPING_HOLIDAYS.split(","):
            entry = entry.strip()
            if not entry:
                continue
            month, day = entry.split("-")
            holidays.add((int(month), int(day)))
        return holidays


settings = Settings()
