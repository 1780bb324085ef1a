from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "SlotPlanner"
    debug: bool = True
    database_url: str = "sqlite:///./slotplanner.db"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_seconds: int = 3600
    max_forms_per_batch: int = 50
    form_number_digits: int = 6
    default_slot_minutes: int = 15
    audit_time_limit_seconds: int = 10


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
