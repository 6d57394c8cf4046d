# hopelink/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    use_mongo: bool = False
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "hopelink"

    # matcher caches (seconds)
    distance_cache_ttl_s: float = 5 * 60
    reliability_cache_ttl_s: float = 15 * 60
    parameters_cache_ttl_s: float = 5 * 60

    # upper bound on concurrent detailed scorings per ranking call
    max_concurrency: int = 8

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
