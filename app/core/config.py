from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = Field(default="Bookings API")
    APP_VERSION: str = Field(default="0.1.0")
    APP_DESCRIPTION: str = "API for booking management"
    ENV: str = Field(default="development", description="Environment of the application like development, production, etc.")
    LOG_LEVEL: str = Field(default="INFO")
    API_PREFIX: str = Field(default="", description="Prefix mounted in front of every router")
    MAX_BODY_BYTES: int = Field(default=10 * 1024 * 1024, description="Largest accepted request body, larger ones get 413")
    ACCESS_LOG: bool = Field(default=True, description="Log one line per HTTP request")

    STORE_BACKEND: str = Field(default="mongo", description="Document store backend: mongo or memory")
    MONGODB_URI: str = Field(default="mongodb://localhost:27017", description="MongoDB connection string")
    DB_NAME: str = Field(default="bookingsdb")
    BOOKINGS_COLLECTION: str = Field(default="bookings")
    MATERIALIZED_COLLECTION: str = Field(default="bookings_mat")
    MONGO_MAX_POOL_SIZE: int = 30
    MONGO_MIN_POOL_SIZE: int = 5
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    COLLATION_LOCALE: str = Field(default="es", description="Locale used for string comparisons")
    COLLATION_STRENGTH: int = Field(default=1, description="1 = case and accent insensitive")

    MEMORY_MATERIALIZED: bool = Field(default=False, description="Start the in-memory store with a materialized collection")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    return settings
