"""
Configuration management for hllcount
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "hllcount"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_URL: str = ""

    # Counter storage
    HLL_KEY_PREFIX: str = "hll"
    HLL_TTL_SECONDS: int = 0  # 0 keeps counters forever
    HLL_WATCH_RETRIES: int = 5

    # Event Processing
    MAX_BATCH_SIZE: int = 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def get_redis_url(self) -> str:
        """Get Redis connection URL"""
        if self.REDIS_URL:
            return self.REDIS_URL

        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Global settings instance
settings = Settings()
