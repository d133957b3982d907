from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    jwt_secret: str = "dev"
    jwt_alg: str = "HS256"
    access_ttl_min: int = 30
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "foodlink"
    use_mongo: bool = False
    require_verification: bool = True
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
