from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
	# App
	APP_NAME: str = "Water Station Sync API"
	APP_VERSION: str = "1.0.0"
	API_V1_PREFIX: str = "/api/v1"
	DEBUG: bool = False
	ENVIRONMENT: str = "development" # development, staging, production
	LOG_LEVEL: str = "INFO"

	# Database
	DATABASE_URL: str
	DB_POOL_SIZE: int = 20
	DB_MAX_OVERFLOW: int = 40
	DB_POOL_PRE_PING: bool = True
	DB_ECHO: bool = False
	AUTO_CREATE_TABLES: bool = False

	# JWT
	JWT_SECRET: str
	JWT_ALGORITHM: str = "HS256"
	JWT_EXPIRATION_HOURS: int = 24
	JWT_REFRESH_EXPIRATION_DAYS: int = 7

	# CORS
	CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

	# Security
	BCRYPT_ROUNDS: int = 12
	ALLOWED_HOSTS: List[str] = ["*"]

	# Monitoring
	EXPOSE_METRICS: bool = True

	# Sync
	SYNC_MAX_BATCH_SIZE: int = 500

	model_config = SettingsConfigDict(
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=True,
		extra="ignore"
	)


@lru_cache()
def get_settings() -> Settings:
	return Settings()


settings = get_settings()
