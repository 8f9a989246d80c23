from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from dotenv import load_dotenv
load_dotenv()


class MobileSettings(BaseSettings):
	"""Device-side settings, read from MOBILE_* variables"""

	# API
	API_BASE_URL: str = "http://localhost:8000"
	API_V1_PREFIX: str = "/api/v1"
	API_TIMEOUT: float = 10.0

	# Local store
	LOCAL_DB_URL: str = "sqlite+aiosqlite:///operator_app.db"

	# Connectivity
	CONNECTIVITY_PROBE_PATH: str = "/health"
	CONNECTIVITY_PROBE_TIMEOUT: float = 3.0
	CONNECTIVITY_POLL_SECONDS: float = 15.0

	# Sync
	AUTO_SYNC: bool = True

	model_config = SettingsConfigDict(
		env_prefix="MOBILE_",
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=True,
		extra="ignore"
	)


@lru_cache()
def get_mobile_settings() -> MobileSettings:
	return MobileSettings()
