# FILE: backend/casedesk/core/config.py
# CASEDESK - CONFIGURATION
# 1. Handles comma-separated CORS strings (for Docker/Production).
# 2. Handles JSON strings.

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Union
from pydantic import field_validator
import json

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # --- API Setup ---
    PROJECT_NAME: str = "Casedesk API"
    API_V1_STR: str = "/api/v1"

    # --- Auth ---
    SECRET_KEY: str = "changeme"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # --- Identity provider (Google Sign-In) ---
    GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"
    GOOGLE_CLIENT_ID: str = ""

    # --- CORS Configuration ---
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            # Handle comma-separated string: "http://localhost,https://myapp.com"
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, str):
            return json.loads(v)
        return v

    # --- Database & Cache ---
    DATABASE_URI: str = "mongodb://localhost:27017/casedesk?replicaSet=rs0"
    REDIS_URL: str = "redis://redis:6379/0"

    # --- Uploads ---
    MAX_UPLOAD_MB: int = 50

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

settings = Settings()
