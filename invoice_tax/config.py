"""Engine configuration"""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Engine settings"""
    
    # Application
    APP_NAME: str = "InvoiceTaxEngine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    
    # REST backend (tax codes, TDS codes, item catalog)
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:5555")
    API_TOKEN: Optional[str] = os.getenv("API_TOKEN")
    API_TIMEOUT_SECONDS: float = float(os.getenv("API_TIMEOUT_SECONDS", "15"))
    
    # Code search
    SEARCH_DEBOUNCE_MS: int = int(os.getenv("SEARCH_DEBOUNCE_MS", "300"))
    SEARCH_MIN_CHARS: int = int(os.getenv("SEARCH_MIN_CHARS", "3"))
    SEARCH_MAX_RETRIES: int = int(os.getenv("SEARCH_MAX_RETRIES", "2"))
    
    # Code cache (LRU bound per tax type)
    CODE_CACHE_MAX_ENTRIES: int = int(os.getenv("CODE_CACHE_MAX_ENTRIES", "1024"))
    
    # Idempotence guard for derived amounts
    AMOUNT_EPSILON: str = os.getenv("AMOUNT_EPSILON", "0.01")
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
