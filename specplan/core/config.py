"""
Application configuration settings.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""
    
    # App
    APP_NAME: str = "specplan"
    DEBUG: bool = False
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True
    
    # Input files
    DATA_DIR: str = "plan_data"
    SPEC_FILE: str = "swagger.json"
    PLAN_FILE: str = "testplan.yml"
    
    # Execution
    BASE_URL: str = ""  # Overrides the document's base path when set
    REQUEST_TIMEOUT: float = 30.0
    RANDOM_SEED: Optional[int] = None
    # Fill every missing parameter instead of only the first one
    RESOLVE_ALL_PARAMETERS: bool = False
    
    # Monitoring
    ENABLE_METRICS: bool = True
    
    class Config:
        env_file = ".env"
        env_prefix = "SPECPLAN_"
        case_sensitive = True


settings = Settings()
