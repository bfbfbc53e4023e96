"""
Configurações da aplicação usando Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache
import logging
import os

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # App
    APP_NAME: str = os.getenv("APP_NAME", "Minerador CNPJ")
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")

    # CORS
    ALLOWED_ORIGINS: str = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://localhost:8080"
    )

    # Cache local (SQLite embarcado) - fonte autoritativa da sessão
    LOCAL_CACHE_PATH: str = os.getenv("LOCAL_CACHE_PATH", "data/cnpj_cache.db")

    # Espelho remoto (PostgreSQL). Vazio = modo somente local
    REMOTE_DATABASE_URL: str = os.getenv("REMOTE_DATABASE_URL", "")

    # API de registro de empresas
    REGISTRY_PROVIDER: str = os.getenv("REGISTRY_PROVIDER", "brasilapi")
    REGISTRY_BASE_URL: str = os.getenv("REGISTRY_BASE_URL", "")
    REGISTRY_TIMEOUT: float = 15.0

    # Mineração - ReceitaWS permite ~3 req/min, por isso o intervalo longo
    MINING_TARGET: int = 20
    MINING_REQUEST_DELAY: float = 25.0
    MINING_RATE_LIMIT_DELAY: float = 60.0
    MINING_MAX_CONSECUTIVE_ERRORS: int = 100
    MINING_ATTEMPT_MULTIPLIER: int = 100

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def remote_enabled(self) -> bool:
        return bool(self.REMOTE_DATABASE_URL.strip())

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    logger.info(f"[CONFIG] Configurações carregadas: {settings.ENVIRONMENT}")
    logger.info(f"[CONFIG] LOCAL_CACHE_PATH: {settings.LOCAL_CACHE_PATH}")
    logger.info(f"[CONFIG] Espelho remoto: {'ativo' if settings.remote_enabled else 'desativado'}")
    logger.info(f"[CONFIG] REGISTRY_PROVIDER: {settings.REGISTRY_PROVIDER}")
    logger.info(f"[CONFIG] DEBUG: {settings.DEBUG}")
    return settings


settings = get_settings()
