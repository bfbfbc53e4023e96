"""
Configuração dos bancos de dados com SQLAlchemy

- Cache local: SQLite embarcado (engine síncrono)
- Espelho remoto: PostgreSQL compartilhado (engine assíncrono)
"""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from minerador.core.config import settings
import logging

logger = logging.getLogger(__name__)

# Base para modelos do espelho remoto
Base = declarative_base()


def create_local_engine(path: str) -> Engine:
    """Cria o engine do cache local.

    ``":memory:"`` gera um banco em memória (útil em testes); qualquer outro
    valor é tratado como caminho de arquivo e o diretório é criado se preciso.
    """
    if path == ":memory:":
        url = "sqlite://"
    else:
        db_file = Path(path)
        db_file.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{db_file}"

    logger.info(f"[DATABASE] Cache local em: {url}")
    return create_engine(
        url,
        echo=settings.DEBUG,
        connect_args={"check_same_thread": False},
    )


def create_remote_engine(url: str) -> AsyncEngine:
    """Engine assíncrono para o espelho remoto"""
    logger.info(f"[DATABASE] Espelho remoto: {url[:50]}...")
    return create_async_engine(
        url,
        echo=settings.DEBUG,
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory do espelho remoto"""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def init_remote_db(engine: AsyncEngine) -> None:
    """Criar tabelas do espelho remoto (equivalente à migration 001)"""
    # Registrar os modelos no metadata antes do create_all
    from minerador.models import cnpj_cache  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[DATABASE] ✓ Tabelas do espelho remoto verificadas")


async def close_remote_db(engine: AsyncEngine | None) -> None:
    """Fechar conexões do espelho remoto"""
    if engine is not None:
        await engine.dispose()
