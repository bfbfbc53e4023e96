"""Espelho remoto do cache de mineração.

Mesmas operações do cache local, contra um banco compartilhado. Toda falha é
registrada e engolida: o cache local continua autoritativo e operar sem o
espelho é um modo degradado suportado.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from minerador.core.config import Settings
from minerador.core.database import (
    close_remote_db,
    create_remote_engine,
    create_session_factory,
    init_remote_db,
)
from minerador.models.cnpj_cache import CnpjBlacklist, CnpjUsed, CnpjWhitelist
from minerador.schemas.cache import (
    BlacklistEntry,
    CacheEntry,
    CacheKind,
    UsedEntry,
    WhitelistEntry,
    utcnow,
)

logger = logging.getLogger(__name__)


class RemoteCacheMirror(ABC):
    """Interface do espelho remoto."""

    enabled: bool = True

    @abstractmethod
    async def fetch_all(self, kind: CacheKind) -> list[CacheEntry]:
        """Todas as linhas do conjunto (vazio em caso de falha)."""

    @abstractmethod
    async def upsert_whitelist(self, entry: WhitelistEntry) -> None:
        """Insere ou atualiza pela chave cnpj."""

    @abstractmethod
    async def insert_blacklist(self, entry: BlacklistEntry) -> None:
        """Insere; chave duplicada é ignorada."""

    @abstractmethod
    async def insert_used(self, entry: UsedEntry) -> None:
        """Insere; chave duplicada é ignorada."""

    async def ensure_schema(self) -> None:
        return None

    async def close(self) -> None:
        return None


class NullRemoteMirror(RemoteCacheMirror):
    """Espelho desativado: nenhuma operação tem efeito."""

    enabled = False

    async def fetch_all(self, kind: CacheKind) -> list[CacheEntry]:
        return []

    async def upsert_whitelist(self, entry: WhitelistEntry) -> None:
        return None

    async def insert_blacklist(self, entry: BlacklistEntry) -> None:
        return None

    async def insert_used(self, entry: UsedEntry) -> None:
        return None


def _whitelist_from_row(row: CnpjWhitelist) -> WhitelistEntry:
    data = {
        "cnpj": row.cnpj,
        "razao_social": row.razao_social or "",
        "nome_fantasia": row.nome_fantasia,
        "uf": row.uf or "",
        "municipio": row.municipio or "",
        "capital_social": float(row.capital_social) if row.capital_social else 0.0,
        "porte": row.porte or "",
        "trust_score": row.trust_score or 0,
        "times_verified": row.times_verified or 1,
    }
    if row.found_at:
        data["found_at"] = row.found_at
    if row.last_verified:
        data["last_verified"] = row.last_verified
    return WhitelistEntry(**data)


def _blacklist_from_row(row: CnpjBlacklist) -> BlacklistEntry:
    if row.added_at:
        return BlacklistEntry(cnpj=row.cnpj, reason=row.reason, added_at=row.added_at)
    return BlacklistEntry(cnpj=row.cnpj, reason=row.reason)


def _used_from_row(row: CnpjUsed) -> UsedEntry:
    if row.used_at:
        return UsedEntry(cnpj=row.cnpj, used_at=row.used_at)
    return UsedEntry(cnpj=row.cnpj)


_MODELS = {
    CacheKind.WHITELIST: (CnpjWhitelist, CnpjWhitelist.found_at, _whitelist_from_row),
    CacheKind.BLACKLIST: (CnpjBlacklist, CnpjBlacklist.added_at, _blacklist_from_row),
    CacheKind.USED: (CnpjUsed, CnpjUsed.used_at, _used_from_row),
}


class SqlRemoteMirror(RemoteCacheMirror):
    """Espelho em PostgreSQL (SQLAlchemy assíncrono)."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ):
        self.session_factory = session_factory
        self.engine = engine

    async def ensure_schema(self) -> None:
        if self.engine is None:
            return
        try:
            await init_remote_db(self.engine)
        except Exception as e:
            logger.warning(f"[REMOTO] Não foi possível preparar as tabelas remotas: {e}")

    async def fetch_all(self, kind: CacheKind) -> list[CacheEntry]:
        model, order_column, convert = _MODELS[kind]
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(model).order_by(order_column.desc()))
                rows = result.scalars().all()
            logger.info(f"[REMOTO] {kind.value}: {len(rows)} registros")
            return [convert(r) for r in rows]
        except Exception as e:
            logger.warning(f"[REMOTO] Erro ao buscar {kind.value}: {e}")
            return []

    async def upsert_whitelist(self, entry: WhitelistEntry) -> None:
        values = {
            "cnpj": entry.cnpj,
            "razao_social": entry.razao_social,
            "nome_fantasia": entry.nome_fantasia or None,
            "uf": entry.uf,
            "municipio": entry.municipio,
            "capital_social": entry.capital_social,
            "porte": entry.porte,
            "trust_score": entry.trust_score,
            "times_verified": entry.times_verified,
            "found_at": entry.found_at,
            "last_verified": utcnow(),
        }
        stmt = pg_insert(CnpjWhitelist).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CnpjWhitelist.cnpj],
            set_={k: stmt.excluded[k] for k in values if k not in ("cnpj", "found_at")},
        )
        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()
            logger.debug(f"[REMOTO] Whitelist sincronizada: {entry.cnpj}")
        except Exception as e:
            logger.warning(f"[REMOTO] Erro no upsert da whitelist ({entry.cnpj}): {e}")

    async def _insert_ignore(self, model, values: dict) -> None:
        stmt = pg_insert(model).values(**values).on_conflict_do_nothing(
            index_elements=[model.cnpj]
        )
        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()
            logger.debug(f"[REMOTO] {model.__tablename__} sincronizada: {values['cnpj']}")
        except IntegrityError:
            # Chave duplicada: outra sessão gravou primeiro
            logger.debug(f"[REMOTO] {values['cnpj']} já existe em {model.__tablename__}")
        except Exception as e:
            logger.warning(f"[REMOTO] Erro ao inserir em {model.__tablename__} ({values['cnpj']}): {e}")

    async def insert_blacklist(self, entry: BlacklistEntry) -> None:
        await self._insert_ignore(CnpjBlacklist, {
            "cnpj": entry.cnpj,
            "reason": entry.reason.value,
            "added_at": entry.added_at,
        })

    async def insert_used(self, entry: UsedEntry) -> None:
        await self._insert_ignore(CnpjUsed, {
            "cnpj": entry.cnpj,
            "used_at": entry.used_at,
        })

    async def close(self) -> None:
        await close_remote_db(self.engine)


def create_remote_mirror(settings: Settings) -> RemoteCacheMirror:
    """Espelho configurado, ou NullRemoteMirror quando REMOTE_DATABASE_URL está vazio."""
    if not settings.remote_enabled:
        logger.info("[REMOTO] Espelho remoto não configurado, operando só com cache local")
        return NullRemoteMirror()

    try:
        engine = create_remote_engine(settings.REMOTE_DATABASE_URL)
    except Exception as e:
        logger.warning(f"[REMOTO] URL do espelho inválida, operando só com cache local: {e}")
        return NullRemoteMirror()
    return SqlRemoteMirror(create_session_factory(engine), engine)
