"""Cache local de CNPJs minerados (whitelist, blacklist e used).

O cache local é a fonte autoritativa durante a sessão, mas é apenas uma
otimização: falhas de leitura ou escrita são registradas no log e tratadas
como resultado vazio / no-op, nunca interrompem a mineração.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from minerador.schemas.cache import (
    ENTRY_TYPES,
    CacheEntry,
    CacheKind,
    CacheStats,
    WhitelistEntry,
)

logger = logging.getLogger(__name__)

TABLES = {
    CacheKind.WHITELIST: "cnpj_whitelist",
    CacheKind.BLACKLIST: "cnpj_blacklist",
    CacheKind.USED: "cnpj_used",
}

DDL = (
    """
    CREATE TABLE IF NOT EXISTS cnpj_whitelist (
        cnpj TEXT PRIMARY KEY,
        razao_social TEXT, nome_fantasia TEXT, uf TEXT, municipio TEXT,
        capital_social REAL, porte TEXT, trust_score INTEGER,
        found_at TEXT, last_verified TEXT, times_verified INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cnpj_blacklist (
        cnpj TEXT PRIMARY KEY,
        reason TEXT NOT NULL,
        added_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cnpj_used (
        cnpj TEXT PRIMARY KEY,
        used_at TEXT
    )
    """,
)


class CacheStore(ABC):
    """Interface do cache local.

    As subclasses implementam apenas o armazenamento; as regras de escrita
    (upsert da whitelist, primeira escrita vence em blacklist/used) ficam aqui.
    """

    @abstractmethod
    def get_all(self, kind: CacheKind) -> list[CacheEntry]:
        """Todas as entradas do conjunto, na ordem de inserção."""

    @abstractmethod
    def replace_all(self, kind: CacheKind, entries: list[CacheEntry]) -> None:
        """Substitui o conjunto inteiro."""

    @abstractmethod
    def get(self, kind: CacheKind, cnpj: str) -> CacheEntry | None:
        """Entrada de um CNPJ, se existir."""

    @abstractmethod
    def _put(self, kind: CacheKind, entry: CacheEntry) -> None:
        """Insere ou sobrescreve a entrada."""

    @abstractmethod
    def remove(self, kind: CacheKind, cnpj: str) -> None:
        """Remove a entrada de um CNPJ (sem erro se não existir)."""

    @abstractmethod
    def clear(self) -> None:
        """Apaga os três conjuntos."""

    def add(self, kind: CacheKind, entry: CacheEntry) -> CacheEntry | None:
        """Adiciona uma entrada.

        - whitelist: upsert; se o CNPJ já existe os campos são atualizados,
          ``times_verified`` é incrementado e ``found_at`` preservado.
        - blacklist / used: a primeira escrita vence; duplicados são ignorados.

        Retorna a entrada gravada, ou None quando nada foi escrito.
        """
        existing = self.get(kind, entry.cnpj)

        if kind == CacheKind.WHITELIST:
            if existing is not None:
                entry = entry.model_copy(update={
                    "times_verified": existing.times_verified + 1,
                    "found_at": existing.found_at,
                })
            else:
                entry = entry.model_copy(update={"times_verified": 1})
            self._put(kind, entry)
            logger.debug(f"[CACHE] Whitelist: {entry.cnpj} ({entry.razao_social})")
            return entry

        if existing is not None:
            return None
        self._put(kind, entry)
        logger.debug(f"[CACHE] {kind.value}: {entry.cnpj}")
        return entry

    def contains(self, kind: CacheKind, cnpj: str) -> bool:
        return self.get(kind, cnpj) is not None

    def available_whitelist(self) -> list[WhitelistEntry]:
        """Entradas da whitelist que ainda não foram usadas."""
        used = {e.cnpj for e in self.get_all(CacheKind.USED)}
        return [e for e in self.get_all(CacheKind.WHITELIST) if e.cnpj not in used]

    def stats(self) -> CacheStats:
        return CacheStats(
            whitelist=len(self.get_all(CacheKind.WHITELIST)),
            blacklist=len(self.get_all(CacheKind.BLACKLIST)),
            used=len(self.get_all(CacheKind.USED)),
            available=len(self.available_whitelist()),
        )


class MemoryCacheStore(CacheStore):
    """Cache em memória (testes e execuções descartáveis)."""

    def __init__(self):
        self._data: dict[CacheKind, dict[str, CacheEntry]] = {kind: {} for kind in CacheKind}

    def get_all(self, kind: CacheKind) -> list[CacheEntry]:
        return list(self._data[kind].values())

    def replace_all(self, kind: CacheKind, entries: list[CacheEntry]) -> None:
        self._data[kind] = {e.cnpj: e for e in entries}

    def get(self, kind: CacheKind, cnpj: str) -> CacheEntry | None:
        return self._data[kind].get(cnpj)

    def _put(self, kind: CacheKind, entry: CacheEntry) -> None:
        self._data[kind][entry.cnpj] = entry

    def remove(self, kind: CacheKind, cnpj: str) -> None:
        self._data[kind].pop(cnpj, None)

    def clear(self) -> None:
        for kind in CacheKind:
            self._data[kind] = {}
        logger.info("[CACHE] Cache em memória limpo")


class SqliteCacheStore(CacheStore):
    """Cache persistido em SQLite embarcado."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        try:
            with self.engine.begin() as conn:
                for ddl in DDL:
                    conn.execute(text(ddl))
        except SQLAlchemyError as e:
            logger.error(f"[CACHE] Erro ao criar tabelas do cache local: {e}")

    @staticmethod
    def _columns(kind: CacheKind) -> list[str]:
        return list(ENTRY_TYPES[kind].model_fields)

    def _row_to_entry(self, kind: CacheKind, row) -> CacheEntry:
        return ENTRY_TYPES[kind].model_validate(dict(row))

    def _insert_sql(self, kind: CacheKind) -> str:
        # upsert sem trocar o rowid: a whitelist mantém a ordem de inserção
        cols = self._columns(kind)
        updates = ", ".join(f"{c} = excluded.{c}" for c in cols if c != "cnpj")
        return (
            f"INSERT INTO {TABLES[kind]} ({', '.join(cols)}) "
            f"VALUES ({', '.join(':' + c for c in cols)}) "
            f"ON CONFLICT(cnpj) DO UPDATE SET {updates}"
        )

    def get_all(self, kind: CacheKind) -> list[CacheEntry]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    text(f"SELECT * FROM {TABLES[kind]} ORDER BY rowid")
                ).mappings().all()
            return [self._row_to_entry(kind, r) for r in rows]
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"[CACHE] Erro ao carregar {kind.value}: {e}")
            return []

    def replace_all(self, kind: CacheKind, entries: list[CacheEntry]) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text(f"DELETE FROM {TABLES[kind]}"))
                if entries:
                    conn.execute(
                        text(self._insert_sql(kind)),
                        [e.model_dump(mode="json") for e in entries],
                    )
        except SQLAlchemyError as e:
            logger.error(f"[CACHE] Erro ao salvar {kind.value}: {e}")

    def get(self, kind: CacheKind, cnpj: str) -> CacheEntry | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text(f"SELECT * FROM {TABLES[kind]} WHERE cnpj = :cnpj"),
                    {"cnpj": cnpj},
                ).mappings().first()
            return self._row_to_entry(kind, row) if row else None
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"[CACHE] Erro ao consultar {kind.value} ({cnpj}): {e}")
            return None

    def _put(self, kind: CacheKind, entry: CacheEntry) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text(self._insert_sql(kind)), entry.model_dump(mode="json"))
        except SQLAlchemyError as e:
            logger.error(f"[CACHE] Erro ao gravar {kind.value} ({entry.cnpj}): {e}")

    def remove(self, kind: CacheKind, cnpj: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text(f"DELETE FROM {TABLES[kind]} WHERE cnpj = :cnpj"),
                    {"cnpj": cnpj},
                )
        except SQLAlchemyError as e:
            logger.error(f"[CACHE] Erro ao remover {kind.value} ({cnpj}): {e}")

    def clear(self) -> None:
        try:
            with self.engine.begin() as conn:
                for table in TABLES.values():
                    conn.execute(text(f"DELETE FROM {table}"))
            logger.info("[CACHE] Cache local limpo")
        except SQLAlchemyError as e:
            logger.error(f"[CACHE] Erro ao limpar cache local: {e}")
