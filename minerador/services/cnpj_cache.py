"""Orquestrador do cache: combina o cache local com o espelho remoto.

O cache local responde a todas as consultas da mineração. O espelho remoto
é sincronizado em tarefas asyncio destacadas; o loop nunca espera por ele.
"""

import asyncio
import enum
import logging
from collections.abc import Coroutine

from minerador.schemas.cache import (
    BlacklistEntry,
    BlacklistReason,
    CacheEntry,
    CacheKind,
    CacheStats,
    UsedEntry,
    WhitelistEntry,
)
from minerador.schemas.cnpj import Company
from minerador.services.filter_matcher import is_active
from minerador.services.local_cache import CacheStore
from minerador.services.remote_cache import NullRemoteMirror, RemoteCacheMirror

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    """Resultado da consulta de um CNPJ"""
    ACCEPTED = "accepted"     # Existe, ativa e aprovada nos filtros
    FILTERED = "filtered"     # Existe, mas reprovada nos filtros
    NOT_FOUND = "not_found"
    ERROR = "error"


def whitelist_entry_from(company: Company) -> WhitelistEntry:
    return WhitelistEntry(
        cnpj=company.cnpj,
        razao_social=company.razao_social,
        nome_fantasia=company.nome_fantasia,
        uf=company.uf,
        municipio=company.municipio,
        capital_social=company.capital_social,
        porte=company.porte,
        trust_score=company.trust_score,
    )


def merge_whitelist(local: list[WhitelistEntry], remote: list[WhitelistEntry]) -> list[WhitelistEntry]:
    """Une as whitelists; vence a entrada com mais verificações (empate: local)."""
    merged = {e.cnpj: e for e in local}
    for entry in remote:
        atual = merged.get(entry.cnpj)
        if atual is None or entry.times_verified > atual.times_verified:
            merged[entry.cnpj] = entry
    return list(merged.values())


def merge_seeded(local: list[CacheEntry], remote: list[CacheEntry]) -> list[CacheEntry]:
    """Remoto semeia o mapa, local sobrescreve."""
    merged = {e.cnpj: e for e in remote}
    merged.update({e.cnpj: e for e in local})
    return list(merged.values())


class CnpjCacheOrchestrator:
    """Fachada única do cache usada pelo controlador e pela API."""

    def __init__(self, local: CacheStore, remote: RemoteCacheMirror | None = None):
        self.local = local
        self.remote = remote or NullRemoteMirror()
        self._pending: set[asyncio.Task] = set()

    async def initialize(self) -> CacheStats:
        """Sincroniza o cache local com o espelho remoto.

        Falhas do remoto nunca propagam: o conjunto remoto é tratado como vazio.
        """
        if self.remote.enabled:
            results = await asyncio.gather(
                self.remote.fetch_all(CacheKind.WHITELIST),
                self.remote.fetch_all(CacheKind.BLACKLIST),
                self.remote.fetch_all(CacheKind.USED),
                return_exceptions=True,
            )
            remote_sets = {}
            for kind, result in zip(
                (CacheKind.WHITELIST, CacheKind.BLACKLIST, CacheKind.USED), results
            ):
                if isinstance(result, BaseException):
                    logger.warning(f"[CACHE] Falha ao buscar {kind.value} remoto: {result}")
                    result = []
                remote_sets[kind] = result

            whitelist = merge_whitelist(
                self.local.get_all(CacheKind.WHITELIST), remote_sets[CacheKind.WHITELIST]
            )
            blacklist = merge_seeded(
                self.local.get_all(CacheKind.BLACKLIST), remote_sets[CacheKind.BLACKLIST]
            )
            used = merge_seeded(self.local.get_all(CacheKind.USED), remote_sets[CacheKind.USED])

            confirmados = {e.cnpj for e in whitelist}
            blacklist = [e for e in blacklist if e.cnpj not in confirmados]

            self.local.replace_all(CacheKind.WHITELIST, whitelist)
            self.local.replace_all(CacheKind.BLACKLIST, blacklist)
            self.local.replace_all(CacheKind.USED, used)

        stats = self.local.stats()
        logger.info(
            f"[CACHE] Inicializado: {stats.whitelist} whitelist, {stats.blacklist} blacklist, "
            f"{stats.used} usados, {stats.available} disponíveis"
        )
        return stats

    def available_candidates(self) -> list[str]:
        """CNPJs da whitelist ainda não usados, na ordem do cache."""
        return [e.cnpj for e in self.local.available_whitelist()]

    def should_skip(self, cnpj: str) -> bool:
        return (
            self.local.contains(CacheKind.BLACKLIST, cnpj)
            or self.local.contains(CacheKind.USED, cnpj)
        )

    def is_whitelisted(self, cnpj: str) -> bool:
        return self.local.contains(CacheKind.WHITELIST, cnpj)

    def is_blacklisted(self, cnpj: str) -> bool:
        return self.local.contains(CacheKind.BLACKLIST, cnpj)

    def is_used(self, cnpj: str) -> bool:
        return self.local.contains(CacheKind.USED, cnpj)

    def record_outcome(self, cnpj: str, outcome: Outcome, company: Company | None = None) -> None:
        """Grava o resultado de uma consulta no cache local e agenda o remoto.

        ACCEPTED exige ``company``. Uma empresa confirmada tira o CNPJ da
        blacklist; um resultado negativo nunca remove da whitelist.
        """
        if outcome == Outcome.ACCEPTED:
            if company is None:
                raise ValueError("Outcome ACCEPTED requer os dados da empresa")
            entry = self.local.add(CacheKind.WHITELIST, whitelist_entry_from(company))
            self.local.remove(CacheKind.BLACKLIST, cnpj)
            if entry is not None:
                self._schedule(self.remote.upsert_whitelist(entry))
            return

        if self.local.contains(CacheKind.WHITELIST, cnpj):
            logger.debug(f"[CACHE] {cnpj} está na whitelist, ignorando resultado {outcome.value}")
            return

        if outcome == Outcome.FILTERED:
            reason = (
                BlacklistReason.FILTERED
                if company is not None and is_active(company)
                else BlacklistReason.INACTIVE
            )
        elif outcome == Outcome.NOT_FOUND:
            reason = BlacklistReason.NOT_FOUND
        else:
            reason = BlacklistReason.ERROR

        entry = self.local.add(CacheKind.BLACKLIST, BlacklistEntry(cnpj=cnpj, reason=reason))
        if entry is not None:
            self._schedule(self.remote.insert_blacklist(entry))

    def mark_used(self, cnpj: str) -> bool:
        """Marca o CNPJ como usado. Retorna False se já estava marcado."""
        entry = self.local.add(CacheKind.USED, UsedEntry(cnpj=cnpj))
        if entry is None:
            return False
        self._schedule(self.remote.insert_used(entry))
        logger.info(f"[CACHE] CNPJ marcado como usado: {cnpj}")
        return True

    def stats(self) -> CacheStats:
        return self.local.stats()

    def clear(self) -> None:
        """Limpa apenas o cache local; o espelho remoto é compartilhado."""
        self.local.clear()

    def _schedule(self, coro: Coroutine) -> None:
        if not self.remote.enabled:
            coro.close()
            return
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("[CACHE] Sem event loop ativo, sincronização remota descartada")
            return
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"[CACHE] Falha na sincronização remota: {task.exception()}")

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Aguarda as escritas remotas pendentes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
