"""Controlador da mineração de CNPJs.

Uma mineração sorteia candidatos (cache, wordlist ou gerador), descarta os
já tentados ou em cache, consulta o registro com intervalo fixo entre as
requisições e acumula as empresas aprovadas nos filtros até atingir a meta.

Estados: IDLE -> RUNNING -> COMPLETED | ABORTED | FAILED
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from minerador.core.config import Settings
from minerador.schemas.cnpj import Company
from minerador.schemas.mining import (
    MiningCriteria,
    MiningProgress,
    MiningState,
    MiningStatus,
)
from minerador.services.candidate_sources import (
    CandidateSource,
    WeightedSourcePicker,
    default_sources,
)
from minerador.services.cnpj_cache import CnpjCacheOrchestrator, Outcome
from minerador.services.cnpj_generator import validate
from minerador.services.cnpj_wordlist import CNPJ_WORDLIST
from minerador.services.filter_matcher import matches_filters
from minerador.services.registry_client import (
    RateLimitedError,
    RegistryError,
    RegistryPayloadError,
)

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Awaitable[Company | None]]
ProgressListener = Callable[[MiningProgress], None]
SourcesFactory = Callable[
    [Sequence[str], Sequence[str], random.Random, str | None], list[CandidateSource]
]

TERMINAL_STATES = (MiningState.COMPLETED, MiningState.ABORTED, MiningState.FAILED)


@dataclass
class MiningConfig:
    target: int = 20
    request_delay: float = 25.0
    rate_limit_delay: float = 60.0
    max_consecutive_errors: int = 100
    attempt_multiplier: int = 100

    @classmethod
    def from_settings(cls, settings: Settings) -> "MiningConfig":
        return cls(
            target=settings.MINING_TARGET,
            request_delay=settings.MINING_REQUEST_DELAY,
            rate_limit_delay=settings.MINING_RATE_LIMIT_DELAY,
            max_consecutive_errors=settings.MINING_MAX_CONSECUTIVE_ERRORS,
            attempt_multiplier=settings.MINING_ATTEMPT_MULTIPLIER,
        )


class _Stopped(Exception):
    """Parada solicitada durante uma consulta em andamento."""


class MiningController:
    """Executa uma mineração por vez.

    As dependências (cache, função de consulta, wordlist, rng e a política
    de fontes) são injetadas para que os testes possam trocar cada uma.
    """

    def __init__(
        self,
        cache: CnpjCacheOrchestrator,
        lookup: Lookup,
        config: MiningConfig | None = None,
        wordlist: Sequence[str] = CNPJ_WORDLIST,
        rng: random.Random | None = None,
        sources_factory: SourcesFactory = default_sources,
    ):
        self.cache = cache
        self.lookup = lookup
        self.config = config or MiningConfig()
        self.wordlist = wordlist
        self.rng = rng or random.Random()
        self.sources_factory = sources_factory

        self._state = MiningState.IDLE
        self._running = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._listeners: list[ProgressListener] = []

        self._target = self.config.target
        self._tried = 0
        self._tried_set: set[str] = set()
        self._companies: list[Company] = []
        self._error: str | None = None

    # ------------------------------------------------------------------
    # Estado exposto
    # ------------------------------------------------------------------

    @property
    def state(self) -> MiningState:
        return self._state

    @property
    def is_mining(self) -> bool:
        return self._running

    @property
    def companies(self) -> list[Company]:
        return list(self._companies)

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def progress(self) -> MiningProgress:
        found = len(self._companies)
        percentage = min(found / self._target * 100, 100.0) if self._target else 0.0
        return MiningProgress(
            tried=self._tried,
            found=found,
            target=self._target,
            percentage=round(percentage, 1),
            is_complete=self._target > 0 and found >= self._target,
        )

    def status(self) -> MiningStatus:
        return MiningStatus(
            state=self._state,
            is_mining=self._running,
            progress=self.progress,
            error=self._error,
            companies=self.companies,
        )

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self) -> None:
        snapshot = self.progress
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("[MINERACAO] Erro em listener de progresso")

    # ------------------------------------------------------------------
    # Controle
    # ------------------------------------------------------------------

    def _begin(self, criteria: MiningCriteria, target: int | None) -> bool:
        if self._running:
            logger.warning("[MINERACAO] Já existe uma mineração em andamento")
            return False

        self._running = True
        self._stop_event = asyncio.Event()
        self._state = MiningState.RUNNING
        self._target = target if target is not None else self.config.target
        self._tried = 0
        self._tried_set = set()
        self._companies = []
        self._error = None
        logger.info(f"[MINERACAO] Iniciando: meta {self._target}, filtros {criteria.model_dump(mode='json')}")
        self._publish()
        return True

    def start(self, criteria: MiningCriteria, target: int | None = None) -> bool:
        """Dispara a mineração em background. False se já houver uma rodando.

        Exige um event loop em execução (RuntimeError sem alterar o estado).
        """
        loop = asyncio.get_running_loop()
        if not self._begin(criteria, target):
            return False
        self._task = loop.create_task(self._execute(criteria))
        return True

    async def run(self, criteria: MiningCriteria, target: int | None = None) -> MiningStatus:
        """Executa a mineração até um estado terminal (ou retorna o status atual
        se já houver uma rodando)."""
        if self._begin(criteria, target):
            await self._execute(criteria)
        return self.status()

    def stop(self) -> bool:
        """Sinaliza a parada. A mineração termina como ABORTED."""
        if not self._running:
            return False
        logger.info("[MINERACAO] Parada solicitada")
        self._stop_event.set()
        return True

    async def wait(self) -> MiningStatus:
        """Aguarda a mineração disparada por ``start`` terminar."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.status()

    async def shutdown(self) -> None:
        self.stop()
        await self.wait()

    def clear_results(self) -> bool:
        """Descarta os resultados da última mineração. False se ainda rodando."""
        if self._running:
            return False
        self._state = MiningState.IDLE
        self._tried = 0
        self._tried_set = set()
        self._companies = []
        self._error = None
        self._target = self.config.target
        return True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _finish(self, state: MiningState, error: str | None = None) -> None:
        self._state = state
        self._error = error
        progress = self.progress
        if state == MiningState.FAILED:
            logger.error(f"[MINERACAO] ✗ Falhou: {error} ({progress.found}/{progress.target})")
        else:
            logger.info(
                f"[MINERACAO] {state.value}: {progress.found}/{progress.target} "
                f"encontradas em {progress.tried} tentativas"
            )

    async def _execute(self, criteria: MiningCriteria) -> None:
        try:
            await self.cache.initialize()
            cached = self.cache.available_candidates()
            uf = None if criteria.uf == "AUTO" else criteria.uf
            picker = WeightedSourcePicker(
                self.sources_factory(cached, self.wordlist, self.rng, uf), self.rng
            )
            logger.info(
                f"[MINERACAO] Fontes: {len(cached)} no cache, {len(self.wordlist)} na wordlist"
            )
            await self._loop(criteria, picker)
        except asyncio.CancelledError:
            self._finish(MiningState.ABORTED)
            raise
        except Exception as e:
            logger.error(f"[MINERACAO] Erro inesperado: {e}", exc_info=True)
            self._finish(MiningState.FAILED, f"Erro inesperado na mineração: {e}")
        finally:
            self._running = False
            self._publish()

    async def _loop(self, criteria: MiningCriteria, picker: WeightedSourcePicker) -> None:
        config = self.config
        max_attempts = self._target * config.attempt_multiplier
        first_request = True
        consecutive_errors = 0
        retry: str | None = None

        while True:
            if self._stop_event.is_set():
                self._finish(MiningState.ABORTED)
                return

            if retry is not None:
                cnpj, retry = retry, None
            else:
                picked = picker.pick()
                if picked is None:
                    self._finish(MiningState.FAILED, "Todas as fontes de candidatos se esgotaram")
                    return
                cnpj, source = picked
                if not validate(cnpj) or cnpj in self._tried_set or self.cache.should_skip(cnpj):
                    continue
                self._tried_set.add(cnpj)
                logger.debug(f"[MINERACAO] Candidato {cnpj} ({source})")

            # publicado só depois da resposta: rate limit não conta tentativa
            self._tried += 1

            if not first_request and await self._sleep(config.request_delay):
                self._tried -= 1
                self._finish(MiningState.ABORTED)
                return
            first_request = False

            try:
                company = await self._lookup(cnpj)
            except _Stopped:
                self._tried -= 1
                self._finish(MiningState.ABORTED)
                return
            except RateLimitedError as e:
                self._tried -= 1
                consecutive_errors = 0
                retry = cnpj
                logger.warning(
                    f"[MINERACAO] Limite de requisições ({e}), aguardando {config.rate_limit_delay}s"
                )
                if await self._sleep(config.rate_limit_delay):
                    self._finish(MiningState.ABORTED)
                    return
                continue
            except Exception as e:
                if isinstance(e, RegistryPayloadError):
                    self.cache.record_outcome(cnpj, Outcome.ERROR)
                consecutive_errors += 1
                level = logging.WARNING if isinstance(e, RegistryError) else logging.ERROR
                logger.log(
                    level,
                    f"[MINERACAO] Erro ao consultar {cnpj} "
                    f"({consecutive_errors}/{config.max_consecutive_errors}): {e!r}",
                )
                self._publish()
                if consecutive_errors >= config.max_consecutive_errors:
                    self._finish(
                        MiningState.FAILED,
                        f"Muitos erros consecutivos ({consecutive_errors}). "
                        "Verifique a conexão e tente novamente.",
                    )
                    return
            else:
                consecutive_errors = 0
                if company is None:
                    self.cache.record_outcome(cnpj, Outcome.NOT_FOUND)
                elif matches_filters(company, criteria):
                    self._companies.append(company)
                    self.cache.record_outcome(cnpj, Outcome.ACCEPTED, company)
                    logger.info(
                        f"[MINERACAO] ✓ {company.razao_social} ({cnpj}) "
                        f"{len(self._companies)}/{self._target}"
                    )
                else:
                    self.cache.record_outcome(cnpj, Outcome.FILTERED, company)
                self._publish()

            if len(self._companies) >= self._target:
                self._finish(MiningState.COMPLETED)
                return

            if self._tried >= max_attempts:
                self._finish(
                    MiningState.FAILED,
                    f"Limite de {max_attempts} tentativas atingido. "
                    "Tente relaxar os filtros.",
                )
                return

    async def _sleep(self, seconds: float) -> bool:
        """Espera ``seconds``. Retorna True se a parada foi solicitada."""
        if seconds <= 0:
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _lookup(self, cnpj: str) -> Company | None:
        lookup_task = asyncio.ensure_future(self.lookup(cnpj))
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {lookup_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_task.cancel()
            if not lookup_task.done():
                lookup_task.cancel()

        if lookup_task in done:
            return lookup_task.result()

        await asyncio.wait({lookup_task})
        raise _Stopped()
