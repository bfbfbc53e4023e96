"""Montagem das dependências da mineração (uma vez por processo)."""

import logging
from dataclasses import dataclass

import httpx

from minerador.core.config import Settings
from minerador.core.database import create_local_engine
from minerador.services.cnpj_cache import CnpjCacheOrchestrator
from minerador.services.local_cache import CacheStore, MemoryCacheStore, SqliteCacheStore
from minerador.services.mining_service import MiningConfig, MiningController
from minerador.services.registry_client import RegistryClient, create_http_client
from minerador.services.remote_cache import RemoteCacheMirror, create_remote_mirror

logger = logging.getLogger(__name__)


@dataclass
class MiningServices:
    settings: Settings
    local: CacheStore
    remote: RemoteCacheMirror
    cache: CnpjCacheOrchestrator
    http: httpx.AsyncClient
    registry: RegistryClient
    controller: MiningController

    async def close(self) -> None:
        if self.controller.is_mining:
            await self.controller.shutdown()
        await self.cache.drain()
        await self.http.aclose()
        await self.remote.close()
        logger.info("[SERVICOS] ✓ Recursos liberados")


def create_local_store(path: str) -> CacheStore:
    if not path:
        logger.info("[SERVICOS] LOCAL_CACHE_PATH vazio, usando cache em memória")
        return MemoryCacheStore()
    return SqliteCacheStore(create_local_engine(path))


async def build_services(settings: Settings) -> MiningServices:
    """Cria cache local, espelho remoto, cliente HTTP e controlador."""
    local = create_local_store(settings.LOCAL_CACHE_PATH)
    remote = create_remote_mirror(settings)
    await remote.ensure_schema()

    cache = CnpjCacheOrchestrator(local, remote)
    http = create_http_client(settings.REGISTRY_TIMEOUT)
    registry = RegistryClient(
        http,
        provider=settings.REGISTRY_PROVIDER,
        base_url=settings.REGISTRY_BASE_URL or None,
    )
    controller = MiningController(cache, registry.fetch, MiningConfig.from_settings(settings))

    logger.info(
        f"[SERVICOS] Provedor: {registry.provider.name} ({registry.base_url}), "
        f"espelho remoto: {'ativo' if remote.enabled else 'desativado'}"
    )
    return MiningServices(
        settings=settings,
        local=local,
        remote=remote,
        cache=cache,
        http=http,
        registry=registry,
        controller=controller,
    )
