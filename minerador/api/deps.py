"""
Dependencies das rotas: serviços montados no lifespan da aplicação
"""
from fastapi import HTTPException, Request, status

from minerador.services.cnpj_cache import CnpjCacheOrchestrator
from minerador.services.container import MiningServices
from minerador.services.mining_service import MiningController
from minerador.services.registry_client import RegistryClient


def get_services(request: Request) -> MiningServices:
    """Obtém o container de serviços criado no startup"""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Serviços ainda não inicializados"
        )
    return services


def get_controller(request: Request) -> MiningController:
    return get_services(request).controller


def get_cache(request: Request) -> CnpjCacheOrchestrator:
    return get_services(request).cache


def get_registry_client(request: Request) -> RegistryClient:
    return get_services(request).registry
