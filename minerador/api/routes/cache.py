"""Router do cache de mineração (estatísticas e marcação de uso)."""

from fastapi import APIRouter, Depends, HTTPException, status

from minerador.api.deps import get_cache, get_controller
from minerador.schemas.cache import CacheStats, ClaimRequest, UsageResponse
from minerador.services.cnpj_cache import CnpjCacheOrchestrator
from minerador.services.cnpj_generator import clean, validate
from minerador.services.mining_service import MiningController

router = APIRouter(prefix="/cache", tags=["Cache"])


def _usage(cache: CnpjCacheOrchestrator, cnpj: str) -> UsageResponse:
    return UsageResponse(
        cnpj=cnpj,
        is_used=cache.is_used(cnpj),
        is_blacklisted=cache.is_blacklisted(cnpj),
        is_whitelisted=cache.is_whitelisted(cnpj),
    )


@router.get("/stats", response_model=CacheStats)
async def get_stats(cache: CnpjCacheOrchestrator = Depends(get_cache)):
    """Contagem de cada conjunto e CNPJs disponíveis."""
    return cache.stats()


@router.get("/used/{cnpj}", response_model=UsageResponse)
async def get_usage(cnpj: str, cache: CnpjCacheOrchestrator = Depends(get_cache)):
    """Indica se o CNPJ já foi usado e em quais conjuntos está."""
    return _usage(cache, clean(cnpj))


@router.post("/used", response_model=UsageResponse)
async def claim_cnpj(
    request: ClaimRequest,
    cache: CnpjCacheOrchestrator = Depends(get_cache),
):
    """Marca um CNPJ como usado (idempotente)."""
    if not validate(request.cnpj):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"CNPJ {request.cnpj} inválido.",
        )
    cnpj = clean(request.cnpj)
    cache.mark_used(cnpj)
    return _usage(cache, cnpj)


@router.delete("", response_model=CacheStats)
async def clear_cache(
    cache: CnpjCacheOrchestrator = Depends(get_cache),
    controller: MiningController = Depends(get_controller),
):
    """Limpa o cache local. Não permitido durante uma mineração."""
    if controller.is_mining:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Pare a mineração antes de limpar o cache.",
        )
    cache.clear()
    return cache.stats()
