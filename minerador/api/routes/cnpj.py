"""Router para validação e consulta avulsa de CNPJs."""

from fastapi import APIRouter, Depends, HTTPException, status

from minerador.api.deps import get_registry_client
from minerador.schemas.cnpj import CnpjValidation, Company
from minerador.services.cnpj_generator import clean, format_cnpj, validate
from minerador.services.registry_client import (
    RateLimitedError,
    RegistryClient,
    RegistryError,
)

router = APIRouter(prefix="/cnpj", tags=["CNPJ"])


@router.get("/validate/{cnpj}", response_model=CnpjValidation)
async def validate_cnpj(cnpj: str):
    """Valida os dígitos verificadores."""
    valid = validate(cnpj)
    digits = clean(cnpj)
    return CnpjValidation(
        cnpj=digits,
        valid=valid,
        formatted=format_cnpj(digits) if valid else None,
    )


@router.get("/{cnpj}", response_model=Company)
async def lookup_cnpj(
    cnpj: str,
    registry: RegistryClient = Depends(get_registry_client),
):
    """Consulta um CNPJ no provedor configurado."""
    if not validate(cnpj):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"CNPJ {cnpj} inválido.",
        )

    try:
        company = await registry.fetch(cnpj)
    except RateLimitedError:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Limite de requisições do provedor atingido. Tente novamente em instantes.",
        )
    except RegistryError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Erro ao consultar o provedor: {e}",
        )

    if company is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"CNPJ {cnpj} nao encontrado.",
        )
    return company
