"""Filtro de aceitação das empresas mineradas."""

import logging
import re

from minerador.schemas.cnpj import Company
from minerador.schemas.mining import MiningCriteria, SizeTier

logger = logging.getLogger(__name__)

# Código da situação cadastral "ATIVA" na Receita Federal
ACTIVE_STATUS_CODE = "2"

# "ATIVA" como palavra inteira: "INATIVA" não casa
_ACTIVE_MARKER = re.compile(r"\bATIVA\b")


def is_active(company: Company) -> bool:
    status = (company.situacao_cadastral or "").strip().upper()
    return status == ACTIVE_STATUS_CODE or bool(_ACTIVE_MARKER.search(status))


def matches_filters(company: Company, criteria: MiningCriteria) -> bool:
    """Verifica se a empresa atende aos filtros.

    A empresa precisa estar ativa (sempre). Depois, se habilitados: capital
    mínimo, UF (quando diferente de AUTO) e porte (quando diferente de ANY).
    """
    if not is_active(company):
        logger.debug(f"[FILTRO] Rejeitado: {company.cnpj} - Status: {company.situacao_cadastral} (não ativo)")
        return False

    if criteria.use_capital_filter and company.capital_social < criteria.capital_minimo:
        logger.debug(
            f"[FILTRO] Rejeitado: {company.cnpj} - Capital R$ {company.capital_social} "
            f"< R$ {criteria.capital_minimo}"
        )
        return False

    if criteria.uf != "AUTO" and (company.uf or "").upper() != criteria.uf:
        logger.debug(f"[FILTRO] Rejeitado: {company.cnpj} - UF {company.uf} != {criteria.uf}")
        return False

    if criteria.porte != SizeTier.ANY and (company.porte or "").upper() != criteria.porte.value:
        logger.debug(f"[FILTRO] Rejeitado: {company.cnpj} - Porte {company.porte} != {criteria.porte.value}")
        return False

    return True
