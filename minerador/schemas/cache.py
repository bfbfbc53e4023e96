"""Schemas do cache de mineração (whitelist / blacklist / used)."""

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheKind(str, enum.Enum):
    """Conjuntos mantidos pelo cache"""
    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"
    USED = "used"


class BlacklistReason(str, enum.Enum):
    """Motivo de um CNPJ ter ido para a blacklist"""
    NOT_FOUND = "NOT_FOUND"   # Não existe no registro
    INACTIVE = "INACTIVE"     # Existe, mas não está ativa
    ERROR = "ERROR"           # Resposta inválida do provedor
    FILTERED = "FILTERED"     # Existe e ativa, mas reprovada nos filtros


class WhitelistEntry(BaseModel):
    cnpj: str
    razao_social: str = ""
    nome_fantasia: str | None = None
    uf: str = ""
    municipio: str = ""
    capital_social: float = 0.0
    porte: str = ""
    trust_score: int = 0
    found_at: datetime = Field(default_factory=utcnow)
    last_verified: datetime = Field(default_factory=utcnow)
    times_verified: int = 1


class BlacklistEntry(BaseModel):
    cnpj: str
    reason: BlacklistReason
    added_at: datetime = Field(default_factory=utcnow)


class UsedEntry(BaseModel):
    cnpj: str
    used_at: datetime = Field(default_factory=utcnow)


CacheEntry = WhitelistEntry | BlacklistEntry | UsedEntry

ENTRY_TYPES: dict[CacheKind, type[BaseModel]] = {
    CacheKind.WHITELIST: WhitelistEntry,
    CacheKind.BLACKLIST: BlacklistEntry,
    CacheKind.USED: UsedEntry,
}


class CacheStats(BaseModel):
    whitelist: int
    blacklist: int
    used: int
    available: int


class ClaimRequest(BaseModel):
    """Request para marcar um CNPJ como usado"""
    cnpj: str = Field(..., min_length=14, max_length=18)


class UsageResponse(BaseModel):
    cnpj: str
    is_used: bool
    is_blacklisted: bool
    is_whitelisted: bool
