"""Schemas da mineração de CNPJs."""

import enum

from pydantic import BaseModel, Field, field_validator

from minerador.schemas.cnpj import Company


class SizeTier(str, enum.Enum):
    """Porte da empresa aceito no filtro"""
    ANY = "ANY"
    ME = "ME"           # Microempresa
    EPP = "EPP"         # Empresa de pequeno porte
    DEMAIS = "DEMAIS"   # Demais (médias e grandes)


class MiningState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


class MiningCriteria(BaseModel):
    """Filtros de aceitação de uma mineração (imutáveis durante a execução)"""

    capital_minimo: float = Field(10000, ge=0, description="Capital social mínimo (R$)")
    use_capital_filter: bool = Field(False, description="Aplicar o filtro de capital")
    uf: str = Field("AUTO", description="'AUTO' ou sigla da UF")
    porte: SizeTier = SizeTier.ANY

    model_config = {"frozen": True}

    @field_validator("uf")
    @classmethod
    def validate_uf(cls, value: str) -> str:
        value = value.strip().upper()
        if value != "AUTO" and (len(value) != 2 or not value.isalpha()):
            raise ValueError("UF deve ser 'AUTO' ou uma sigla de 2 letras")
        return value

    @field_validator("porte", mode="before")
    @classmethod
    def accept_todos(cls, value):
        if isinstance(value, str) and value.strip().upper() == "TODOS":
            return SizeTier.ANY
        return value


class MiningProgress(BaseModel):
    tried: int = 0
    found: int = 0
    target: int = 0
    percentage: float = 0.0
    is_complete: bool = False


class MiningStatus(BaseModel):
    state: MiningState
    is_mining: bool
    progress: MiningProgress
    error: str | None = None
    companies: list[Company] = Field(default_factory=list)


class MiningStartResponse(BaseModel):
    started: bool
    state: MiningState
    target: int
