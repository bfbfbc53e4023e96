"""Schemas para consulta de CNPJ."""

from pydantic import BaseModel, Field


class SocioInfo(BaseModel):
    nome: str
    qualificacao: str | None = None
    data_entrada_sociedade: str | None = None


class TrustScoreBreakdown(BaseModel):
    score: int
    capital: int
    age: int
    size: int
    completeness: int
    label: str


class Company(BaseModel):
    """Empresa normalizada, independente do provedor consultado."""

    cnpj: str
    razao_social: str = ""
    nome_fantasia: str | None = None
    situacao_cadastral: str = ""
    uf: str = ""
    municipio: str = ""
    capital_social: float = 0.0
    porte: str = ""
    natureza_juridica: str | None = None
    data_inicio_atividade: str | None = None

    # CNAE
    cnae_fiscal: str | None = None
    cnae_fiscal_descricao: str | None = None

    # Endereco
    logradouro: str | None = None
    numero: str | None = None
    complemento: str | None = None
    bairro: str | None = None
    cep: str | None = None

    # Contato
    telefone: str | None = None
    email: str | None = None

    socios: list[SocioInfo] = Field(default_factory=list)

    trust_score: int = 0
    trust_score_breakdown: TrustScoreBreakdown | None = None
    data_source: str | None = None


class CnpjValidation(BaseModel):
    cnpj: str
    valid: bool
    formatted: str | None = None
