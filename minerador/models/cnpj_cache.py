"""Tabelas compartilhadas do cache de mineração (espelho remoto)."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from minerador.core.database import Base


class CnpjWhitelist(Base):
    """Empresas confirmadas (existem, ativas e aprovadas em algum filtro)."""

    __tablename__ = "cnpj_whitelist"

    cnpj: Mapped[str] = mapped_column(String(14), primary_key=True)

    razao_social: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    nome_fantasia: Mapped[str | None] = mapped_column(String(200))
    uf: Mapped[str | None] = mapped_column(String(2), index=True)
    municipio: Mapped[str | None] = mapped_column(String(100))
    capital_social: Mapped[float | None] = mapped_column(Numeric(18, 2))
    porte: Mapped[str | None] = mapped_column(String(50))
    trust_score: Mapped[int] = mapped_column(Integer, default=0)

    times_verified: Mapped[int] = mapped_column(Integer, default=1)
    found_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_verified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class CnpjBlacklist(Base):
    """CNPJs que não valem nova consulta (inexistentes, inativos, com erro, filtrados)."""

    __tablename__ = "cnpj_blacklist"

    cnpj: Mapped[str] = mapped_column(String(14), primary_key=True)
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    added_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class CnpjUsed(Base):
    """CNPJs já reivindicados por usuários."""

    __tablename__ = "cnpj_used"

    cnpj: Mapped[str] = mapped_column(String(14), primary_key=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
