"""Trust score: nota heurística (50-99) calculada a partir dos dados cadastrais."""

from datetime import date, datetime

from minerador.schemas.cnpj import Company, TrustScoreBreakdown

BASE_SCORE = 50
MAX_SCORE = 99

# (capital mínimo, pontos) em ordem decrescente
CAPITAL_TIERS = (
    (1_000_000_000, 20),
    (100_000_000, 18),
    (10_000_000, 16),
    (1_000_000, 14),
    (100_000, 10),
    (10_000, 6),
)

# (anos mínimos, pontos)
AGE_TIERS = (
    (50, 20),
    (20, 18),
    (10, 15),
    (5, 12),
    (2, 8),
    (1, 5),
)

SIZE_POINTS = {
    "DEMAIS": 15,
    "MEDIO": 10,
    "EPP": 7,
    "ME": 5,
}


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(value[:10], fmt).date()
        except ValueError:
            continue
    return None


def years_since(opening: str | None, today: date | None = None) -> int:
    """Anos completos desde a abertura (0 se a data for desconhecida)."""
    aberta = _parse_date(opening)
    if aberta is None:
        return 0
    today = today or date.today()
    anos = today.year - aberta.year - ((today.month, today.day) < (aberta.month, aberta.day))
    return max(anos, 0)


def _capital_points(capital: float) -> int:
    for minimo, pontos in CAPITAL_TIERS:
        if capital >= minimo:
            return pontos
    return 2


def _age_points(anos: int) -> int:
    for minimo, pontos in AGE_TIERS:
        if anos >= minimo:
            return pontos
    return 2


def _filled(value: str | None) -> bool:
    return bool(value) and value != "undefined"


def score_label(score: int) -> str:
    if score >= 90:
        return "EXCELENTE"
    if score >= 80:
        return "ÓTIMO"
    if score >= 70:
        return "BOM"
    if score >= 60:
        return "REGULAR"
    return "BAIXO"


def calculate_trust_score(company: Company, today: date | None = None) -> TrustScoreBreakdown:
    """Calcula o trust score de uma empresa.

    Composição: base 50 + capital (2-20) + idade (2-20) + porte (3-15)
    + completude dos dados (3 por campo, máx. 15), limitado a 99.
    """
    capital = _capital_points(company.capital_social or 0)
    age = _age_points(years_since(company.data_inicio_atividade, today))
    size = SIZE_POINTS.get((company.porte or "").upper(), 3)

    campos = (
        company.telefone,
        company.email,
        company.cnae_fiscal,
        company.logradouro,
        company.bairro,
    )
    completeness = min(sum(1 for c in campos if _filled(c)) * 3, 15)

    score = min(BASE_SCORE + capital + age + size + completeness, MAX_SCORE)
    return TrustScoreBreakdown(
        score=score,
        capital=capital,
        age=age,
        size=size,
        completeness=completeness,
        label=score_label(score),
    )


def with_trust_score(company: Company, today: date | None = None) -> Company:
    """Cópia da empresa com ``trust_score`` e o detalhamento preenchidos."""
    breakdown = calculate_trust_score(company, today)
    return company.model_copy(update={
        "trust_score": breakdown.score,
        "trust_score_breakdown": breakdown,
    })
