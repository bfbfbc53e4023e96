"""Cliente HTTP para consultar CNPJs em APIs públicas de registro.

Provedores suportados: BrasilAPI, ReceitaWS e MinhaReceita. Cada um é
normalizado para ``Company``. O cliente não faz retentativas; quem decide
esperar e tentar de novo é o controlador da mineração.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import ValidationError

from minerador.schemas.cnpj import Company, SocioInfo
from minerador.services.cnpj_generator import clean
from minerador.services.trust_score import with_trust_score

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
    "User-Agent": "MineradorCNPJ/1.0",
}

PORTE_MAP = {
    "MICRO EMPRESA": "ME",
    "MICROEMPRESA": "ME",
    "ME": "ME",
    "EMPRESA DE PEQUENO PORTE": "EPP",
    "EPP": "EPP",
    "DEMAIS": "DEMAIS",
}


class RegistryError(Exception):
    """Falha de rede ou resposta inesperada do provedor."""


class RateLimitedError(RegistryError):
    """O provedor limitou as requisições (HTTP 429 ou marcador equivalente)."""


class RegistryPayloadError(RegistryError):
    """Resposta 2xx que não pôde ser interpretada como empresa."""


def normalize_porte(value: Any) -> str:
    porte = str(value or "").strip().upper()
    return PORTE_MAP.get(porte, porte)


def parse_capital(value: Any) -> float:
    """Converte o capital social ("10000.00", "1.234,56", 5000) em float."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    texto = "".join(c for c in str(value) if c.isdigit() or c in ",.")
    if "," in texto:
        texto = texto.replace(".", "").replace(",", ".")
    try:
        return float(texto) if texto else 0.0
    except ValueError:
        return 0.0


def is_rate_limit_payload(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    if str(data.get("error", "")).upper() == "RATE_LIMIT":
        return True
    message = str(data.get("message", "")).lower()
    return "too many" in message or "limite" in message


class RegistryProvider(ABC):
    """Adaptador de um provedor de dados cadastrais."""

    name: str
    default_base_url: str

    @abstractmethod
    def path(self, cnpj: str) -> str:
        """Caminho da consulta de um CNPJ."""

    @abstractmethod
    def parse(self, cnpj: str, data: dict) -> Company | None:
        """Normaliza o payload. None quando o provedor diz que o CNPJ não existe."""


class BrasilAPIProvider(RegistryProvider):
    name = "BrasilAPI"
    default_base_url = "https://brasilapi.com.br/api"

    def path(self, cnpj: str) -> str:
        return f"/cnpj/v1/{cnpj}"

    def parse(self, cnpj: str, data: dict) -> Company | None:
        situacao = data.get("descricao_situacao_cadastral") or data.get("situacao_cadastral")

        logradouro = data.get("logradouro")
        tipo = data.get("descricao_tipo_de_logradouro")
        if tipo and logradouro:
            logradouro = f"{tipo} {logradouro}"

        cnae = data.get("cnae_fiscal")
        return Company(
            cnpj=clean(str(data.get("cnpj") or cnpj)),
            razao_social=data.get("razao_social") or "",
            nome_fantasia=data.get("nome_fantasia") or None,
            situacao_cadastral=str(situacao or ""),
            uf=data.get("uf") or "",
            municipio=data.get("municipio") or "",
            capital_social=parse_capital(data.get("capital_social")),
            porte=normalize_porte(data.get("porte") or data.get("descricao_porte")),
            natureza_juridica=data.get("natureza_juridica"),
            data_inicio_atividade=data.get("data_inicio_atividade"),
            cnae_fiscal=str(cnae) if cnae else None,
            cnae_fiscal_descricao=data.get("cnae_fiscal_descricao"),
            logradouro=logradouro or None,
            numero=data.get("numero") or None,
            complemento=data.get("complemento") or None,
            bairro=data.get("bairro") or None,
            cep=data.get("cep") or None,
            telefone=data.get("ddd_telefone_1") or data.get("ddd_telefone_2") or None,
            email=data.get("email") or None,
            socios=[
                SocioInfo(
                    nome=s.get("nome_socio", ""),
                    qualificacao=s.get("qualificacao_socio"),
                    data_entrada_sociedade=s.get("data_entrada_sociedade"),
                )
                for s in data.get("qsa") or []
            ],
            data_source=self.name,
        )


class MinhaReceitaProvider(BrasilAPIProvider):
    """MinhaReceita devolve o mesmo layout da BrasilAPI."""

    name = "MinhaReceita"
    default_base_url = "https://minhareceita.org"

    def path(self, cnpj: str) -> str:
        return f"/{cnpj}"


class ReceitaWSProvider(RegistryProvider):
    name = "ReceitaWS"
    default_base_url = "https://receitaws.com.br/v1"

    def path(self, cnpj: str) -> str:
        return f"/cnpj/{cnpj}"

    def parse(self, cnpj: str, data: dict) -> Company | None:
        # ReceitaWS responde 200 com status ERROR para CNPJ inválido/inexistente
        if data.get("status") == "ERROR":
            if is_rate_limit_payload(data):
                raise RateLimitedError(data.get("message", "RATE_LIMIT"))
            logger.debug(f"[REGISTRO] ReceitaWS: {cnpj} - {data.get('message')}")
            return None

        atividade = (data.get("atividade_principal") or [{}])[0]
        return Company(
            cnpj=clean(str(data.get("cnpj") or cnpj)),
            razao_social=data.get("nome") or "",
            nome_fantasia=data.get("fantasia") or None,
            situacao_cadastral=data.get("situacao") or "",
            uf=data.get("uf") or "",
            municipio=data.get("municipio") or "",
            capital_social=parse_capital(data.get("capital_social")),
            porte=normalize_porte(data.get("porte")),
            natureza_juridica=data.get("natureza_juridica"),
            data_inicio_atividade=data.get("abertura"),
            cnae_fiscal=atividade.get("code") or None,
            cnae_fiscal_descricao=atividade.get("text") or None,
            logradouro=data.get("logradouro") or None,
            numero=data.get("numero") or None,
            complemento=data.get("complemento") or None,
            bairro=data.get("bairro") or None,
            cep=data.get("cep") or None,
            telefone=data.get("telefone") or None,
            email=data.get("email") or None,
            socios=[
                SocioInfo(nome=s.get("nome", ""), qualificacao=s.get("qual"))
                for s in data.get("qsa") or []
            ],
            data_source=self.name,
        )


PROVIDERS: dict[str, type[RegistryProvider]] = {
    "brasilapi": BrasilAPIProvider,
    "receitaws": ReceitaWSProvider,
    "minhareceita": MinhaReceitaProvider,
}


def get_provider(name: str) -> RegistryProvider:
    try:
        return PROVIDERS[name.strip().lower()]()
    except KeyError:
        raise ValueError(
            f"Provedor desconhecido: {name!r} (opções: {', '.join(PROVIDERS)})"
        ) from None


class RegistryClient:
    """Consulta um CNPJ por chamada, traduzindo o status HTTP em resultado."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        provider: RegistryProvider | str = "brasilapi",
        base_url: str | None = None,
    ):
        self.http = http
        self.provider = get_provider(provider) if isinstance(provider, str) else provider
        self.base_url = (base_url or self.provider.default_base_url).rstrip("/")

    async def fetch(self, cnpj: str) -> Company | None:
        """Busca uma empresa.

        Returns:
            Company com trust score, ou None se o CNPJ não existir (HTTP 404)

        Raises:
            RateLimitedError: HTTP 429, ou 500 com marcador de limite no corpo
            RegistryPayloadError: resposta 2xx que não é uma empresa
            RegistryError: falha de rede ou qualquer outro status não-2xx
        """
        digits = clean(cnpj)
        url = f"{self.base_url}{self.provider.path(digits)}"

        try:
            response = await self.http.get(url)
        except httpx.HTTPError as e:
            raise RegistryError(f"Erro de rede em {self.provider.name}: {e}") from e

        if response.status_code == 404:
            logger.debug(f"[REGISTRO] {digits} não encontrado ({self.provider.name})")
            return None

        if response.status_code == 429:
            raise RateLimitedError(f"{self.provider.name} retornou 429")

        if response.status_code == 500:
            try:
                body = response.json()
            except ValueError:
                body = None
            if is_rate_limit_payload(body):
                raise RateLimitedError(f"{self.provider.name} retornou 500 com RATE_LIMIT")

        if not response.is_success:
            raise RegistryError(f"{self.provider.name} retornou HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise RegistryPayloadError(f"Resposta não-JSON de {self.provider.name}") from e
        if not isinstance(data, dict):
            raise RegistryPayloadError(f"Resposta inesperada de {self.provider.name}: {type(data).__name__}")

        try:
            company = self.provider.parse(digits, data)
        except (ValidationError, AttributeError, TypeError, IndexError) as e:
            raise RegistryPayloadError(f"Payload inválido de {self.provider.name}: {e}") from e

        if company is None:
            return None
        return with_trust_score(company)


def create_http_client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, headers=DEFAULT_HEADERS, follow_redirects=True)
