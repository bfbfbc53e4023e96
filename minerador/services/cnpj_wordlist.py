"""Wordlist estática de CNPJs prováveis.

Começa pelos CNPJs de grandes empresas conhecidas e segue com faixas de
raízes com alta densidade de aberturas recentes (2024-2026), em sua maioria
ME e EPP. Cada faixa é amostrada a cada 100 raízes e, para cada raiz, são
emitidas as filiais 0001-0005. A lista é montada uma única vez, na
importação do módulo.
"""

import logging

from minerador.services.cnpj_generator import complete

logger = logging.getLogger(__name__)

# CNPJs de grandes empresas ativas, testados antes das faixas.
# Os dígitos verificadores são recalculados na montagem da lista.
KNOWN_COMPANY_CNPJS = (
    # Bancos
    "00000000000191",  # Banco do Brasil
    "00360305000104",  # Caixa Econômica Federal
    "60701190000104",  # Itaú Unibanco
    "60746948000112",  # Bradesco
    "02038232000164",  # Santander Brasil
    "90400888000142",
    "31872495000172",  # Nubank
    "30723886000162",  # Inter
    "28195667000196",  # BTG Pactual
    "03012230000144",  # BNDES
    # Varejo e e-commerce
    "45242914000105",  # Magazine Luiza
    "47508411000114",  # Mercado Livre
    "09168704000142",  # Americanas
    "47960950000121",  # Casas Bahia
    "61585865000146",  # Pão de Açúcar
    "59291534000107",  # Lojas Renner
    "71943039000245",  # Amazon Brasil
    "05570714000159",  # B2W
    "47866934000174",  # Netshoes
    "06047087000157",  # Dafiti
    # Alimentos e bebidas
    "17184037000109",  # JBS
    "07512441000103",  # BRF
    "60409075000122",  # Ambev
    "45997418000153",  # Coca-Cola Brasil
    "33662542004532",  # McDonald's
    "42591651001743",  # Burger King
    "07358108000119",  # iFood
    "14388334000135",  # Rappi
    "28276751000170",  # 99
    # Indústria
    "33041260000163",  # Usiminas
    "02658435000142",  # Gerdau
    "33000167000101",  # Petrobras
    "33592510000154",  # Vale
    "50746577000115",  # Embraer
    "18372277000136",  # WEG
    "61412615000117",  # Eletrobras
    "02558157000162",  # CSN / Vivo
    "17167396000189",  # Braskem
    # Tecnologia
    "15089665000182",  # Totvs
    "05948625000133",  # Locaweb
    "11495073000122",  # CI&T
    "07945233000144",  # VTEX / Linx
    "03007331000117",  # Stone
    "09089356000118",  # PagSeguro
    # Telecom
    "33000118000179",  # Claro
    "05423963000111",  # TIM
    "04206050000102",  # Oi
    "02449992000121",  # Nextel
    # Transporte
    "28665732000163",  # Localiza
    "33066408000115",  # GOL
    "02575829000148",  # LATAM
    "00860462000132",  # Azul
    "03512233000100",  # Rumo
)

SAMPLING_STRIDE = 100
FILIAIS_POR_RAIZ = 5

# (prefixo de 2 dígitos, início, fim) dos 6 dígitos seguintes
HIGH_DENSITY_RANGES = {
    "SP_2025": (
        ("53", 100000, 110000),
        ("54", 100000, 110000),
        ("55", 100000, 110000),
        ("56", 100000, 110000),
        ("57", 100000, 102000),
    ),
    "RJ_2025": (
        ("45", 100000, 105000),
        ("46", 100000, 105000),
        ("47", 100000, 105000),
    ),
    "MG_2025": (
        ("48", 100000, 105000),
        ("49", 100000, 105000),
    ),
    "SUL_2025": (
        ("41", 100000, 103000),  # PR
        ("42", 100000, 103000),  # SC
        ("43", 100000, 103000),  # RS
    ),
}


def _build_wordlist() -> tuple[str, ...]:
    cnpjs: list[str] = [complete(c[:12]) for c in KNOWN_COMPANY_CNPJS]
    for ranges in HIGH_DENSITY_RANGES.values():
        for prefixo, inicio, fim in ranges:
            for meio in range(inicio, fim, SAMPLING_STRIDE):
                raiz = f"{prefixo}{meio:06d}"
                for filial in range(1, FILIAIS_POR_RAIZ + 1):
                    cnpjs.append(complete(f"{raiz}{filial:04d}"))
    # dict.fromkeys preserva a ordem ao remover duplicados
    return tuple(dict.fromkeys(cnpjs))


CNPJ_WORDLIST: tuple[str, ...] = _build_wordlist()

logger.debug(f"[WORDLIST] {len(CNPJ_WORDLIST)} CNPJs carregados")
