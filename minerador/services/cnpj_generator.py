"""Validação, formatação e geração de CNPJs.

Funções puras: nenhuma delas faz I/O.
"""

import random
import re

# Pesos oficiais dos dígitos verificadores (módulo 11)
PESOS_DV1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
PESOS_DV2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)

# Probabilidade de usar a raiz de uma empresa real conhecida
KNOWN_PREFIX_PROBABILITY = 0.7

# Raízes (8 primeiros dígitos) de empresas reais e ativas.
# Filiais dessas raízes têm taxa de acerto muito maior que raízes aleatórias.
KNOWN_PREFIXES = (
    # Bancos
    "00000000", "00360305", "60701190", "60746948", "02038232",
    "90400888", "31872495", "30723886", "28195667", "03012230",
    # Varejo e e-commerce
    "45242914", "47508411", "09168704", "47960950", "61585865",
    "59291534", "71943039", "05570714", "47866934", "06047087",
    # Alimentos e bebidas
    "17184037", "07512441", "60409075", "45997418", "33662542",
    "42591651", "07358108", "14388334", "28276751",
    # Indústria
    "33041260", "02658435", "33000167", "33592510", "50746577",
    "18372277", "61412615", "02558157", "17167396",
    # Tecnologia
    "15089665", "05948625", "11495073", "07945233", "03007331",
    "09089356",
    # Telecom
    "33000118", "05423963", "04206050", "02449992",
    # Transporte
    "28665732", "33066408", "02575829", "00860462", "03512233",
)

# Dois primeiros dígitos das raízes com mais aberturas de ME/EPP por UF
UF_ROOT_PREFIXES = {
    "SP": ("05", "06", "07", "08", "09", "10", "11", "12"),
    "RJ": ("28", "29", "30", "31", "32"),
    "MG": ("16", "17", "18", "23"),
    "RS": ("90", "91", "92"),
    "PR": ("76", "77", "78"),
    "SC": ("82", "83"),
    "BA": ("13", "14"),
    "PE": ("09", "10"),
    "CE": ("07", "08"),
    "DF": ("01", "02", "03"),
    "GO": ("01", "02"),
    "ES": ("27",),
}

_NON_DIGITS = re.compile(r"\D")


def clean(cnpj: str) -> str:
    """Remove a formatação, mantendo apenas dígitos."""
    return _NON_DIGITS.sub("", cnpj or "")


def _dv_mod11(digits: str, pesos: tuple[int, ...]) -> int:
    resto = sum(int(d) * p for d, p in zip(digits, pesos)) % 11
    return 0 if resto < 2 else 11 - resto


def check_digits(base12: str) -> str:
    """Calcula os dois dígitos verificadores para os 12 primeiros dígitos."""
    if len(base12) != 12 or not base12.isdigit():
        raise ValueError(f"Base de CNPJ inválida: {base12!r}")
    dv1 = _dv_mod11(base12, PESOS_DV1)
    dv2 = _dv_mod11(base12 + str(dv1), PESOS_DV2)
    return f"{dv1}{dv2}"


def complete(base12: str) -> str:
    """Retorna o CNPJ completo (base + dígitos verificadores)."""
    return base12 + check_digits(base12)


def validate(cnpj: str) -> bool:
    """Valida um CNPJ com ou sem máscara."""
    digits = clean(cnpj)
    if len(digits) != 14:
        return False
    # 00000000000000, 11111111111111, ...
    if len(set(digits)) == 1:
        return False
    return check_digits(digits[:12]) == digits[12:]


def format_cnpj(cnpj: str) -> str:
    """Formata como XX.XXX.XXX/XXXX-XX. Entradas sem 14 dígitos voltam intactas."""
    digits = clean(cnpj)
    if len(digits) != 14:
        return cnpj
    return f"{digits[0:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:14]}"


def generate(
    known_prefix: str | None = None,
    rng: random.Random | None = None,
    uf: str | None = None,
) -> str:
    """Gera um CNPJ válido.

    Com probabilidade ~0.7 usa uma raiz real (``known_prefix`` ou uma das
    ``KNOWN_PREFIXES``); caso contrário sorteia uma raiz de 8 dígitos. Com
    ``uf`` presente em ``UF_ROOT_PREFIXES``, a raiz sorteada começa por um dos
    prefixos daquela UF (UFs sem faixa conhecida sorteiam livremente). A
    filial é sorteada entre 0001 e 9999.
    """
    if known_prefix is not None and (len(known_prefix) != 8 or not known_prefix.isdigit()):
        raise ValueError(f"Raiz de CNPJ inválida: {known_prefix!r}")

    rng = rng or random
    uf_prefixes = UF_ROOT_PREFIXES.get(uf.upper()) if uf else None
    while True:
        if rng.random() < KNOWN_PREFIX_PROBABILITY:
            prefix = known_prefix or rng.choice(KNOWN_PREFIXES)
        elif uf_prefixes:
            prefix = f"{rng.choice(uf_prefixes)}{rng.randrange(1_000_000):06d}"
        else:
            prefix = f"{rng.randrange(100_000_000):08d}"

        filial = f"{rng.randint(1, 9999):04d}"
        cnpj = complete(prefix + filial)
        if validate(cnpj):
            return cnpj
