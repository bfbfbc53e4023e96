"""Fontes de CNPJs candidatos e a política de sorteio entre elas."""

import random
from abc import ABC, abstractmethod
from typing import Sequence

from minerador.services.cnpj_generator import generate

# Política padrão: cache (95%), wordlist (4%), geração aleatória (1%)
CACHE_WEIGHT = 95
WORDLIST_WEIGHT = 4
GENERATOR_WEIGHT = 1


class CandidateSource(ABC):
    """Fonte de candidatos com um peso no sorteio."""

    def __init__(self, name: str, weight: float):
        if weight < 0:
            raise ValueError("Peso da fonte não pode ser negativo")
        self.name = name
        self.weight = weight

    @abstractmethod
    def has_next(self) -> bool:
        """Indica se a fonte ainda tem candidatos."""

    @abstractmethod
    def next(self) -> str:
        """Retorna o próximo candidato."""


class SequenceSource(CandidateSource):
    """Sequência finita consumida por índice (cache ou wordlist)."""

    def __init__(self, name: str, weight: float, items: Sequence[str]):
        super().__init__(name, weight)
        self._items = tuple(items)
        self._index = 0

    def has_next(self) -> bool:
        return self._index < len(self._items)

    def next(self) -> str:
        if not self.has_next():
            raise IndexError(f"Fonte '{self.name}' esgotada")
        item = self._items[self._index]
        self._index += 1
        return item

    def reset(self) -> None:
        self._index = 0

    @property
    def remaining(self) -> int:
        return len(self._items) - self._index


class GeneratorSource(CandidateSource):
    """Sequência infinita de CNPJs gerados. A deduplicação fica com quem consome."""

    def __init__(
        self,
        name: str,
        weight: float,
        rng: random.Random | None = None,
        uf: str | None = None,
    ):
        super().__init__(name, weight)
        self._rng = rng
        self.uf = uf

    def has_next(self) -> bool:
        return True

    def next(self) -> str:
        return generate(rng=self._rng, uf=self.uf)


class WeightedSourcePicker:
    """Sorteia a fonte pelo peso; se a sorteada estiver esgotada, usa a próxima
    fonte disponível na ordem de prioridade."""

    def __init__(self, sources: Sequence[CandidateSource], rng: random.Random | None = None):
        if not sources:
            raise ValueError("Informe ao menos uma fonte de candidatos")
        self.sources = list(sources)
        self._rng = rng or random.Random()

    def _draw_index(self) -> int:
        total = sum(s.weight for s in self.sources)
        if total <= 0:
            return 0
        r = self._rng.random() * total
        acumulado = 0.0
        for i, source in enumerate(self.sources):
            acumulado += source.weight
            if r < acumulado:
                return i
        return len(self.sources) - 1

    def pick(self) -> tuple[str, str] | None:
        """Retorna ``(cnpj, nome_da_fonte)`` ou None se todas estiverem esgotadas."""
        start = self._draw_index()
        ordem = self.sources[start:] + self.sources[:start]
        for source in ordem:
            if source.has_next():
                return source.next(), source.name
        return None


def default_sources(
    cached: Sequence[str],
    wordlist: Sequence[str],
    rng: random.Random | None = None,
    uf: str | None = None,
) -> list[CandidateSource]:
    """Monta a política padrão (cache → wordlist → geração).

    ``uf`` direciona a geração para as raízes daquela UF.
    """
    return [
        SequenceSource("cache", CACHE_WEIGHT, cached),
        SequenceSource("wordlist", WORDLIST_WEIGHT, wordlist),
        GeneratorSource("gerador", GENERATOR_WEIGHT, rng, uf),
    ]
