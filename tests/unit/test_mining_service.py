"""Unit tests for the mining controller."""

import asyncio
import random

import pytest

from minerador.schemas.cache import BlacklistReason, CacheKind, WhitelistEntry
from minerador.schemas.mining import MiningCriteria, MiningState
from minerador.services.candidate_sources import SequenceSource
from minerador.services.cnpj_cache import Outcome
from minerador.services.cnpj_generator import complete
from minerador.services.mining_service import MiningConfig, MiningController
from minerador.services.registry_client import (
    RateLimitedError,
    RegistryError,
    RegistryPayloadError,
)


def fast_config(**overrides):
    values = dict(
        target=5,
        request_delay=0,
        rate_limit_delay=0,
        max_consecutive_errors=3,
        attempt_multiplier=100,
    )
    values.update(overrides)
    return MiningConfig(**values)


class FakeLookup:
    """Consulta falsa: ``behaviour(cnpj, n)`` decide o resultado da n-ésima chamada."""

    def __init__(self, behaviour):
        self.behaviour = behaviour
        self.calls = []

    async def __call__(self, cnpj):
        self.calls.append(cnpj)
        result = self.behaviour(cnpj, len(self.calls))
        if isinstance(result, Exception):
            raise result
        return result


def fixed_sources(cnpjs):
    def factory(cached, wordlist, rng, uf):
        return [SequenceSource("fixa", 1, cnpjs)]
    return factory


class ZeroRandom(random.Random):
    def random(self):
        return 0.0


def controller_for(orchestrator, lookup, **kwargs):
    config = kwargs.pop("config", fast_config())
    kwargs.setdefault("rng", random.Random(42))
    return MiningController(orchestrator, lookup, config, **kwargs)


class TestRun:

    def test_reaches_target(self, orchestrator, make_company):
        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj) if n <= 5 else None)
        controller = controller_for(orchestrator, lookup)

        status = asyncio.run(controller.run(MiningCriteria()))

        assert status.state == MiningState.COMPLETED
        assert not status.is_mining
        assert len(status.companies) == 5
        assert status.progress.tried == 5
        assert status.progress.is_complete
        assert status.progress.percentage == 100.0
        assert status.error is None
        assert orchestrator.stats().whitelist == 5
        assert len(set(lookup.calls)) == 5

    def test_target_override(self, orchestrator, make_company):
        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj))
        controller = controller_for(orchestrator, lookup)
        status = asyncio.run(controller.run(MiningCriteria(), target=2))
        assert status.progress.target == 2
        assert len(status.companies) == 2

    def test_outcomes_are_cached(self, orchestrator, make_company):
        def behaviour(cnpj, n):
            if n == 1:
                return None
            if n == 2:
                return make_company(cnpj, situacao_cadastral="INATIVA")
            if n == 3:
                return make_company(cnpj, uf="RJ")
            return make_company(cnpj)

        lookup = FakeLookup(behaviour)
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))
        asyncio.run(controller.run(MiningCriteria(uf="SP")))

        reasons = [orchestrator.local.get(CacheKind.BLACKLIST, c).reason for c in lookup.calls[:3]]
        assert reasons == [BlacklistReason.NOT_FOUND, BlacklistReason.INACTIVE, BlacklistReason.FILTERED]
        assert orchestrator.is_whitelisted(lookup.calls[3])

    def test_attempt_limit_fails_run(self, orchestrator):
        lookup = FakeLookup(lambda cnpj, n: None)
        controller = controller_for(orchestrator, lookup, config=fast_config(target=2, attempt_multiplier=3))

        status = asyncio.run(controller.run(MiningCriteria()))

        assert status.state == MiningState.FAILED
        assert status.progress.tried == 6
        assert "tentativas" in status.error
        assert orchestrator.stats().blacklist == 6

    def test_consecutive_errors_fail_run_and_keep_results(self, orchestrator, make_company):
        def behaviour(cnpj, n):
            return make_company(cnpj) if n <= 2 else RegistryError("HTTP 503")

        lookup = FakeLookup(behaviour)
        controller = controller_for(orchestrator, lookup, config=fast_config(target=10))

        status = asyncio.run(controller.run(MiningCriteria()))

        assert status.state == MiningState.FAILED
        assert "consecutivos" in status.error
        assert len(lookup.calls) == 5
        assert len(status.companies) == 2

    def test_connection_errors_count_toward_ceiling(self, orchestrator):
        lookup = FakeLookup(lambda cnpj, n: ConnectionError("reset by peer"))
        controller = controller_for(orchestrator, lookup)

        status = asyncio.run(controller.run(MiningCriteria()))

        assert status.state == MiningState.FAILED
        assert "consecutivos" in status.error
        assert len(lookup.calls) == 3
        assert status.progress.tried == 3
        assert orchestrator.stats().blacklist == 0

    def test_unexpected_lookup_error_is_survivable(self, orchestrator, make_company):
        def behaviour(cnpj, n):
            return OSError("rede") if n <= 2 else make_company(cnpj)

        lookup = FakeLookup(behaviour)
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))
        status = asyncio.run(controller.run(MiningCriteria()))

        assert status.state == MiningState.COMPLETED
        assert len(lookup.calls) == 3

    def test_error_streak_resets_on_response(self, orchestrator):
        def behaviour(cnpj, n):
            return RegistryError("timeout") if n % 2 else None

        lookup = FakeLookup(behaviour)
        config = fast_config(target=1, max_consecutive_errors=2, attempt_multiplier=10)
        status = asyncio.run(controller_for(orchestrator, lookup, config=config).run(MiningCriteria()))

        assert status.state == MiningState.FAILED
        assert "tentativas" in status.error
        assert len(lookup.calls) == 10

    def test_payload_error_is_blacklisted(self, orchestrator, make_company):
        def behaviour(cnpj, n):
            return RegistryPayloadError("json inválido") if n == 1 else make_company(cnpj)

        lookup = FakeLookup(behaviour)
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))
        asyncio.run(controller.run(MiningCriteria()))

        entry = orchestrator.local.get(CacheKind.BLACKLIST, lookup.calls[0])
        assert entry.reason == BlacklistReason.ERROR

    def test_skips_tried_and_cached_candidates(self, orchestrator):
        a, b, c = complete("111111110001"), complete("222222220001"), complete("333333330001")
        orchestrator.record_outcome(b, Outcome.NOT_FOUND)
        lookup = FakeLookup(lambda cnpj, n: None)
        controller = controller_for(
            orchestrator, lookup, sources_factory=fixed_sources([a, a, b, "123", c])
        )

        status = asyncio.run(controller.run(MiningCriteria()))

        assert lookup.calls == [a, c]
        assert status.progress.tried == 2
        assert status.state == MiningState.FAILED
        assert "esgotaram" in status.error

    def test_cached_candidates_come_first(self, orchestrator, make_company):
        cached, used = complete("444444440001"), complete("555555550001")
        orchestrator.local.add(CacheKind.WHITELIST, WhitelistEntry(cnpj=used))
        orchestrator.local.add(CacheKind.WHITELIST, WhitelistEntry(cnpj=cached))
        orchestrator.mark_used(used)

        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj))
        controller = controller_for(orchestrator, lookup, rng=ZeroRandom(), config=fast_config(target=1))
        asyncio.run(controller.run(MiningCriteria()))

        assert lookup.calls == [cached]

    def test_first_request_is_not_paced(self, orchestrator, make_company):
        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj))
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1, request_delay=30))

        status = asyncio.run(asyncio.wait_for(controller.run(MiningCriteria()), timeout=5))
        assert status.state == MiningState.COMPLETED

    def test_listeners_receive_snapshots(self, orchestrator, make_company):
        snapshots = []
        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj))
        controller = controller_for(orchestrator, lookup, config=fast_config(target=2))
        controller.add_listener(snapshots.append)

        asyncio.run(controller.run(MiningCriteria()))

        assert snapshots[0].tried == 0
        assert [s.found for s in snapshots].count(2) >= 1
        assert snapshots[-1].is_complete

    def test_failing_listener_does_not_break_run(self, orchestrator, make_company):
        def broken(progress):
            raise RuntimeError("listener quebrado")

        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj))
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))
        controller.add_listener(broken)
        assert asyncio.run(controller.run(MiningCriteria())).state == MiningState.COMPLETED


class TestRateLimit:

    def test_always_rate_limited_never_counts_and_stops(self, orchestrator):
        lookup = FakeLookup(lambda cnpj, n: RateLimitedError("429"))
        controller = controller_for(orchestrator, lookup, config=fast_config(rate_limit_delay=0.01))

        async def scenario():
            assert controller.start(MiningCriteria())
            await asyncio.sleep(0.1)
            controller.stop()
            return await asyncio.wait_for(controller.wait(), timeout=2)

        status = asyncio.run(scenario())

        assert status.state == MiningState.ABORTED
        assert status.progress.tried == 0
        assert status.companies == []
        assert len(lookup.calls) > 1
        # o mesmo candidato é tentado de novo após o backoff
        assert len(set(lookup.calls)) == 1

    def test_stop_interrupts_backoff(self, orchestrator):
        lookup = FakeLookup(lambda cnpj, n: RateLimitedError("429"))
        controller = controller_for(orchestrator, lookup, config=fast_config(rate_limit_delay=30))

        async def scenario():
            controller.start(MiningCriteria())
            while not lookup.calls:
                await asyncio.sleep(0.01)
            controller.stop()
            return await asyncio.wait_for(controller.wait(), timeout=2)

        status = asyncio.run(scenario())
        assert status.state == MiningState.ABORTED
        assert len(lookup.calls) == 1

    def test_rate_limited_candidate_is_retried(self, orchestrator, make_company):
        def behaviour(cnpj, n):
            return RateLimitedError("429") if n == 1 else make_company(cnpj)

        lookup = FakeLookup(behaviour)
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))
        status = asyncio.run(controller.run(MiningCriteria()))

        assert lookup.calls[0] == lookup.calls[1]
        assert status.progress.tried == 1
        assert status.state == MiningState.COMPLETED

    def test_rate_limit_is_never_published_as_attempt(self, orchestrator):
        snapshots = []
        lookup = FakeLookup(lambda cnpj, n: RateLimitedError("429"))
        controller = controller_for(orchestrator, lookup, config=fast_config(rate_limit_delay=0.01))
        controller.add_listener(snapshots.append)

        async def scenario():
            controller.start(MiningCriteria())
            while len(lookup.calls) < 3:
                await asyncio.sleep(0.01)
            controller.stop()
            return await asyncio.wait_for(controller.wait(), timeout=2)

        asyncio.run(scenario())
        assert snapshots
        assert all(s.tried == 0 for s in snapshots)

    def test_rate_limit_resets_error_streak(self, orchestrator, make_company):
        def behaviour(cnpj, n):
            if n == 3:
                return RateLimitedError("429")
            if n <= 5:
                return RegistryError("HTTP 503")
            return make_company(cnpj)

        lookup = FakeLookup(behaviour)
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))
        status = asyncio.run(controller.run(MiningCriteria()))

        assert status.state == MiningState.COMPLETED
        assert len(lookup.calls) == 6


class TestControl:

    def test_second_start_is_rejected(self, orchestrator):
        async def slow(cnpj):
            await asyncio.sleep(10)

        controller = controller_for(orchestrator, slow)

        async def scenario():
            assert controller.start(MiningCriteria())
            assert controller.is_mining
            assert not controller.start(MiningCriteria())
            await asyncio.sleep(0.05)
            controller.stop()
            return await asyncio.wait_for(controller.wait(), timeout=2)

        status = asyncio.run(scenario())
        assert status.state == MiningState.ABORTED
        assert status.progress.tried == 0

    def test_stop_when_idle(self, orchestrator):
        controller = controller_for(orchestrator, FakeLookup(lambda cnpj, n: None))
        assert not controller.stop()
        assert controller.state == MiningState.IDLE

    def test_clear_results(self, orchestrator, make_company):
        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj))
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))
        asyncio.run(controller.run(MiningCriteria()))

        assert controller.clear_results()
        assert controller.state == MiningState.IDLE
        assert controller.companies == []
        assert controller.progress.tried == 0

    def test_unexpected_error_fails_run(self, orchestrator):
        def broken_sources(cached, wordlist, rng, uf):
            raise KeyError("bug")

        lookup = FakeLookup(lambda cnpj, n: None)
        controller = controller_for(orchestrator, lookup, sources_factory=broken_sources)

        status = asyncio.run(controller.run(MiningCriteria()))
        assert status.state == MiningState.FAILED
        assert status.error.startswith("Erro inesperado")
        assert not controller.is_mining
        assert lookup.calls == []

    def test_start_without_event_loop_keeps_controller_idle(self, orchestrator, make_company):
        lookup = FakeLookup(lambda cnpj, n: make_company(cnpj))
        controller = controller_for(orchestrator, lookup, config=fast_config(target=1))

        with pytest.raises(RuntimeError):
            controller.start(MiningCriteria())

        assert controller.state == MiningState.IDLE
        assert not controller.is_mining
        status = asyncio.run(controller.run(MiningCriteria()))
        assert status.state == MiningState.COMPLETED

    def test_state_filter_reaches_generator(self, orchestrator):
        seen = []

        def recording_sources(cached, wordlist, rng, uf):
            seen.append(uf)
            return [SequenceSource("fixa", 1, [])]

        lookup = FakeLookup(lambda cnpj, n: None)
        for criteria in (MiningCriteria(uf="SP"), MiningCriteria()):
            controller = controller_for(orchestrator, lookup, sources_factory=recording_sources)
            asyncio.run(controller.run(criteria))

        assert seen == ["SP", None]


def test_config_from_settings():
    from minerador.core.config import Settings

    config = MiningConfig.from_settings(Settings(MINING_TARGET=7, MINING_REQUEST_DELAY=1.5))
    assert config.target == 7
    assert config.request_delay == 1.5
    assert config.max_consecutive_errors == 100


def test_default_config():
    config = MiningConfig()
    assert (config.target, config.request_delay, config.rate_limit_delay) == (20, 25.0, 60.0)
    assert (config.max_consecutive_errors, config.attempt_multiplier) == (100, 100)
