"""Unit tests for the cache orchestrator."""

import asyncio

import pytest

from minerador.schemas.cache import (
    BlacklistEntry,
    BlacklistReason,
    CacheKind,
    UsedEntry,
    WhitelistEntry,
)
from minerador.services.cnpj_cache import CnpjCacheOrchestrator, Outcome
from minerador.services.remote_cache import RemoteCacheMirror


class FakeRemote(RemoteCacheMirror):
    """Espelho remoto em memória que registra as escritas."""

    def __init__(self, data=None, fail_fetch=False, fail_write=False):
        self.data = data or {}
        self.fail_fetch = fail_fetch
        self.fail_write = fail_write
        self.writes = []

    async def fetch_all(self, kind):
        if self.fail_fetch:
            raise ConnectionError("remoto fora do ar")
        return list(self.data.get(kind, []))

    async def _write(self, op, entry):
        await asyncio.sleep(0)
        if self.fail_write:
            raise ConnectionError("remoto fora do ar")
        self.writes.append((op, entry.cnpj))

    async def upsert_whitelist(self, entry):
        await self._write("whitelist", entry)

    async def insert_blacklist(self, entry):
        await self._write("blacklist", entry)

    async def insert_used(self, entry):
        await self._write("used", entry)


class TestRecordOutcome:

    def test_accepted_twice_keeps_single_entry(self, orchestrator, memory_store, make_company):
        company = make_company()
        orchestrator.record_outcome(company.cnpj, Outcome.ACCEPTED, company)
        orchestrator.record_outcome(company.cnpj, Outcome.ACCEPTED, company)

        entries = memory_store.get_all(CacheKind.WHITELIST)
        assert len(entries) == 1
        assert entries[0].times_verified == 2

    def test_accepted_requires_company(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.record_outcome("11222333000181", Outcome.ACCEPTED)

    @pytest.mark.parametrize("outcome, status, reason", [
        (Outcome.NOT_FOUND, None, BlacklistReason.NOT_FOUND),
        (Outcome.ERROR, None, BlacklistReason.ERROR),
        (Outcome.FILTERED, "ATIVA", BlacklistReason.FILTERED),
        (Outcome.FILTERED, "INATIVA", BlacklistReason.INACTIVE),
    ])
    def test_negative_outcomes_map_to_reason(self, orchestrator, memory_store, make_company,
                                             outcome, status, reason):
        company = make_company(situacao_cadastral=status) if status else None
        orchestrator.record_outcome("11222333000181", outcome, company)
        assert memory_store.get(CacheKind.BLACKLIST, "11222333000181").reason == reason

    def test_accepted_evicts_blacklist(self, orchestrator, memory_store, make_company):
        company = make_company()
        orchestrator.record_outcome(company.cnpj, Outcome.ERROR)
        orchestrator.record_outcome(company.cnpj, Outcome.ACCEPTED, company)
        assert orchestrator.is_whitelisted(company.cnpj)
        assert not orchestrator.is_blacklisted(company.cnpj)

    def test_negative_outcome_does_not_blacklist_whitelisted(self, orchestrator, make_company):
        company = make_company()
        orchestrator.record_outcome(company.cnpj, Outcome.ACCEPTED, company)
        orchestrator.record_outcome(company.cnpj, Outcome.NOT_FOUND)
        assert orchestrator.is_whitelisted(company.cnpj)
        assert not orchestrator.is_blacklisted(company.cnpj)


class TestSkipAndClaim:

    def test_should_skip(self, orchestrator):
        orchestrator.record_outcome("a", Outcome.NOT_FOUND)
        orchestrator.mark_used("b")
        assert orchestrator.should_skip("a")
        assert orchestrator.should_skip("b")
        assert not orchestrator.should_skip("c")

    def test_claiming_blacklisted_id_succeeds(self, orchestrator):
        orchestrator.record_outcome("a", Outcome.NOT_FOUND)
        assert orchestrator.mark_used("a")
        assert orchestrator.is_used("a")
        assert orchestrator.is_blacklisted("a")

    def test_claim_is_idempotent(self, orchestrator):
        assert orchestrator.mark_used("a")
        assert not orchestrator.mark_used("a")
        assert orchestrator.stats().used == 1

    def test_available_candidates_exclude_used(self, orchestrator, make_company):
        for cnpj in ("a", "b", "c"):
            orchestrator.record_outcome(cnpj, Outcome.ACCEPTED, make_company(cnpj))
        orchestrator.mark_used("b")
        assert orchestrator.available_candidates() == ["a", "c"]

    def test_clear(self, orchestrator):
        orchestrator.mark_used("a")
        orchestrator.clear()
        assert orchestrator.stats().used == 0


class TestInitialize:

    def test_without_remote_keeps_local(self, orchestrator, memory_store):
        memory_store.add(CacheKind.USED, UsedEntry(cnpj="a"))
        stats = asyncio.run(orchestrator.initialize())
        assert stats.used == 1

    def test_merge(self, memory_store):
        memory_store.add(CacheKind.BLACKLIST, BlacklistEntry(cnpj="b1", reason=BlacklistReason.ERROR))
        memory_store.add(CacheKind.USED, UsedEntry(cnpj="u1"))
        memory_store.replace_all(CacheKind.WHITELIST, [
            WhitelistEntry(cnpj="w1", razao_social="LOCAL", times_verified=3),
            WhitelistEntry(cnpj="w2", razao_social="LOCAL", times_verified=2),
        ])

        remote = FakeRemote({
            CacheKind.WHITELIST: [
                WhitelistEntry(cnpj="w1", razao_social="REMOTO", times_verified=5),
                WhitelistEntry(cnpj="w2", razao_social="REMOTO", times_verified=2),
                WhitelistEntry(cnpj="w3", razao_social="REMOTO"),
            ],
            CacheKind.BLACKLIST: [
                BlacklistEntry(cnpj="b1", reason=BlacklistReason.NOT_FOUND),
                BlacklistEntry(cnpj="b2", reason=BlacklistReason.FILTERED),
                BlacklistEntry(cnpj="w3", reason=BlacklistReason.NOT_FOUND),
            ],
            CacheKind.USED: [UsedEntry(cnpj="u2")],
        })
        orchestrator = CnpjCacheOrchestrator(memory_store, remote)
        stats = asyncio.run(orchestrator.initialize())

        whitelist = {e.cnpj: e for e in memory_store.get_all(CacheKind.WHITELIST)}
        assert whitelist["w1"].razao_social == "REMOTO"
        assert whitelist["w2"].razao_social == "LOCAL"
        assert "w3" in whitelist

        blacklist = {e.cnpj: e for e in memory_store.get_all(CacheKind.BLACKLIST)}
        assert blacklist["b1"].reason == BlacklistReason.ERROR
        assert blacklist["b2"].reason == BlacklistReason.FILTERED
        assert "w3" not in blacklist

        assert {e.cnpj for e in memory_store.get_all(CacheKind.USED)} == {"u1", "u2"}
        assert (stats.whitelist, stats.blacklist, stats.used) == (3, 2, 2)

    def test_remote_failure_falls_back_to_local(self, memory_store):
        memory_store.add(CacheKind.USED, UsedEntry(cnpj="a"))
        orchestrator = CnpjCacheOrchestrator(memory_store, FakeRemote(fail_fetch=True))
        stats = asyncio.run(orchestrator.initialize())
        assert stats.used == 1


class TestRemoteWrites:

    def test_writes_are_mirrored(self, memory_store, make_company):
        remote = FakeRemote()
        orchestrator = CnpjCacheOrchestrator(memory_store, remote)

        async def scenario():
            company = make_company("a")
            orchestrator.record_outcome("a", Outcome.ACCEPTED, company)
            orchestrator.record_outcome("b", Outcome.NOT_FOUND)
            orchestrator.record_outcome("b", Outcome.ERROR)
            orchestrator.mark_used("a")
            await orchestrator.drain()

        asyncio.run(scenario())
        assert sorted(remote.writes) == [("blacklist", "b"), ("used", "a"), ("whitelist", "a")]
        assert orchestrator.pending_writes == 0

    def test_remote_write_failure_is_swallowed(self, memory_store):
        orchestrator = CnpjCacheOrchestrator(memory_store, FakeRemote(fail_write=True))

        async def scenario():
            orchestrator.mark_used("a")
            await orchestrator.drain()

        asyncio.run(scenario())
        assert orchestrator.is_used("a")

    def test_write_without_event_loop_is_local_only(self, memory_store):
        remote = FakeRemote()
        orchestrator = CnpjCacheOrchestrator(memory_store, remote)
        orchestrator.mark_used("a")
        assert orchestrator.is_used("a")
        assert remote.writes == []
