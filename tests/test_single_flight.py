"""
Tests for the per-refresh-token single-flight coordinator.
"""

import asyncio

import pytest

from connectors.exceptions import RefreshError, RefreshErrorKind
from connectors.single_flight import RefreshCoordinator, fingerprint
from utils.schemas import TokenExchangeResult


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _issuer(calls, fail_first=False):
    async def issue(refresh_token: str) -> TokenExchangeResult:
        calls.append(refresh_token)
        if fail_first and len(calls) == 1:
            raise RefreshError(RefreshErrorKind.PROVIDER_UNAVAILABLE, "503")
        return TokenExchangeResult(access_token=f"{refresh_token}-at-{len(calls)}")

    return issue


class TestRefreshCoordinator:
    @pytest.mark.asyncio
    async def test_result_reused_inside_window(self):
        clock = FakeClock()
        coordinator = RefreshCoordinator(reuse_window_seconds=10, clock=clock)
        calls = []

        first = await coordinator.refresh("rt", _issuer(calls))
        clock.now += 5
        second = await coordinator.refresh("rt", _issuer(calls))

        assert calls == ["rt"]
        assert first == second

    @pytest.mark.asyncio
    async def test_result_expires_after_window(self):
        clock = FakeClock()
        coordinator = RefreshCoordinator(reuse_window_seconds=10, clock=clock)
        calls = []

        await coordinator.refresh("rt", _issuer(calls))
        clock.now += 11
        second = await coordinator.refresh("rt", _issuer(calls))

        assert calls == ["rt", "rt"]
        assert second.access_token == "rt-at-2"

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        coordinator = RefreshCoordinator(reuse_window_seconds=10)
        calls = []
        issue = _issuer(calls, fail_first=True)

        with pytest.raises(RefreshError):
            await coordinator.refresh("rt", issue)
        result = await coordinator.refresh("rt", issue)

        assert calls == ["rt", "rt"]
        assert result.access_token == "rt-at-2"

    @pytest.mark.asyncio
    async def test_distinct_refresh_tokens_do_not_coalesce(self):
        coordinator = RefreshCoordinator(reuse_window_seconds=10)
        calls = []

        await coordinator.refresh("rt-a", _issuer(calls))
        await coordinator.refresh("rt-b", _issuer(calls))

        assert calls == ["rt-a", "rt-b"]

    @pytest.mark.asyncio
    async def test_stale_token_bypasses_cache(self):
        coordinator = RefreshCoordinator(reuse_window_seconds=10)
        calls = []

        first = await coordinator.refresh("rt", _issuer(calls))
        second = await coordinator.refresh("rt", _issuer(calls), stale_access_token=first.access_token)

        assert calls == ["rt", "rt"]
        assert second.access_token != first.access_token

    @pytest.mark.asyncio
    async def test_expired_entries_are_pruned(self):
        clock = FakeClock()
        coordinator = RefreshCoordinator(reuse_window_seconds=1, clock=clock)

        await coordinator.refresh("rt-a", _issuer([]))
        clock.now += 5
        await coordinator.refresh("rt-b", _issuer([]))

        assert fingerprint("rt-a") not in coordinator._recent
        assert fingerprint("rt-a") not in coordinator._locks

    @pytest.mark.asyncio
    async def test_lock_survives_handoff_after_failed_refresh(self):
        coordinator = RefreshCoordinator(reuse_window_seconds=10)
        calls = []
        in_flight = [0]
        peak = [0]
        late_callers = []
        release = asyncio.Event()

        async def issue(refresh_token: str) -> TokenExchangeResult:
            calls.append(refresh_token)
            in_flight[0] += 1
            peak[0] = max(peak[0], in_flight[0])
            try:
                if len(calls) == 1:
                    await release.wait()
                    # Arrives while the lock is being handed to the queued caller.
                    late_callers.append(asyncio.ensure_future(coordinator.refresh(refresh_token, issue)))
                    raise RefreshError(RefreshErrorKind.NETWORK_FAILURE, "connection reset")
                await asyncio.sleep(0.01)
                return TokenExchangeResult(access_token=f"at-{len(calls)}")
            finally:
                in_flight[0] -= 1

        first = asyncio.ensure_future(coordinator.refresh("rt", issue))
        await asyncio.sleep(0)
        queued = asyncio.ensure_future(coordinator.refresh("rt", issue))
        await asyncio.sleep(0)
        release.set()

        with pytest.raises(RefreshError):
            await first
        results = await asyncio.gather(queued, *late_callers)

        assert peak[0] == 1
        assert calls == ["rt", "rt"]
        assert {r.access_token for r in results} == {"at-2"}
        assert coordinator._users == {}


def test_fingerprint_hides_token():
    assert "secret" not in fingerprint("secret-refresh-token")
    assert fingerprint("a") == fingerprint("a")
    assert fingerprint("a") != fingerprint("b")
