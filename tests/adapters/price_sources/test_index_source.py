from __future__ import annotations

import asyncio

import pytest

from chainspread.adapters.price_sources.index import IndexSource, RateLimiter
from chainspread.constants import COINGECKO_API_URL
from chainspread.errors import MalformedResponseError
from chainspread.settings import MonitorSettings


@pytest.fixture
def sleeps(clock):
    recorded: list[float] = []

    async def _sleep(delay: float) -> None:
        recorded.append(delay)
        clock.advance(delay)

    _sleep.recorded = recorded
    return _sleep


@pytest.mark.asyncio
async def test_same_price_for_every_chain(settings, registry, fake_http, clock, sleeps):
    fake_http.get_json.return_value = {"ethereum": {"usd": 2000.5}}
    source = IndexSource(
        settings, registry, http=fake_http, rate_limiter=RateLimiter(1.0, clock, sleeps)
    )

    assert await source.get_price("arbitrum") == 2000.5
    assert await source.get_price("base") == 2000.5

    url = fake_http.get_json.await_args.args[0]
    kwargs = fake_http.get_json.await_args.kwargs
    assert url == f"{COINGECKO_API_URL}/simple/price"
    assert kwargs["params"] == {"ids": "ethereum", "vs_currencies": "usd"}
    assert "x-cg-demo-api-key" not in kwargs["headers"]
    assert source.priority == 4


@pytest.mark.asyncio
async def test_chain_specific_asset_and_api_key(registry, fake_http, clock, sleeps):
    settings = MonitorSettings(coingecko_api_key="cg-key")
    fake_http.get_json.return_value = {"binancecoin": {"usd": 580.0}}
    source = IndexSource(
        settings, registry, http=fake_http, rate_limiter=RateLimiter(1.0, clock, sleeps)
    )

    assert await source.get_price("bsc") == 580.0
    kwargs = fake_http.get_json.await_args.kwargs
    assert kwargs["params"]["ids"] == "binancecoin"
    assert kwargs["headers"]["x-cg-demo-api-key"] == "cg-key"


@pytest.mark.asyncio
async def test_missing_asset_is_malformed(settings, registry, fake_http, clock, sleeps):
    fake_http.get_json.return_value = {"error": "coin not found"}
    source = IndexSource(
        settings, registry, http=fake_http, rate_limiter=RateLimiter(1.0, clock, sleeps)
    )

    with pytest.raises(MalformedResponseError):
        await source.get_price("ethereum")


@pytest.mark.asyncio
async def test_rate_limiter_spaces_calls(clock, sleeps):
    limiter = RateLimiter(1.0, clock, sleeps)

    await limiter.wait()
    await limiter.wait()
    clock.advance(0.4)
    await limiter.wait()
    clock.advance(5)
    await limiter.wait()

    assert sleeps.recorded == pytest.approx([1.0, 0.6])


@pytest.mark.asyncio
async def test_concurrent_callers_are_serialized(clock, sleeps):
    limiter = RateLimiter(1.0, clock, sleeps)

    await asyncio.gather(limiter.wait(), limiter.wait(), limiter.wait())

    assert sleeps.recorded == pytest.approx([1.0, 1.0])


@pytest.mark.asyncio
async def test_shared_limiter_across_chains(settings, registry, fake_http, clock, sleeps):
    fake_http.get_json.return_value = {"ethereum": {"usd": 2000.0}}
    source = IndexSource(
        settings, registry, http=fake_http, rate_limiter=RateLimiter(1.0, clock, sleeps)
    )

    await asyncio.gather(*(source.get_price(c) for c in ("ethereum", "arbitrum", "base")))

    assert sleeps.recorded == pytest.approx([1.0, 1.0])
    assert fake_http.get_json.await_count == 3


@pytest.mark.integration
@pytest.mark.asyncio
async def test_live_index_price(registry):
    settings = MonitorSettings()
    source = IndexSource(settings, registry)

    price = await source.get_price("ethereum")

    assert 100 < price < 100_000
