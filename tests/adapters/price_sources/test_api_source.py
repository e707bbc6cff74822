from __future__ import annotations

import pytest

from chainspread.adapters.price_sources.api import ApiSource
from chainspread.constants import MORALIS_API_URL, SUSHISWAP_API_URL, UNISWAP_SUBGRAPH_URL
from chainspread.errors import (
    MalformedResponseError,
    SourceNotConfiguredError,
    SourceUnavailableError,
)
from chainspread.registry import ChainRegistry
from chainspread.settings import MonitorSettings


@pytest.fixture
def keyed_settings() -> MonitorSettings:
    return MonitorSettings(moralis_api_key="moralis-key")


@pytest.mark.asyncio
async def test_moralis_is_tried_first(keyed_settings, fake_http):
    registry = ChainRegistry.from_settings(keyed_settings)
    fake_http.get_json.return_value = {"usdPrice": 2001.5, "tokenSymbol": "WETH"}
    source = ApiSource(keyed_settings, registry, http=fake_http)

    price = await source.get_price("ethereum")

    assert price == 2001.5
    fake_http.get_json.assert_awaited_once_with(
        f"{MORALIS_API_URL}/erc20/0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2/price",
        params={"chain": "eth"},
        headers={"X-API-Key": "moralis-key", "Accept": "application/json"},
    )
    fake_http.post_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_without_key_moralis_is_skipped(settings, registry, fake_http):
    fake_http.get_json.return_value = {"token0Price": "0.0005", "token1Price": "2000"}
    source = ApiSource(settings, registry, http=fake_http)

    price = await source.get_price("ethereum")

    assert price == pytest.approx(2000.0)
    fake_http.get_json.assert_awaited_once_with(
        f"{SUSHISWAP_API_URL}/api/v1/pairs/0x06da0fd433c1a5d7a4faa01111c044910a184553"
    )


@pytest.mark.asyncio
async def test_malformed_moralis_response_falls_through(keyed_settings, fake_http):
    registry = ChainRegistry.from_settings(keyed_settings)
    fake_http.get_json.side_effect = [
        {"message": "rate limited"},
        {"token0Price": "0.0004", "token1Price": "2500"},
    ]
    source = ApiSource(keyed_settings, registry, http=fake_http)

    assert await source.get_price("ethereum") == pytest.approx(2500.0)
    assert fake_http.get_json.await_count == 2


@pytest.mark.asyncio
async def test_subgraph_price_uses_pool_token_order(settings, registry, fake_http):
    fake_http.post_json.return_value = {"data": {"pool": {"sqrtPrice": str(2**110)}}}
    source = ApiSource(settings, registry, http=fake_http)

    price = await source.get_price("optimism")

    assert price == pytest.approx(1e12 / 2**28)
    url, payload = fake_http.post_json.await_args.args
    assert url == UNISWAP_SUBGRAPH_URL
    assert payload["variables"] == {"id": "0x7b28472c1427c84435e112ee0ad1666bcd17f95e"}
    assert "sqrtPrice" in payload["query"]


@pytest.mark.asyncio
async def test_all_providers_failing_lists_every_reason(keyed_settings, fake_http):
    registry = ChainRegistry.from_settings(keyed_settings)
    fake_http.get_json.side_effect = [
        SourceUnavailableError("GET moralis failed: 503"),
        MalformedResponseError("Invalid JSON"),
    ]
    source = ApiSource(keyed_settings, registry, http=fake_http)

    with pytest.raises(SourceUnavailableError) as exc_info:
        await source.get_price("ethereum")

    message = str(exc_info.value)
    assert "moralis: GET moralis failed: 503" in message
    assert "sushiswap: Invalid JSON" in message
    assert "subgraph: no subgraph pool id" in message


@pytest.mark.asyncio
async def test_chain_with_no_usable_provider(settings, registry, fake_http):
    source = ApiSource(settings, registry, http=fake_http)

    with pytest.raises(SourceNotConfiguredError):
        await source.get_price("base")

    fake_http.get_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_zero_pair_price_is_malformed(settings, registry, fake_http):
    fake_http.get_json.return_value = {"token0Price": "0", "token1Price": "0"}
    source = ApiSource(settings, registry, http=fake_http)

    with pytest.raises(SourceUnavailableError, match="Non-positive token0Price"):
        await source.get_price("ethereum")
