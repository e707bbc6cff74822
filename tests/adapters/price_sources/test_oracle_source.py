from __future__ import annotations

from decimal import Decimal

import pytest
from web3.exceptions import ContractLogicError

from chainspread.adapters.price_sources.oracle import OracleSource
from chainspread.errors import (
    MalformedResponseError,
    SourceNotConfiguredError,
    SourceUnavailableError,
)
from chainspread.registry import ChainRegistry
from chainspread.settings import MonitorSettings

ARBITRUM_PRIMARY = "https://arbitrum-one.publicnode.com"
ARBITRUM_BACKUP = "https://arb1.arbitrum.io/rpc"


def _feed(make_w3, answer: int, decimals: int = 8):
    round_id = 110680464442257320000
    w3 = make_w3(
        "latestRoundData", (round_id, answer, 1_700_000_000, 1_700_000_000, round_id)
    )
    w3.eth.contract.return_value.functions.decimals.return_value.call.return_value = decimals
    return w3


@pytest.mark.asyncio
async def test_price_is_answer_scaled_by_feed_decimals(settings, registry, make_w3, fake_rpc):
    w3 = _feed(make_w3, 200_012_345_678)
    source = OracleSource(settings, registry, rpc=fake_rpc({ARBITRUM_PRIMARY: w3}))

    price = await source.get_price("arbitrum")

    assert price == pytest.approx(float(Decimal("2000.12345678")))
    assert source.source_name == "oracle"
    assert source.priority == 2
    assert (
        w3.eth.contract.call_args.kwargs["address"].lower()
        == "0x639fe6ab55c921f74e7fac1ee960c0b6293ba612"
    )


@pytest.mark.asyncio
async def test_feed_decimals_are_read_once(settings, registry, make_w3, fake_rpc):
    w3 = _feed(make_w3, 200_000_000_000)
    source = OracleSource(settings, registry, rpc=fake_rpc({ARBITRUM_PRIMARY: w3}))

    await source.get_price("arbitrum")
    await source.get_price("arbitrum")

    decimals_call = w3.eth.contract.return_value.functions.decimals.return_value.call
    assert decimals_call.call_count == 1


@pytest.mark.asyncio
async def test_backup_endpoint_is_used(settings, registry, make_w3, fake_rpc):
    primary = make_w3("latestRoundData", error=ContractLogicError("execution reverted"))
    backup = _feed(make_w3, 199_900_000_000)
    source = OracleSource(
        settings,
        registry,
        rpc=fake_rpc({ARBITRUM_PRIMARY: primary, ARBITRUM_BACKUP: backup}),
    )

    assert await source.get_price("arbitrum") == pytest.approx(1999.0)


@pytest.mark.asyncio
async def test_both_endpoints_failing(settings, registry, fake_rpc):
    source = OracleSource(settings, registry, rpc=fake_rpc({}))

    with pytest.raises(SourceUnavailableError) as exc_info:
        await source.get_price("arbitrum")

    assert ARBITRUM_PRIMARY in str(exc_info.value)
    assert ARBITRUM_BACKUP in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_positive_answer_is_malformed(settings, registry, make_w3, fake_rpc):
    source = OracleSource(
        settings, registry, rpc=fake_rpc({ARBITRUM_PRIMARY: _feed(make_w3, 0)})
    )

    with pytest.raises(MalformedResponseError):
        await source.get_price("arbitrum")


@pytest.mark.asyncio
async def test_chain_without_feed_is_not_configured(fake_rpc):
    settings = MonitorSettings(
        chains={
            "linea": {
                "rpc_url": "https://rpc.linea.example",
                "pool": {
                    "address": "0x" + "33" * 20,
                    "decimals": {"base": 18, "quote": 6},
                    "order": {"base": 0, "quote": 1},
                    "math": "uniswap_v3",
                },
            }
        }
    )
    source = OracleSource(settings, ChainRegistry.from_settings(settings), rpc=fake_rpc({}))

    with pytest.raises(SourceNotConfiguredError):
        await source.get_price("linea")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_live_ethereum_feed():
    settings = MonitorSettings()
    source = OracleSource(settings, ChainRegistry.from_settings(settings))

    price = await source.get_price("ethereum")

    assert 100 < price < 100_000
