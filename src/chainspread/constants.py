"""Static chain and provider configuration."""

from typing import Any

DEFAULT_PAIR = "ETH/USDT"

# Per-chain reference price configuration. Token order: 0 means the token
# sits in the pool's token0 slot, 1 means token1.
DEFAULT_CHAINS: dict[str, dict[str, Any]] = {
    "ethereum": {
        "display_name": "Ethereum",
        "rpc_url": "https://ethereum.publicnode.com",
        "backup_rpc_url": "https://eth.llamarpc.com",
        "pool": {
            "address": "0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852",  # Uniswap V2 ETH/USDT
            "decimals": {"base": 18, "quote": 6},
            "order": {"base": 0, "quote": 1},
            "math": "constant_product",
        },
        "oracle": {"feed_address": "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419"},
        "api": {
            "moralis_token_address": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
            "moralis_chain": "eth",
            "sushiswap_pair_address": "0x06da0fd433c1a5d7a4faa01111c044910a184553",
        },
    },
    "arbitrum": {
        "display_name": "Arbitrum",
        "rpc_url": "https://arbitrum-one.publicnode.com",
        "backup_rpc_url": "https://arb1.arbitrum.io/rpc",
        "pool": {
            "address": "0xC31E54c7a869B9FcBEcc14363CF510d1c41fa443",  # SushiSwap ETH/USDT
            "decimals": {"base": 18, "quote": 6},
            "order": {"base": 0, "quote": 1},
            "math": "constant_product",
        },
        "oracle": {"feed_address": "0x639Fe6ab55C921f74e7fac1ee960C0B6293ba612"},
        "api": {
            "moralis_token_address": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
            "moralis_chain": "arbitrum",
            "sushiswap_pair_address": "0xC31E54c7a869B9FcBEcc14363CF510d1c41fa443",
        },
    },
    "optimism": {
        "display_name": "Optimism",
        "rpc_url": "https://optimism.publicnode.com",
        "backup_rpc_url": "https://mainnet.optimism.io",
        "pool": {
            "address": "0x7B28472c1427C84435e112EE0AD1666bCD17f95E",  # Uniswap V3 ETH/USDT
            "decimals": {"base": 18, "quote": 6},
            "order": {"base": 1, "quote": 0},  # USDT is token0
            "math": "concentrated_liquidity",
        },
        "oracle": {"feed_address": "0x13e3Ee699D1909E989722E753853AE30b17e08c5"},
        "api": {
            "moralis_token_address": "0x4200000000000000000000000000000000000006",
            "moralis_chain": "optimism",
            "subgraph_pool_id": "0x7b28472c1427c84435e112ee0ad1666bcd17f95e",
        },
    },
    "base": {
        "display_name": "Base",
        "rpc_url": "https://base.publicnode.com",
        "backup_rpc_url": "https://mainnet.base.org",
        "pool": {
            "address": "0x4C36388bE6F416A29C8d8Eee81C771cE6bE14B18",  # BaseSwap ETH/USDT
            "decimals": {"base": 18, "quote": 6},
            "order": {"base": 0, "quote": 1},
            "math": "constant_product",
        },
        "oracle": {"feed_address": "0x71041dddad3595F9CEd3DcCFBe3D1F4b0a16Bb70"},
        "api": {
            "moralis_token_address": "0x4200000000000000000000000000000000000006",
            "moralis_chain": "base",
        },
    },
    "bsc": {
        "display_name": "BSC",
        "rpc_url": "https://bsc-dataseed.binance.org",
        "backup_rpc_url": "https://bsc-dataseed1.defibit.io",
        "pool": {
            "address": "0x16b9a82891338f9bA80E2D6970FddA79D1eb0daE",  # PancakeSwap BNB/USDT
            "decimals": {"base": 18, "quote": 18},
            "order": {"base": 0, "quote": 1},
            "math": "constant_product",
        },
        "oracle": {"feed_address": "0x0567F2323251f0Aab15c8dFb1967E4e8A7D42aeE"},
        "api": {
            "moralis_token_address": "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
            "moralis_chain": "bsc",
            "coingecko_id": "binancecoin",
        },
    },
}

MORALIS_API_URL = "https://deep-index.moralis.io/api/v2"
SUSHISWAP_API_URL = "https://api.sushi.com"
UNISWAP_SUBGRAPH_URL = "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3"
COINGECKO_API_URL = "https://api.coingecko.com/api/v3"

DEFAULT_INDEX_ASSET_ID = "ethereum"
DEFAULT_INDEX_VS_CURRENCY = "usd"

# Source priorities, lower is tried first
POOL_SOURCE_PRIORITY = 1
ORACLE_SOURCE_PRIORITY = 2
API_SOURCE_PRIORITY = 3
INDEX_SOURCE_PRIORITY = 4
SYNTHETIC_SOURCE_PRIORITY = 99

# HTTP status codes worth retrying
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Monitoring task defaults
DEFAULT_THRESHOLD_PERCENT = 0.5
DEFAULT_COOLDOWN_SECONDS = 300.0
