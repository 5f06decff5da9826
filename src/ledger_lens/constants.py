"""Ethereum mainnet endpoints and the static asset catalog."""

from .domain import AssetDescriptor

CHAIN_ID = 1

ETHERSCAN_API_V2_URL = "https://api.etherscan.io/v2/api"
COINGECKO_API_URL = "https://api.coingecko.com/api/v3"
DEFAULT_MAINNET_RPC_URL = "https://eth.drpc.org"

# 2015-07-30T15:26:13Z, timestamp of mainnet block 0
GENESIS_TIMESTAMP = 1438269973

INDEXER_MAX_PAGE_SIZE = 1000
REFERENCE_CURRENCY = "usd"

NATIVE_ASSET = AssetDescriptor(
    symbol="ETH",
    name="Ether",
    contract_address=None,
    decimals=18,
    price_id="ethereum",
)

TRACKED_ASSETS: dict[str, AssetDescriptor] = {
    asset.symbol: asset
    for asset in (
        AssetDescriptor(
            symbol="USDT",
            name="Tether USD",
            contract_address="0xdAC17F958D2ee523a2206206994597C13D831ec7",
            decimals=6,
            price_id="tether",
        ),
        AssetDescriptor(
            symbol="USDC",
            name="USD Coin",
            contract_address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            decimals=6,
            price_id="usd-coin",
        ),
        AssetDescriptor(
            symbol="DAI",
            name="Dai Stablecoin",
            contract_address="0x6B175474E89094C44Da98b954EedeAC495271d0F",
            decimals=18,
            price_id="dai",
        ),
        AssetDescriptor(
            symbol="WETH",
            name="Wrapped Ether",
            contract_address="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
            decimals=18,
            price_id="weth",
        ),
        AssetDescriptor(
            symbol="WBTC",
            name="Wrapped BTC",
            contract_address="0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
            decimals=8,
            price_id="wrapped-bitcoin",
        ),
        AssetDescriptor(
            symbol="LINK",
            name="ChainLink Token",
            contract_address="0x514910771AF9Ca656af840dff83E8264EcF986CA",
            decimals=18,
            price_id="chainlink",
        ),
        AssetDescriptor(
            symbol="UNI",
            name="Uniswap",
            contract_address="0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984",
            decimals=18,
            price_id="uniswap",
        ),
        AssetDescriptor(
            symbol="WSTETH",
            name="Wrapped liquid staked Ether 2.0",
            contract_address="0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0",
            decimals=18,
            price_id="wrapped-steth",
        ),
    )
}
