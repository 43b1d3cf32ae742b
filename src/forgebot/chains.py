"""Base network constants and token registry."""

from dataclasses import dataclass
from typing import Optional

BASE_CHAIN_ID = 8453

# Pseudo-address aggregators use for the chain's native coin
NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
NATIVE_SYMBOL = "ETH"
NATIVE_DECIMALS = 18

MAX_UINT256 = 2**256 - 1


@dataclass(frozen=True)
class TokenConfig:
    """A well-known ERC-20 token on Base."""

    symbol: str
    address: str
    decimals: int
    name: str


COMMON_TOKENS: dict[str, TokenConfig] = {
    "USDC": TokenConfig(
        symbol="USDC",
        address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        decimals=6,
        name="USD Coin",
    ),
    "DAI": TokenConfig(
        symbol="DAI",
        address="0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
        decimals=18,
        name="Dai Stablecoin",
    ),
    "WETH": TokenConfig(
        symbol="WETH",
        address="0x4200000000000000000000000000000000000006",
        decimals=18,
        name="Wrapped Ether",
    ),
    "WBTC": TokenConfig(
        symbol="WBTC",
        address="0x0555E30da8f98308EdB960aa94C0Db47230d2B9c",
        decimals=8,
        name="Wrapped BTC",
    ),
}

# Targets offered on the buy screen
BUY_TARGETS = ["USDC", "DAI", "WBTC"]


def is_native(address: Optional[str]) -> bool:
    """Check whether an address is the native-coin placeholder."""
    return bool(address) and address.lower() == NATIVE_TOKEN_ADDRESS.lower()


def get_common_token(symbol: str) -> Optional[TokenConfig]:
    """Look up a common token by symbol (case-insensitive)."""
    return COMMON_TOKENS.get(symbol.upper())


def find_token_by_address(address: str) -> Optional[TokenConfig]:
    """Look up a common token by contract address."""
    for token in COMMON_TOKENS.values():
        if token.address.lower() == address.lower():
            return token
    return None
