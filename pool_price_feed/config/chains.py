"""
Chain-specific configuration for pool_price_feed.

Each supported chain has a default public RPC endpoint (overridable through
the environment), its chain id, its block time (the default polling
cadence) and a small table of trusted quote tokens.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from eth_utils.address import is_address, to_checksum_address

from .base import BaseConfig, ConfigError


@dataclass(frozen=True)
class ChainInfo:
    chain_id: int
    block_time: float
    quote_tokens: Dict[str, str]


CHAINS: Dict[str, ChainInfo] = {
    "ethereum": ChainInfo(
        chain_id=1,
        block_time=12.0,
        quote_tokens={
            "usdc": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            "usdt": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
            "dai": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
            "weth": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
            "wbtc": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
        },
    ),
    "base": ChainInfo(
        chain_id=8453,
        block_time=2.0,
        quote_tokens={
            "usdc": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            "dai": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
            "weth": "0x4200000000000000000000000000000000000006",
        },
    ),
    "arbitrum": ChainInfo(
        chain_id=42161,
        block_time=0.25,
        quote_tokens={
            "usdc": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
            "usdt": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
            "dai": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
            "weth": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
            "wbtc": "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f",
        },
    ),
}


@dataclass
class ChainConfig(BaseConfig):
    """RPC endpoints of the supported chains, plus lookups into CHAINS."""

    ETHEREUM_RPC_URL: str = BaseConfig.get_env(
        "ETHEREUM_RPC_URL", "https://reth-ethereum.ithaca.xyz/rpc"
    )
    BASE_RPC_URL: str = BaseConfig.get_env("BASE_RPC_URL", "https://mainnet.base.org")
    ARBITRUM_RPC_URL: str = BaseConfig.get_env(
        "ARBITRUM_RPC_URL", "https://arb1.arbitrum.io/rpc"
    )

    chains: Dict[str, ChainInfo] = field(default_factory=lambda: dict(CHAINS))

    @property
    def chain_names(self) -> List[str]:
        return sorted(self.chains)

    def _info(self, chain_name: str) -> ChainInfo:
        try:
            return self.chains[chain_name]
        except KeyError:
            raise ValueError(
                f"Unsupported chain: {chain_name} (supported: {', '.join(self.chain_names)})"
            ) from None

    def get_chain_config(self, chain_name: str) -> Dict:
        """All settings of one chain as a dict."""
        info = self._info(chain_name)
        return {
            "chain_id": info.chain_id,
            "rpc_url": self.get_rpc_url(chain_name),
            "block_time": info.block_time,
            "quote_tokens": dict(info.quote_tokens),
        }

    def get_rpc_url(self, chain_name: str) -> str:
        self._info(chain_name)
        return getattr(self, f"{chain_name.upper()}_RPC_URL")

    def get_chain_id(self, chain_name: str) -> int:
        return self._info(chain_name).chain_id

    def get_block_time(self, chain_name: str) -> float:
        """Average block time in seconds."""
        return self._info(chain_name).block_time

    def get_reference_token(self, chain_name: str, token: str) -> str:
        """
        Resolve a quote currency given as symbol or address.

        Args:
            chain_name: Chain the token lives on
            token: Trusted token symbol (e.g. "usdc") or a hex address

        Returns:
            Checksummed token address

        Raises:
            ValueError: If the chain is not supported
            ConfigError: If the symbol is unknown on the chain
        """
        tokens = self._info(chain_name).quote_tokens
        if is_address(token):
            return to_checksum_address(token)

        address = tokens.get(token.lower())
        if address is None:
            raise ConfigError(
                f"Unknown quote token '{token}' on {chain_name}; known: {sorted(tokens)}"
            )
        return to_checksum_address(address)

    def to_dict(self, redact: bool = True) -> Dict:
        data = super().to_dict(redact)
        data["chains"] = {
            name: {"chain_id": info.chain_id, "block_time": info.block_time}
            for name, info in self.chains.items()
        }
        return data
