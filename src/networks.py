"""
Networks - Well-known chain IDs.

Chain IDs are only used as input to replay-protected signing; this table
gives them readable names for callers and log output.
"""

from dataclasses import dataclass
from typing import Optional

# ============================================
# Network Configurations
# ============================================

@dataclass(frozen=True)
class NetworkConfig:
    """A blockchain network identified by its EIP-155 chain ID."""
    chain_id: int
    name: str
    display_name: str
    is_testnet: bool
    native_symbol: str = "ETH"


NETWORKS = {
    1: NetworkConfig(
        chain_id=1,
        name="mainnet",
        display_name="Ethereum Mainnet",
        is_testnet=False,
    ),
    3: NetworkConfig(
        chain_id=3,
        name="ropsten",
        display_name="Ropsten",
        is_testnet=True,
    ),
    4: NetworkConfig(
        chain_id=4,
        name="rinkeby",
        display_name="Rinkeby",
        is_testnet=True,
    ),
    5: NetworkConfig(
        chain_id=5,
        name="goerli",
        display_name="Goerli",
        is_testnet=True,
    ),
    42: NetworkConfig(
        chain_id=42,
        name="kovan",
        display_name="Kovan",
        is_testnet=True,
    ),
    8453: NetworkConfig(
        chain_id=8453,
        name="base",
        display_name="Base",
        is_testnet=False,
    ),
    84532: NetworkConfig(
        chain_id=84532,
        name="base-sepolia",
        display_name="Base Sepolia",
        is_testnet=True,
    ),
    11155111: NetworkConfig(
        chain_id=11155111,
        name="sepolia",
        display_name="Sepolia",
        is_testnet=True,
    ),
}

# Default network
DEFAULT_NETWORK = 1


# ============================================
# Utility Functions
# ============================================

def get_network(chain_id: int) -> Optional[NetworkConfig]:
    """Get network config by chain ID."""
    return NETWORKS.get(chain_id)


def get_network_by_name(name: str) -> Optional[NetworkConfig]:
    """Get network config by name."""
    for network in NETWORKS.values():
        if network.name == name.lower():
            return network
    return None


def format_address(address: str, chars: int = 4) -> str:
    """Format address as 0x1234...5678"""
    if len(address) <= chars * 2 + 2:
        return address
    return f"{address[:chars+2]}...{address[-chars:]}"
