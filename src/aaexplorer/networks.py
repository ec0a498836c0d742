"""
Supported networks and their display metadata.

The registry is static: it is built once at import time and never changes
during the process lifetime. Keys are the values the query API expects in its
``network`` parameter and the values written to the ``network`` location
parameter.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence

from .errors import NetworkNotFound


@dataclass(frozen=True)
class NetworkDescriptor:
    key: str
    display_name: str
    icon_ref: str
    currency: str = "ETH"


NETWORK_LIST: List[NetworkDescriptor] = [
    NetworkDescriptor("mainnet", "Ethereum", "/images/ethereum-logo.png"),
    NetworkDescriptor("goerli", "Goerli", "/images/goerli.svg"),
    NetworkDescriptor("sepolia", "Sepolia", "/images/sepolia.svg"),
    NetworkDescriptor("polygon", "Polygon", "/images/polygon-matic-logo.svg", "MATIC"),
    NetworkDescriptor("mumbai", "Mumbai", "/images/polygon-mumbai.svg", "MATIC"),
    NetworkDescriptor("optimism", "Optimism", "/images/optimism.svg"),
    NetworkDescriptor("arbitrum-one", "Arbitrum One", "/images/arbitrum.svg"),
    NetworkDescriptor("base", "Base", "/images/base.svg"),
    NetworkDescriptor("avalanche", "Avalanche", "/images/avalanche.svg", "AVAX"),
    NetworkDescriptor("bnb", "BNB Chain", "/images/bnb.svg", "BNB"),
]


class NetworkRegistry:
    """Ordered, read-only lookup over network descriptors."""

    def __init__(self, networks: Sequence[NetworkDescriptor] = NETWORK_LIST):
        if not networks:
            raise ValueError("At least one network is required")
        self._networks = tuple(networks)
        self._by_key: Dict[str, NetworkDescriptor] = {n.key: n for n in self._networks}

    def list(self) -> Sequence[NetworkDescriptor]:
        return self._networks

    def keys(self) -> List[str]:
        return [n.key for n in self._networks]

    def lookup(self, key: str) -> NetworkDescriptor:
        try:
            return self._by_key[key]
        except KeyError:
            raise NetworkNotFound(key) from None

    def default(self) -> NetworkDescriptor:
        return self._networks[0]

    def icon_for(self, key: str) -> str:
        # Rows may carry networks the registry no longer lists
        descriptor = self._by_key.get(key)
        return descriptor.icon_ref if descriptor else ""

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[NetworkDescriptor]:
        return iter(self._networks)

    def __len__(self) -> int:
        return len(self._networks)


registry = NetworkRegistry()
