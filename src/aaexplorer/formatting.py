"""Display helpers for table cells: ages, fees and shortened hashes."""

import time
from decimal import Decimal
from typing import Optional

from .networks import NetworkRegistry, registry as default_registry

WEI_PER_ETHER = Decimal(10) ** 18


def get_time_passed(block_time: Optional[int], now: Optional[float] = None) -> str:
    """Human age of a unix timestamp, e.g. ``"5 mins ago"``."""
    if not block_time:
        return "Unavailable"
    now = time.time() if now is None else now
    seconds = max(0, int(now - block_time))

    if seconds < 60:
        return f"{seconds} secs ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} min{'s' if minutes != 1 else ''} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = hours // 24
    return f"{days} day{'s' if days != 1 else ''} ago"


def get_fee(amount_wei: int, network: str, networks: NetworkRegistry = default_registry) -> str:
    """Format a wei amount in the network's native currency."""
    currency = "ETH"
    if network in networks:
        currency = networks.lookup(network).currency
    value = Decimal(int(amount_wei or 0)) / WEI_PER_ETHER
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{text or '0'} {currency}"


def shorten_string(text: Optional[str], head: int = 6, tail: int = 4) -> str:
    if not text:
        return ""
    if len(text) <= head + tail + 3:
        return text
    return f"{text[:head]}...{text[-tail:]}"
