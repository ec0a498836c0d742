"""Error taxonomy for the explorer core."""

from typing import Optional


class ExplorerError(Exception):
    """Base exception for aaexplorer errors."""

    def __init__(self, message: str, network: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.network = network


class TransportError(ExplorerError):
    """Network or HTTP failure talking to the query API."""

    def __init__(self, message: str, network: Optional[str] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, network)
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


class MalformedResponseError(ExplorerError):
    """Payload could not be parsed into the expected shape."""


class InvalidPageParameter(ExplorerError):
    """Out-of-range or non-numeric page parameter. Corrected, never shown."""

    def __init__(self, name: str, value: object):
        super().__init__(f"Invalid value for {name}: {value!r}")
        self.name = name
        self.value = value


class NetworkNotFound(ExplorerError, KeyError):
    """Lookup of an unsupported network key."""

    def __init__(self, key: str):
        super().__init__(f"Unknown network: {key}", key)
        self.key = key

    def __str__(self) -> str:
        return self.message


class NotFoundOnNetwork:
    """Result of a probe that found nothing. A normal outcome, not an error."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND_ON_NETWORK"


NOT_FOUND_ON_NETWORK = NotFoundOnNetwork()
