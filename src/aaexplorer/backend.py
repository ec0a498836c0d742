"""
Query API client for the account-abstraction explorer.

This module provides a high-level async interface to the explorer's indexed
query API via httpx. It abstracts the HTTP calls and returns model records for:
  - Latest bundles and user operations on a network
  - Top bundlers and paymasters on a network
  - Paginated activity of a paymaster, bundler or plain address
  - Per-network existence probes used for network discovery

Every method follows a fail-loud pattern: transport and parsing problems are
logged and re-raised as TransportError / MalformedResponseError so callers can
keep their previous state and notify the user.

Key Classes:
  - QueryClient: async API wrapper around a shared httpx.AsyncClient

Error Handling:
  - Connection errors, timeouts, HTTP >= 400 -> TransportError
  - Non-JSON bodies, missing fields, wrong types -> MalformedResponseError
  - Probe answering "not found" (message field or 404) -> NOT_FOUND_ON_NETWORK

Dependencies:
  - httpx (async HTTP client)
"""

import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from .cache import CacheManager, cached
from .errors import (
    ExplorerError,
    InvalidPageParameter,
    MalformedResponseError,
    NOT_FOUND_ON_NETWORK,
    NotFoundOnNetwork,
    TransportError,
)
from .model import (
    AddressActivity,
    Bundle,
    Bundler,
    BundlerActivity,
    Paymaster,
    PaymasterActivity,
    UserOp,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/v0"


def api_safe(func: Callable) -> Callable:
    """
    Decorator for query methods that normalizes failures.

    httpx transport errors become TransportError, parsing errors become
    MalformedResponseError. Errors are logged once here and re-raised.

    Usage:
        @api_safe
        async def latest_bundles(self, network, limit, offset) -> List[Bundle]:
            ...
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs) -> Any:
        try:
            return await func(self, *args, **kwargs)
        except ExplorerError as e:
            logger.error(f"Query {func.__name__} failed: {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"Query {func.__name__} transport failure: {e}")
            raise TransportError(str(e) or type(e).__name__) from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Query {func.__name__} returned malformed data: {e!r}")
            raise MalformedResponseError(f"Unexpected response shape: {e!r}") from e
    return wrapper


def _as_list(payload: Any, key: str) -> List[Dict[str, Any]]:
    """Pull the record array out of a list response."""
    if isinstance(payload, dict):
        payload = payload.get(key)
    if not isinstance(payload, list):
        raise MalformedResponseError(f"Expected a list of {key}")
    for item in payload:
        if not isinstance(item, dict):
            raise MalformedResponseError(f"Expected {key} entries to be objects")
    return payload


def _target(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def parse_bundle(raw: Dict[str, Any], network: str = "") -> Bundle:
    return Bundle(
        transaction_hash=str(raw["transactionHash"]),
        block_time=int(raw["blockTime"]),
        user_ops_length=int(raw.get("userOpsLength", 0)),
        network=str(raw.get("network") or network),
    )


def parse_user_op(raw: Dict[str, Any], network: str = "") -> UserOp:
    success = raw.get("success")
    return UserOp(
        user_op_hash=str(raw["userOpHash"]),
        sender=str(raw["sender"]),
        block_time=_optional_int(raw.get("blockTime")),
        target=_target(raw.get("target")),
        actual_gas_cost=int(raw.get("actualGasCost") or 0),
        success=None if success is None else bool(success),
        network=str(raw.get("network") or network),
    )


def parse_bundler(raw: Dict[str, Any]) -> Bundler:
    return Bundler(
        address=str(raw["address"]),
        bundle_length=int(raw.get("bundleLength", 0)),
        actual_gas_cost_sum=int(raw.get("actualGasCostSum") or 0),
    )


def parse_paymaster(raw: Dict[str, Any]) -> Paymaster:
    return Paymaster(
        address=str(raw["address"]),
        user_ops_length=int(raw.get("userOpsLength", 0)),
    )


class QueryClient:
    """
    Async explorer query API client.

    Args:
        base_url: API root, e.g. https://api.jiffyscan.xyz
        api_key: Optional key sent as the x-api-key header
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
        cache: Response cache for list calls; pass CacheManager(enabled=False) to disable
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[CacheManager] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.cache = cache if cache is not None else CacheManager()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self._api_key:
                headers["x-api-key"] = self._api_key
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def _get(self, operation: str, params: Dict[str, Any],
                   allow_not_found: bool = False) -> Any:
        client = self._get_client()
        network = params.get("network")
        logger.debug(f"GET {operation} {params}")
        response = await client.get(f"{API_PREFIX}/{operation}", params=params)

        if allow_not_found and response.status_code == 404:
            return NOT_FOUND_ON_NETWORK
        if response.status_code >= 400:
            raise TransportError(
                f"{operation} failed: {response.reason_phrase}",
                network=network,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"{operation} returned non-JSON body", network) from e

    # --- List operations ---

    @api_safe
    @cached()
    async def latest_bundles(self, network: str, limit: int, offset: int = 0) -> List[Bundle]:
        payload = await self._get("getLatestBundles", _page_params(network, limit, offset))
        return [parse_bundle(b, network) for b in _as_list(payload, "bundles")]

    @api_safe
    @cached()
    async def latest_user_ops(self, network: str, limit: int, offset: int = 0) -> List[UserOp]:
        payload = await self._get("getLatestUserOps", _page_params(network, limit, offset))
        return [parse_user_op(u, network) for u in _as_list(payload, "userOps")]

    @api_safe
    @cached()
    async def top_bundlers(self, network: str, limit: int, offset: int = 0) -> List[Bundler]:
        payload = await self._get("getTopBundlers", _page_params(network, limit, offset))
        return [parse_bundler(b) for b in _as_list(payload, "bundlers")]

    @api_safe
    @cached()
    async def top_paymasters(self, network: str, limit: int, offset: int = 0) -> List[Paymaster]:
        payload = await self._get("getTopPaymasters", _page_params(network, limit, offset))
        return [parse_paymaster(p) for p in _as_list(payload, "paymasters")]

    # --- Detail operations (1-based page numbers) ---

    @api_safe
    async def paymaster_details(self, address: str, network: str,
                                page_no: int, page_size: int) -> PaymasterActivity:
        payload = await self._get(
            "getPaymasterActivity", _detail_params(address, network, page_no, page_size)
        )
        detail = _unwrap(payload, "paymasterDetail")
        return PaymasterActivity(
            address=str(detail.get("address") or address),
            total_deposits=int(detail.get("totalDeposits") or 0),
            user_ops_length=int(detail.get("userOpsLength") or 0),
            user_ops=[parse_user_op(u, network) for u in _as_list(detail.get("userOps") or [], "userOps")],
        )

    @api_safe
    async def bundler_details(self, address: str, network: str,
                              page_no: int, page_size: int) -> BundlerActivity:
        payload = await self._get(
            "getBundlerActivity", _detail_params(address, network, page_no, page_size)
        )
        detail = _unwrap(payload, "bundlerDetails")
        return BundlerActivity(
            address=str(detail.get("address") or address),
            bundle_length=int(detail.get("bundleLength") or 0),
            bundles=[parse_bundle(b, network) for b in _as_list(detail.get("bundles") or [], "bundles")],
        )

    @api_safe
    async def address_activity(self, address: str, network: str,
                               page_no: int, page_size: int) -> AddressActivity:
        payload = await self._get(
            "getAddressActivity", _detail_params(address, network, page_no, page_size)
        )
        detail = _unwrap(payload, "accountDetail")
        return AddressActivity(
            address=str(detail.get("address") or address),
            user_ops_count=int(detail.get("userOpsCount") or 0),
            user_ops=[parse_user_op(u, network) for u in _as_list(detail.get("userOps") or [], "userOps")],
        )

    # --- Network discovery ---

    @api_safe
    async def probe_network(self, term: str, network: str) -> Union[Dict[str, Any], NotFoundOnNetwork]:
        """Ask one network whether it knows ``term``.

        The API answers unknown terms with an object carrying a ``message``
        field instead of a record; that is a normal negative result.
        """
        payload = await self._get(
            "getAddressActivity",
            {"address": term, "network": network, "first": 1, "skip": 0},
            allow_not_found=True,
        )
        if payload is NOT_FOUND_ON_NETWORK:
            return payload
        if not isinstance(payload, dict):
            raise MalformedResponseError("probe returned a non-object body", network)
        if payload.get("message"):
            return NOT_FOUND_ON_NETWORK
        return payload

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "QueryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _page_params(network: str, limit: int, offset: int) -> Dict[str, Any]:
    if limit <= 0:
        raise InvalidPageParameter("limit", limit)
    if offset < 0:
        raise InvalidPageParameter("offset", offset)
    return {"network": network, "first": limit, "skip": offset}


def _detail_params(address: str, network: str, page_no: int, page_size: int) -> Dict[str, Any]:
    params = _page_params(network, page_size, (max(1, page_no) - 1) * page_size)
    params["address"] = address
    return params


def _unwrap(payload: Any, key: str) -> Dict[str, Any]:
    """Detail responses come either wrapped in ``key`` or as the bare object."""
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Expected an object for {key}")
    detail = payload.get(key, payload)
    if not isinstance(detail, dict):
        raise MalformedResponseError(f"Expected {key} to be an object")
    return detail
