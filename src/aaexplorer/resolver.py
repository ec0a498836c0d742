"""
Network discovery for hashes and addresses opened without a network.

Every supported network is probed concurrently; the outcome is the set of
networks whose probe returned a record. The resolver remembers outcomes for
the session and shares a single in-flight probe round between concurrent
callers asking about the same term, so a term is probed at most once per
network.
"""

import asyncio
import logging
from typing import Dict, FrozenSet, List

from .backend import QueryClient
from .errors import MalformedResponseError, NotFoundOnNetwork, TransportError
from .model import ResolutionStatus
from .networks import NetworkRegistry, registry as default_registry

logger = logging.getLogger(__name__)


class NetworkResolver:
    def __init__(self, client: QueryClient, networks: NetworkRegistry = default_registry):
        self._client = client
        self._networks = networks
        self._inflight: Dict[str, asyncio.Task] = {}
        self._outcomes: Dict[str, FrozenSet[str]] = {}

    async def resolve(self, term: str) -> FrozenSet[str]:
        """Return the keys of every network that recognizes ``term``.

        An empty set means no network matched; that is not an error.
        """
        key = term.strip()
        if key in self._outcomes:
            return self._outcomes[key]

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._probe_all(key))
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        else:
            logger.debug(f"Joining in-flight resolution for {key}")
        # One caller being cancelled must not cancel the shared probe round
        return await asyncio.shield(task)

    def status(self, term: str) -> ResolutionStatus:
        outcome = self._outcomes.get(term.strip())
        if outcome is None:
            return ResolutionStatus.UNRESOLVED
        return ResolutionStatus.RESOLVED if outcome else ResolutionStatus.NO_MATCH

    def ordered(self, matches: FrozenSet[str]) -> List[str]:
        """Matches in registry order, so the first entry is the preferred network."""
        return [k for k in self._networks.keys() if k in matches]

    def forget(self, term: str) -> None:
        self._outcomes.pop(term.strip(), None)

    async def _probe_all(self, term: str) -> FrozenSet[str]:
        keys = self._networks.keys()
        results = await asyncio.gather(*(self._probe(term, k) for k in keys))
        matched = frozenset(k for k, found in zip(keys, results) if found)
        self._outcomes[term] = matched
        logger.info(f"Resolved {term} to networks: {sorted(matched) or 'none'}")
        return matched

    async def _probe(self, term: str, network: str) -> bool:
        try:
            result = await self._client.probe_network(term, network)
        except (TransportError, MalformedResponseError) as e:
            logger.warning(f"Probe of {network} for {term} failed: {e}")
            return False
        if isinstance(result, NotFoundOnNetwork):
            logger.debug(f"{term} not found on {network}")
            return False
        return True
