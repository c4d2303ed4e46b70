"""
Concurrent multi-circle search for the corridor search engine.

Fans out one search task per coverage circle, deduplicates the returned
entities by identity, then hydrates every unique identity through a
cache-aside lookup. Both phases are fail-fast: the first hard error cancels
the remaining tasks of the phase and is raised to the caller, and nothing
accumulated by that phase is returned.
"""

import time
from dataclasses import replace
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

from tenacity import (
    Retrying,
    stop_after_attempt,
    stop_any,
    wait_exponential,
    retry_if_exception_type,
)

from ..common import (
    config,
    get_logger,
    log_provider_call,
    CacheError,
    CancellationToken,
    InvalidParameterError,
    ProviderError,
    TransientProviderError,
)
from ..geo import SearchCircle, haversine_m
from .collaborators import (
    CacheCollaborator,
    DetailCollaborator,
    DiscoveredEntity,
    LoggingObserver,
    SearchCollaborator,
    SearchObserver,
)

logger = get_logger("ingest.search")

T = TypeVar("T")
R = TypeVar("R")

SEARCH_PHASE = "search"
HYDRATE_PHASE = "hydrate"

# Attribute holding the entities found around a hydrated entity
NEARBY_ATTRIBUTE = "nearby"


class ConcurrentSearchCoordinator:
    """Runs the search and hydration phases against injected collaborators."""

    def __init__(
        self,
        max_concurrent_requests: Optional[int] = None,
        max_retries: Optional[int] = None,
        backoff_factor: Optional[float] = None,
        max_backoff_seconds: Optional[float] = None,
        observer: Optional[SearchObserver] = None,
        enrich_query: Optional[str] = None,
        enrich_radius_m: Optional[float] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            max_concurrent_requests: Worker pool size cap per phase
            max_retries: Attempts for transient provider failures
            backoff_factor: Exponential backoff multiplier in seconds
            max_backoff_seconds: Upper bound for a single backoff wait
            observer: Receives phase and cache events
            enrich_query: Query for entities near each freshly fetched entity
                (enrichment is off when empty)
            enrich_radius_m: Radius of the enrichment search in meters
        """
        self.max_concurrent_requests = (
            max_concurrent_requests
            if max_concurrent_requests is not None
            else config.search.max_concurrent_requests
        )
        self.max_retries = (
            max_retries if max_retries is not None else config.provider.max_retries
        )
        self.backoff_factor = (
            backoff_factor
            if backoff_factor is not None
            else config.provider.backoff_factor
        )
        self.max_backoff_seconds = (
            max_backoff_seconds
            if max_backoff_seconds is not None
            else config.provider.max_backoff_seconds
        )
        self.enrich_query = (
            enrich_query if enrich_query is not None else config.search.enrich_query
        )
        self.enrich_radius_m = (
            enrich_radius_m
            if enrich_radius_m is not None
            else config.search.enrich_radius_m
        )

        if self.max_concurrent_requests < 1:
            raise InvalidParameterError("max_concurrent_requests must be at least 1")
        if self.max_retries < 1:
            raise InvalidParameterError("max_retries must be at least 1")
        if self.enrich_radius_m <= 0:
            raise InvalidParameterError("enrichment radius must be a positive number")

        self.observer = observer or LoggingObserver()
        self.logger = logger

    def _retrying(self, token: CancellationToken) -> Retrying:
        # Backoff waits on the token so a failed sibling interrupts it
        return Retrying(
            stop=stop_any(
                stop_after_attempt(self.max_retries),
                lambda retry_state: token.cancelled,
            ),
            wait=wait_exponential(
                multiplier=self.backoff_factor, max=self.max_backoff_seconds
            ),
            retry=retry_if_exception_type(TransientProviderError),
            sleep=token.sleep,
            reraise=True,
        )

    def _call_provider(
        self,
        collaborator: str,
        operation: str,
        func: Callable[[], R],
        token: CancellationToken,
        **context,
    ) -> R:
        """Call a collaborator, retrying transient failures until cancelled."""

        def attempt() -> R:
            token.raise_if_cancelled()
            start_time = time.perf_counter()
            try:
                return func()
            except TransientProviderError as e:
                self.logger.warning(
                    f"Transient {collaborator} failure, will retry: {e}",
                    extra=log_provider_call(
                        collaborator,
                        operation,
                        duration_ms=(time.perf_counter() - start_time) * 1000,
                        error=str(e),
                        **context,
                    ),
                )
                raise

        return self._retrying(token)(attempt)

    def _run_fail_fast(
        self,
        phase: str,
        items: List[T],
        task: Callable[[T, CancellationToken], R],
        token: CancellationToken,
    ) -> List[Tuple[T, R]]:
        """
        Run one task per item and join them all.

        The first task error cancels the phase token, cancels every task that
        has not started yet, waits for the running ones and is re-raised.

        Returns:
            (item, result) pairs in completion order
        """
        token.raise_if_cancelled()
        phase_token = token.child()

        self.observer.phase_start(phase, tasks=len(items))
        start_time = time.perf_counter()

        results: List[Tuple[T, R]] = []
        if items:
            workers = min(len(items), self.max_concurrent_requests)
            executor = ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix=f"corridor-{phase}"
            )
            try:
                future_to_item = {
                    executor.submit(task, item, phase_token): item for item in items
                }
                for future in as_completed(future_to_item):
                    error = future.exception()
                    if error is not None:
                        phase_token.cancel(reason=f"{phase} phase failed: {error}")
                        for pending in future_to_item:
                            pending.cancel()
                        self.observer.error(phase, error)
                        raise error
                    results.append((future_to_item[future], future.result()))
            finally:
                executor.shutdown(wait=True)

        self.observer.phase_end(
            phase,
            tasks=len(items),
            results=len(results),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        return results

    def search(
        self,
        mesh: Iterable[SearchCircle],
        query: str,
        search_collaborator: SearchCollaborator,
        token: Optional[CancellationToken] = None,
    ) -> Set[str]:
        """
        Search every circle concurrently and collect unique entity identities.

        Args:
            mesh: Circles to search
            query: Text query forwarded to the collaborator
            search_collaborator: External search service
            token: Caller cancellation token

        Returns:
            Set of unique identities

        Raises:
            ProviderError: first hard failure of any circle search
            CancelledError: if the caller's token is cancelled
        """
        circles = list(mesh)

        def search_circle(circle: SearchCircle, phase_token: CancellationToken) -> Set[str]:
            stubs = self._call_provider(
                "search",
                "search",
                lambda: search_collaborator.search(query, circle, phase_token),
                phase_token,
                lat=circle.center.lat,
                lng=circle.center.lng,
            )
            found = set()
            for stub in stubs or ():
                if not stub.identity:
                    raise ProviderError("Entity identity is missing in search result")
                found.add(stub.identity)
            return found

        identities: Set[str] = set()
        for _, found in self._run_fail_fast(
            SEARCH_PHASE, circles, search_circle, token or CancellationToken()
        ):
            identities.update(found)

        self.logger.info(
            "Collected entity identities",
            extra={"circles": len(circles), "unique_identities": len(identities)},
        )
        return identities

    def enrich(
        self,
        entity: DiscoveredEntity,
        search_collaborator: SearchCollaborator,
        token: CancellationToken,
    ) -> DiscoveredEntity:
        """
        Attach the entities found within ``enrich_radius_m`` of an entity.

        Results without a location, or farther than the radius by great-circle
        distance, are dropped. The matches are stored under the ``nearby``
        attribute of a copy of the entity.

        Raises:
            ProviderError: enrichment search failure
        """
        if not self.enrich_query or entity.location is None:
            return entity

        circle = SearchCircle(center=entity.location, radius_m=self.enrich_radius_m)
        found = self._call_provider(
            "search",
            "enrich",
            lambda: search_collaborator.search(self.enrich_query, circle, token),
            token,
            identity=entity.identity,
        )

        nearby = [
            candidate.to_dict()
            for candidate in found or ()
            if candidate.location is not None
            and haversine_m(entity.location, candidate.location) <= self.enrich_radius_m
        ]

        self.logger.debug(
            "Enriched entity",
            extra={
                "identity": entity.identity,
                "enrich_query": self.enrich_query,
                "nearby": len(nearby),
            },
        )
        return replace(entity, attributes={**entity.attributes, NEARBY_ATTRIBUTE: nearby})

    def hydrate(
        self,
        identities: Iterable[str],
        cache: CacheCollaborator,
        detail: DetailCollaborator,
        token: Optional[CancellationToken] = None,
        search_collaborator: Optional[SearchCollaborator] = None,
    ) -> Dict[str, DiscoveredEntity]:
        """
        Resolve every identity through the cache, falling back to the detail provider.

        A cache miss triggers a detail fetch, enrichment when an enrichment
        query is configured and a search collaborator is given, and a
        write-back to the cache; a failed write-back is reported to the
        observer only.

        Args:
            identities: Unique identities to resolve
            cache: Cache collaborator
            detail: Detail collaborator
            token: Caller cancellation token
            search_collaborator: Search collaborator used for enrichment

        Returns:
            Mapping of identity to hydrated entity

        Raises:
            ProviderError: detail fetch or enrichment failure after a cache miss
            NotFoundError: identity unknown to the provider
            CacheError: cache read failure
            CancelledError: if the caller's token is cancelled
        """
        unique = sorted(set(identities))

        def hydrate_one(identity: str, phase_token: CancellationToken) -> DiscoveredEntity:
            phase_token.raise_if_cancelled()

            cached = cache.get(identity)
            if cached is not None:
                self.observer.cache_hit(identity)
                return cached

            self.observer.cache_miss(identity)
            entity = self._call_provider(
                "detail",
                "fetch",
                lambda: detail.fetch(identity, phase_token),
                phase_token,
                identity=identity,
            )

            if search_collaborator is not None:
                entity = self.enrich(entity, search_collaborator, phase_token)

            try:
                cache.put(identity, entity)
            except CacheError as e:
                self.observer.cache_write_failed(identity, e)

            return entity

        return dict(
            self._run_fail_fast(
                HYDRATE_PHASE, unique, hydrate_one, token or CancellationToken()
            )
        )


# Convenience functions
def create_search_coordinator(
    observer: Optional[SearchObserver] = None,
    enrich_query: Optional[str] = None,
) -> ConcurrentSearchCoordinator:
    """Create a search coordinator with default configuration."""
    return ConcurrentSearchCoordinator(observer=observer, enrich_query=enrich_query)
