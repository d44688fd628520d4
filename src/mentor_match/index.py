"""Vector index management and similarity queries.

Provides a unified interface over Pinecone and an in-process index with:
- Idempotent index creation with schema verification
- Upsert with dimension checks
- Top-K similarity queries with metadata equality/set filters
- Fetch by id, bulk clear, statistics and readiness polling
"""

import asyncio
import os
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

from loguru import logger
from pinecone import Pinecone, ServerlessSpec
from pinecone.exceptions import NotFoundException, PineconeException

from mentor_match.config import IndexConfig
from mentor_match.errors import (
    ConfigurationError,
    DimensionMismatchError,
    ProviderError,
    ValidationError,
)
from mentor_match.models import CandidateMatch, IndexStats, MetadataValue, ProfileRecord
from mentor_match.similarity import cosine_similarity

T = TypeVar("T")

MetadataFilter = Mapping[str, Mapping[str, Any]]

FILTER_OPERATORS = {"$eq", "$in"}


def equals_filter(**fields: MetadataValue) -> dict[str, dict[str, MetadataValue]]:
    """Build an equality filter in the index wire format.

    Example:
        >>> equals_filter(type="mentor")
        {'type': {'$eq': 'mentor'}}
    """
    return {field: {"$eq": value} for field, value in fields.items()}


def validate_filter(filter: MetadataFilter | None) -> None:
    """Reject filters that are not field -> {"$eq": v} / {"$in": [v, ...]} mappings."""
    if filter is None:
        return
    if not isinstance(filter, Mapping):
        raise ValidationError(f"Filter must be a mapping, got {type(filter).__name__}")
    for field, predicate in filter.items():
        if not isinstance(field, str) or not field:
            raise ValidationError(f"Filter field names must be non-empty strings, got {field!r}")
        if not isinstance(predicate, Mapping) or len(predicate) != 1:
            raise ValidationError(
                f"Filter on {field!r} must be a single-operator mapping, got {predicate!r}"
            )
        ((operator, value),) = predicate.items()
        if operator not in FILTER_OPERATORS:
            raise ValidationError(
                f"Unsupported filter operator {operator!r} on {field!r}; "
                f"expected one of {sorted(FILTER_OPERATORS)}"
            )
        if operator == "$in" and not isinstance(value, list | tuple):
            raise ValidationError(f"'$in' filter on {field!r} requires a list, got {value!r}")


def matches_filter(metadata: Mapping[str, Any], filter: MetadataFilter | None) -> bool:
    """Evaluate a validated filter against a metadata mapping."""
    if not filter:
        return True
    for field, predicate in filter.items():
        ((operator, value),) = predicate.items()
        actual = metadata.get(field)
        if operator == "$eq" and actual != value:
            return False
        if operator == "$in" and actual not in value:
            return False
    return True


class VectorIndex(ABC):
    """Abstract base class for vector index implementations.

    Concrete indexes share dimension checks, query validation and readiness
    polling; subclasses only talk to their storage.
    """

    dimension: int
    namespace: str | None = None
    settle_timeout_seconds: float = 60.0
    poll_interval_seconds: float = 1.0

    @abstractmethod
    async def ensure_index_exists(
        self,
        name: str | None = None,
        dimension: int | None = None,
        metric: str | None = None,
    ) -> bool:
        """Create the index if absent.

        Args:
            name: Index name (defaults to the configured name)
            dimension: Vector dimension (defaults to the configured dimension)
            metric: Distance metric (defaults to the configured metric)

        Returns:
            True if the index was created, False if it already existed

        Raises:
            ConfigurationError: If an existing index has a different schema
                and schema verification is enabled
        """
        ...

    @abstractmethod
    async def upsert(self, records: list[ProfileRecord], namespace: str | None = None) -> None:
        """Insert or overwrite records.

        Raises:
            ValidationError: If records list is empty
            DimensionMismatchError: If any vector has the wrong length
        """
        ...

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: MetadataFilter | None = None,
        namespace: str | None = None,
        include_values: bool = False,
    ) -> list[CandidateMatch]:
        """Return up to top_k records ranked by descending similarity.

        Raises:
            ValidationError: If top_k is not positive or the filter is malformed
            DimensionMismatchError: If the query vector has the wrong length
        """
        ...

    @abstractmethod
    async def fetch_vectors(
        self, ids: Sequence[str], namespace: str | None = None
    ) -> dict[str, list[float]]:
        """Return stored vectors by id. Absent ids are omitted, not an error."""
        ...

    @abstractmethod
    async def clear(self, namespace: str | None = None) -> None:
        """Delete every record in a namespace. A missing index is a no-op."""
        ...

    @abstractmethod
    async def stats(self) -> IndexStats:
        """Get index statistics."""
        ...

    async def health_check(self) -> bool:
        """Check if index is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            await self.stats()
            return True
        except ProviderError as e:
            logger.warning(f"Index health check failed: {e}")
            return False

    async def wait_for_vector_count(
        self,
        expected: int,
        namespace: str | None = None,
        timeout_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
    ) -> int:
        """Poll index statistics until a namespace holds at least ``expected`` records.

        Freshly written records are not immediately visible to queries on
        eventually consistent indexes; store-then-query workflows call this
        between the two phases.

        Args:
            expected: Minimum record count to wait for
            namespace: Namespace to count (defaults to the configured one)
            timeout_seconds: Upper bound on waiting (defaults to settle_timeout_seconds)
            poll_interval_seconds: Delay between polls

        Returns:
            The observed record count

        Raises:
            ProviderError: If the count is not reached before the timeout
        """
        return await self._poll_count(
            lambda count: count >= expected,
            f"reach {expected} records",
            namespace,
            timeout_seconds,
            poll_interval_seconds,
        )

    async def wait_for_empty(
        self,
        namespace: str | None = None,
        timeout_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
    ) -> None:
        """Poll index statistics until a cleared namespace reports no records.

        Raises:
            ProviderError: If stale records are still counted at the timeout
        """
        await self._poll_count(
            lambda count: count == 0,
            "become empty",
            namespace,
            timeout_seconds,
            poll_interval_seconds,
        )

    async def _poll_count(
        self,
        done: Callable[[int], bool],
        goal: str,
        namespace: str | None,
        timeout_seconds: float | None,
        poll_interval_seconds: float | None,
    ) -> int:
        timeout = timeout_seconds if timeout_seconds is not None else self.settle_timeout_seconds
        interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else self.poll_interval_seconds
        )
        target = namespace if namespace is not None else self.namespace

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            count = (await self.stats()).count(target)
            if done(count):
                logger.debug(f"Index reports {count} records (waited to {goal})")
                return count
            if loop.time() >= deadline:
                raise ProviderError(
                    f"Index did not {goal} within {timeout}s",
                    context={"observed": count, "namespace": target},
                )
            await asyncio.sleep(interval)

    def _check_records(self, records: list[ProfileRecord]) -> None:
        if not records:
            raise ValidationError("Cannot upsert empty record list")
        for record in records:
            if len(record.vector) != self.dimension:
                raise DimensionMismatchError(
                    expected=self.dimension, actual=len(record.vector), subject=record.id
                )

    def _check_query(
        self, vector: list[float], top_k: int, filter: MetadataFilter | None
    ) -> None:
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
            raise ValidationError(f"top_k must be a positive integer, got {top_k!r}")
        if len(vector) != self.dimension:
            raise DimensionMismatchError(
                expected=self.dimension, actual=len(vector), subject="query vector"
            )
        validate_filter(filter)


def _metric_name(metric: Any) -> str:
    return str(getattr(metric, "value", metric)).lower()


class PineconeIndex(VectorIndex):
    """Pinecone vector index implementation.

    The SDK is synchronous; every call runs in a worker thread bounded by
    ``timeout_seconds``. The data-plane handle is resolved on first use so an
    index that does not exist yet can still be created or cleared.
    """

    def __init__(self, config: IndexConfig):
        """Initialize Pinecone client.

        Args:
            config: Index configuration

        Raises:
            ConfigurationError: If no API key is configured
        """
        api_key = config.api_key or os.environ.get("PINECONE_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "Pinecone API key is not set; configure index.api_key or PINECONE_API_KEY"
            )

        self.index_name = config.index_name
        self.namespace = config.namespace
        self.dimension = config.dimension
        self.metric = config.metric
        self.cloud = config.cloud
        self.environment = config.environment
        self.timeout_seconds = config.timeout_seconds
        self.verify_schema = config.verify_schema
        self.settle_timeout_seconds = config.settle_timeout_seconds
        self.poll_interval_seconds = config.poll_interval_seconds

        self.pc = Pinecone(api_key=api_key)
        self._index: Any = None

    @property
    def index(self) -> Any:
        if self._index is None:
            self._index = self.pc.Index(self.index_name)
            logger.debug(f"Connected to Pinecone index {self.index_name!r}")
        return self._index

    async def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self.timeout_seconds)
        except TimeoutError as e:
            raise ProviderError(
                f"Pinecone {operation} timed out after {self.timeout_seconds}s",
                context={"index": self.index_name},
            ) from e
        except (PineconeException, OSError) as e:
            raise ProviderError(
                f"Pinecone {operation} failed: {e}", context={"index": self.index_name}
            ) from e

    def _namespace(self, namespace: str | None) -> str | None:
        return namespace if namespace is not None else self.namespace

    async def ensure_index_exists(
        self,
        name: str | None = None,
        dimension: int | None = None,
        metric: str | None = None,
    ) -> bool:
        name = name or self.index_name
        dimension = dimension or self.dimension
        metric = metric or self.metric

        existing = await self._call("list_indexes", self.pc.list_indexes)
        index_names = [idx["name"] for idx in existing]

        if name in index_names:
            if self.verify_schema:
                description = await self._call(
                    "describe_index", lambda: self.pc.describe_index(name)
                )
                actual_metric = _metric_name(description.metric)
                if description.dimension != dimension or actual_metric != metric:
                    raise ConfigurationError(
                        f"Index {name!r} exists with a different schema",
                        context={
                            "expected_dimension": dimension,
                            "actual_dimension": description.dimension,
                            "expected_metric": metric,
                            "actual_metric": actual_metric,
                        },
                    )
            logger.info(f"Index {name!r} already exists")
            return False

        logger.info(f"Creating index {name!r} (dimension={dimension}, metric={metric})")
        await self._call(
            "create_index",
            lambda: self.pc.create_index(
                name=name,
                dimension=dimension,
                metric=metric,
                spec=ServerlessSpec(cloud=self.cloud, region=self.environment),
            ),
        )
        logger.info(f"Index {name!r} created; it may take a moment to become ready")
        return True

    async def upsert(self, records: list[ProfileRecord], namespace: str | None = None) -> None:
        self._check_records(records)

        vectors = [
            {"id": record.id, "values": record.vector, "metadata": record.index_metadata()}
            for record in records
        ]
        ns = self._namespace(namespace)
        await self._call("upsert", lambda: self.index.upsert(vectors=vectors, namespace=ns))
        logger.debug(f"Upserted {len(vectors)} records into {self.index_name!r}")

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: MetadataFilter | None = None,
        namespace: str | None = None,
        include_values: bool = False,
    ) -> list[CandidateMatch]:
        self._check_query(vector, top_k, filter)

        kwargs: dict[str, Any] = {
            "vector": vector,
            "top_k": top_k,
            "namespace": self._namespace(namespace),
            "include_metadata": True,
            "include_values": include_values,
        }
        if filter:
            kwargs["filter"] = dict(filter)
            logger.debug(f"Applying filter: {filter}")

        response = await self._call("query", lambda: self.index.query(**kwargs))

        matches = [
            CandidateMatch(
                id=match.id,
                score=match.score,
                metadata=dict(match.metadata or {}),
                vector=list(match.values) if include_values and match.values else None,
            )
            for match in (response.matches or [])
        ]
        # Ties keep the order the index returned
        matches.sort(key=lambda m: m.score if m.score is not None else float("-inf"), reverse=True)
        return matches[:top_k]

    async def fetch_vectors(
        self, ids: Sequence[str], namespace: str | None = None
    ) -> dict[str, list[float]]:
        if not ids:
            return {}
        ns = self._namespace(namespace)
        response = await self._call("fetch", lambda: self.index.fetch(ids=list(ids), namespace=ns))
        return {vid: list(vec.values) for vid, vec in (response.vectors or {}).items()}

    async def clear(self, namespace: str | None = None) -> None:
        ns = self._namespace(namespace)
        try:
            await self._call(
                "delete_all", lambda: self.index.delete(delete_all=True, namespace=ns)
            )
        except ProviderError as e:
            if isinstance(e.__cause__, NotFoundException):
                logger.warning(
                    f"Index {self.index_name!r} (namespace {ns!r}) not found; nothing to clear"
                )
                return
            raise
        logger.info(f"Cleared index {self.index_name!r} (namespace {ns!r})")

    async def stats(self) -> IndexStats:
        raw = await self._call("describe_index_stats", lambda: self.index.describe_index_stats())

        namespaces = {
            name: int(getattr(summary, "vector_count", 0) or 0)
            for name, summary in (getattr(raw, "namespaces", None) or {}).items()
        }
        return IndexStats(
            total_vectors=int(getattr(raw, "total_vector_count", 0) or 0),
            namespaces=namespaces,
            dimension=getattr(raw, "dimension", None),
        )


class InMemoryIndex(VectorIndex):
    """In-process index with the same contract as PineconeIndex.

    Writes are visible immediately. Only the cosine metric is supported.
    """

    def __init__(
        self,
        dimension: int = 1536,
        index_name: str = "memory",
        namespace: str | None = None,
        metric: str = "cosine",
        settle_timeout_seconds: float = 1.0,
        poll_interval_seconds: float = 0.01,
    ):
        if metric != "cosine":
            raise ConfigurationError(f"InMemoryIndex only supports cosine, got {metric!r}")
        self.index_name = index_name
        self.dimension = dimension
        self.metric = metric
        self.namespace = namespace
        self.settle_timeout_seconds = settle_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.exists = False
        self._namespaces: dict[str, dict[str, tuple[list[float], dict[str, Any]]]] = {}

    def _records(self, namespace: str | None) -> dict[str, tuple[list[float], dict[str, Any]]]:
        ns = namespace if namespace is not None else self.namespace
        return self._namespaces.setdefault(ns or "", {})

    async def ensure_index_exists(
        self,
        name: str | None = None,
        dimension: int | None = None,
        metric: str | None = None,
    ) -> bool:
        if name is not None and name != self.index_name:
            raise ConfigurationError(
                f"InMemoryIndex is named {self.index_name!r}; cannot ensure index {name!r}"
            )
        if (dimension is not None and dimension != self.dimension) or (
            metric is not None and metric != self.metric
        ):
            raise ConfigurationError(
                f"Index {self.index_name!r} has dimension={self.dimension}, metric={self.metric}"
            )
        if self.exists:
            return False
        self.exists = True
        return True

    async def upsert(self, records: list[ProfileRecord], namespace: str | None = None) -> None:
        self._check_records(records)
        store = self._records(namespace)
        for record in records:
            store[record.id] = (list(record.vector), record.index_metadata())

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: MetadataFilter | None = None,
        namespace: str | None = None,
        include_values: bool = False,
    ) -> list[CandidateMatch]:
        self._check_query(vector, top_k, filter)

        matches = [
            CandidateMatch(
                id=record_id,
                score=cosine_similarity(vector, values),
                metadata=dict(metadata),
                vector=list(values) if include_values else None,
            )
            for record_id, (values, metadata) in self._records(namespace).items()
            if matches_filter(metadata, filter)
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    async def fetch_vectors(
        self, ids: Sequence[str], namespace: str | None = None
    ) -> dict[str, list[float]]:
        store = self._records(namespace)
        return {vid: list(store[vid][0]) for vid in ids if vid in store}

    async def clear(self, namespace: str | None = None) -> None:
        ns = namespace if namespace is not None else self.namespace
        if (ns or "") not in self._namespaces:
            logger.warning(f"Namespace {ns!r} not found in {self.index_name!r}; nothing to clear")
            return
        self._namespaces[ns or ""].clear()

    async def stats(self) -> IndexStats:
        namespaces = {ns: len(records) for ns, records in self._namespaces.items()}
        return IndexStats(
            total_vectors=sum(namespaces.values()),
            namespaces=namespaces,
            dimension=self.dimension,
        )


def create_vector_index(config: IndexConfig) -> VectorIndex:
    """Factory function to create a vector index from configuration.

    Args:
        config: Index configuration

    Returns:
        Vector index implementation
    """
    if config.backend == "pinecone":
        return PineconeIndex(config)
    if config.backend == "memory":
        return InMemoryIndex(
            dimension=config.dimension,
            index_name=config.index_name,
            namespace=config.namespace,
            metric=config.metric,
            settle_timeout_seconds=config.settle_timeout_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
        )
    raise ConfigurationError(f"Unknown index backend {config.backend!r}")
