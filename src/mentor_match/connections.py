"""Similarity between stored records.

Compares two records by id, and builds the ranked list of pairwise
connections between every response submitted to the same form.
"""

from itertools import combinations

from loguru import logger

from mentor_match.errors import RecordNotFoundError
from mentor_match.index import VectorIndex, equals_filter
from mentor_match.models import NAME_KEY, Connection
from mentor_match.similarity import cosine_similarity

DEFAULT_FORM_NAMESPACE = "ns1"


async def similarity_between(
    index: VectorIndex, id_a: str, id_b: str, namespace: str | None = None
) -> float:
    """Cosine similarity between two stored records.

    Raises:
        RecordNotFoundError: If either record is absent from the index
    """
    logger.debug(f"Calculating similarity between {id_a!r} and {id_b!r}")
    vectors = await index.fetch_vectors([id_a, id_b], namespace=namespace)

    for record_id in (id_a, id_b):
        if record_id not in vectors:
            raise RecordNotFoundError(
                f"Failed to retrieve vector for record {record_id!r}",
                context={"namespace": namespace},
            )
    return cosine_similarity(vectors[id_a], vectors[id_b])


async def generate_connections(
    index: VectorIndex,
    form_id: str,
    namespace: str = DEFAULT_FORM_NAMESPACE,
    top_k: int = 100,
) -> list[Connection]:
    """Pairwise similarities between all records of one form.

    Records are selected by their ``form_id`` metadata; at most ``top_k`` are
    considered. Records carrying ``response_id`` and ``respondent_name`` use
    those as identity, otherwise the record id and ``name``.

    Returns:
        Connections sorted by descending similarity
    """
    # Any non-zero vector works; the filter selects the records
    selector = [1.0] * index.dimension
    points = await index.query(
        selector,
        top_k=top_k,
        filter=equals_filter(form_id=form_id),
        namespace=namespace,
        include_values=True,
    )
    logger.info(f"Found {len(points)} records for form {form_id!r} in namespace {namespace!r}")

    connections: list[Connection] = []
    for a, b in combinations(points, 2):
        if not a.metadata or not b.metadata or not a.vector or not b.vector:
            logger.warning(f"Skipping pair with missing data: {a.id}, {b.id}")
            continue
        connections.append(
            Connection(
                record_a_id=str(a.metadata.get("response_id", a.id)),
                record_b_id=str(b.metadata.get("response_id", b.id)),
                name_a=str(a.metadata.get("respondent_name", a.metadata.get(NAME_KEY, a.id))),
                name_b=str(b.metadata.get("respondent_name", b.metadata.get(NAME_KEY, b.id))),
                similarity=cosine_similarity(a.vector, b.vector),
            )
        )

    connections.sort(key=lambda c: c.similarity, reverse=True)
    logger.info(f"Generated {len(connections)} connections for form {form_id!r}")
    return connections
