"""Unit tests for record-to-record similarity and form connections."""

import math
from unittest.mock import AsyncMock, MagicMock

import pytest

from mentor_match.connections import generate_connections, similarity_between
from mentor_match.errors import RecordNotFoundError
from mentor_match.index import InMemoryIndex
from mentor_match.models import CandidateMatch, ProfileRecord, ProfileRole


def _record(record_id: str, vector: list[float], **metadata) -> ProfileRecord:
    return ProfileRecord(
        id=record_id,
        role=ProfileRole.MENTEE,
        name=record_id.upper(),
        vector=vector,
        extra_metadata=metadata,
    )


@pytest.fixture
async def form_index() -> InMemoryIndex:
    """Three responses to form-1 and one to form-2 in namespace ns1."""
    index = InMemoryIndex(dimension=3)
    await index.upsert(
        [
            _record("r1", [1.0, 0.0, 0.0], form_id="form-1", response_id="resp-1",
                    respondent_name="Alice"),
            _record("r2", [1.0, 1.0, 0.0], form_id="form-1", response_id="resp-2",
                    respondent_name="Bob"),
            _record("r3", [0.0, 0.0, 1.0], form_id="form-1"),
            _record("r4", [1.0, 0.0, 0.0], form_id="form-2"),
        ],
        namespace="ns1",
    )
    return index


class TestSimilarityBetween:
    """Tests for similarity_between."""

    @pytest.mark.asyncio
    async def test_known_records(self, form_index):
        score = await similarity_between(form_index, "r1", "r2", namespace="ns1")
        assert score == pytest.approx(1 / math.sqrt(2))

    @pytest.mark.asyncio
    async def test_self_similarity(self, form_index):
        assert await similarity_between(form_index, "r2", "r2", namespace="ns1") == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_missing_record(self, form_index):
        with pytest.raises(RecordNotFoundError, match="'ghost'"):
            await similarity_between(form_index, "r1", "ghost", namespace="ns1")

    @pytest.mark.asyncio
    async def test_wrong_namespace(self, form_index):
        with pytest.raises(RecordNotFoundError):
            await similarity_between(form_index, "r1", "r2")


class TestGenerateConnections:
    """Tests for generate_connections."""

    @pytest.mark.asyncio
    async def test_all_pairs_sorted(self, form_index):
        connections = await generate_connections(form_index, "form-1")

        assert len(connections) == 3
        similarities = [c.similarity for c in connections]
        assert similarities == sorted(similarities, reverse=True)
        assert similarities[0] == pytest.approx(1 / math.sqrt(2))

        top = connections[0]
        assert {top.record_a_id, top.record_b_id} == {"resp-1", "resp-2"}
        assert {top.name_a, top.name_b} == {"Alice", "Bob"}

    @pytest.mark.asyncio
    async def test_falls_back_to_record_identity(self, form_index):
        connections = await generate_connections(form_index, "form-1")

        identities = {c.record_a_id for c in connections} | {c.record_b_id for c in connections}
        names = {c.name_a for c in connections} | {c.name_b for c in connections}
        assert "r3" in identities
        assert "R3" in names

    @pytest.mark.asyncio
    async def test_single_record_has_no_connections(self, form_index):
        assert await generate_connections(form_index, "form-2") == []

    @pytest.mark.asyncio
    async def test_unknown_form(self, form_index):
        assert await generate_connections(form_index, "form-404") == []

    @pytest.mark.asyncio
    async def test_pair_count(self):
        index = InMemoryIndex(dimension=3)
        await index.upsert(
            [_record(f"r{i}", [1.0, float(i), 0.5], form_id="f") for i in range(5)],
            namespace="ns1",
        )

        connections = await generate_connections(index, "f")

        assert len(connections) == 5 * 4 // 2

    @pytest.mark.asyncio
    async def test_skips_pairs_with_missing_data(self):
        index = MagicMock()
        index.dimension = 2
        index.query = AsyncMock(
            return_value=[
                CandidateMatch(id="a", score=1.0, metadata={"name": "A"}, vector=[1.0, 0.0]),
                CandidateMatch(id="b", score=1.0, metadata={}, vector=[1.0, 0.0]),
                CandidateMatch(id="c", score=1.0, metadata={"name": "C"}, vector=[0.0, 1.0]),
            ]
        )

        connections = await generate_connections(index, "f", top_k=10)

        assert [(c.record_a_id, c.record_b_id) for c in connections] == [("a", "c")]
        kwargs = index.query.await_args.kwargs
        assert kwargs["filter"] == {"form_id": {"$eq": "f"}}
        assert kwargs["include_values"] is True
        assert kwargs["top_k"] == 10
        assert kwargs["namespace"] == "ns1"
