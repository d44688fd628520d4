"""Integration smoke tests against live OpenAI and Pinecone.

These tests require:
- OPENAI_API_KEY environment variable
- PINECONE_API_KEY environment variable
- Permission to create the serverless index 'mentor-match-test'

Run with: pytest tests/test_mentor_match/integration/ -v -m integration
"""

import os

import pytest

from mentor_match.config import IndexConfig, MatchingConfig
from mentor_match.embedding import EmbeddingConfig, OpenAIEmbedding
from mentor_match.index import PineconeIndex
from mentor_match.matching import MatchingEngine
from mentor_match.models import AssignmentType
from mentor_match.profiles import MenteeProfile, MentorProfile, ProfileStore

pytestmark = pytest.mark.integration

TEST_NAMESPACE = "smoke-test"


@pytest.fixture
def pinecone_config() -> IndexConfig:
    api_key = os.environ.get("PINECONE_API_KEY")
    if not api_key:
        pytest.skip("PINECONE_API_KEY not set")

    return IndexConfig(
        backend="pinecone",
        index_name="mentor-match-test",
        namespace=TEST_NAMESPACE,
        api_key=api_key,
        environment=os.environ.get("PINECONE_ENVIRONMENT", "us-east-1"),
        settle_timeout_seconds=90.0,
        poll_interval_seconds=2.0,
    )


@pytest.fixture
def embedding_client() -> OpenAIEmbedding:
    if not os.environ.get("OPENAI_API_KEY"):
        pytest.skip("OPENAI_API_KEY not set")
    return OpenAIEmbedding(EmbeddingConfig(model="openai/text-embedding-3-small", max_attempts=3))


@pytest.fixture
async def pinecone_index(pinecone_config):
    index = PineconeIndex(pinecone_config)
    await index.ensure_index_exists()
    await index.clear()
    yield index
    await index.clear()


class TestPineconeConnection:
    """Basic connectivity."""

    @pytest.mark.asyncio
    async def test_health_check(self, pinecone_index):
        assert await pinecone_index.health_check() is True

    @pytest.mark.asyncio
    async def test_stats(self, pinecone_index):
        stats = await pinecone_index.stats()
        assert stats.total_vectors >= 0
        assert stats.dimension == 1536


class TestStoreAndMatch:
    """Full store-wait-match workflow on a live index."""

    @pytest.mark.asyncio
    async def test_sample_workflow(self, pinecone_index, embedding_client):
        store = ProfileStore(embedding_client, pinecone_index)
        mentors = [
            MentorProfile(
                name="Dr. Sarah Lee",
                why_mentor="I guide professionals in healthcare technology and data science.",
                expertise=["Healthcare Tech", "Data Science", "Machine Learning"],
            ),
            MentorProfile(
                name="Jason Smith",
                why_mentor="I help engineers grow into tech leads at startups.",
                expertise=["Software Engineering", "Startups", "Tech Leadership"],
            ),
        ]
        mentees = [
            MenteeProfile(
                name="Emily Wong",
                short_term_goals="Land a data science job.",
                long_term_goals="Apply machine learning to healthcare.",
                interests=["Data Science", "Machine Learning"],
            ),
        ]

        await store.store_mentors(mentors)
        await store.store_mentees(mentees)
        await pinecone_index.wait_for_vector_count(3)

        engine = MatchingEngine(embedding_client, pinecone_index, MatchingConfig(top_k=5))
        (assignment,) = await engine.match_all(mentees)

        assert assignment.assignment_type is AssignmentType.UNIQUE
        assert assignment.mentor_name == "Dr. Sarah Lee"
