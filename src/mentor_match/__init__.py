"""Mentor-mentee matching over a vector index.

This package embeds free-text mentor and mentee profiles, stores them in a
vector index with role metadata, and resolves mentees to mentors with a greedy
fewest-options-first assignment.

Architecture:
    - embedding: Embedding provider client (OpenAI)
    - index: Pinecone and in-memory vector indexes with metadata filtering
    - similarity: Cosine similarity between vectors
    - profiles: Profile inputs, id derivation and store-side workflow
    - matching: Candidate retrieval and assignment resolution
    - connections: Pairwise similarity between stored records
    - models: Pydantic schemas for records, candidates and assignments

Usage:
    >>> from mentor_match.config import load_config
    >>> from mentor_match.embedding import create_embedding_client
    >>> from mentor_match.index import create_vector_index
    >>> config = load_config("default")
    >>> engine = MatchingEngine(
    ...     create_embedding_client(config.embedding),
    ...     create_vector_index(config.index),
    ...     config.matching,
    ... )
    >>> assignments = await engine.match_all(mentees)
"""

__version__ = "0.1.0"

from mentor_match.matching import MatchingEngine
from mentor_match.models import (
    Assignment,
    AssignmentType,
    CandidateMatch,
    Connection,
    ProfileRecord,
    ProfileRole,
)

__all__ = [
    "Assignment",
    "AssignmentType",
    "CandidateMatch",
    "Connection",
    "MatchingEngine",
    "ProfileRecord",
    "ProfileRole",
]
