"""Pytest configuration for test discovery, env, and fixtures.

This file ensures that:
- `src/` is importable
- Integration tests can read credentials from `conf/secrets.yml`
- Unit tests get a deterministic fake embedding client
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure src directory is in path for imports
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


def pytest_sessionstart(session: object) -> None:
    """Load conf/secrets.yml into unset env vars for integration tests."""
    from mentor_match.cli import load_secrets_into_env

    load_secrets_into_env(repo_root / "conf" / "secrets.yml")


class KeywordEmbedding:
    """Deterministic embedding client for unit tests.

    Each vocabulary word owns one axis; a text's vector counts vocabulary hits,
    so texts sharing words are similar. Texts with no vocabulary word map to
    the last axis.
    """

    def __init__(self, vocabulary: list[str], dimensions: int = 8):
        assert len(vocabulary) < dimensions
        self.vocabulary = [w.lower() for w in vocabulary]
        self.dimensions = dimensions
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        lowered = text.lower()
        vector = [float(lowered.count(word)) for word in self.vocabulary]
        vector += [0.0] * (self.dimensions - len(vector))
        if not any(vector):
            vector[-1] = 1.0
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]


@pytest.fixture
def keyword_embedding() -> KeywordEmbedding:
    """Fake embedding client over a small career vocabulary (8 dimensions)."""
    return KeywordEmbedding(
        ["data", "machine", "healthcare", "software", "startup", "leadership", "design"]
    )


@pytest.fixture
def wide_keyword_embedding() -> KeywordEmbedding:
    """Same vocabulary padded to the smallest dimension the config accepts."""
    return KeywordEmbedding(
        ["data", "machine", "healthcare", "software", "startup", "leadership", "design"],
        dimensions=128,
    )
