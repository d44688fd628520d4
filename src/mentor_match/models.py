"""Pydantic models for matching data structures.

All data flowing between the embedding provider, the vector index and the
matching engine is validated against these schemas.
"""

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

MetadataValue = str | int | float | bool | list[str]

# Metadata keys owned by the store; extra metadata never overrides them.
TYPE_KEY = "type"
NAME_KEY = "name"
SOURCE_TEXT_KEY = "source_text"


class ProfileRole(str, Enum):
    """Role tag stored in metadata and used as the retrieval filter."""

    MENTOR = "mentor"
    MENTEE = "mentee"


class AssignmentType(str, Enum):
    """How a mentee ended up with (or without) a mentor."""

    UNIQUE = "unique"
    SHARED_FALLBACK = "shared_fallback"
    NO_MATCH_FOUND = "no_match_found"


class ProfileRecord(BaseModel):
    """One mentor or mentee identity as stored in the vector index.

    Attributes:
        id: Stable key derived from role and name (see profiles.make_profile_id)
        role: Mentor or mentee
        name: Display name
        vector: Embedding of the full source text
        source_text: Embedded text, truncated for storage and debugging
        extra_metadata: Role-specific display fields (expertise, interests, ...)
    """

    id: str = Field(min_length=1)
    role: ProfileRole
    name: str = Field(min_length=1)
    vector: list[float] = Field(min_length=1)
    source_text: str = ""
    extra_metadata: dict[str, MetadataValue] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject names made only of whitespace."""
        if not v.strip():
            raise ValueError("name must not be blank")
        return v

    @field_validator("vector")
    @classmethod
    def validate_vector_values(cls, v: list[float]) -> list[float]:
        """Ensure vector contains valid finite floats."""
        for i, val in enumerate(v):
            if not math.isfinite(val):
                raise ValueError(f"Vector contains non-finite value at index {i}: {val}")
        return v

    def index_metadata(self) -> dict[str, MetadataValue]:
        """Flatten into the metadata mapping written to the index."""
        return {
            **self.extra_metadata,
            TYPE_KEY: self.role.value,
            NAME_KEY: self.name,
            SOURCE_TEXT_KEY: self.source_text,
        }


class CandidateMatch(BaseModel):
    """A single similarity query result.

    Attributes:
        id: Record id in the index
        score: Similarity reported by the index (higher is better), None if missing
        metadata: Stored metadata, possibly incomplete if the index is inconsistent
        vector: Stored vector, only present when values were requested
    """

    id: str
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    vector: list[float] | None = None

    @property
    def name(self) -> str | None:
        value = self.metadata.get(NAME_KEY)
        return value if isinstance(value, str) else None

    @property
    def role(self) -> str | None:
        value = self.metadata.get(TYPE_KEY)
        return value if isinstance(value, str) else None


class Assignment(BaseModel):
    """Final outcome of a matching run for one mentee.

    Mentor fields and score are None exactly when the assignment type is
    ``no_match_found``.
    """

    mentee_id: str
    mentee_name: str
    mentor_id: str | None = None
    mentor_name: str | None = None
    score: float | None = None
    assignment_type: AssignmentType
    mentor_expertise: str | None = None
    mentee_interests: str | None = None

    @property
    def is_matched(self) -> bool:
        return self.assignment_type is not AssignmentType.NO_MATCH_FOUND


class Connection(BaseModel):
    """Similarity between two stored records of the same form."""

    record_a_id: str
    record_b_id: str
    name_a: str
    name_b: str
    similarity: float


class IndexStats(BaseModel):
    """Statistics about the vector index.

    Attributes:
        total_vectors: Total number of records across namespaces
        namespaces: Record count per namespace ("" is the default namespace)
        dimension: Index dimension, if reported
    """

    total_vectors: int = Field(ge=0)
    namespaces: dict[str, int] = Field(default_factory=dict)
    dimension: int | None = None

    def count(self, namespace: str | None = None) -> int:
        """Return the record count for a namespace (default namespace if None)."""
        if namespace:
            return self.namespaces.get(namespace, 0)
        # Pinecone reports the default namespace as "" or "__default__" depending on API version
        return self.namespaces.get("", 0) + self.namespaces.get("__default__", 0)
