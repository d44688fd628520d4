"""Profile inputs and store-side orchestration.

Turns mentor and mentee submissions into embeddable text, derives stable
record ids, and writes embedded profiles to the vector index.
"""

import re
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from loguru import logger
from pydantic import BaseModel, Field

from mentor_match.embedding import EmbeddingClient
from mentor_match.errors import DimensionMismatchError, ValidationError
from mentor_match.index import VectorIndex
from mentor_match.models import MetadataValue, ProfileRecord, ProfileRole

DEFAULT_SOURCE_TEXT_LIMIT = 1000

_DISALLOWED_ID_CHARS = re.compile(r"[^a-zA-Z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")


class MentorProfile(BaseModel):
    """Mentor submission.

    Attributes:
        name: Full display name
        email: Contact address (display only)
        why_mentor: Free-text motivation and specialties
        expertise: Areas the mentor can help with
    """

    name: str = Field(min_length=1)
    email: str | None = None
    why_mentor: str = ""
    expertise: list[str] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return make_profile_id(ProfileRole.MENTOR, self.name)

    def profile_text(self) -> str:
        if not (self.why_mentor.strip() or self.expertise):
            return ""
        return f"{self.why_mentor} Expertise: {', '.join(self.expertise)}"

    def metadata(self) -> dict[str, MetadataValue]:
        metadata: dict[str, MetadataValue] = {"expertise": ", ".join(self.expertise)}
        if self.email:
            metadata["email"] = self.email
        return metadata


class MenteeProfile(BaseModel):
    """Mentee submission.

    Attributes:
        name: Full display name
        email: Contact address (display only)
        short_term_goals: Near-term career goals
        long_term_goals: Long-term career aspirations
        interests: Topics the mentee wants help with
    """

    name: str = Field(min_length=1)
    email: str | None = None
    short_term_goals: str = ""
    long_term_goals: str = ""
    interests: list[str] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return make_profile_id(ProfileRole.MENTEE, self.name)

    def profile_text(self) -> str:
        """Text embedded for storage; also the query text used for matching."""
        if not (self.short_term_goals.strip() or self.long_term_goals.strip() or self.interests):
            return ""
        return (
            f"Goals: {self.short_term_goals} {self.long_term_goals} "
            f"Interests: {', '.join(self.interests)}"
        )

    def metadata(self) -> dict[str, MetadataValue]:
        metadata: dict[str, MetadataValue] = {"interests": ", ".join(self.interests)}
        if self.email:
            metadata["email"] = self.email
        return metadata


def make_profile_id(role: ProfileRole | str, name: str) -> str:
    """Derive a stable record id from role and display name.

    Characters other than letters, digits, whitespace and hyphens are dropped,
    whitespace runs become a single hyphen and the result is lower-cased.
    Distinct names that normalize identically share an id; the later write wins.

    Example:
        >>> make_profile_id(ProfileRole.MENTOR, "Dr. Sarah Lee")
        'mentor-dr-sarah-lee'
    """
    role_value = role.value if isinstance(role, ProfileRole) else role
    suffix = _WHITESPACE.sub("-", _DISALLOWED_ID_CHARS.sub("", name)).lower()
    return f"{role_value}-{suffix}"


class ProfileStore:
    """Embeds profiles and writes them to the vector index.

    Handles the store-side workflow:
    1. Skip profiles with no text (logged, not an error)
    2. Generate the embedding from the full text
    3. Validate its dimension
    4. Upsert the record with truncated source text
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_index: VectorIndex,
        source_text_limit: int = DEFAULT_SOURCE_TEXT_LIMIT,
        namespace: str | None = None,
    ):
        """Initialize profile store.

        Args:
            embedding_client: Client for generating embeddings
            vector_index: Vector index for storage
            source_text_limit: Characters of source text kept in metadata
            namespace: Optional namespace override for writes
        """
        self.embedding_client = embedding_client
        self.vector_index = vector_index
        self.source_text_limit = source_text_limit
        self.namespace = namespace
        # Distinct record ids written; colliding names share one entry
        self.stored_ids: set[str] = set()

    async def store_profile(
        self,
        text: str,
        role: ProfileRole,
        name: str,
        extra_metadata: dict[str, MetadataValue] | None = None,
    ) -> ProfileRecord | None:
        """Embed and store a single profile.

        Args:
            text: Full profile text to embed
            role: Mentor or mentee
            name: Display name
            extra_metadata: Role-specific display fields

        Returns:
            The stored record, or None when the text was empty and storage skipped

        Raises:
            ValidationError: If the name is blank
            ProviderError: For embedding or index failures
            DimensionMismatchError: If the embedding has the wrong dimension
        """
        if not name or not name.strip():
            raise ValidationError("Profile name must not be blank")

        logger.info(f"Storing embedding for {role.value}: {name!r}")
        if not text or not text.strip():
            logger.warning(f"Empty text for {name!r}, skipping")
            return None

        vector = await self.embedding_client.embed(text)
        if len(vector) != self.vector_index.dimension:
            raise DimensionMismatchError(
                expected=self.vector_index.dimension, actual=len(vector), subject=name
            )

        record = ProfileRecord(
            id=make_profile_id(role, name),
            role=role,
            name=name,
            vector=vector,
            source_text=text[: self.source_text_limit],
            extra_metadata=extra_metadata or {},
        )
        await self.vector_index.upsert([record], namespace=self.namespace)
        self.stored_ids.add(record.id)
        logger.info(f"Upserted {record.id!r} for {name!r}")
        return record

    async def store_mentors(self, mentors: list[MentorProfile]) -> dict[str, int]:
        """Store every mentor profile.

        Returns:
            Dictionary with stored_count and skipped_count
        """
        return await self._store_all(
            [(m.profile_text(), ProfileRole.MENTOR, m.name, m.metadata()) for m in mentors]
        )

    async def store_mentees(self, mentees: list[MenteeProfile]) -> dict[str, int]:
        """Store every mentee profile.

        Returns:
            Dictionary with stored_count and skipped_count
        """
        return await self._store_all(
            [(m.profile_text(), ProfileRole.MENTEE, m.name, m.metadata()) for m in mentees]
        )

    async def _store_all(
        self, items: list[tuple[str, ProfileRole, str, dict[str, MetadataValue]]]
    ) -> dict[str, int]:
        stored = 0
        skipped = 0
        for text, role, name, metadata in items:
            record = await self.store_profile(text, role, name, metadata)
            if record is None:
                skipped += 1
            else:
                stored += 1
        return {"stored_count": stored, "skipped_count": skipped}


def load_profiles(path: str | Path) -> tuple[list[MentorProfile], list[MenteeProfile]]:
    """Load mentors and mentees from a YAML file.

    The file holds two top-level lists, ``mentors`` and ``mentees``; either may
    be absent.

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the document is not a mapping
    """
    path = Path(path)
    with path.open() as fh:
        data: Any = yaml.safe_load(fh) or {}

    if not isinstance(data, dict):
        raise ValidationError(f"Profiles file {path} must contain a mapping")

    mentors = [MentorProfile.model_validate(item) for item in data.get("mentors") or []]
    mentees = [MenteeProfile.model_validate(item) for item in data.get("mentees") or []]
    return mentors, mentees
