"""Mentor-mentee assignment using fewest-options-first greedy matching.

The run has three phases:
1. Retrieval: embed each mentee's goals and query the index for mentor candidates
2. Ordering: mentees with fewer viable candidates are resolved first
3. Assignment: take the best mentor not yet taken, else share the top candidate

The result is greedy, not a maximum-weight or stable matching.
"""

import asyncio
from dataclasses import dataclass, field

from loguru import logger

from mentor_match.config import MatchingConfig
from mentor_match.embedding import EmbeddingClient
from mentor_match.index import VectorIndex, equals_filter
from mentor_match.models import Assignment, AssignmentType, CandidateMatch, ProfileRole
from mentor_match.profiles import MenteeProfile


@dataclass
class MenteeCandidates:
    """A mentee with its validated, score-sorted mentor candidates."""

    mentee: MenteeProfile
    candidates: list[CandidateMatch] = field(default_factory=list)


def filter_candidates(
    matches: list[CandidateMatch], role: ProfileRole = ProfileRole.MENTOR
) -> list[CandidateMatch]:
    """Drop unusable query results and sort the rest by descending score.

    The index filter is treated as a hint: candidates with a blank name, no
    score, or a role other than ``role`` are discarded.
    """
    valid = [
        match
        for match in matches
        if match.name is not None
        and match.name.strip()
        and match.score is not None
        and match.role == role.value
    ]
    return sorted(valid, key=lambda m: m.score, reverse=True)  # type: ignore[arg-type, return-value]


def order_by_scarcity(entries: list[MenteeCandidates]) -> list[MenteeCandidates]:
    """Sort mentees by ascending candidate count; ties keep input order."""
    return sorted(entries, key=lambda entry: len(entry.candidates))


def _taken_key(candidate: CandidateMatch, dedupe_key: str) -> str:
    if dedupe_key == "name":
        return candidate.name or ""
    return candidate.id


def resolve_assignments(
    entries: list[MenteeCandidates], dedupe_key: str = "id"
) -> list[Assignment]:
    """Assign mentors to mentees, fewest options first.

    Args:
        entries: Mentees with candidates already filtered and sorted
        dedupe_key: "id" to treat each mentor record as distinct, "name" to
            treat mentors sharing a display name as the same mentor

    Returns:
        One assignment per mentee, in processing order
    """
    taken: set[str] = set()
    assignments: list[Assignment] = []

    for entry in order_by_scarcity(entries):
        mentee, candidates = entry.mentee, entry.candidates

        chosen = next((c for c in candidates if _taken_key(c, dedupe_key) not in taken), None)
        if chosen is not None:
            taken.add(_taken_key(chosen, dedupe_key))
            assignment_type = AssignmentType.UNIQUE
        elif candidates:
            chosen = candidates[0]
            assignment_type = AssignmentType.SHARED_FALLBACK
            logger.info(
                f"No unique mentor left for {mentee.name!r}; "
                f"sharing {chosen.name!r} (score {chosen.score:.3f})"
            )
        else:
            assignment_type = AssignmentType.NO_MATCH_FOUND
            logger.warning(f"No suitable mentor found for {mentee.name!r}")

        interests = ", ".join(mentee.interests) or None
        if chosen is None:
            assignments.append(
                Assignment(
                    mentee_id=mentee.id,
                    mentee_name=mentee.name,
                    assignment_type=assignment_type,
                    mentee_interests=interests,
                )
            )
            continue

        expertise = chosen.metadata.get("expertise")
        assignments.append(
            Assignment(
                mentee_id=mentee.id,
                mentee_name=mentee.name,
                mentor_id=chosen.id,
                mentor_name=chosen.name,
                score=chosen.score,
                assignment_type=assignment_type,
                mentor_expertise=expertise if isinstance(expertise, str) else None,
                mentee_interests=interests,
            )
        )

    return assignments


class MatchingEngine:
    """Matches mentees against mentor profiles already stored in the index.

    The engine performs no writes. Any embedding or index error during
    retrieval aborts the whole run; no partial assignment list is returned.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_index: VectorIndex,
        config: MatchingConfig | None = None,
        namespace: str | None = None,
    ):
        """Initialize matching engine.

        Args:
            embedding_client: Client for embedding mentee query text
            vector_index: Index holding mentor profiles
            config: Matching configuration (uses defaults if None)
            namespace: Optional namespace override for queries
        """
        self.embedding_client = embedding_client
        self.vector_index = vector_index
        self.config = config or MatchingConfig()
        self.namespace = namespace

    async def retrieve_candidates(self, mentee: MenteeProfile) -> list[CandidateMatch]:
        """Query the index for a mentee's mentor candidates.

        A mentee with no goals or interests gets no candidates and the
        provider is not called.
        """
        query_text = mentee.profile_text()
        if not query_text.strip():
            logger.warning(f"Empty query text for {mentee.name!r}; no candidates")
            return []

        logger.info(f"Searching mentors for {mentee.name!r} (top_k={self.config.top_k})")
        vector = await self.embedding_client.embed(query_text)
        matches = await self.vector_index.query(
            vector,
            top_k=self.config.top_k,
            filter=equals_filter(type=ProfileRole.MENTOR.value),
            namespace=self.namespace,
        )

        candidates = filter_candidates(matches)
        if len(candidates) != len(matches):
            logger.warning(
                f"Discarded {len(matches) - len(candidates)} invalid candidates "
                f"for {mentee.name!r}"
            )
        if candidates:
            top = ", ".join(f"{c.name} ({c.score:.3f})" for c in candidates[:3])
            logger.info(f"Found {len(candidates)} candidates for {mentee.name!r}: {top}")
        return candidates

    async def collect_candidates(self, mentees: list[MenteeProfile]) -> list[MenteeCandidates]:
        """Run the retrieval phase for every mentee, preserving input order.

        In parallel mode the first failure cancels every retrieval still in
        flight and is re-raised as is.
        """
        if self.config.parallel_retrieval:
            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(self.retrieve_candidates(m)) for m in mentees]
            except ExceptionGroup as eg:
                raise eg.exceptions[0]
            results = [task.result() for task in tasks]
        else:
            results = [await self.retrieve_candidates(m) for m in mentees]
        return [
            MenteeCandidates(mentee=mentee, candidates=candidates)
            for mentee, candidates in zip(mentees, results, strict=True)
        ]

    async def match_all(self, mentees: list[MenteeProfile]) -> list[Assignment]:
        """Produce exactly one assignment per mentee.

        Args:
            mentees: Mentees to match (mentor profiles must already be stored)

        Returns:
            Assignments in processing order (fewest candidates first)

        Raises:
            ProviderError: If embedding or querying fails for any mentee
            DimensionMismatchError: If a query vector has the wrong dimension
        """
        entries = await self.collect_candidates(mentees)
        assignments = resolve_assignments(entries, dedupe_key=self.config.dedupe_key)

        unique = sum(a.assignment_type is AssignmentType.UNIQUE for a in assignments)
        shared = sum(a.assignment_type is AssignmentType.SHARED_FALLBACK for a in assignments)
        logger.info(
            f"Matched {len(assignments)} mentees: {unique} unique, {shared} shared, "
            f"{len(assignments) - unique - shared} unmatched"
        )
        return assignments


def summarize_assignments(assignments: list[Assignment]) -> str:
    """Render assignments as a human-readable summary, one line per mentee."""
    if not assignments:
        return "No mentees were processed."

    lines = []
    for assignment in assignments:
        if assignment.is_matched and assignment.score is not None:
            lines.append(
                f"{assignment.mentee_name} ==> {assignment.mentor_name} "
                f"(Score: {assignment.score * 100:.1f}%, Type: {assignment.assignment_type.value})"
            )
        else:
            lines.append(
                f"{assignment.mentee_name} ==> NO MENTOR ASSIGNED "
                f"({assignment.assignment_type.value})"
            )
    return "\n".join(lines)
