"""Command line interface for storing profiles and running matches.

Usage:
    mentor-match setup-index
    mentor-match run data/sample_profiles.yaml
    mentor-match match data/sample_profiles.yaml
    mentor-match similarity mentor-dr-sarah-lee mentee-emily-wong
    mentor-match reset

Credentials are read from the environment, which is populated from
``conf/secrets.yml`` when that file exists.
"""

import asyncio
import os
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click
import pydantic
import yaml  # type: ignore[import-untyped]
from loguru import logger

from mentor_match.config import MentorMatchConfig, load_config
from mentor_match.connections import DEFAULT_FORM_NAMESPACE, generate_connections, similarity_between
from mentor_match.embedding import EmbeddingClient, create_embedding_client
from mentor_match.errors import MentorMatchError
from mentor_match.index import VectorIndex, create_vector_index
from mentor_match.matching import MatchingEngine, summarize_assignments
from mentor_match.profiles import MenteeProfile, MentorProfile, ProfileStore, load_profiles

T = TypeVar("T")

SECRET_KEYS = ("OPENAI_API_KEY", "PINECONE_API_KEY", "PINECONE_ENVIRONMENT")


def load_secrets_into_env(secrets_path: Path) -> None:
    """Copy known keys from a secrets YAML file into unset environment variables."""
    if not secrets_path.exists():
        return
    data = yaml.safe_load(secrets_path.read_text()) or {}
    for key in SECRET_KEYS:
        if not os.environ.get(key) and data.get(key):
            os.environ[key] = str(data[key])


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> {message}",
    )


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except MentorMatchError as e:
        logger.error(str(e))
        raise click.ClickException(str(e)) from e


def _index(config: MentorMatchConfig) -> VectorIndex:
    try:
        return create_vector_index(config.index)
    except MentorMatchError as e:
        raise click.ClickException(str(e)) from e


def _engine_parts(config: MentorMatchConfig) -> tuple[EmbeddingClient, VectorIndex]:
    try:
        return create_embedding_client(config.embedding), create_vector_index(config.index)
    except MentorMatchError as e:
        raise click.ClickException(str(e)) from e


def _load_profiles(path: Path) -> tuple[list[MentorProfile], list[MenteeProfile]]:
    try:
        return load_profiles(path)
    except (pydantic.ValidationError, yaml.YAMLError, MentorMatchError) as e:
        raise click.ClickException(f"Invalid profiles file: {e}") from e


@click.group()
@click.option("--config-name", default="default", show_default=True, help="Config file name")
@click.option(
    "--config-path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Config directory (defaults to conf/mentor_match/)",
)
@click.option("--override", "overrides", multiple=True, help="Hydra override, e.g. matching.top_k=5")
@click.option(
    "--secrets",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("conf/secrets.yml"),
    show_default=True,
    help="YAML file with API keys",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    config_name: str,
    config_path: Path | None,
    overrides: tuple[str, ...],
    secrets: Path,
    verbose: bool,
) -> None:
    """Mentor-mentee matching over a vector index."""
    _configure_logging(verbose)
    load_secrets_into_env(secrets)
    try:
        ctx.obj = load_config(config_name, config_path=config_path, overrides=list(overrides))
    except (FileNotFoundError, pydantic.ValidationError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


@cli.command("setup-index")
@click.pass_obj
def setup_index(config: MentorMatchConfig) -> None:
    """Create the index if it does not exist."""
    index = _index(config)
    created = _run(index.ensure_index_exists())
    click.echo(f"Index '{config.index.index_name}' {'created' if created else 'already exists'}")


@cli.command("reset")
@click.option("--namespace", default=None, help="Namespace to clear (defaults to configured)")
@click.confirmation_option(prompt="Delete every record in the index namespace?")
@click.pass_obj
def reset(config: MentorMatchConfig, namespace: str | None) -> None:
    """Delete all stored vectors (test setup only)."""
    index = _index(config)
    _run(index.clear(namespace))
    click.echo("Index cleared")


@cli.command("store")
@click.argument("profiles_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def store(config: MentorMatchConfig, profiles_file: Path) -> None:
    """Embed and store every mentor and mentee in PROFILES_FILE."""
    mentors, mentees = _load_profiles(profiles_file)
    embedding_client, index = _engine_parts(config)
    profile_store = ProfileStore(
        embedding_client, index, source_text_limit=config.matching.source_text_limit
    )

    async def _store() -> tuple[dict[str, int], dict[str, int]]:
        return await profile_store.store_mentors(mentors), await profile_store.store_mentees(mentees)

    mentor_counts, mentee_counts = _run(_store())
    click.echo(
        f"Mentors: {mentor_counts['stored_count']} stored, {mentor_counts['skipped_count']} skipped"
    )
    click.echo(
        f"Mentees: {mentee_counts['stored_count']} stored, {mentee_counts['skipped_count']} skipped"
    )


@cli.command("match")
@click.argument("profiles_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def match(config: MentorMatchConfig, profiles_file: Path) -> None:
    """Match the mentees in PROFILES_FILE against stored mentors."""
    _, mentees = _load_profiles(profiles_file)
    embedding_client, index = _engine_parts(config)
    engine = MatchingEngine(embedding_client, index, config.matching)

    assignments = _run(engine.match_all(mentees))
    click.echo(summarize_assignments(assignments))


@cli.command("run")
@click.argument("profiles_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--keep", is_flag=True, help="Do not clear the index before storing")
@click.option("--settle-timeout", type=float, default=None, help="Seconds to wait for writes")
@click.pass_obj
def run(
    config: MentorMatchConfig, profiles_file: Path, keep: bool, settle_timeout: float | None
) -> None:
    """Reset, store PROFILES_FILE, wait for the index, then match."""
    mentors, mentees = _load_profiles(profiles_file)
    embedding_client, index = _engine_parts(config)
    profile_store = ProfileStore(
        embedding_client, index, source_text_limit=config.matching.source_text_limit
    )
    engine = MatchingEngine(embedding_client, index, config.matching)

    async def _workflow() -> str:
        await index.ensure_index_exists()
        baseline = 0
        existing: set[str] = set()
        if keep:
            planned = {p.id for p in [*mentors, *mentees] if p.profile_text().strip()}
            existing = set(await index.fetch_vectors(sorted(planned)))
            baseline = (await index.stats()).count(config.index.namespace)
        else:
            await index.clear()
            await index.wait_for_empty(timeout_seconds=settle_timeout)

        await profile_store.store_mentors(mentors)
        await profile_store.store_mentees(mentees)
        # Re-stored ids and colliding names do not add records
        expected = baseline + len(profile_store.stored_ids - existing)

        logger.info(f"Waiting for {expected} records to become visible")
        await index.wait_for_vector_count(expected, timeout_seconds=settle_timeout)

        assignments = await engine.match_all(mentees)
        return summarize_assignments(assignments)

    click.echo(_run(_workflow()))


@cli.command("similarity")
@click.argument("id_a")
@click.argument("id_b")
@click.option("--namespace", default=None, help="Namespace holding both records")
@click.pass_obj
def similarity(config: MentorMatchConfig, id_a: str, id_b: str, namespace: str | None) -> None:
    """Cosine similarity between two stored records."""
    index = _index(config)
    score = _run(similarity_between(index, id_a, id_b, namespace=namespace))
    click.echo(f"{score:.4f}")


@cli.command("connections")
@click.argument("form_id")
@click.option("--namespace", default=DEFAULT_FORM_NAMESPACE, show_default=True)
@click.option("--top-k", default=100, show_default=True, help="Maximum records considered")
@click.pass_obj
def connections(config: MentorMatchConfig, form_id: str, namespace: str, top_k: int) -> None:
    """Ranked pairwise similarities between responses to FORM_ID."""
    index = _index(config)
    results = _run(generate_connections(index, form_id, namespace=namespace, top_k=top_k))
    if not results:
        click.echo("No connections found")
        return
    for connection in results:
        click.echo(
            f"{connection.name_a} <-> {connection.name_b}: {connection.similarity:.4f}"
        )


if __name__ == "__main__":
    cli()
