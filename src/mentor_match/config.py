"""Configuration management for mentor matching using Hydra.

All configuration is loaded from YAML files in conf/mentor_match/.
This module provides typed config objects and validation.
"""

from pathlib import Path

from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field, model_validator

from mentor_match.embedding import EmbeddingConfig


class IndexConfig(BaseModel):
    """Vector index configuration.

    Attributes:
        backend: Index backend ("pinecone" or "memory")
        index_name: Name of the index
        namespace: Optional default namespace
        api_key: API key for hosted service
        cloud: Serverless cloud provider (for Pinecone)
        environment: Serverless region (for Pinecone)
        dimension: Vector dimension the index is created with
        metric: Distance metric the index is created with
        timeout_seconds: Timeout applied to every remote index call
        verify_schema: Fail when an existing index has a different dimension or metric
        settle_timeout_seconds: Upper bound when waiting for writes to become visible
        poll_interval_seconds: Delay between readiness polls
    """

    backend: str = Field(default="pinecone", pattern="^(pinecone|memory)$")
    index_name: str = "responses"
    namespace: str | None = None
    api_key: str | None = None
    cloud: str = "aws"
    environment: str = "us-east-1"
    dimension: int = Field(default=1536, ge=1)
    metric: str = Field(default="cosine", pattern="^(cosine|dotproduct|euclidean)$")
    timeout_seconds: float = Field(default=30.0, gt=0.0, le=300.0)
    verify_schema: bool = True
    settle_timeout_seconds: float = Field(default=60.0, gt=0.0)
    poll_interval_seconds: float = Field(default=1.0, gt=0.0)


class MatchingConfig(BaseModel):
    """Matching engine configuration.

    Attributes:
        top_k: Mentor candidates requested per mentee
        dedupe_key: Candidate field that marks a mentor as taken ("id" or "name")
        parallel_retrieval: Query the index for all mentees concurrently
        source_text_limit: Characters of embedded text kept in metadata
    """

    top_k: int = Field(default=10, ge=1, le=1000)
    dedupe_key: str = Field(default="id", pattern="^(id|name)$")
    parallel_retrieval: bool = False
    source_text_limit: int = Field(default=1000, ge=0)


class MentorMatchConfig(BaseModel):
    """Top-level configuration for the matching system.

    Attributes:
        embedding: Embedding model configuration
        index: Vector index configuration
        matching: Matching engine configuration
    """

    embedding: EmbeddingConfig
    index: IndexConfig
    matching: MatchingConfig = Field(default_factory=MatchingConfig)

    @model_validator(mode="after")
    def check_dimensions_agree(self) -> "MentorMatchConfig":
        """Embedding and index must agree on vector dimension."""
        if self.embedding.dimensions != self.index.dimension:
            raise ValueError(
                f"embedding.dimensions ({self.embedding.dimensions}) must equal "
                f"index.dimension ({self.index.dimension})"
            )
        return self


def default_config_path() -> Path:
    """Return conf/mentor_match/ relative to the repository root."""
    repo_root = Path(__file__).parent.parent.parent
    return repo_root / "conf" / "mentor_match"


def load_config(
    config_name: str = "default",
    config_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> MentorMatchConfig:
    """Load matching configuration from Hydra YAML files.

    Args:
        config_name: Name of config file (without .yaml extension)
        config_path: Path to config directory (defaults to conf/mentor_match/)
        overrides: List of config overrides (e.g., ["matching.top_k=5"])

    Returns:
        Validated configuration object

    Example:
        >>> config = load_config("default")
        >>> config.embedding.model
        'openai/text-embedding-3-small'

        >>> config = load_config("default", overrides=["matching.top_k=5"])
        >>> config.matching.top_k
        5
    """
    if config_path is None:
        config_path = default_config_path()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config directory not found: {config_path}\n" f"Create it with: mkdir -p {config_path}"
        )

    with initialize_config_dir(
        config_dir=str(config_path), version_base=None, job_name="mentor_match"
    ):
        cfg: DictConfig = compose(config_name=config_name, overrides=overrides or [])

    config_dict = OmegaConf.to_container(cfg, resolve=True)
    return MentorMatchConfig(**config_dict)  # type: ignore


def create_default_config() -> dict[str, dict[str, object]]:
    """Create a default configuration dictionary for bootstrapping.

    Returns:
        Dictionary suitable for writing to YAML

    Example:
        >>> import yaml
        >>> config = create_default_config()
        >>> with open("conf/mentor_match/default.yaml", "w") as f:
        ...     yaml.dump(config, f)
    """
    return {
        "embedding": {
            "model": "openai/text-embedding-3-small",
            "version": "v1",
            "dimensions": 1536,
            "batch_size": 100,
            "max_attempts": 1,
            "timeout_seconds": 30.0,
            "api_key": "${oc.env:OPENAI_API_KEY,null}",
        },
        "index": {
            "backend": "pinecone",
            "index_name": "responses",
            "namespace": None,
            "api_key": "${oc.env:PINECONE_API_KEY,null}",
            "cloud": "aws",
            "environment": "${oc.env:PINECONE_ENVIRONMENT,us-east-1}",
            "dimension": 1536,
            "metric": "cosine",
            "timeout_seconds": 30.0,
            "verify_schema": True,
            "settle_timeout_seconds": 60.0,
            "poll_interval_seconds": 1.0,
        },
        "matching": {
            "top_k": 10,
            "dedupe_key": "id",
            "parallel_retrieval": False,
            "source_text_limit": 1000,
        },
    }
