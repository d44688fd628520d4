"""Unit tests for configuration loading.

Tests cover:
- Hydra config loading from YAML
- Environment variable interpolation
- Config validation
- Override mechanism
"""

import pytest
import yaml  # type: ignore[import-untyped]

from mentor_match.config import (
    IndexConfig,
    MatchingConfig,
    MentorMatchConfig,
    create_default_config,
    default_config_path,
    load_config,
)
from mentor_match.embedding import EmbeddingConfig


class TestConfigCreation:
    """Tests for default config creation."""

    def test_create_default_config(self) -> None:
        config_dict = create_default_config()

        assert config_dict["embedding"]["model"] == "openai/text-embedding-3-small"
        assert config_dict["index"]["backend"] == "pinecone"
        assert config_dict["index"]["index_name"] == "responses"
        assert config_dict["matching"]["top_k"] == 10

    def test_default_config_matches_yaml(self) -> None:
        """The bootstrap dict and the shipped YAML should not drift apart."""
        shipped = yaml.safe_load((default_config_path() / "default.yaml").read_text())
        assert shipped == create_default_config()


class TestConfigModels:
    """Tests for config model validation."""

    def test_index_config_valid_backend(self) -> None:
        IndexConfig(backend="pinecone")
        IndexConfig(backend="memory")

        with pytest.raises(ValueError):
            IndexConfig(backend="qdrant")

    def test_index_config_metric(self) -> None:
        with pytest.raises(ValueError):
            IndexConfig(metric="manhattan")

    def test_matching_defaults(self) -> None:
        config = MatchingConfig()
        assert config.top_k == 10
        assert config.dedupe_key == "id"
        assert config.parallel_retrieval is False
        assert config.source_text_limit == 1000

    def test_matching_dedupe_key(self) -> None:
        MatchingConfig(dedupe_key="name")
        with pytest.raises(ValueError):
            MatchingConfig(dedupe_key="email")

    def test_top_k_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            MatchingConfig(top_k=0)

    def test_dimensions_must_agree(self) -> None:
        with pytest.raises(ValueError, match="must equal"):
            MentorMatchConfig(
                embedding=EmbeddingConfig(model="openai/text-embedding-3-small", dimensions=1536),
                index=IndexConfig(dimension=768),
            )


class TestLoadConfig:
    """Tests for Hydra-based loading."""

    def test_load_default(self, monkeypatch) -> None:
        monkeypatch.delenv("PINECONE_ENVIRONMENT", raising=False)
        config = load_config("default")

        assert config.embedding.model == "openai/text-embedding-3-small"
        assert config.embedding.dimensions == config.index.dimension == 1536
        assert config.index.environment == "us-east-1"
        assert config.matching.dedupe_key == "id"

    def test_env_interpolation(self, monkeypatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        monkeypatch.setenv("PINECONE_API_KEY", "pc-from-env")
        monkeypatch.setenv("PINECONE_ENVIRONMENT", "eu-west-1")

        config = load_config("default")

        assert config.embedding.api_key == "sk-from-env"
        assert config.index.api_key == "pc-from-env"
        assert config.index.environment == "eu-west-1"

    def test_missing_env_gives_none(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("PINECONE_API_KEY", raising=False)

        config = load_config("default")

        assert config.embedding.api_key is None
        assert config.index.api_key is None

    def test_overrides(self) -> None:
        config = load_config(
            "default",
            overrides=["matching.top_k=5", "index.backend=memory", "matching.dedupe_key=name"],
        )

        assert config.matching.top_k == 5
        assert config.index.backend == "memory"
        assert config.matching.dedupe_key == "name"

    def test_invalid_override_fails_validation(self) -> None:
        with pytest.raises(ValueError):
            load_config("default", overrides=["index.dimension=768"])

    def test_missing_directory(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError, match="Config directory not found"):
            load_config("default", config_path=tmp_path / "nope")

    def test_custom_directory(self, tmp_path) -> None:
        config_dict = create_default_config()
        config_dict["index"]["index_name"] = "custom"
        (tmp_path / "custom.yaml").write_text(yaml.safe_dump(config_dict))

        config = load_config("custom", config_path=tmp_path)

        assert config.index.index_name == "custom"
