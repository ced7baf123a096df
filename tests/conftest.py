"""Test fixtures and configuration."""

import copy
import logging
import sys

import pytest

from server.db.models import Base as ApiBase
from indexer.db.models import Base as IndexerBase
from shared.db.Database import Database
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ApiConfig, IndexerConfig


def pytest_configure(config):
    """Configure logging to be visible for all tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stdout,
    )


API_CONFIG = {
    "output_models": [
        {
            "id": "sufle",
            "chat": {"provider": "openai", "opts": {"model": "gpt-4o-mini", "api_key": "sk-test"}},
            "limits": {"max_messages": 4, "max_message_length": 100, "max_tokens": 60},
        },
        {
            "id": "sufle-gemini",
            "owned_by": "acme",
            "chat": {"provider": "google", "opts": {"model": "gemini-2.0-flash", "api_key": "g-test"}},
        },
    ],
    "rag": {
        "embeddings": {"provider": "ollama", "opts": {"model": "nomic-embed-text", "base_url": "http://ollama:11434"}},
        "retriever": {"opts": {"k": 3}},
    },
    "permissions": [
        {"users": ["alice@example.com"], "api_keys": ["key-eng"], "workspaces": ["eng:rw", "docs"]},
        {"api_keys": ["key-sales"], "workspaces": ["sales"]},
    ],
}

INDEXER_CONFIG = {
    "backend": {"api_key": "key-eng", "base_url": "http://api:8000"},
    "embeddings": {"provider": "ollama", "opts": {"model": "nomic-embed-text", "base_url": "http://ollama:11434"}},
    "storage": {"provider": "local"},
    "workspaces": [{"id": "eng", "dirs": ["/data/eng"]}],
    "indexer": {"concurrency": 2, "batch_size": 8, "max_token_size": 1200},
}


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("sufle-test")


@pytest.fixture
def helper_config(logger, tmp_path, monkeypatch) -> HelperConfig:
    monkeypatch.setenv("DB_PATH", str(tmp_path / "db" / "db.sqlite"))
    monkeypatch.setenv("DB_MIGRATIONS_APPLY", "true")
    return HelperConfig(logger=logger)


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig.model_validate(API_CONFIG)


@pytest.fixture
def indexer_config() -> IndexerConfig:
    return IndexerConfig.model_validate(INDEXER_CONFIG)


@pytest.fixture
def api_database(helper_config, tmp_path):
    """API database with the sqlite-vec extension loaded and all tables created."""
    database = Database(
        helper_config=helper_config,
        metadata=ApiBase.metadata,
        load_vector_extension=True,
        path=str(tmp_path / "api.sqlite"),
    )
    database.boot()
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def indexer_database(helper_config, tmp_path):
    database = Database(helper_config=helper_config, metadata=IndexerBase.metadata, path=str(tmp_path / "indexer.sqlite"))
    database.boot()
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def api_config_data() -> dict:
    return copy.deepcopy(API_CONFIG)


@pytest.fixture
def indexer_config_data() -> dict:
    return copy.deepcopy(INDEXER_CONFIG)
