"""Tests for loading and validating configuration files."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from shared.helper.HelperConfig import HelperConfig, keys_to_camel_case
from shared.models.config import ApiConfig, IndexerConfig, WebConfig
from shared.models.exceptions import ConfigInvalid

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


def write_config(tmp_path, data) -> str:
    path = tmp_path / "sufle.yml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestParse:
    def test_valid_file(self, helper_config, tmp_path, api_config_data):
        """A valid file is parsed into an immutable config."""
        config = helper_config.parse(write_config(tmp_path, api_config_data), ApiConfig)

        assert config.output_models[0].id == "sufle"
        assert config.output_models[0].limits.max_messages == 4
        assert config.output_models[1].limits.max_messages == 64
        assert config.rag.retriever.opts.k == 3
        assert config.rag.vector_store.provider == "libsql"
        with pytest.raises(ValidationError):
            config.output_models[0].id = "other"

    def test_missing_file(self, helper_config, tmp_path):
        with pytest.raises(ConfigInvalid) as exc_info:
            helper_config.parse(str(tmp_path / "missing.yml"), ApiConfig)
        assert "not found" in str(exc_info.value)

    def test_no_file_name(self, helper_config):
        with pytest.raises(ConfigInvalid):
            helper_config.parse("", ApiConfig)

    def test_violations_are_enumerated(self, helper_config, tmp_path, api_config_data):
        """Every violated field is reported with its dotted path."""
        data = {**api_config_data, "permissions": []}
        data["rag"] = {"embeddings": {"provider": "unknown", "opts": {"model": "x"}}}

        with pytest.raises(ConfigInvalid) as exc_info:
            helper_config.parse(write_config(tmp_path, data), ApiConfig)

        paths = [violation.split(":")[0] for violation in exc_info.value.violations]
        assert "permissions" in paths
        assert "rag.embeddings.provider" in paths

    def test_duplicate_model_ids(self, helper_config, tmp_path, api_config_data):
        data = {**api_config_data, "output_models": [api_config_data["output_models"][0]] * 2}
        with pytest.raises(ConfigInvalid):
            helper_config.parse(write_config(tmp_path, data), ApiConfig)

    def test_invalid_crontab(self, helper_config, tmp_path, indexer_config_data):
        data = {**indexer_config_data, "schedule": {"index": "every minute"}}
        with pytest.raises(ConfigInvalid) as exc_info:
            helper_config.parse(write_config(tmp_path, data), IndexerConfig)
        assert any(v.startswith("schedule.index") for v in exc_info.value.violations)

    def test_rclone_requires_remote(self, helper_config, tmp_path, indexer_config_data):
        data = {**indexer_config_data, "storage": {"provider": "rclone", "opts": {"url": "http://rclone:5572"}}}
        with pytest.raises(ConfigInvalid) as exc_info:
            helper_config.parse(write_config(tmp_path, data), IndexerConfig)
        assert "eng" in str(exc_info.value)

    def test_not_cached(self, helper_config, tmp_path, api_config_data):
        """Every call reads the file again."""
        path = write_config(tmp_path, api_config_data)
        first = helper_config.parse(path, ApiConfig)
        changed = {**api_config_data, "rag": {**api_config_data["rag"], "retriever": {"opts": {"k": 9}}}}
        write_config(tmp_path, changed)

        assert first.rag.retriever.opts.k == 3
        assert helper_config.parse(path, ApiConfig).rag.retriever.opts.k == 9


class TestEnvOverrides:
    def test_dotted_path_override(self, helper_config, tmp_path, monkeypatch, api_config_data):
        monkeypatch.setenv("RAG__EMBEDDINGS__OPTS__MODEL", "mxbai-embed-large")
        monkeypatch.setenv("OUTPUT_MODELS__0__CHAT__OPTS__API_KEY", "sk-from-env")

        config = helper_config.parse(write_config(tmp_path, api_config_data), ApiConfig)

        assert config.rag.embeddings.opts.model == "mxbai-embed-large"
        assert config.output_models[0].chat.opts.api_key == "sk-from-env"

    def test_unknown_paths_are_ignored(self):
        data = {"backend": {"api_key": "file"}}
        environ = {"BACKEND__API_KEY": "env", "BACKEND__OTHER": "x", "NOPE__X": "y", "PATH": "/usr/bin"}

        result = HelperConfig.apply_env_overrides(data, environ)

        assert result == {"backend": {"api_key": "env"}}

    def test_list_index_out_of_range(self):
        data = {"workspaces": [{"id": "eng"}]}
        HelperConfig.apply_env_overrides(data, {"WORKSPACES__3__ID": "x"})
        assert data == {"workspaces": [{"id": "eng"}]}

    def test_override_is_validated(self, helper_config, tmp_path, monkeypatch, indexer_config_data):
        monkeypatch.setenv("INDEXER__BATCH_SIZE", "not-a-number")
        with pytest.raises(ConfigInvalid):
            helper_config.parse(write_config(tmp_path, indexer_config_data), IndexerConfig)


class TestCamelCase:
    def test_keys_to_camel_case(self):
        data = {"output_models": [{"owned_by": "x", "chat": {"max_tokens": 1}}]}
        assert keys_to_camel_case(data) == {"outputModels": [{"ownedBy": "x", "chat": {"maxTokens": 1}}]}

    def test_parse_camel(self, helper_config, tmp_path, indexer_config_data):
        data = helper_config.parse_camel(write_config(tmp_path, indexer_config_data), IndexerConfig)
        assert data["backend"]["baseUrl"] == "http://api:8000"
        assert data["indexer"]["maxTokenSize"] == 1200


class TestExamples:
    """The shipped example files stay valid."""

    @pytest.mark.parametrize(
        "name, schema",
        [("sufle.example.yml", ApiConfig), ("indexer.example.yml", IndexerConfig), ("web.example.yml", WebConfig)],
    )
    def test_example_is_valid(self, helper_config, name, schema):
        assert isinstance(helper_config.parse(str(CONFIG_DIR / name), schema), schema)
