"""Tests for logscrub.config"""

import pytest

from logscrub.config import MIB, ParserConfig, load_config, load_yaml_config


class TestParserConfig:

    def test_defaults(self):
        config = ParserConfig()
        assert config.chunk_size == 2 * MIB
        assert config.streaming_threshold == 10 * MIB
        assert config.yield_every_lines == 5000
        assert config.batch_size == 500
        assert config.max_payload_chars is None
        assert config.timezone is None
        assert config.service_mappings == {}

    @pytest.mark.parametrize("field_name", ["chunk_size", "sniff_bytes", "yield_every_lines", "batch_size"])
    def test_rejects_non_positive(self, field_name):
        with pytest.raises(ValueError, match=field_name):
            ParserConfig(**{field_name: 0})

    def test_rejects_zero_payload_cap(self):
        with pytest.raises(ValueError):
            ParserConfig(max_payload_chars=0)

    def test_rejects_unknown_timezone(self):
        with pytest.raises(ValueError, match="timezone"):
            ParserConfig(timezone="Nowhere/Atlantis")

    def test_accepts_utc(self):
        assert ParserConfig(timezone="UTC").timezone == "UTC"


class TestLoadYamlConfig:

    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file_falls_back(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "absent.yaml")) == {}

    def test_reads_parser_section(self, tmp_path):
        path = tmp_path / "logscrub.yaml"
        path.write_text("parser:\n  chunk_size: 4096\n  timezone: UTC\nother: 1\n")
        assert load_yaml_config(str(path)) == {"chunk_size": 4096, "timezone": "UTC"}

    def test_reads_flat_file(self, tmp_path):
        path = tmp_path / "flat.yaml"
        path.write_text("batch_size: 10\n")
        assert load_yaml_config(str(path)) == {"batch_size": 10}

    def test_invalid_yaml_falls_back(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("parser: [unclosed\n")
        assert load_yaml_config(str(path)) == {}


class TestLoadConfig:

    def test_yaml_values(self):
        config = load_config({
            "chunk_size": 1024,
            "streaming_threshold": 0,
            "service_mappings": {"View-Manager": "Views"},
        })
        assert config.chunk_size == 1024
        assert config.streaming_threshold == 0
        assert config.service_mappings == {"view-manager": "Views"}

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("LOGSCRUB_CHUNK_SIZE", "4096")
        monkeypatch.setenv("LOGSCRUB_TIMEZONE", "UTC")
        monkeypatch.setenv("LOGSCRUB_MAX_PAYLOAD_CHARS", "2000")
        config = load_config({"chunk_size": 1024})
        assert config.chunk_size == 4096
        assert config.timezone == "UTC"
        assert config.max_payload_chars == 2000

    def test_message_max_length_env(self, monkeypatch):
        monkeypatch.setenv("LOGSCRUB_MESSAGE_MAX_LENGTH", "40")
        assert load_config({"message_max_length": 80}).message_max_length == 40

    def test_empty_env_value_ignored(self, monkeypatch):
        monkeypatch.setenv("LOGSCRUB_BATCH_SIZE", "")
        assert load_config({}).batch_size == 500

    def test_none_uses_defaults(self):
        assert load_config(None) == ParserConfig()
