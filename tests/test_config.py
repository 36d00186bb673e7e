"""Tests for configuration loading."""

import pytest

from loadtest_core import LoadTestConfig, find_config_file, load_config


class TestLoadTestConfig:
    """Tests for LoadTestConfig."""

    def test_defaults(self):
        config = LoadTestConfig()
        assert config.base_url == "http://localhost:8080"
        assert config.grpc_target == "localhost:8081"
        assert config.vus == 1
        assert config.iterations == 1
        assert config.features == []
        assert config.validate() == []

    def test_from_dict(self):
        config = LoadTestConfig.from_dict({
            "base_url": "http://cache:8080",
            "vus": 10,
            "iterations": "200",
            "features": "Cache",
        })
        assert config.base_url == "http://cache:8080"
        assert config.vus == 10
        assert config.iterations == 200
        assert config.features == ["Cache"]

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown config key"):
            LoadTestConfig.from_dict({"vu": 3})

    def test_bool_is_not_int(self):
        with pytest.raises(ValueError, match="Invalid vus"):
            LoadTestConfig.from_dict({"vus": True})

    def test_bad_features(self):
        with pytest.raises(ValueError, match="Invalid features"):
            LoadTestConfig.from_dict({"features": [1, 2]})

    def test_validate_collects_errors(self):
        config = LoadTestConfig(base_url="localhost", vus=0, iterations=0, http_timeout=0, features_module="")
        errors = config.validate()
        assert len(errors) == 5
        assert "base_url must be an http(s) URL, got 'localhost'" in errors
        assert "vus must be >= 1, got 0" in errors

    def test_to_dict_round_trip(self):
        config = LoadTestConfig(vus=4, features=["Cache"], report_path="out.json")
        assert LoadTestConfig.from_dict(config.to_dict()).to_dict() == config.to_dict()


class TestYamlLoading:
    """Tests for YAML files."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "loadtest.yaml"
        path.write_text("base_url: http://cache:9000\nvus: 3\nfeatures:\n  - Cache\n")
        config = LoadTestConfig.from_yaml(path)
        assert config.base_url == "http://cache:9000"
        assert config.vus == 3
        assert config.features == ["Cache"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LoadTestConfig.from_yaml(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="Empty"):
            LoadTestConfig.from_yaml(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            LoadTestConfig.from_yaml(path)

    def test_find_config_file(self, tmp_path):
        assert find_config_file(tmp_path) is None
        (tmp_path / ".loadtest.yaml").write_text("vus: 2\n")
        assert find_config_file(tmp_path) == tmp_path / ".loadtest.yaml"
        (tmp_path / "loadtest.yaml").write_text("vus: 3\n")
        assert find_config_file(tmp_path) == tmp_path / "loadtest.yaml"


class TestEnvOverrides:
    """Environment variables override file values."""

    def test_overrides_applied(self):
        config = load_config(
            {"base_url": "http://file:8080", "vus": 2},
            environ={
                "HTTP_BASE_URL": "http://env:8080",
                "GRPC_TARGET": "env:9090",
                "LOADTEST_VUS": "8",
                "LOADTEST_ITERATIONS": "50",
            },
        )
        assert config.base_url == "http://env:8080"
        assert config.grpc_target == "env:9090"
        assert config.vus == 8
        assert config.iterations == 50

    def test_empty_env_values_ignored(self):
        config = load_config({"vus": 2}, environ={"LOADTEST_VUS": ""})
        assert config.vus == 2

    def test_bad_env_int(self):
        with pytest.raises(ValueError, match="LOADTEST_ITERATIONS"):
            load_config({}, environ={"LOADTEST_ITERATIONS": "many"})

    def test_load_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config(environ={})
        assert config.to_dict() == LoadTestConfig().to_dict()

    def test_load_discovered_file(self, tmp_path, monkeypatch):
        (tmp_path / "loadtest.yml").write_text("iterations: 9\n")
        monkeypatch.chdir(tmp_path)
        assert load_config(environ={}).iterations == 9
