import pytest

from phish_url_detection_engine.config.settings import load_config
from phish_url_detection_engine.core.errors import ConfigError


def test_load_config_defaults():
    cfg, merged = load_config()
    assert cfg.profile == "default"
    assert cfg.enabled_backends == ["lexical"]
    assert cfg.confidence_high == 0.9
    assert cfg.tier_thresholds().medium == 0.7
    assert "offline" in merged["profiles"]


def test_profile_override():
    cfg, _ = load_config(profile_override="full")
    assert cfg.profile == "full"
    assert cfg.enabled_backends == ["lexical", "hf_api", "transformer"]
    assert cfg.transformer_model == "ealvaradob/bert-finetuned-phishing"


def test_profile_from_env(monkeypatch):
    monkeypatch.setenv("PHISH_URL_ENGINE_PROFILE", "offline")
    cfg, _ = load_config()
    assert cfg.profile == "offline"
    assert cfg.max_retries == 0
    assert cfg.retry_policy().max_retries == 0


def test_env_overrides_win(monkeypatch):
    monkeypatch.setenv("PHISH_URL_ENGINE_CONFIDENCE_HIGH", "0.95")
    monkeypatch.setenv("PHISH_URL_ENGINE_ENABLED_BACKENDS", "lexical, hf_api")
    monkeypatch.setenv("PHISH_URL_ENGINE_BACKEND_WEIGHTS", "lexical=2,transformer=0.5")
    monkeypatch.setenv("PHISH_URL_ENGINE_RESULT_CACHE_ENABLED", "off")
    monkeypatch.setenv("PHISH_URL_ENGINE_API_BASE_URL", "https://scan.example")
    cfg, _ = load_config()
    assert cfg.confidence_high == 0.95
    assert cfg.enabled_backends == ["lexical", "hf_api"]
    assert cfg.backend_weights == {"lexical": 2.0, "transformer": 0.5}
    assert cfg.result_cache_enabled is False
    assert cfg.api_base_url == "https://scan.example"


def test_unparseable_env_value_falls_back(monkeypatch):
    monkeypatch.setenv("PHISH_URL_ENGINE_REASONING_LIMIT", "lots")
    cfg, _ = load_config()
    assert cfg.reasoning_limit == 12


def test_custom_yaml_path(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text(
        "confidence_high: 0.8\nconfidence_medium: 0.6\nprofile: strict\nprofiles:\n  strict:\n    confidence_high: 0.85\n",
        encoding="utf-8",
    )
    cfg, _ = load_config(path)
    assert cfg.profile == "strict"
    assert cfg.confidence_high == 0.85
    assert cfg.confidence_medium == 0.6
    assert cfg.default_config_path == str(path)


def test_default_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "engine.yaml"
    path.write_text("reasoning_limit: 5\n", encoding="utf-8")
    monkeypatch.setenv("PHISH_URL_ENGINE_DEFAULT_CONFIG_PATH", str(path))
    cfg, _ = load_config()
    assert cfg.reasoning_limit == 5


def test_inverted_thresholds_are_rejected(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("confidence_high: 0.5\nconfidence_medium: 0.6\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_out_of_range_values_are_rejected(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("confidence_high: 1.5\nconfidence_medium: 0.6\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_invalid_yaml_is_a_config_error(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("profiles: [\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)
