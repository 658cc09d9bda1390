"""Tests for balance configuration."""

import json

from woven_city.config import (
    DEFAULT_CONFIG,
    BalanceConfig,
    load_config,
    save_config,
    validate_config,
)


class TestLoadConfig:
    """Loading config from JSON or YAML files."""

    def test_no_path_returns_defaults(self):
        config = load_config()
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_missing_file_returns_defaults(self, tmp_path):
        assert load_config(tmp_path / "nope.json") == DEFAULT_CONFIG

    def test_partial_yaml_keeps_other_defaults(self, tmp_path):
        path = tmp_path / "balance.yaml"
        path.write_text("simulation:\n  max_ticks: 5\n  tick_delay: 0\n", encoding="utf-8")
        config = load_config(path)
        assert config.simulation.max_ticks == 5
        assert config.simulation.tick_delay == 0
        assert config.simulation.progress_increment == 0.01
        assert config.choice_impacts == DEFAULT_CONFIG.choice_impacts

    def test_json(self, tmp_path):
        path = tmp_path / "balance.json"
        path.write_text(json.dumps({"choice_impacts": {"story_trust_gain": 0.1}}), encoding="utf-8")
        assert load_config(path).choice_impacts.story_trust_gain == 0.1

    def test_invalid_file_falls_back(self, tmp_path, caplog):
        """A broken file is reported and ignored."""
        path = tmp_path / "balance.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_config(path) == DEFAULT_CONFIG
        assert "Ignoring invalid config" in caplog.text

    def test_wrong_types_fall_back(self, tmp_path):
        path = tmp_path / "balance.json"
        path.write_text(json.dumps({"simulation": {"max_ticks": "lots"}}), encoding="utf-8")
        assert load_config(path) == DEFAULT_CONFIG


class TestSaveConfig:
    """Saving config to disk."""

    def test_save_then_load(self, tmp_path):
        config = BalanceConfig()
        config.simulation.narrative_interval = 3
        path = tmp_path / "nested" / "balance.json"
        assert save_config(config, path) is True
        assert load_config(path).simulation.narrative_interval == 3


class TestValidateConfig:
    """Balance warnings."""

    def test_defaults_are_clean(self):
        assert validate_config(DEFAULT_CONFIG) == []

    def test_high_story_trust_gain(self):
        config = BalanceConfig()
        config.choice_impacts.story_trust_gain = 0.3
        warnings = validate_config(config)
        assert len(warnings) == 1
        assert "Story trust gain" in warnings[0]

    def test_fragility_thresholds_out_of_order(self):
        config = BalanceConfig()
        config.moment_fragility.moderate_fragility_threshold = 8
        assert any("fragility" in w for w in validate_config(config))

    def test_non_positive_interval(self):
        config = BalanceConfig()
        config.simulation.evaluation_interval = 0
        assert "Simulation intervals must be positive" in validate_config(config)
