"""Settings validation and YAML loading."""

import logging

import pytest

from unlock_monitor.config import (
    DEFAULTS,
    STABILITY_DEFAULTS,
    TILT_THRESHOLD,
    MonitorSettings,
    load_config,
    source_configs,
)


# =============================================================================
# MonitorSettings
# =============================================================================

def test_defaults():
    settings = MonitorSettings.from_dict()

    assert settings.window_size == 250
    assert settings.min_samples == 250
    assert settings.dispersion == "range"
    assert settings.stability_threshold == STABILITY_DEFAULTS["range"]
    assert settings.flatness_threshold == pytest.approx(0.1 * TILT_THRESHOLD)
    assert settings.alarm_mode == "edge"
    assert settings.window_seconds == pytest.approx(5.0)
    assert settings.max_sample_age == 2.0


def test_zero_max_sample_age_disables_expiry():
    assert MonitorSettings.from_dict({"max_sample_age": 0}).max_sample_age == 0.0


def test_stddev_metric_picks_its_own_stability_default():
    settings = MonitorSettings.from_dict({"dispersion": "STDDEV"})
    assert settings.dispersion == "stddev"
    assert settings.stability_threshold == STABILITY_DEFAULTS["stddev"]


def test_explicit_thresholds_win():
    settings = MonitorSettings.from_dict({
        "flatness_threshold": 0.2,
        "stability_threshold": 0.03,
    })
    assert settings.thresholds.flatness_threshold == 0.2
    assert settings.thresholds.stability_threshold == 0.03


def test_flatness_follows_tilt_threshold():
    settings = MonitorSettings.from_dict({"tilt_threshold": 1.0, "flat_fraction": 0.2})
    assert settings.flatness_threshold == pytest.approx(0.2)


@pytest.mark.parametrize("raw", [
    {"window_size": 0},
    {"window_size": 10, "min_samples": 11},
    {"min_samples": 0},
    {"dispersion": "variance"},
    {"alarm_mode": "always"},
    {"stability_threshold": -0.01},
    {"flatness_threshold": 0},
    {"emit_interval": 0},
    {"max_sample_age": -1},
])
def test_invalid_settings_rejected(raw):
    with pytest.raises(ValueError):
        MonitorSettings.from_dict(raw)


def test_unknown_keys_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="unlock_monitor.config"):
        MonitorSettings.from_dict({"window_sise": 100})
    assert "window_sise" in caplog.text


# =============================================================================
# load_config
# =============================================================================

def test_no_path_returns_copy_of_defaults():
    config = load_config(None)
    config["monitor"]["window_size"] = 1
    assert DEFAULTS["monitor"]["window_size"] == 250


def test_missing_file_falls_back_to_defaults(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        config = load_config(str(tmp_path / "nope.yaml"))
    assert config["monitor"]["window_size"] == 250
    assert "not found" in caplog.text


def test_yaml_overrides_merge_over_defaults(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text(
        "monitor:\n"
        "  window_size: 100\n"
        "  dispersion: stddev\n"
        "sources:\n"
        "  - {id: lock, type: lock, proxy: logind}\n"
    )

    config = load_config(str(path))
    assert config["monitor"]["window_size"] == 100
    assert config["monitor"]["emit_interval"] == DEFAULTS["monitor"]["emit_interval"]
    assert config["sources"] == [{"id": "lock", "type": "lock", "proxy": "logind"}]

    settings = MonitorSettings.from_dict(config["monitor"])
    assert settings.window_size == 100
    assert settings.stability_threshold == STABILITY_DEFAULTS["stddev"]


def test_empty_file_is_defaults(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text("")
    assert load_config(str(path)) == DEFAULTS


def test_non_mapping_yaml_rejected(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_source_configs_skip_incomplete_entries():
    config = {"sources": [
        {"id": "orientation", "type": "orientation"},
        {"type": "lock"},
        {"id": "location"},
    ]}
    assert source_configs(config) == [{"id": "orientation", "type": "orientation"}]
