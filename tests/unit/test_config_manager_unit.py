import pytest
import yaml

from startracker.config_manager import ConfigManager
from startracker.exceptions import ConfigurationError


def test_defaults_when_file_missing(config):
    assert config.get("detection.threshold") == 2.5
    assert config.get_detection_config()["minsize"] == 2
    assert config.get_ingest_config() == {"honor_endian_flag": False, "legacy_ns_residual": False}
    assert config.get_export_config()["file_format"] == "png"
    assert config.get_logging_config()["level"] == "INFO"


def test_user_file_deep_merges_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("detection:\n  threshold: 3.5\nexport:\n  output_dir: out\n", encoding="utf-8")
    cfg = ConfigManager(str(path))
    assert cfg.get("detection.threshold") == 3.5
    # Untouched keys in the same section keep their defaults
    assert cfg.get("detection.minsize") == 2
    assert cfg.get("export.output_dir") == "out"
    assert cfg.get("export.file_format") == "png"


def test_get_missing_key_returns_default(config):
    assert config.get("detection.nope") is None
    assert config.get("nope.deeper", 7) == 7
    assert config.get("detection.threshold.deeper", "x") == "x"


def test_invalid_yaml_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("detection: [unclosed\n", encoding="utf-8")
    cfg = ConfigManager(str(path))
    assert cfg.get("detection.threshold") == 2.5


def test_non_mapping_root_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigManager(str(path))


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert ConfigManager(str(path)).get("ingest.honor_endian_flag") is False


def test_reload_picks_up_changes(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("detection:\n  minsize: 4\n", encoding="utf-8")
    cfg = ConfigManager(str(path))
    assert cfg.get("detection.minsize") == 4
    path.write_text("detection:\n  minsize: 6\n", encoding="utf-8")
    cfg.reload()
    assert cfg.get("detection.minsize") == 6


def test_save_default_config(tmp_path, config):
    target = tmp_path / "defaults.yaml"
    config.save_default_config(str(target))
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert set(data) == {"detection", "ingest", "export", "logging"}
    assert data["detection"]["threshold"] == 2.5


def test_save_default_config_next_to_config_path(tmp_path):
    cfg = ConfigManager(str(tmp_path / "site.yaml"))
    cfg.save_default_config()
    assert (tmp_path / "site.yaml.default").exists()
