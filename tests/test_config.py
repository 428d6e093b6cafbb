import pytest
import toml
import yaml

from filewatcher import config


def test_load_config(tmp_path):
    # Create a temporary config file.
    config_data = {
        "watch": {"directories": ["src"], "extensions": [".py"]},
        "logging": {"level": "DEBUG"},
    }
    config_file = tmp_path / "config.toml"
    with open(config_file, "w") as f:
        toml.dump(config_data, f)

    loaded_config = config.load_config(str(config_file))
    assert loaded_config["watch"]["directories"] == ["src"]
    assert loaded_config["logging"]["level"] == "DEBUG"


def test_load_config_from_env_dir(tmp_path, monkeypatch):
    with open(tmp_path / "config.toml", "w") as f:
        toml.dump({"watch": {"extensions": [".md"]}}, f)
    monkeypatch.setenv(config.ENV_CONFIG_DIR_VAR, str(tmp_path))

    assert config.load_config()["watch"]["extensions"] == [".md"]


def test_load_config_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        config.load_config(str(tmp_path / "nope.toml"))


def test_load_handlers_config(tmp_path):
    handlers_data = {
        "handlers": [
            {"directory": "src", "events": ["change"], "command": "make"},
            {"directory": "docs", "command": "echo {filename}"},
        ]
    }
    yaml_file = tmp_path / "handlers.yaml"
    with open(yaml_file, "w") as f:
        yaml.dump(handlers_data, f)

    loaded = config.load_handlers_config(str(yaml_file))
    assert loaded["handlers"][0]["events"] == ["change"]
    assert loaded["handlers"][1]["events"] == ["add", "change", "unlink"]


def test_load_handlers_configs_from_directory(tmp_path):
    handlers_dir = tmp_path / "handlers.d"
    handlers_dir.mkdir()
    for name, directory in (("a.yaml", "a"), ("b.yml", "b")):
        with open(handlers_dir / name, "w") as f:
            yaml.dump({"handlers": [{"directory": directory, "command": "true"}]}, f)
    (handlers_dir / "notes.txt").write_text("not yaml")

    loaded = config.load_handlers_configs(str(handlers_dir))
    assert [h["directory"] for h in loaded["handlers"]] == ["a", "b"]


def test_invalid_handler_entries(tmp_path):
    yaml_file = tmp_path / "handlers.yaml"
    with open(yaml_file, "w") as f:
        yaml.dump({"handlers": [{"directory": "src"}]}, f)
    with pytest.raises(ValueError, match="command"):
        config.load_handlers_config(str(yaml_file))

    with open(yaml_file, "w") as f:
        yaml.dump({"handlers": [{"directory": "src", "command": "x", "events": ["rename"]}]}, f)
    with pytest.raises(ValueError):
        config.load_handlers_config(str(yaml_file))


def test_build_watcher(tmp_path):
    (tmp_path / "project" / "src").mkdir(parents=True)
    (tmp_path / "project" / "build").mkdir()
    cfg = {
        "watch": {
            "base_dir": "project",
            "directories": ["src"],
            "extensions": ["PY"],
            "ignore": ["build"],
        }
    }
    watcher = config.build_watcher(cfg, str(tmp_path / "config.toml"))

    assert watcher.base_dir == str(tmp_path / "project")
    assert watcher.monitored_directories == frozenset({str(tmp_path / "project" / "src")})
    assert watcher.allowed_extensions == frozenset({".py"})
    assert watcher.ignored_directories == frozenset({str(tmp_path / "project" / "build")})


def test_handlers_path(tmp_path):
    cfg = {"handlers": {"configs_dir": "handlers.yaml"}}
    assert config.handlers_path(cfg, str(tmp_path / "config.toml")) == str(tmp_path / "handlers.yaml")
    assert config.handlers_path({}, str(tmp_path / "config.toml")) is None
