import os

import toml
import yaml

from filewatcher.events import EVENT_KINDS, validate_event_kind
from filewatcher.watcher import FileWatcher

DEFAULT_CONFIG_PATH = "./config.toml"
ENV_CONFIG_DIR_VAR = "FILEWATCHER_CONFIG_DIR"


def load_config(cli_config_path=None):
    """
    Load configuration from a TOML file.

    Precedence:
      1. cli_config_path if provided.
      2. Environment variable FILEWATCHER_CONFIG_DIR (looking for config.toml).
      3. Default to ./config.toml.

    Returns:
        dict: The configuration settings.
    """
    if cli_config_path:
        config_path = cli_config_path
    elif os.environ.get(ENV_CONFIG_DIR_VAR):
        config_path = os.path.join(os.environ[ENV_CONFIG_DIR_VAR], "config.toml")
    else:
        config_path = DEFAULT_CONFIG_PATH

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        config_data = toml.load(f)

    return config_data


def config_dir(config_path):
    """Directory that relative paths in the configuration are resolved against."""
    return os.path.dirname(os.path.abspath(config_path or DEFAULT_CONFIG_PATH))


def load_handlers_config(handlers_path):
    """
    Load handler definitions from a YAML file.

    Each entry of the top-level "handlers" list has a "directory", an
    optional list of "events" (defaults to all kinds) and a "command".

    Returns:
        dict: Handler configuration with key 'handlers'.
    """
    if not os.path.exists(handlers_path):
        raise FileNotFoundError(f"Handlers configuration file not found: {handlers_path}")
    with open(handlers_path, "r") as f:
        data = yaml.safe_load(f) or {}
    data.setdefault("handlers", [])
    for entry in data["handlers"]:
        _validate_handler_entry(entry, handlers_path)
    return data


def load_handlers_configs(path):
    """
    Load handler definitions from a YAML file or a directory of YAML files.
    If a directory is provided, all .yaml/.yml files are loaded and aggregated.

    Returns:
        dict: Aggregated handler configuration with key 'handlers'.
    """
    if os.path.isdir(path):
        aggregated = {"handlers": []}
        for filename in sorted(os.listdir(path)):
            if filename.endswith((".yaml", ".yml")):
                data = load_handlers_config(os.path.join(path, filename))
                aggregated["handlers"].extend(data["handlers"])
        return aggregated
    return load_handlers_config(path)


def _validate_handler_entry(entry, source):
    if not isinstance(entry, dict):
        raise ValueError(f"Invalid handler entry in {source}: {entry!r}")
    for key in ("directory", "command"):
        if not entry.get(key):
            raise ValueError(f"Handler entry in {source} is missing '{key}'")
    events = entry.setdefault("events", list(EVENT_KINDS))
    if isinstance(events, str):
        events = entry["events"] = [events]
    for event_kind in events:
        validate_event_kind(event_kind)


def build_watcher(cfg, config_path=None):
    """
    Create a FileWatcher configured from the [watch] table.

    Relative base_dir values are resolved against the configuration file's
    directory; watched directories are resolved against base_dir.

    Returns:
        FileWatcher: The configured, not yet started watcher.
    """
    watch_cfg = cfg.get("watch", {})
    base_dir = os.path.join(config_dir(config_path), watch_cfg.get("base_dir", "."))

    watcher = FileWatcher(
        base_dir=base_dir,
        use_polling=watch_cfg.get("polling", False),
        poll_interval=watch_cfg.get("poll_interval", 1.0),
    )
    watcher.set_allowed_extensions(*watch_cfg.get("extensions", []))
    watcher.set_monitored_directories(*watch_cfg.get("directories", []))
    if watch_cfg.get("ignore"):
        watcher.ignore_directory(*watch_cfg["ignore"])
    return watcher


def handlers_path(cfg, config_path=None):
    """Return the configured handlers YAML path, or None."""
    path = cfg.get("handlers", {}).get("configs_dir")
    if not path:
        return None
    return os.path.join(config_dir(config_path), path)
