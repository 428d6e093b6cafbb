import logging
import os
import signal
import threading
import time

import daemon
import psutil
from daemon.pidfile import PIDLockFile

from filewatcher import config as config_module
from filewatcher import logger
from filewatcher.commands import register_command_handlers
from filewatcher.events import EVENT_KINDS, ERROR

DEFAULT_PID_FILENAME = "filewatcher.pid"
STATUS_INTERVAL = 300


def get_log_dir(cfg, config_path):
    return os.path.join(
        config_module.config_dir(config_path), cfg.get("logging", {}).get("log_dir", "logs")
    )


def get_pid_file(log_dir):
    return os.path.join(log_dir, DEFAULT_PID_FILENAME)


def setup_daemon_logger(cfg, config_path, console=True):
    """
    Set up the service logger writing to <log_dir>/daemon.log.

    Args:
        cfg (dict): The loaded configuration dictionary
        config_path (str): Path to the config file
        console (bool): Also log to the console

    Returns:
        logging.Logger: Configured logger instance
    """
    log_dir = get_log_dir(cfg, config_path)
    log_level = cfg.get("logging", {}).get("level", "INFO").upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    service_logger = logger.setup_logger(
        "filewatcher",
        log_dir,
        "daemon.log",
        level=numeric_level,
        console=console,
    )
    service_logger.info(f"Using config from: {config_path}")
    service_logger.info(f"Log directory: {log_dir}")
    return service_logger


def attach_event_logging(watcher, service_logger):
    """Log every event and error reported by watcher."""

    def make_listener(event_kind):
        def listener(directory, filename, relative_path):
            service_logger.info(
                f"{event_kind}: {os.path.join(relative_path, filename)} (watched: {directory})"
            )

        return listener

    for event_kind in EVENT_KINDS:
        watcher.on(event_kind, make_listener(event_kind))
    watcher.on(ERROR, lambda error: service_logger.error(f"Watcher error: {error}"))


def log_daemon_status(service_logger, watcher):
    """
    Log process information using psutil together with the watcher state.
    """
    try:
        proc = psutil.Process(watcher.process_id)
        state = watcher.status()
        status_info = {
            "PID": proc.pid,
            "CPU %": proc.cpu_percent(interval=0.1),
            "Memory %": f"{proc.memory_percent():.2f}",
            "Memory RSS": proc.memory_info().rss,
            "Threads": proc.num_threads(),
            "Started At": time.strftime(
                "%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())
            ),
            "Watched Directories": ", ".join(state["watched_directories"]),
            "Initial Files": state["initial_files"],
            "Events Dispatched": state["events"]["dispatched"],
        }
        service_logger.info(
            "Daemon Status:\n" + "\n".join(f"{k}: {v}" for k, v in status_info.items())
        )
    except psutil.Error as e:
        service_logger.error(f"Error logging daemon status: {e}")


def load_handler_entries(cfg, config_path):
    handlers_path = config_module.handlers_path(cfg, config_path)
    if not handlers_path:
        return []
    return config_module.load_handlers_configs(handlers_path)["handlers"]


def prepare_watcher(cfg, config_path, service_logger, entries=None):
    """Build the watcher from configuration and install command handlers."""
    watcher = config_module.build_watcher(cfg, config_path)
    if entries is None:
        entries = load_handler_entries(cfg, config_path)
    if entries:
        count = register_command_handlers(watcher, entries)
        service_logger.info(f"Registered {count} command handlers")
    attach_event_logging(watcher, service_logger)
    return watcher


def serve(watcher, stop_event, service_logger, status_interval=STATUS_INTERVAL):
    """
    Run watcher until stop_event is set, logging status periodically.
    """
    watcher.start_watching()
    service_logger.info(
        f"Watching {len(watcher.watched_directories())} directories from {watcher.base_dir}"
    )
    log_daemon_status(service_logger, watcher)
    try:
        while not stop_event.wait(status_interval):
            log_daemon_status(service_logger, watcher)
    finally:
        watcher.stop_watching()
        service_logger.info("Stopped watching.")


def run_daemon(cfg, pid_file, config_path=None):
    """Run the watcher as a daemon until SIGTERM is received."""
    config_path = os.path.abspath(config_path or config_module.DEFAULT_CONFIG_PATH)

    # Set up logging and validate the configuration before daemonization
    service_logger = setup_daemon_logger(cfg, config_path, console=False)
    entries = load_handler_entries(cfg, config_path)
    base_dir = config_module.build_watcher(cfg, config_path).base_dir
    stop_event = threading.Event()

    def handle_sigterm(signum, frame):
        service_logger.info("Received SIGTERM, shutting down.")
        stop_event.set()

    context = daemon.DaemonContext(
        pidfile=PIDLockFile(pid_file),
        working_directory=base_dir,
        signal_map={signal.SIGTERM: handle_sigterm},
        files_preserve=[
            handler.stream.fileno()
            for handler in service_logger.handlers
            if hasattr(handler, "stream") and hasattr(handler.stream, "fileno")
        ],
    )

    with context:
        # Observer threads do not survive the fork, so handlers that watch
        # immediately are only registered inside the daemon.
        watcher = prepare_watcher(cfg, config_path, service_logger, entries)
        service_logger.info(f"Daemon started. Config path: {config_path}")
        try:
            serve(watcher, stop_event, service_logger)
        except Exception as e:
            service_logger.error(f"Fatal error in daemon: {e}", exc_info=True)
            raise
