import os
import signal
import threading
import time

import click
import psutil
from rich.console import Console
from rich.table import Table

from filewatcher import config
from filewatcher import daemon as daemon_module
from filewatcher.errors import FileWatcherError
from filewatcher.events import EVENT_KINDS, ERROR
from filewatcher.paths import resolve_directory, split_filename
from filewatcher.snapshot import capture_initial_files

EVENT_STYLES = {"add": "green", "change": "yellow", "unlink": "red"}


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to configuration TOML file.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, config_path, debug):
    """
    FileWatcher CLI: Watch directory trees and route file events to handlers.
    """
    try:
        cfg = config.load_config(config_path)
        if debug:
            cfg.setdefault("logging", {})["level"] = "DEBUG"
    except Exception as e:
        click.echo(f"Error loading configuration: {e}")
        ctx.abort()
    if config_path is None and os.environ.get(config.ENV_CONFIG_DIR_VAR):
        config_path = os.path.join(os.environ[config.ENV_CONFIG_DIR_VAR], "config.toml")
    ctx.obj = {"config": cfg, "config_path": config_path, "debug": debug}


@main.command()
@click.pass_context
def show_config(ctx):
    """
    Show the loaded configuration.
    """
    cfg = ctx.obj.get("config")
    click.echo(cfg)


@main.command()
@click.argument("directory", required=False)
@click.pass_context
def snapshot(ctx, directory):
    """
    List the files that would make up the initial snapshot.
    """
    cfg = ctx.obj.get("config")
    watcher = config.build_watcher(cfg, ctx.obj.get("config_path"))
    if directory:
        directories = [resolve_directory(directory, watcher.base_dir)]
    else:
        directories = sorted(watcher.monitored_directories or {watcher.base_dir})

    files = set()
    try:
        for d in directories:
            capture_initial_files(d, files)
    except FileWatcherError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)

    allowed = watcher.allowed_extensions
    files = sorted(
        f for f in files
        if not watcher.is_ignored(f) and (not allowed or split_filename(f)[1] in allowed)
    )

    table = Table(title="Initial Snapshot")
    table.add_column("File", style="cyan")
    table.add_column("Size", style="magenta", justify="right")
    for path in files:
        table.add_row(os.path.relpath(path, watcher.base_dir), str(os.path.getsize(path)))
    Console().print(table)
    click.echo(f"{len(files)} files in {len(directories)} directories")


@main.command()
@click.pass_context
def watch(ctx):
    """
    Watch the configured directories and print events until interrupted.
    """
    cfg = ctx.obj.get("config")
    config_path = ctx.obj.get("config_path")
    service_logger = daemon_module.setup_daemon_logger(cfg, config_path, console=False)
    console = Console()

    try:
        watcher = daemon_module.prepare_watcher(cfg, config_path, service_logger)
    except Exception as e:
        click.echo(f"Error preparing watcher: {e}")
        ctx.exit(1)

    def make_printer(event_kind):
        def printer(directory, filename, relative_path):
            style = EVENT_STYLES[event_kind]
            console.print(
                f"[{style}]{event_kind:>6}[/{style}] "
                f"{os.path.join(relative_path, filename)} [dim]({directory})[/dim]"
            )

        return printer

    for event_kind in EVENT_KINDS:
        watcher.on(event_kind, make_printer(event_kind))
    watcher.on(ERROR, lambda error: console.print(f"[bold red]error[/bold red] {error}"))

    try:
        watcher.start_watching()
    except FileWatcherError as e:
        watcher.stop_watching()
        click.echo(f"Error starting watcher: {e}")
        ctx.exit(1)

    console.print(
        f"Watching {', '.join(watcher.watched_directories())} (Ctrl+C to stop)"
    )
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop_watching()


@main.command()
@click.option("--foreground", is_flag=True, help="Run in foreground (not as daemon).")
@click.pass_context
def start(ctx, foreground):
    """
    Start the FileWatcher service.
    """
    cfg = ctx.obj.get("config")
    config_path = ctx.obj.get("config_path")
    log_dir = daemon_module.get_log_dir(cfg, config_path)
    pid_file = daemon_module.get_pid_file(log_dir)

    if foreground:
        click.echo("Running in foreground...")
        service_logger = daemon_module.setup_daemon_logger(cfg, config_path)
        watcher = daemon_module.prepare_watcher(cfg, config_path, service_logger)
        stop_event = threading.Event()
        try:
            daemon_module.serve(watcher, stop_event, service_logger)
        except KeyboardInterrupt:
            stop_event.set()
    else:
        click.echo("Starting daemon...")
        daemon_module.run_daemon(cfg, pid_file, config_path=config_path)


@main.command()
@click.pass_context
def stop(ctx):
    """
    Stop the FileWatcher daemon.
    """
    cfg = ctx.obj.get("config")
    log_dir = daemon_module.get_log_dir(cfg, ctx.obj.get("config_path"))
    pid_file = daemon_module.get_pid_file(log_dir)
    if not os.path.exists(pid_file):
        click.echo("Daemon is not running (pid file not found).")
        return
    with open(pid_file, "r") as f:
        pid = int(f.read().strip())
    try:
        os.kill(pid, signal.SIGTERM)
        click.echo(f"Sent SIGTERM to daemon (pid {pid}).")
    except OSError as e:
        click.echo(f"Error stopping daemon: {e}")


@main.command()
@click.pass_context
def status(ctx):
    """
    Check the status of the FileWatcher daemon.
    """
    cfg = ctx.obj.get("config")
    config_path = ctx.obj.get("config_path")
    log_dir = daemon_module.get_log_dir(cfg, config_path)
    pid_file = daemon_module.get_pid_file(log_dir)

    if not os.path.exists(pid_file):
        click.echo("Daemon is not running (pid file not found).")
        return

    with open(pid_file, "r") as f:
        pid = int(f.read().strip())
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        click.echo("Daemon process not found.")
        return

    status_table = Table(title="FileWatcher Daemon Status")
    status_table.add_column("Property", style="cyan")
    status_table.add_column("Value", style="magenta")
    status_table.add_row("PID", str(proc.pid))
    status_table.add_row("CPU %", f"{proc.cpu_percent(interval=0.1)}")
    status_table.add_row("Memory %", f"{proc.memory_percent():.2f}")
    status_table.add_row("Memory RSS", str(proc.memory_info().rss))
    status_table.add_row("Threads", str(proc.num_threads()))
    status_table.add_row("Start Time", time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())))

    watch_cfg = cfg.get("watch", {})
    status_table.add_row("Directories", ", ".join(watch_cfg.get("directories", [])) or ".")
    status_table.add_row("Extensions", ", ".join(watch_cfg.get("extensions", [])) or "all")
    status_table.add_row("Ignored", ", ".join(watch_cfg.get("ignore", [])) or "none")

    Console().print(status_table)


if __name__ == "__main__":
    main()
