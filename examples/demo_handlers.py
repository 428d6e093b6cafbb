import os
import time

from filewatcher.watcher import FileWatcher

os.makedirs("demo", exist_ok=True)


def on_change(directory, filename, relative_path, event_kind):
    print(f"File {filename} changed at {relative_path}")


def on_add(directory, filename, relative_path, event_kind):
    print(f"File {filename} added at {relative_path}")


def on_unlink(directory, filename, relative_path, event_kind):
    print(f"File {filename} removed at {relative_path}")


watcher = (
    FileWatcher()
    .set_allowed_extensions(".js")
    .set_handler("./demo", "change", on_change)
    .set_handler("./demo", "add", on_add)
    .set_handler("./demo", "unlink", on_unlink)
    .set_monitored_directories("./demo")
)
watcher.on("error", lambda error: print(f"Error: {error}"))
watcher.start_watching()

print("Watching ./demo for .js files. Press Ctrl+C to stop.")
try:
    while True:
        time.sleep(1)
except KeyboardInterrupt:
    watcher.stop_watching()
