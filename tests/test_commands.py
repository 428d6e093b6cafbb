import sys

import pytest

from filewatcher.commands import (CommandFailed, CommandHandler,
                                  register_command_handlers)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")


def test_command_receives_event_fields(tmp_path):
    out = tmp_path / "out.txt"
    handler = CommandHandler(f"echo {{event}} {{filename}} {{path}} $FILEWATCHER_FILE > {out}")

    handler("/w", "a.txt", "/w/sub", "change")

    assert out.read_text().split() == ["change", "a.txt", "/w/sub", "/w/sub/a.txt"]


def test_failing_command_raises():
    handler = CommandHandler("exit 3")
    with pytest.raises(CommandFailed) as excinfo:
        handler("/w", "a.txt", "/w", "add")
    assert excinfo.value.returncode == 3


def test_register_command_handlers(watcher, tmp_path):
    (tmp_path / "src").mkdir()
    entries = [{"directory": "src", "events": ["add", "unlink"], "command": "true"}]

    assert register_command_handlers(watcher, entries) == 2

    handler = watcher.find_handler("src", "add")
    assert isinstance(handler, CommandHandler)
    assert handler.command == "true"
    assert watcher.find_handler("src", "change") is None
    assert str(tmp_path / "src") in watcher.watched_directories()


def test_failing_command_reported_as_error(watcher, source, tmp_path):
    (tmp_path / "src").mkdir()
    errors = []
    watcher.on("error", errors.append)
    register_command_handlers(watcher, [{"directory": "src", "events": ["change"], "command": "false"}])

    source.fire("change", tmp_path / "src" / "x.txt")

    assert len(errors) == 1
    assert isinstance(errors[0].original, CommandFailed)


def test_file_names_cannot_inject_shell_syntax(tmp_path):
    marker = tmp_path / "injected"
    out = tmp_path / "out.txt"
    filename = f"x; touch {marker}; #.txt"
    handler = CommandHandler(f"echo {{filename}} > {out}")

    handler(str(tmp_path), filename, str(tmp_path), "add")

    assert not marker.exists()
    assert out.read_text().strip() == filename


def test_environment_keeps_raw_values(tmp_path):
    out = tmp_path / "out.txt"
    handler = CommandHandler(f'printf %s "$FILEWATCHER_FILENAME" > {out}')

    handler("/w", "it's here.txt", "/w", "add")

    assert out.read_text() == "it's here.txt"
