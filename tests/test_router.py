"""
Tests for the event router: filtering, suppression and dispatch.
"""

import pytest

from filewatcher.errors import HandlerInvocationError
from filewatcher.events import EventEmitter
from filewatcher.handlers import HandlerTable
from filewatcher.router import EventRouter


@pytest.fixture
def setup():
    state = {"extensions": frozenset(), "initial": frozenset(), "watched": ["/base"]}
    handlers = HandlerTable()
    emitter = EventEmitter()

    def owner_of(path):
        matches = [d for d in state["watched"] if path.startswith(d + "/")]
        return max(matches, key=len) if matches else None

    router = EventRouter(
        "/base",
        handlers,
        emitter,
        lambda: state["extensions"],
        lambda: state["initial"],
        owner_of,
    )
    return router, handlers, emitter, state


def test_dispatch_calls_listener_and_handler(setup, recorder):
    router, handlers, emitter, _ = setup
    emitter.on("change", recorder.listener("change"))
    handlers.set("/base", "change", recorder.handler)

    assert router.dispatch("change", "/base", "/base/sub/file.txt")

    assert recorder.calls == [
        ("change", "/base", "file.txt", "/base/sub"),
        ("change", "/base", "file.txt", "/base/sub"),
    ]


def test_extension_filter(setup, recorder):
    router, handlers, emitter, state = setup
    state["extensions"] = frozenset({".js"})
    emitter.on("change", recorder.listener("change"))
    handlers.set("/base", "change", recorder.handler)

    assert not router.dispatch("change", "/base", "/base/foo.ts")
    assert recorder.calls == []

    assert router.dispatch("change", "/base", "/base/FOO.JS")
    assert len(recorder.calls) == 2


def test_initial_files_suppress_only_add(setup, recorder):
    router, handlers, emitter, state = setup
    state["initial"] = frozenset({"/base/old.txt"})
    for kind in ("add", "change", "unlink"):
        handlers.set("/base", kind, recorder.handler)

    assert not router.dispatch("add", "/base", "/base/old.txt")
    assert router.dispatch("change", "/base", "/base/old.txt")
    assert router.dispatch("unlink", "/base", "/base/old.txt")
    assert router.dispatch("add", "/base", "/base/new.txt")
    assert recorder.kinds() == ["change", "unlink", "add"]


def test_nested_watch_dispatches_once(setup, recorder):
    router, handlers, emitter, state = setup
    state["watched"] = ["/base", "/base/a"]
    emitter.on("add", recorder.listener("add"))

    assert not router.dispatch("add", "/base", "/base/a/x.txt")
    assert router.dispatch("add", "/base/a", "/base/a/x.txt")
    assert recorder.calls == [("add", "/base/a", "x.txt", "/base/a")]


def test_handler_error_is_isolated(setup, recorder):
    router, handlers, emitter, _ = setup
    errors = []
    emitter.on("error", errors.append)

    def broken(*args):
        raise ValueError("bad handler")

    handlers.set("/base", "add", broken)
    emitter.on("add", recorder.listener("add"))

    assert router.dispatch("add", "/base", "/base/one.txt")
    assert router.dispatch("add", "/base", "/base/two.txt")

    assert len(errors) == 2
    assert isinstance(errors[0], HandlerInvocationError)
    assert isinstance(errors[0].original, ValueError)
    assert errors[0].file_path == "/base/one.txt"
    assert [call[2] for call in recorder.calls] == ["one.txt", "two.txt"]
    assert router.stats["errors"] == 2


def test_listener_error_does_not_skip_handler(setup, recorder):
    router, handlers, emitter, _ = setup
    errors = []
    emitter.on("error", errors.append)
    emitter.on("unlink", lambda *args: 1 / 0)
    handlers.set("/base", "unlink", recorder.handler)

    router.dispatch("unlink", "/base", "/base/gone.txt")

    assert recorder.calls == [("unlink", "/base", "gone.txt", "/base")]
    assert isinstance(errors[0].original, ZeroDivisionError)


def test_stats(setup):
    router, _, _, state = setup
    state["extensions"] = frozenset({".py"})
    router.dispatch("add", "/base", "/base/a.py")
    router.dispatch("add", "/base", "/base/a.txt")
    assert router.stats["received"] == 2
    assert router.stats["dispatched"] == 1
    assert router.stats["filtered"] == 1
