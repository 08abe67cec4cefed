"""Tests for the prompt_toolkit shell and the session view."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from kaleidoscope.actions import Orchestrator
from kaleidoscope.app import KaleidoscopeApp, Session
from kaleidoscope.app.keys import Key, KeyInput, keys_for
from kaleidoscope.app.state import ScreenKind
from kaleidoscope.app.tui import KEY_MAP
from kaleidoscope.app.view import HELP_TEXT, SessionView
from kaleidoscope.selection import ProviderCatalog, SelectionTable

if TYPE_CHECKING:
    from prompt_toolkit.formatted_text import StyleAndTextTuples

    from tests.conftest import FakeRunner

CATALOG = ProviderCatalog.from_mapping({"anthropic": ["claude", "haiku"]})


def plain(fragments: StyleAndTextTuples) -> str:
    return "".join(fragment[1] for fragment in fragments)


def make_app(orchestrator: Orchestrator) -> KaleidoscopeApp:
    selection = SelectionTable(CATALOG)
    selection.increment("anthropic", "claude")
    session = Session(CATALOG, selection=selection, branch="feature")
    return KaleidoscopeApp(session=session, orchestrator=orchestrator)


async def wait_for_action(app: KaleidoscopeApp) -> None:
    assert app._action_task is not None
    await asyncio.wait([app._action_task])
    # Done callbacks run on the next loop iteration
    await asyncio.sleep(0)


def test_every_key_is_bound():
    assert set(KEY_MAP) == set(Key) - {Key.RUNE}


@pytest.mark.asyncio
async def test_feed_runs_launch_and_applies_completion(orchestrator: Orchestrator, runner: FakeRunner):
    app = make_app(orchestrator)
    for key in keys_for("write tests"):
        app.feed(key)
    app.feed(KeyInput(Key.ENTER))
    assert app.session.kind is ScreenKind.PROGRESS

    await wait_for_action(app)

    assert app.session.kind is ScreenKind.ITERATION
    assert app.session.registry.labels() == ["claude"]
    assert runner.ran("tmux", "split-window")


@pytest.mark.asyncio
async def test_uncaught_action_error_leaves_progress(orchestrator: Orchestrator, monkeypatch: pytest.MonkeyPatch):
    async def explode(request):
        raise RuntimeError("boom")

    monkeypatch.setattr(orchestrator, "dispatch", explode)
    app = make_app(orchestrator)
    for key in keys_for("write tests"):
        app.feed(key)
    app.feed(KeyInput(Key.ENTER))

    await wait_for_action(app)

    assert app.session.kind is ScreenKind.SETUP
    assert app.session.status == "No instances launched: RuntimeError: boom"


@pytest.mark.asyncio
async def test_alt_chord_is_not_a_cancel(orchestrator: Orchestrator):
    app = make_app(orchestrator)
    with create_pipe_input() as pipe_input:
        running = asyncio.create_task(app.run(input=pipe_input, output=DummyOutput()))
        await asyncio.sleep(0.2)
        pipe_input.send_text("abc\x1bd")
        await asyncio.sleep(2)

        assert app.session.kind is ScreenKind.SETUP
        assert app.session.screen.prompt.text == "abc"
        assert app._action_task is None

        app._app.exit()
        await asyncio.wait_for(running, 5)


@pytest.mark.asyncio
async def test_bare_escape_cancels(orchestrator: Orchestrator):
    app = make_app(orchestrator)
    with create_pipe_input() as pipe_input:
        running = asyncio.create_task(app.run(input=pipe_input, output=DummyOutput()))
        await asyncio.sleep(0.2)
        pipe_input.send_text("\x1b")

        await asyncio.wait_for(running, 5)

    assert app.session.finished


# =============================================================================
# View
# =============================================================================


def test_view_renders_setup():
    session = Session(CATALOG, branch="feature")
    view = SessionView(session)

    body = plain(view.body())
    assert "feature" in body
    assert "anthropic" in body

    status = plain(view.status())
    assert HELP_TEXT["setup"] in status


def test_view_shows_log_line_and_spinner():
    session = Session(CATALOG)
    view = SessionView(session, spinner_frames=["a", "b"])
    assert view.spinner == "a"
    view.tick()
    view.tick()
    assert view.spinner == "a"

    view.last_log = "Removed worktree"
    assert "Removed worktree" in plain(view.status())

    session.status = "Unknown instance: nope"
    assert "Unknown instance: nope" in plain(view.status())
    assert "Removed worktree" not in plain(view.status())


def test_header_shows_branch():
    session = Session(CATALOG)
    session.feature_branch = "feature"
    session.task = "claude-2"
    header = plain(SessionView(session).header())
    assert "Kaleidoscope" in header
    assert "feature / claude-2" in header
