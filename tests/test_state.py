"""Tests for kaleidoscope.app.state module."""

from __future__ import annotations

from kaleidoscope.app.state import (
    VALID_TRANSITIONS,
    IterationScreen,
    NewTaskFocus,
    NewTaskScreen,
    ProgressScreen,
    QuitScreen,
    ScreenKind,
    SessionStateMachine,
    SetupFocus,
    SetupScreen,
)
from kaleidoscope.events import CleanupRequest

# =============================================================================
# VALID_TRANSITIONS Tests
# =============================================================================


def test_quit_is_terminal():
    assert VALID_TRANSITIONS[ScreenKind.QUIT] == set()


def test_progress_leads_everywhere_but_itself():
    assert VALID_TRANSITIONS[ScreenKind.PROGRESS] == {
        ScreenKind.SETUP,
        ScreenKind.ITERATION,
        ScreenKind.NEW_TASK,
        ScreenKind.QUIT,
    }


def test_input_screens_only_reach_progress_or_quit():
    for kind in (ScreenKind.SETUP, ScreenKind.ITERATION, ScreenKind.NEW_TASK):
        assert VALID_TRANSITIONS[kind] == {ScreenKind.PROGRESS, ScreenKind.QUIT}


# =============================================================================
# Screens
# =============================================================================


def test_setup_defaults():
    screen = SetupScreen()
    assert screen.focus is SetupFocus.PROMPT
    assert screen.branch.single_line is True
    assert screen.prompt.single_line is False


def test_setup_cycle_focus_wraps_and_closes_dropdowns():
    screen = SetupScreen(focus=SetupFocus.MODELS, models_open=True)
    screen.cycle_focus(1)
    assert screen.focus is SetupFocus.BRANCH
    assert screen.models_open is False

    screen.cycle_focus(-1, provider_index=1)
    assert screen.focus is SetupFocus.MODELS

    screen.focus = SetupFocus.PROMPT
    screen.cycle_focus(1, provider_index=1)
    assert screen.focus is SetupFocus.PROVIDER
    assert screen.provider_hover == 1


def test_new_task_toggle_focus():
    screen = NewTaskScreen()
    screen.toggle_focus()
    assert screen.focus is NewTaskFocus.PROMPT
    screen.toggle_focus()
    assert screen.focus is NewTaskFocus.TASK


def test_screens_do_not_share_buffers():
    a, b = IterationScreen(), IterationScreen()
    a.command.insert("x")
    assert b.command.text == ""


# =============================================================================
# SessionStateMachine Tests
# =============================================================================


def test_initial_state_is_setup():
    machine = SessionStateMachine()
    assert machine.kind is ScreenKind.SETUP
    assert machine.is_busy is False
    assert machine.is_finished is False
    assert machine.get_status_text() == "Setup"


def test_valid_transitions():
    machine = SessionStateMachine()

    request = CleanupRequest(event_id="cleanup-1")
    assert machine.transition(ProgressScreen("Working", request, machine.screen)) is True
    assert machine.is_busy is True
    assert machine.transition(QuitScreen()) is True
    assert machine.is_finished is True


def test_invalid_transition_is_applied_but_reported():
    machine = SessionStateMachine()
    assert machine.transition(IterationScreen()) is False
    assert machine.kind is ScreenKind.ITERATION


def test_same_kind_transition_is_valid():
    machine = SessionStateMachine()
    replacement = SetupScreen()
    assert machine.transition(replacement) is True
    assert machine.screen is replacement
