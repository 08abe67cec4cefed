"""Tests for kaleidoscope.agent module."""

from __future__ import annotations

import shlex

from inline_snapshot import snapshot

from kaleidoscope.agent import DEFAULT_AGENT_COMMAND, build_agent_command, build_pane_script


def test_default_command():
    assert build_agent_command(DEFAULT_AGENT_COMMAND, "OpenAI/gpt-5", "fix the tests") == snapshot(
        "opencode run -m OpenAI/gpt-5 'fix the tests'"
    )


def test_prompt_with_quotes_stays_one_argument():
    prompt = "it's \"broken\"\nplease fix"
    command = build_agent_command(DEFAULT_AGENT_COMMAND, "OpenAI/o3", prompt)
    assert shlex.split(command) == ["opencode", "run", "-m", "OpenAI/o3", prompt]


def test_placeholder_inside_argument():
    command = build_agent_command("agent --model={model} --prompt {prompt}", "a/b", "go")
    assert shlex.split(command) == ["agent", "--model=a/b", "--prompt", "go"]


def test_pane_script():
    assert build_pane_script("agent go", "npm run dev") == snapshot("agent go; npm run dev; exec $SHELL")
    assert build_pane_script("agent go", "  ") == "agent go; exec $SHELL"
