"""Agent command construction.

The agent is started inside each pane through a shell script. The command
template is split into arguments first and placeholders are substituted per
argument, so a prompt containing quotes or newlines stays one argument.

Example:
    build_agent_command("opencode run -m {model} {prompt}", "OpenAI/gpt-5", "fix it")
    # "opencode run -m OpenAI/gpt-5 'fix it'"
"""

from __future__ import annotations

import shlex

DEFAULT_AGENT_COMMAND = "opencode run -m {model} {prompt}"


def build_agent_command(template: str, model_id: str, prompt: str) -> str:
    """Render the agent invocation for one instance.

    Args:
        template: Command template with ``{model}`` and ``{prompt}`` placeholders.
        model_id: ``provider/model`` identifier.
        prompt: Prompt text.

    Returns:
        A shell-quoted command line.
    """
    argv = [arg.replace("{model}", model_id).replace("{prompt}", prompt) for arg in shlex.split(template)]
    return shlex.join(argv)


def build_pane_script(agent_command: str, run_command: str = "") -> str:
    """Script for a new pane: run the agent, then ``run_command``, then keep a shell open."""
    steps = [agent_command]
    if run_command.strip():
        steps.append(run_command)
    steps.append("exec $SHELL")
    return "; ".join(steps)
