"""Interactive operator prompts.

Stages ask questions through the ``Prompter`` protocol so tests can script the
answers.  The console implementation uses Rich's prompt helpers.
"""

from __future__ import annotations

from typing import Protocol

from rich.prompt import Prompt

from .utils import console


class Prompter(Protocol):
    def ask(self, question: str, default: str | None = None) -> str: ...


class ConsolePrompter:
    """Reads answers from the terminal.

    Input is echoed, private key included; the key is not masked.
    """

    def ask(self, question: str, default: str | None = None) -> str:
        if default is None:
            return Prompt.ask(question, console=console, default="", show_default=False)
        return Prompt.ask(question, console=console, default=default)
