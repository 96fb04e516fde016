"""Interactive prompts used when a command is missing information."""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, Tuple

from rich.console import Console
from rich.prompt import IntPrompt, Prompt

Choice = Tuple[str, Any]


class Prompter(Protocol):
    def ask(self, message: str, *, default: Optional[str] = None, password: bool = False) -> str: ...

    def choose(self, message: str, choices: Sequence[Choice]) -> Any: ...


class RichPrompter:
    """Prompter backed by ``rich.prompt``."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console()

    def ask(self, message: str, *, default: Optional[str] = None, password: bool = False) -> str:
        while True:
            if default is None:
                answer = Prompt.ask(message, console=self._console, password=password)
            else:
                answer = Prompt.ask(
                    message, console=self._console, password=password, default=default
                )
            if answer and answer.strip():
                return answer.strip()
            self._console.print("[red]A value is required.[/red]")

    def choose(self, message: str, choices: Sequence[Choice]) -> Any:
        for index, (label, _) in enumerate(choices, start=1):
            self._console.print(f"  [bold]{index}[/bold]. {label}")
        picked = IntPrompt.ask(
            message,
            console=self._console,
            choices=[str(i) for i in range(1, len(choices) + 1)],
            default=1,
        )
        return choices[picked - 1][1]


__all__ = ["Choice", "Prompter", "RichPrompter"]
