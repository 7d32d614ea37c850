"""
Event reporting for sftpartifact.

Components receive a Reporter instead of printing directly, so they can be
exercised in tests without a terminal or a CI runner.
"""

import os
from typing import Dict, List, Optional, Tuple

import click


class Reporter:
    """Base reporter. Subclasses implement emit()."""

    def emit(self, level: str, message: str) -> None:
        raise NotImplementedError

    def debug(self, message: str) -> None:
        self.emit("debug", message)

    def info(self, message: str) -> None:
        self.emit("info", message)

    def notice(self, message: str) -> None:
        self.emit("notice", message)

    def warning(self, message: str) -> None:
        self.emit("warning", message)

    def error(self, message: str) -> None:
        self.emit("error", message)

    def set_output(self, name: str, value: str) -> None:
        """Publish a named result value. No-op outside CI."""


class ConsoleReporter(Reporter):
    """Coloured terminal output."""

    STYLES = {
        "debug": ("🔎", {"dim": True}),
        "info": ("", {}),
        "notice": ("💬", {"fg": "cyan"}),
        "warning": ("⚠️ ", {"fg": "yellow"}),
        "error": ("❌", {"fg": "red", "bold": True}),
    }

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def emit(self, level: str, message: str) -> None:
        if level == "debug" and not self.verbose:
            return
        prefix, style = self.STYLES[level]
        text = f"{prefix} {message}" if prefix else message
        click.echo(
            click.style(text, **style), err=level in ("warning", "error")
        )


class ActionsReporter(Reporter):
    """
    GitHub Actions workflow commands.

    Debug lines are only shown by the runner when step debugging is enabled.
    """

    def __init__(self, output_file: Optional[str] = None) -> None:
        self.output_file = output_file

    @staticmethod
    def _escape(message: str) -> str:
        return (
            message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        )

    def emit(self, level: str, message: str) -> None:
        if level == "info":
            click.echo(message)
        else:
            click.echo(f"::{level}::{self._escape(message)}")

    def set_output(self, name: str, value: str) -> None:
        if not self.output_file:
            return
        with open(self.output_file, "a") as f:
            f.write(f"{name}={value}\n")


class MemoryReporter(Reporter):
    """Collects events in memory."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str]] = []
        self.outputs: Dict[str, str] = {}

    def emit(self, level: str, message: str) -> None:
        self.events.append((level, message))

    def set_output(self, name: str, value: str) -> None:
        self.outputs[name] = value

    def messages(self, level: str) -> List[str]:
        return [m for lvl, m in self.events if lvl == level]


def default_reporter(verbose: bool = False) -> Reporter:
    """Pick the Actions reporter on a GitHub runner, the console one elsewhere."""
    if os.environ.get("GITHUB_ACTIONS") == "true":
        return ActionsReporter(os.environ.get("GITHUB_OUTPUT") or None)
    return ConsoleReporter(verbose=verbose)
