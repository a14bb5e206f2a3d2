#!/usr/bin/env python3

from rich.console import Console as RichConsole


class Console:
    """Console wrapper for command line reports.

    Writes to stderr so that generated output can go to stdout.
    """

    def __init__(self, stderr: bool = True):
        self._rich = RichConsole(stderr=stderr)

    def print(self, *args, **kwargs):
        return self._rich.print(*args, **kwargs)

    def status(self, *args, **kwargs):
        return self._rich.status(*args, **kwargs)

    def warnings(self, warnings) -> None:
        for warning in warnings:
            self._rich.print(f"[yellow]warning:[/yellow] {warning}")

    def done(self, message: str) -> None:
        self._rich.print(f"[green]{message}[/green]")
