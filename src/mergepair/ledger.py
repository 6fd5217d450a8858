"""Accomplishment ledger: what this run actually changed."""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from rich.console import Console
from rich.markup import escape


@dataclass(slots=True)
class AccomplishmentLedger:
    """Ordered, append-only record of human-readable accomplishments."""

    _entries: list[str] = field(default_factory=list)

    def record(self, description: str) -> None:
        self._entries.append(description)

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._entries))

    def render(self, console: Console) -> None:
        """Print the ledger as a bulleted summary."""
        if not self._entries:
            console.print("[green]Nothing to do; the environment is already provisioned.[/green]")
            return
        console.print("[bold]Accomplishments:[/bold]")
        for entry in self._entries:
            console.print(f"  [green]•[/green] {escape(entry)}")


__all__ = ["AccomplishmentLedger"]
