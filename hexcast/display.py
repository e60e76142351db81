"""
display.py — Console rendering with rich.
"""

from __future__ import annotations
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .catalog import HexagramRecord
from .lines import Line
from .narrator import ChangingLine, narrate_all_lines
from .reading import Reading

console = Console()

YANG_BAR = "━━━━━━━"
YIN_BAR = "━━   ━━"


def format_hexagram_lines(lines: Sequence[Line]) -> List[str]:
    """Lines top to bottom, moving lines marked."""
    rows = []
    for line in reversed(lines):
        row = YANG_BAR if line.value else YIN_BAR
        if line.moving:
            row += " ✦"
        rows.append(row)
    return rows


def hexagram_title(hexagram: Optional[HexagramRecord], key: str) -> str:
    if hexagram is None:
        return f"[dim]Hexagram unavailable[/dim] ({key})"
    number = hexagram.number if hexagram.number is not None else "—"
    return f"[bold]Hexagram #{number}:[/bold] {escape(hexagram.name)}"


def _panel_body(hexagram: Optional[HexagramRecord], key: str, lines: Sequence[Line]) -> str:
    body = [hexagram_title(hexagram, key), "", "[bold]Lines:[/bold]", *format_hexagram_lines(lines)]
    if hexagram is not None:
        if hexagram.nature:
            body += ["", f"[dim]Nature:[/dim] {escape(hexagram.nature)}"]
        if hexagram.essence:
            body += ["", f"[bold]Judgement:[/bold] {escape(hexagram.essence)}"]
        if hexagram.description:
            body += ["", f"[bold]Image:[/bold] {escape(hexagram.description)}"]
    return "\n".join(body)


def _changing_lines_body(entries: Sequence[ChangingLine]) -> str:
    return "\n".join(f"[yellow]Line {entry.line_number}:[/yellow] {escape(entry.text)}" for entry in entries)


def display_reading(reading: Reading, out: Optional[Console] = None):
    out = out or console
    out.rule("[bold cyan]☯ I-CHING READING ☯[/bold cyan]")
    if reading.question:
        out.print(f"[dim]Question:[/dim] {escape(reading.question)}")
    out.print()

    out.print(Panel(
        _panel_body(reading.primary_hexagram, reading.primary_key, reading.primary_lines),
        title="[bold]Primary Hexagram[/bold]",
        border_style="cyan",
    ))

    if not reading.has_moving_lines:
        out.print("[dim]No moving lines.[/dim]")
        return

    positions = ", ".join(str(p) for p in reading.moving_positions)
    moving_body = f"[yellow]Moving positions: {positions}[/yellow]"
    if reading.changing_lines:
        moving_body += "\n\n" + _changing_lines_body(reading.changing_lines)
    out.print(Panel(moving_body, title="[bold]Moving Lines[/bold]", border_style="yellow"))

    out.print(Panel(
        _panel_body(reading.resulting_hexagram, reading.resulting_key, reading.resulting_lines),
        title="[bold]Resulting Hexagram[/bold]",
        border_style="magenta",
    ))


def display_hexagram(hexagram: HexagramRecord, out: Optional[Console] = None):
    """Reference view: every authored line text, regardless of any cast."""
    out = out or console
    body = [hexagram_title(hexagram, hexagram.signature)]
    if hexagram.essence:
        body += ["", f"[bold]Judgement:[/bold] {escape(hexagram.essence)}"]
    if hexagram.description:
        body += ["", f"[bold]Image:[/bold] {escape(hexagram.description)}"]
    entries = narrate_all_lines(hexagram)
    if entries:
        body += ["", "[bold]Lines:[/bold]", _changing_lines_body(entries)]
    out.print(Panel("\n".join(body), border_style="cyan"))


def journal_table(entries) -> Table:
    t = Table(title="Journal")
    t.add_column("Id", style="cyan", no_wrap=True)
    t.add_column("Date", style="dim")
    t.add_column("Question", style="bold white")
    t.add_column("Primary", style="white")
    t.add_column("Resulting", style="white")
    t.add_column("Synced", justify="center")
    for entry in entries:
        t.add_row(
            escape(entry.id),
            entry.created_at.strftime("%Y-%m-%d %H:%M"),
            escape(entry.question) if entry.question else "—",
            _label(entry.primary),
            _label(entry.resulting),
            "✓" if entry.synced else "",
        )
    return t


def _label(hexagram) -> str:
    if not hexagram:
        return "—"
    return escape(f"#{hexagram.get('number')} {hexagram.get('name') or ''}".strip())
