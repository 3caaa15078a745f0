"""Rich rendering for the CLI: user table, advisories, password strength read-out."""

from __future__ import annotations

import json
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from whawty_console.consoles import UserRow
from whawty_console.forms import PasswordForm
from whawty_console.models import Advisory, Session, format_timestamp
from whawty_console.security import redact_token

_LEVEL_STYLES = {
    "danger": "red",
    "warning": "yellow",
    "info": "cyan",
    "success": "green",
}

_ROLE_STYLES = {"Admin": "bold blue", "User": "dim"}


def _flag(value: bool) -> Text:
    return Text("✓", style="green") if value else Text("✗", style="red")


def render_users(rows: list[UserRow], console: Optional[Console] = None) -> None:
    """Print the admin user table."""
    console = console or Console()
    table = Table(title=f"Users ({len(rows)})", show_lines=True)
    table.add_column("Username", style="cyan")
    table.add_column("Role", justify="center")
    table.add_column("Last changed")
    table.add_column("Valid", justify="center")
    table.add_column("Supported", justify="center")
    table.add_column("Format")

    for r in rows:
        table.add_row(
            r.name,
            Text(r.role_label, style=_ROLE_STYLES[r.role_label]),
            r.last_changed,
            _flag(r.record.is_valid),
            _flag(r.record.is_supported),
            r.format_descriptor,
        )
    console.print(table)


def users_json(rows: list[UserRow]) -> str:
    return json.dumps([r.record.to_dict() for r in rows], indent=2, ensure_ascii=False)


def render_advisory(advisory: Optional[Advisory], console: Optional[Console] = None) -> None:
    if advisory is None:
        return
    console = console or Console(stderr=True)
    style = _LEVEL_STYLES.get(advisory.level, "white")
    console.print(Panel(Text(advisory.message), title=advisory.heading, border_style=style, expand=False))


def render_session(session: Session, console: Optional[Console] = None) -> None:
    console = console or Console()
    role = "Admin" if session.is_admin else "User"
    console.print(f"[bold]{escape(session.identity)}[/bold]  [{_ROLE_STYLES[role]}]{role}[/]")
    console.print(f"  password last changed: {format_timestamp(session.last_changed)}")
    console.print(f"  session: {escape(redact_token(session.token))}", style="dim")


def render_strength(form: PasswordForm, console: Optional[Console] = None) -> None:
    """Stars, crack-time estimate and tips for the password just typed."""
    console = console or Console(stderr=True)
    line = Text(form.stars + "  ")
    if form.crack_time:
        line.append("estimated crack-time: ")
        line.append(form.crack_time, style="bold")
    console.print(line)
    for level, tip in form.tips:
        console.print(Text("  " + tip, style=_LEVEL_STYLES.get(level, "white")))
