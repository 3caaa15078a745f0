"""Textual front end for the whawty console.

Launch: python -m whawty_console tui
"""

from __future__ import annotations

from typing import Optional

from rich.text import Text
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.css.query import NoMatches
from textual.screen import ModalScreen, Screen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    Rule,
    Static,
    Switch,
)

from whawty_console.app import ConsoleApp
from whawty_console.config import ConsoleConfig
from whawty_console.errors import ValidationFailure
from whawty_console.models import Advisory

# ── Advisory styling ───────────────────────────────────────────────────────
LEVEL_STYLES = {
    "danger": ("✗", "red"),
    "warning": ("⚠", "yellow"),
    "info": ("ℹ", "cyan"),
    "success": ("✓", "green"),
}


def _advisory_text(advisory: Optional[Advisory]) -> Text:
    if advisory is None:
        return Text("")
    icon, color = LEVEL_STYLES.get(advisory.level, ("", "white"))
    text = Text(f"{icon} {advisory.heading}: ", style=f"bold {color}")
    text.append(advisory.message, style=color)
    return text


def _flag(value: bool) -> Text:
    return Text("✓", style="green") if value else Text("✗", style="red")


class AlertBox(Static):
    """One-line advisory banner for a panel."""

    def show(self, advisory: Optional[Advisory]) -> None:
        self.update(_advisory_text(advisory))


# ═══════════════════════════════════════════════════════════════════════════
#  Login
# ═══════════════════════════════════════════════════════════════════════════
class LoginScreen(Screen):
    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="loginbox"):
            yield Label("  Sign in", classes="screen-title")
            yield AlertBox(id="login-alert")
            yield Input(placeholder="username", id="username")
            yield Input(placeholder="password", password=True, id="password")
            yield Button("Login", id="btn-login", variant="primary")
        yield Footer()

    @property
    def core(self) -> ConsoleApp:
        return self.app.core  # type: ignore[attr-defined]

    def on_mount(self) -> None:
        form = self.core.login_form
        self.query_one("#username", Input).value = form.username
        self.query_one("#password", Input).value = ""
        self.query_one("#login-alert", AlertBox).show(self.core.advisories.get("login"))
        self.query_one("#password" if form.username else "#username", Input).focus()

    def show_advisory(self, advisory: Advisory) -> None:
        if advisory.panel == "login":
            self.query_one("#login-alert", AlertBox).show(advisory)

    @on(Input.Submitted, "#username")
    def on_username_submitted(self) -> None:
        self.query_one("#password", Input).focus()

    @on(Input.Submitted, "#password")
    @on(Button.Pressed, "#btn-login")
    def on_login(self) -> None:
        self.run_login()

    @work(exclusive=True)
    async def run_login(self) -> None:
        username = self.query_one("#username", Input).value
        password = self.query_one("#password", Input).value
        ok = await self.core.submit_login(username, password)
        if not ok:
            self.query_one("#password", Input).value = ""
            self.query_one("#password", Input).focus()
            return
        self.app.show_current()  # type: ignore[attr-defined]


# ═══════════════════════════════════════════════════════════════════════════
#  Password dialog
# ═══════════════════════════════════════════════════════════════════════════
class PasswordScreen(ModalScreen):
    BINDINGS = [Binding("escape", "cancel", "Cancel", priority=True)]

    def compose(self) -> ComposeResult:
        modal = self.core.modal
        target = modal.binding.target if modal.binding else ""
        with Vertical(id="password-dialog"):
            yield Label(f"Password for {target}", id="changepw-userfield", classes="section-title")
            yield AlertBox(id="modal-alert")
            yield Input(placeholder="new password", password=True, id="newpassword")
            yield Static("", id="pw-strength")
            yield Static("", id="pw-tips")
            yield Input(placeholder="retype password", password=True, id="newpassword-retype")
            with Horizontal(id="dialog-buttons"):
                yield Button(modal.submit_label or "Change", id="btn-submit", variant="primary", disabled=True)
                yield Button("Cancel", id="btn-cancel", variant="default")

    @property
    def core(self) -> ConsoleApp:
        return self.app.core  # type: ignore[attr-defined]

    def on_mount(self) -> None:
        self._sync()
        self.query_one("#newpassword", Input).focus()

    def show_advisory(self, advisory: Advisory) -> None:
        if advisory.panel in ("main", "modal"):
            self.query_one("#modal-alert", AlertBox).show(advisory)

    def _sync(self) -> None:
        form = self.core.modal.form
        strength = Text(form.stars + "  ")
        if form.crack_time:
            strength.append("estimated crack-time: ")
            strength.append(form.crack_time, style="bold")
        self.query_one("#pw-strength", Static).update(strength)
        tips = Text()
        for i, (level, tip) in enumerate(form.tips):
            if i:
                tips.append("\n")
            tips.append(tip, style=LEVEL_STYLES.get(level, ("", "white"))[1])
        self.query_one("#pw-tips", Static).update(tips)
        retype = self.query_one("#newpassword-retype", Input)
        retype.set_class(form.retype_state == "has-error", "has-error")
        retype.set_class(form.retype_state == "has-success", "has-success")
        self.query_one("#btn-submit", Button).disabled = not form.submit_enabled

    @on(Input.Changed, "#newpassword")
    def on_password_changed(self, event: Input.Changed) -> None:
        self.core.modal.set_password(event.value)
        self._sync()

    @on(Input.Changed, "#newpassword-retype")
    def on_retype_changed(self, event: Input.Changed) -> None:
        self.core.modal.set_retype(event.value)
        self._sync()

    @on(Input.Submitted, "#newpassword-retype")
    @on(Button.Pressed, "#btn-submit")
    def on_submit(self) -> None:
        if self.core.modal.form.submit_enabled:
            self.run_submit()

    @on(Button.Pressed, "#btn-cancel")
    def on_cancel(self) -> None:
        self.action_cancel()

    def action_cancel(self) -> None:
        self.core.modal.close()
        self.dismiss()

    @work(exclusive=True)
    async def run_submit(self) -> None:
        try:
            await self.core.modal.submit()
        except ValidationFailure as exc:
            self.query_one("#modal-alert", AlertBox).show(
                Advisory(panel="modal", level="danger", heading=exc.heading, message=exc.message))
        if not self.core.modal.is_open:
            if self.app.screen is self:
                self.dismiss()
            return
        self._sync()


# ═══════════════════════════════════════════════════════════════════════════
#  Admin view
# ═══════════════════════════════════════════════════════════════════════════
class AdminScreen(Screen):
    BINDINGS = [
        Binding("r", "refresh", "Refresh"),
        Binding("t", "toggle_role", "Role"),
        Binding("p", "change_password", "Password"),
        Binding("x", "remove", "Remove"),
        Binding("ctrl+l", "app.logout", "Logout"),
    ]

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="admin-view"):
            yield Label("", id="whoami", classes="screen-title")
            yield AlertBox(id="main-alert")
            with Horizontal(id="add-row"):
                yield Input(placeholder="new username", id="addusername")
                yield Label("admin", classes="switch-label")
                yield Switch(value=False, id="addrole")
                yield Button("Add", id="btn-add", variant="primary")
            yield Rule()
            yield DataTable(id="user-list")
        yield Footer()

    @property
    def core(self) -> ConsoleApp:
        return self.app.core  # type: ignore[attr-defined]

    def on_mount(self) -> None:
        session = self.core.session.session
        if session:
            self.query_one("#whoami", Label).update(f"  {session.identity} · Admin")
        table = self.query_one("#user-list", DataTable)
        table.cursor_type = "row"
        table.add_columns("Username", "Role", "Last changed", "Valid", "Supported", "Format")
        self._load_rows()

    def on_screen_resume(self) -> None:
        self._load_rows()

    def show_advisory(self, advisory: Advisory) -> None:
        if advisory.panel == "main":
            self.query_one("#main-alert", AlertBox).show(advisory)
        # every successful admin action ends in a list refresh
        self._load_rows()

    def _load_rows(self) -> None:
        try:
            table = self.query_one("#user-list", DataTable)
        except NoMatches:
            return
        table.clear()
        for r in self.core.admin_console.rows:
            role = Text(r.role_label, style="bold blue" if r.record.is_admin else "dim")
            table.add_row(r.name, role, r.last_changed, _flag(r.record.is_valid),
                          _flag(r.record.is_supported), r.format_descriptor, key=r.name)

    def _selected(self) -> Optional[str]:
        table = self.query_one("#user-list", DataTable)
        if not table.row_count:
            return None
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        return str(row_key.value) if row_key.value is not None else None

    @work(exclusive=True, group="admin")
    async def action_refresh(self) -> None:
        await self.core.admin_console.refresh()
        self._load_rows()

    @work(exclusive=True, group="admin")
    async def action_toggle_role(self) -> None:
        name = self._selected()
        if name:
            await self.core.admin_console.toggle_role(name)
            self._load_rows()

    @work(exclusive=True, group="admin")
    async def action_remove(self) -> None:
        name = self._selected()
        if name:
            await self.core.admin_console.remove(name)
            self._load_rows()

    def action_change_password(self) -> None:
        name = self._selected()
        if name:
            self.core.admin_console.change_password(name)
            self.app.push_screen(PasswordScreen())

    @on(Input.Submitted, "#addusername")
    @on(Button.Pressed, "#btn-add")
    def on_add(self) -> None:
        admin = self.core.admin_console
        admin.add_username = self.query_one("#addusername", Input).value
        admin.add_as_admin = self.query_one("#addrole", Switch).value
        try:
            admin.add_user()
        except ValidationFailure as exc:
            self.query_one("#main-alert", AlertBox).show(
                Advisory(panel="main", level="danger", heading=exc.heading, message=exc.message))
            return
        self.query_one("#addusername", Input).value = ""
        self.app.push_screen(PasswordScreen())


# ═══════════════════════════════════════════════════════════════════════════
#  User view
# ═══════════════════════════════════════════════════════════════════════════
class UserScreen(Screen):
    BINDINGS = [
        Binding("p", "change_password", "Password"),
        Binding("ctrl+l", "app.logout", "Logout"),
    ]

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="user-view"):
            yield AlertBox(id="main-alert")
            yield Label("", id="user-name", classes="screen-title")
            yield Label("", id="user-lastchange")
            yield Button("Change password  [p]", id="btn-password", variant="primary")
        yield Footer()

    @property
    def core(self) -> ConsoleApp:
        return self.app.core  # type: ignore[attr-defined]

    def on_mount(self) -> None:
        view = self.core.user_console
        self.query_one("#user-name", Label).update(f"  {view.username} · User")
        self.query_one("#user-lastchange", Label).update(f"  password last changed: {view.last_changed}")

    def show_advisory(self, advisory: Advisory) -> None:
        if advisory.panel == "main":
            self.query_one("#main-alert", AlertBox).show(advisory)

    @on(Button.Pressed, "#btn-password")
    def on_password_pressed(self) -> None:
        self.action_change_password()

    def action_change_password(self) -> None:
        self.core.user_console.change_password()
        self.app.push_screen(PasswordScreen())


# ═══════════════════════════════════════════════════════════════════════════
#  Main App
# ═══════════════════════════════════════════════════════════════════════════
class WhawtyConsoleApp(App):
    """Credential management for whawty."""

    TITLE = "whawty"
    SUB_TITLE = "credential console"

    CSS = """
    #loginbox, #user-view { width: 60; height: auto; margin: 2 4; }
    #password-dialog { width: 64; height: auto; border: thick $primary; background: $surface; padding: 1 2; }
    PasswordScreen { align: center middle; }
    #add-row { height: auto; }
    #addusername { width: 1fr; }
    .switch-label { padding: 1 1; }
    .screen-title { text-style: bold; padding: 1 0; }
    Input.has-error { border: tall $error; }
    Input.has-success { border: tall $success; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("?", "toggle_help", "Help", show=True),
    ]

    def __init__(self, config: Optional[ConsoleConfig] = None, core: Optional[ConsoleApp] = None):
        super().__init__()
        self.core = core or ConsoleApp.from_config(config or ConsoleConfig.load())
        self.core.session.subscribe(self._on_session_change)
        self.core.advisories.subscribe(self._on_advisory)

    def _on_session_change(self, store) -> None:
        # logins switch screens from run_login once rows are loaded
        if store.session is None:
            self.call_later(self.show_current)

    def _on_advisory(self, advisory: Advisory) -> None:
        handler = getattr(self.screen, "show_advisory", None)
        if handler is not None:
            handler(advisory)

    async def on_mount(self) -> None:
        await self.core.start()
        self.show_current()

    async def on_unmount(self) -> None:
        await self.core.aclose()

    def show_current(self) -> None:
        """Put the screen for the current session state on top."""
        while isinstance(self.screen, ModalScreen):
            self.pop_screen()
        console = self.core.active_console
        if console is None:
            target: Screen = LoginScreen()
        elif console is self.core.admin_console:
            target = AdminScreen()
        else:
            target = UserScreen()
        if type(self.screen) is type(target):
            return
        if len(self.screen_stack) > 1:
            self.switch_screen(target)
        else:
            self.push_screen(target)

    def action_logout(self) -> None:
        self.core.logout()

    def action_toggle_help(self) -> None:
        self.notify(
            "r refresh · t role · p password · x remove · ctrl+l logout · q quit",
            title="Keybindings",
            timeout=5,
        )
