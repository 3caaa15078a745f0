"""ConsoleApp wires the session, dispatcher, dialog and both consoles together.

The session listener decides which console is active. Logging out (by the
user or by a 401) closes the password dialog and empties both consoles
synchronously; logging in is followed by an awaited console activation.
"""

from __future__ import annotations

from typing import Optional, Union

import httpx

from whawty_console.advisor import PasswordAdvisor
from whawty_console.advisories import AdvisoryBoard
from whawty_console.audit_log import AuditLog
from whawty_console.config import ConsoleConfig
from whawty_console.consoles import AdminConsole, UserConsole
from whawty_console.dispatcher import RequestDispatcher
from whawty_console.errors import AuthenticationFailure
from whawty_console.forms import LoginForm
from whawty_console.modal import CredentialModalFlow
from whawty_console.models import AuthResponse, Session
from whawty_console.session import SessionState, SessionStore
from whawty_console.storage import FileStorage, MemoryStorage, SessionStorage


class ConsoleApp:
    def __init__(
        self,
        config: Optional[ConsoleConfig] = None,
        *,
        storage: Optional[SessionStorage] = None,
        client: Optional[httpx.AsyncClient] = None,
        advisor: Optional[PasswordAdvisor] = None,
        audit_log: Optional[AuditLog] = None,
    ):
        self.config = config or ConsoleConfig()
        self.audit = audit_log or AuditLog()
        self.advisories = AdvisoryBoard()
        self.login_form = LoginForm()
        self.session = SessionStore(storage or MemoryStorage(), self.audit)
        self.dispatcher = RequestDispatcher(
            self.session,
            self.advisories,
            self.login_form,
            self.config.base_url,
            timeout=self.config.timeout,
            verify=self.config.verify_tls,
            client=client,
            audit_log=self.audit,
        )
        self.advisor = advisor or PasswordAdvisor(self.config.product_name)
        self.modal = CredentialModalFlow(self.dispatcher, self.advisor, self.audit)
        self.admin_console = AdminConsole(self.session, self.dispatcher, self.modal, self.advisories)
        self.user_console = UserConsole(self.session, self.modal, self.advisories)
        self.active_console: Optional[Union[AdminConsole, UserConsole]] = None
        self.session.subscribe(self._on_session_change)

    @classmethod
    def from_config(cls, config: ConsoleConfig) -> "ConsoleApp":
        """File-backed session storage and audit log, as used by the CLI and TUI."""
        return cls(
            config,
            storage=FileStorage(config.session_file),
            audit_log=AuditLog(config.audit_file),
        )

    async def __aenter__(self) -> "ConsoleApp":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.dispatcher.aclose()

    @property
    def logged_in(self) -> bool:
        return self.session.state is SessionState.LOGGED_IN

    def _on_session_change(self, store: SessionStore) -> None:
        if store.session is not None:
            self.active_console = self.admin_console if store.session.is_admin else self.user_console
            return
        self.modal.close()
        self.admin_console.deactivate()
        self.user_console.deactivate()
        self.active_console = None

    async def start(self) -> Optional[Session]:
        """Pick up a persisted session, if there is a usable one."""
        session = self.session.restore()
        if session is not None and self.active_console is not None:
            await self.active_console.activate()
        return session

    async def submit_login(self, username: Optional[str] = None, password: Optional[str] = None) -> bool:
        if username is not None:
            self.login_form.username = username
        if password is not None:
            self.login_form.password = password
        user, pw = self.login_form.username, self.login_form.password
        self.advisories.clear("login")

        if not user or not pw:
            self.advisories.error("login", AuthenticationFailure.heading,
                                  "empty username or password is not allowed")
            self.login_form.password = ""
            return False

        result = await self.dispatcher.authenticate(user, pw)
        if not result.ok or not isinstance(result.data, AuthResponse):
            message = result.error.message if result.error else "unexpected response"
            self.advisories.error("login", AuthenticationFailure.heading, message)
            self.login_form.password = ""
            if 200 <= result.status_code < 300:
                self.session.logout()
            return False

        data = result.data
        self.session.login(data.username, data.admin, data.lastchanged, data.session)
        self.login_form.clear()
        self.advisories.clear()
        if self.active_console is not None:
            await self.active_console.activate()
        return True

    def logout(self) -> None:
        self.session.logout()
        self.advisories.clear()
        self.login_form.clear()
        self.audit.flush()
