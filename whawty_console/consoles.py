"""AdminConsole and UserConsole: the two views a logged-in user can get.

The admin console never patches its table: every successful mutation is
followed by a full list-full query and the rows are replaced wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from whawty_console.advisories import AdvisoryBoard
from whawty_console.dispatcher import ApiResult, RequestDispatcher
from whawty_console.errors import ValidationFailure
from whawty_console.modal import CredentialModalFlow, SubmitBinding
from whawty_console.models import (
    Purpose,
    UserListResponse,
    UsernameResponse,
    UserRecord,
    format_timestamp,
)
from whawty_console.session import SessionStore


@dataclass(frozen=True)
class UserRow:
    """Display-ready row for one user in the admin table."""

    record: UserRecord

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def role_label(self) -> str:
        return "Admin" if self.record.is_admin else "User"

    @property
    def last_changed(self) -> str:
        return format_timestamp(self.record.last_changed)

    @property
    def format_descriptor(self) -> str:
        return self.record.format_descriptor


def _username(data: object, fallback: str) -> str:
    if isinstance(data, UsernameResponse) and data.username:
        return data.username
    return fallback


class AdminConsole:
    def __init__(
        self,
        session_store: SessionStore,
        dispatcher: RequestDispatcher,
        modal: CredentialModalFlow,
        advisories: AdvisoryBoard,
    ):
        self._session = session_store
        self._dispatcher = dispatcher
        self._modal = modal
        self._advisories = advisories
        self.rows: list[UserRow] = []
        self.add_username = ""
        self.add_as_admin = False
        self.refresh_count = 0

    async def activate(self) -> None:
        self.add_username = ""
        self.add_as_admin = False
        await self.refresh()

    def deactivate(self) -> None:
        self.rows = []

    def row(self, name: str) -> Optional[UserRow]:
        return next((r for r in self.rows if r.name == name), None)

    async def refresh(self) -> ApiResult:
        self.refresh_count += 1
        result = await self._dispatcher.call("list-full")
        if result.ok and isinstance(result.data, UserListResponse):
            self.rows = [UserRow(u) for u in result.data.users]
        return result

    async def list_names(self) -> ApiResult:
        """Names-only listing; does not touch the rendered rows."""
        return await self._dispatcher.call("list")

    # ── Row actions ───────────────────────────────────────────────────────

    async def toggle_role(self, name: str, currently_admin: Optional[bool] = None) -> ApiResult:
        if currently_admin is None:
            row = self.row(name)
            if row is None:
                raise ValidationFailure(f"unknown user {name}")
            currently_admin = row.record.is_admin
        result = await self._dispatcher.call("set-admin", {"username": name, "admin": not currently_admin})
        if result.ok:
            await self.refresh()
        return result

    async def set_admin(self, name: str, admin: bool) -> ApiResult:
        result = await self._dispatcher.call("set-admin", {"username": name, "admin": admin})
        if result.ok:
            await self.refresh()
        return result

    async def remove(self, name: str) -> ApiResult:
        result = await self._dispatcher.call("remove", {"username": name})
        if result.ok:
            self._advisories.success("main", "Remove User",
                                     f"successfully removed user {_username(result.data, name)}")
            await self.refresh()
        return result

    def change_password(self, name: str) -> SubmitBinding:
        async def _done(data: object) -> None:
            if self._session.session is None:
                return
            self._advisories.success("main", "Password Update",
                                     f"successfully updated password for {_username(data, name)}")
            await self.refresh()

        return self._modal.open(Purpose.ADMIN_CHANGE, name, on_success=_done)

    def add_user(self, name: Optional[str] = None, is_admin: Optional[bool] = None) -> SubmitBinding:
        name = (self.add_username if name is None else name).strip()
        is_admin = self.add_as_admin if is_admin is None else is_admin
        if not name:
            raise ValidationFailure("empty username is not allowed")

        async def _done(data: object) -> None:
            if self._session.session is None:
                return
            self.add_username = ""
            self._advisories.success("main", "Add User",
                                     f"successfully added user {_username(data, name)}")
            await self.refresh()

        return self._modal.open(Purpose.ADMIN_CREATE, name, is_admin=is_admin, on_success=_done)


class UserConsole:
    def __init__(
        self,
        session_store: SessionStore,
        modal: CredentialModalFlow,
        advisories: AdvisoryBoard,
    ):
        self._session = session_store
        self._modal = modal
        self._advisories = advisories
        self.username = ""
        self.last_changed = ""

    async def activate(self) -> None:
        session = self._session.session
        self.username = session.identity if session else ""
        self.last_changed = format_timestamp(session.last_changed) if session else ""

    def deactivate(self) -> None:
        self.username = ""
        self.last_changed = ""

    def change_password(self) -> SubmitBinding:
        identity = self._session.identity
        if not identity:
            raise ValidationFailure("not logged in")

        def _done(data: object) -> None:
            if self._session.session is None:
                return
            self._advisories.success("main", "Password Update",
                                     f"successfully updated password for {_username(data, identity)}")

        return self._modal.open(Purpose.SELF_CHANGE, identity, on_success=_done)
